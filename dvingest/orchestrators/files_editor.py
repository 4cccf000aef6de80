"""File edit sub-pipeline.

Reconciles the files of the target dataset with a bag's ``editFiles``
instructions. Sub-steps run in a fixed order and each one is skipped when the
progress log marks it completed:

1. delete files
2. replace files
3. add restricted files (batched)
4. add unrestricted files (batched)
5. add restricted files individually
6. add unrestricted files individually
7. move files
8. update file metadata
9. add embargoes

The progress log is flushed after every remote call, so a restarted run
repeats at most the call that was in flight when the previous run stopped.
"""

from collections.abc import Callable, Sequence
from contextlib import closing
from logging import getLogger
from pathlib import Path

from dvingest.domain.errors import FileNotFound, FilesNotFound
from dvingest.domain.models import EditFiles, RemoteFile
from dvingest.domain.paths import to_pair
from dvingest.domain.progress import CompletableItemWithCount, EditFilesLog
from dvingest.domain.types import UploadProgressHook
from dvingest.operations.bag import payload_files
from dvingest.operations.packing import BatchPacker, wrap_if_archive
from dvingest.operations.remote import RemoteRepository
from dvingest.state.files_cache import CacheState, FilesInDatasetCache
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)

HookFactory = Callable[[str], UploadProgressHook]


def _no_progress(done: int, total: int | None) -> None:
    pass


class FilesEditor:
    """Apply the file edit instructions of one bag to one dataset."""

    def __init__(
        self,
        deposit_id: str,
        data_dir: Path,
        edit_files: EditFiles | None,
        repository: RemoteRepository,
        progress: ProgressLogManager,
        max_files_per_upload: int = 1000,
        max_bytes_per_upload: int = 1024 * 1024 * 1024,
        temp_dir: Path | None = None,
        hook_factory: HookFactory | None = None,
    ):
        """Initialize the editor.

        Args:
            deposit_id: Deposit the bag belongs to, for logging
            data_dir: Payload directory of the bag
            edit_files: Instructions, or None to upload the whole payload unrestricted
            repository: Remote repository
            progress: Progress log of the bag
            max_files_per_upload: File count budget of one batch
            max_bytes_per_upload: Byte budget of one batch
            temp_dir: Directory for temporary archives
            hook_factory: Returns an upload progress hook for a sub-step description
        """
        self.deposit_id = deposit_id
        self.data_dir = Path(data_dir)
        self.has_instructions = edit_files is not None
        self.instructions = edit_files or EditFiles()
        self.repository = repository
        self.progress = progress
        self.max_files_per_upload = max_files_per_upload
        self.max_bytes_per_upload = max_bytes_per_upload
        self.temp_dir = temp_dir
        self.hook_factory = hook_factory
        self.cache = FilesInDatasetCache(repository, self.instructions.auto_rename_map)

    @property
    def log(self) -> EditFilesLog:
        return self.progress.data.edit_files

    def edit_files(self, pid: str) -> None:
        """Run all file edit sub-steps against dataset ``pid``."""
        if not self.has_instructions and not payload_files(self.data_dir):
            logger.debug(f"No files to edit for deposit {self.deposit_id}")
            self.log.complete_all()
            self.progress.flush()
            return

        logger.debug(f"Start editing files for deposit {self.deposit_id}")
        restricted, unrestricted = self._batch_candidates()

        self._delete_files(pid)
        self._replace_files(pid)
        self._add_batched(pid, "restricted", restricted, self.log.add_restricted_files, restricted=True)
        self._add_batched(pid, "unrestricted", unrestricted, self.log.add_unrestricted_files, restricted=False)
        self._add_individually(
            pid,
            self.instructions.add_restricted_individually,
            self.log.add_restricted_individually,
            restricted=True,
        )
        self._add_individually(
            pid,
            self.instructions.add_unrestricted_individually,
            self.log.add_unrestricted_individually,
            restricted=False,
        )
        self._move_files(pid)
        self._update_file_metas(pid)
        self._add_embargoes(pid)
        logger.debug(f"End editing files for deposit {self.deposit_id}")

    def _files_in_dataset(self, pid: str) -> FilesInDatasetCache:
        if self.cache.state is CacheState.UNINITIALIZED:
            self.cache.load_from_remote(pid)
        return self.cache

    def _resolve_all(self, pid: str, paths: Sequence[str], action: str) -> list[RemoteFile]:
        """Resolve every path or fail before any remote change is made."""
        cache = self._files_in_dataset(pid)
        missing = [path for path in paths if cache.get(path) is None]
        if missing:
            raise FilesNotFound(missing, action)
        return [cache.get(path) for path in paths]

    def _hook(self, description: str) -> UploadProgressHook:
        if self.hook_factory is None:
            return _no_progress
        return self.hook_factory(description)

    def _checkpoint(self, item: CompletableItemWithCount, count: int, total: int) -> None:
        item.advance(count, total)
        self.progress.flush()

    def _finish(self, item: CompletableItemWithCount, total: int) -> None:
        item.complete(total)
        self.progress.flush()

    def _batch_candidates(self) -> tuple[list[Path], list[Path]]:
        """Split the payload into files to add restricted and unrestricted in batches.

        Files to delete, replace, ignore or add individually are never batched.
        Files not listed as restricted go into the unrestricted batch, limited to
        ``addUnrestrictedFiles`` when that list is given.
        """
        ef = self.instructions
        excluded = set(ef.delete_files) | set(ef.replace_files) | set(ef.ignore_files) | ef.individually_added
        restricted_paths = set(ef.add_restricted_files)
        unrestricted_paths = set(ef.add_unrestricted_files)

        restricted: list[Path] = []
        unrestricted: list[Path] = []
        for path in payload_files(self.data_dir):
            relative = path.relative_to(self.data_dir).as_posix()
            if relative in excluded:
                continue
            if relative in restricted_paths:
                restricted.append(path)
            elif not unrestricted_paths or relative in unrestricted_paths:
                unrestricted.append(path)
        return restricted, unrestricted

    def _delete_files(self, pid: str) -> None:
        item = self.log.delete_files
        paths = self.instructions.delete_files
        if item.completed:
            logger.debug(f"Already completed deleting files for deposit {self.deposit_id}")
            return

        if paths:
            logger.debug(f"Start deleting {len(paths)} files for deposit {self.deposit_id}")
            item.begin(paths)
            files = self._resolve_all(pid, paths, "delete")
            self.repository.delete_files(pid, [f.id for f in files])
            self.cache.remove_all(paths)
            logger.debug(f"End deleting files for deposit {self.deposit_id}")
        self._finish(item, len(paths))

    def _replace_files(self, pid: str) -> None:
        item = self.log.replace_files
        paths = self.instructions.replace_files
        if item.completed:
            logger.debug(f"Already completed replacing files for deposit {self.deposit_id}")
            return

        start = item.begin(paths)
        if paths[start:]:
            logger.debug(f"Start replacing {len(paths) - start} files for deposit {self.deposit_id}")
            cache = self._files_in_dataset(pid)
            hook = self._hook("Replacing files")
            for index, path in enumerate(paths[start:], start=start):
                existing = cache.get(path)
                if existing is None:
                    raise FileNotFound(f"File to replace not found in dataset: {path}", path)
                local = self.data_dir / path
                if not local.is_file():
                    raise FileNotFound(f"File to replace not found in bag: {path}", path)

                with wrap_if_archive(local, self.temp_dir) as upload:
                    replaced = self.repository.replace_file(pid, existing, upload)
                cache.remove(path)
                cache.put(replaced)
                self._checkpoint(item, 1, len(paths))
                hook(index + 1, len(paths))
            logger.debug(f"End replacing files for deposit {self.deposit_id}")
        self._finish(item, len(paths))

    def _add_batched(
        self,
        pid: str,
        kind: str,
        candidates: list[Path],
        item: CompletableItemWithCount,
        restricted: bool,
    ) -> None:
        if item.completed:
            logger.debug(f"Already completed adding {kind} files for deposit {self.deposit_id}")
            return

        relative = [p.relative_to(self.data_dir).as_posix() for p in candidates]
        start = item.begin(relative)
        remaining = candidates[start:]
        if remaining:
            logger.debug(
                f"Start adding {len(remaining)} {kind} files for deposit {self.deposit_id}"
                + (f" (skipping {start} already uploaded)" if start else "")
            )
            cache = self._files_in_dataset(pid)
            hook = self._hook(f"Adding {kind} files")
            packer = BatchPacker(
                self.data_dir, self.max_files_per_upload, self.max_bytes_per_upload, self.temp_dir
            )
            with closing(packer.pack(remaining)) as batches:
                for batch in batches:
                    added = self.repository.add_files(pid, batch.archive, restricted)
                    cache.put_all(added)
                    self._checkpoint(item, batch.count, len(relative))
                    logger.debug(
                        f"Uploaded {len(added)} files, {item.number_completed} cumulative, "
                        f"for deposit {self.deposit_id}"
                    )
                    hook(item.number_completed, len(relative))
            logger.debug(f"End adding {kind} files for deposit {self.deposit_id}")
        self._finish(item, len(relative))

    def _add_individually(
        self, pid: str, paths: list[str], item: CompletableItemWithCount, restricted: bool
    ) -> None:
        kind = "restricted" if restricted else "unrestricted"
        if item.completed:
            logger.debug(f"Already completed adding {kind} files individually for deposit {self.deposit_id}")
            return

        start = item.begin(paths)
        if paths[start:]:
            logger.debug(f"Start adding {len(paths) - start} {kind} files individually for deposit {self.deposit_id}")
            cache = self._files_in_dataset(pid)
            hook = self._hook(f"Adding {kind} files individually")
            for index, path in enumerate(paths[start:], start=start):
                local = self.data_dir / path
                if not local.is_file():
                    raise FileNotFound(f"File to add not found in bag: {path}", path)

                directory_label, _ = to_pair(path)
                with wrap_if_archive(local, self.temp_dir) as upload:
                    added = self.repository.add_files(
                        pid, upload, restricted, directory_label=directory_label or None
                    )
                cache.put_all(added)
                self._checkpoint(item, 1, len(paths))
                hook(index + 1, len(paths))
            logger.debug(f"End adding {kind} files individually for deposit {self.deposit_id}")
        self._finish(item, len(paths))

    def _move_files(self, pid: str) -> None:
        item = self.log.move_files
        moves = self.instructions.move_files
        if item.completed:
            logger.debug(f"Already completed moving files for deposit {self.deposit_id}")
            return

        if moves:
            logger.debug(f"Start moving {len(moves)} files for deposit {self.deposit_id}")
            item.begin(moves)
            sources = self._resolve_all(pid, [move.source for move in moves], "move")
            moved = [
                self.cache.move_target_identity(move.target, source) for move, source in zip(moves, sources)
            ]
            self.repository.update_file_metadatas(pid, moved)
            # All sources first: a target may also be the source of a later move
            self.cache.remove_all(move.source for move in moves)
            self.cache.put_all(moved)
            logger.debug(f"End moving files for deposit {self.deposit_id}")
        self._finish(item, len(moves))

    def _update_file_metas(self, pid: str) -> None:
        item = self.log.update_file_metas
        updates = self.instructions.update_file_metas
        if item.completed:
            logger.debug(f"Already completed updating file metadata for deposit {self.deposit_id}")
            return

        if updates:
            logger.debug(f"Start updating {len(updates)} file metas for deposit {self.deposit_id}")
            item.begin(updates)
            current = self._resolve_all(pid, [update.target_path for update in updates], "update")
            updated = [update.apply_to(remote) for update, remote in zip(updates, current)]
            self.repository.update_file_metadatas(pid, updated)
            self.cache.put_all(updated)
            logger.debug(f"End updating file metadata for deposit {self.deposit_id}")
        self._finish(item, len(updates))

    def _add_embargoes(self, pid: str) -> None:
        item = self.log.add_embargoes
        embargoes = self.instructions.add_embargoes
        if item.completed:
            logger.debug(f"Already completed adding embargoes for deposit {self.deposit_id}")
            return

        start = item.begin(embargoes)
        pending = embargoes[start:]
        if pending:
            logger.debug(f"Start adding {len(pending)} embargoes for deposit {self.deposit_id}")
            self._resolve_all(pid, [path for embargo in pending for path in embargo.file_paths], "embargo")
            for embargo in pending:
                file_ids = [self.cache.get(path).id for path in embargo.file_paths]
                self.repository.add_embargo(pid, embargo.date_available, embargo.reason, file_ids)
                self._checkpoint(item, 1, len(embargoes))
            logger.debug(f"End adding embargoes for deposit {self.deposit_id}")
        self._finish(item, len(embargoes))
