"""Packing of payload files into upload archives."""

import tempfile
import zipfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path

logger = getLogger(__name__)


@dataclass(frozen=True)
class Batch:
    """One packed upload archive.

    Attributes:
        archive: Temporary zip file holding the batch
        paths: Bag-relative paths of the packed files, in packing order
        size: Sum of the uncompressed file sizes
    """

    archive: Path
    paths: tuple[str, ...]
    size: int

    @property
    def count(self) -> int:
        return len(self.paths)


def _entry_name(root_dir: Path, path: Path) -> str:
    return path.relative_to(root_dir).as_posix()


class BatchPacker:
    """Split an ordered stream of files into count- and size-bounded zip archives.

    The byte budget is checked before taking each file, against the size
    accumulated so far, so a first file larger than the budget still forms a
    batch of its own. Each archive lives in a temporary file that is removed
    once the consumer moves past it, or when the generator is closed.

    Example:
        packer = BatchPacker(bag.data_dir, max_files=1000, max_bytes=2**30)
        with closing(packer.pack(candidates)) as batches:
            for batch in batches:
                upload(batch.archive)
    """

    def __init__(
        self,
        root_dir: Path,
        max_files: int,
        max_bytes: int,
        temp_dir: Path | None = None,
    ):
        """Initialize the packer.

        Args:
            root_dir: Directory the candidate paths are relative to
            max_files: Maximum number of files per archive
            max_bytes: Soft cap on uncompressed bytes per archive
            temp_dir: Directory for the temporary archives (system default if None)
        """
        if max_files < 1 or max_bytes < 1:
            raise ValueError("max_files and max_bytes must be positive")
        self.root_dir = Path(root_dir)
        self.max_files = max_files
        self.max_bytes = max_bytes
        self.temp_dir = temp_dir

    def pack(self, candidates: Iterable[Path]) -> Iterator[Batch]:
        """Yield batches over ``candidates`` in order.

        Args:
            candidates: Absolute paths below ``root_dir``

        Yields:
            Batch for each archive; the archive file is deleted when the next
            batch is requested or the generator is closed
        """
        pending = iter(candidates)
        next_file = next(pending, None)

        while next_file is not None:
            fd, name = tempfile.mkstemp(prefix="dvingest-", suffix=".zip", dir=self.temp_dir)
            archive = Path(name)
            try:
                paths: list[str] = []
                size = 0
                with open(fd, "wb") as raw, zipfile.ZipFile(raw, "w", zipfile.ZIP_DEFLATED) as zf:
                    while next_file is not None and len(paths) < self.max_files and size < self.max_bytes:
                        entry = _entry_name(self.root_dir, next_file)
                        zf.write(next_file, arcname=entry)
                        paths.append(entry)
                        size += next_file.stat().st_size
                        next_file = next(pending, None)

                logger.debug(f"Packed {len(paths)} file(s), {size} bytes into {archive}")
                yield Batch(archive=archive, paths=tuple(paths), size=size)
            finally:
                archive.unlink(missing_ok=True)


def needs_wrapping(path: Path) -> bool:
    """Return True if the remote side would unpack ``path`` on upload."""
    return zipfile.is_zipfile(path)


@contextmanager
def wrap_if_archive(path: Path, temp_dir: Path | None = None) -> Iterator[Path]:
    """Yield a path safe to upload as one opaque file.

    A zip file is wrapped in an uncompressed single-entry zip so the remote
    side stores it as-is instead of expanding it; any other file is yielded
    unchanged. The wrapper is removed on exit.
    """
    if not needs_wrapping(path):
        yield path
        return

    fd, name = tempfile.mkstemp(prefix="dvingest-wrap-", suffix=".zip", dir=temp_dir)
    wrapper = Path(name)
    try:
        with open(fd, "wb") as raw, zipfile.ZipFile(raw, "w", zipfile.ZIP_STORED) as zf:
            zf.write(path, arcname=path.name)
        logger.debug(f"Wrapped archive {path} in {wrapper}")
        yield wrapper
    finally:
        wrapper.unlink(missing_ok=True)
