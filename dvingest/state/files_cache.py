"""Cache of the files in the target dataset version."""

from collections.abc import Iterable, Mapping
from enum import Enum
from logging import getLogger
from types import MappingProxyType

from dvingest.domain.errors import AlreadyInitialized
from dvingest.domain.models import RemoteFile
from dvingest.operations.remote import RemoteRepository

logger = getLogger(__name__)


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class FilesInDatasetCache:
    """Map from reconciled remote path to remote file, for one bag run.

    Keys are paths as the remote side stores them. Paths taken from the bag
    are first translated through the auto-rename map, which is read-only and
    never merged into the cache itself.
    """

    def __init__(self, repository: RemoteRepository, auto_renamed_files: Mapping[str, str] | None = None):
        self.repository = repository
        self.auto_renamed_files: Mapping[str, str] = MappingProxyType(dict(auto_renamed_files or {}))
        self.state = CacheState.UNINITIALIZED
        self._files: dict[str, RemoteFile] = {}

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, local_path: str) -> bool:
        return self.get(local_path) is not None

    @property
    def files(self) -> Mapping[str, RemoteFile]:
        return MappingProxyType(self._files)

    def auto_rename(self, local_path: str) -> str:
        """Return the path the remote side stores ``local_path`` under."""
        return self.auto_renamed_files.get(local_path, local_path)

    def get(self, local_path: str) -> RemoteFile | None:
        """Look up a file by its path in the bag.

        Args:
            local_path: Path before auto-rename

        Returns:
            The remote file, or None if it is not in the dataset
        """
        return self._files.get(self.auto_rename(local_path))

    def put(self, remote_file: RemoteFile) -> None:
        """Add or overwrite a file under its own (already remote) path."""
        self._files[remote_file.path] = remote_file

    def put_all(self, remote_files: Iterable[RemoteFile]) -> None:
        for remote_file in remote_files:
            self.put(remote_file)

    def remove(self, local_path: str) -> None:
        """Forget a file, addressed by its path in the bag."""
        self._files.pop(self.auto_rename(local_path), None)

    def remove_all(self, local_paths: Iterable[str]) -> None:
        for local_path in local_paths:
            self.remove(local_path)

    def load_from_remote(self, pid: str) -> None:
        """Fill the cache with the file listing of the dataset.

        Listing a large dataset is expensive, so this is done at most once.

        Raises:
            AlreadyInitialized: If the cache was loaded before
        """
        if self.state is CacheState.INITIALIZED:
            raise AlreadyInitialized("Cache already initialized")

        logger.debug(f"Start getting files in dataset {pid}")
        self.put_all(self.repository.list_files(pid))
        self.state = CacheState.INITIALIZED
        logger.debug(f"End getting files in dataset {pid}: {len(self._files)} file(s)")

    def move_target_identity(self, new_local_path: str, remote_file: RemoteFile) -> RemoteFile:
        """Return ``remote_file`` as it will be after a move to ``new_local_path``.

        The cache is not changed; callers update the remote side first and
        then ``put`` the result.
        """
        return remote_file.with_path(self.auto_rename(new_local_path))
