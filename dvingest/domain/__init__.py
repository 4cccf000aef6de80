"""Domain models and business logic."""

from dvingest.domain.errors import (
    AlreadyInitialized,
    DuplicateJob,
    FileNotFound,
    FilesNotFound,
    IngestError,
    InvalidInstructions,
    InvalidPath,
    MissingMetadata,
    PublishTimeout,
    RejectedDeposit,
    RemoteError,
    ResumeMismatch,
)
from dvingest.domain.models import (
    BagInstructions,
    EditFiles,
    EditMetadata,
    EditPermissions,
    LifecycleAction,
    PublishAction,
    ReleaseMigratedAction,
    RemoteFile,
    parse_lifecycle_action,
)
from dvingest.domain.paths import DataversePath, to_pair, to_path
from dvingest.domain.progress import ProgressLog
from dvingest.domain.types import Sleeper, UploadProgressHook

__all__ = [
    "AlreadyInitialized",
    "BagInstructions",
    "DataversePath",
    "DuplicateJob",
    "EditFiles",
    "EditMetadata",
    "EditPermissions",
    "FileNotFound",
    "FilesNotFound",
    "IngestError",
    "InvalidInstructions",
    "InvalidPath",
    "LifecycleAction",
    "MissingMetadata",
    "ProgressLog",
    "PublishAction",
    "PublishTimeout",
    "RejectedDeposit",
    "ReleaseMigratedAction",
    "RemoteError",
    "RemoteFile",
    "ResumeMismatch",
    "Sleeper",
    "UploadProgressHook",
    "parse_lifecycle_action",
    "to_pair",
    "to_path",
]
