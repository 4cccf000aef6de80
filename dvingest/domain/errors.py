"""Error taxonomy for bag ingestion.

Every error raised by the pipeline derives from ``IngestError``. Errors are
never swallowed inside a bag: they abort the bag and are reported at the
deposit boundary, leaving the progress log as it was last flushed.
"""

from collections.abc import Iterable


class IngestError(Exception):
    """Base class for all ingest errors."""


class InvalidPath(IngestError, ValueError):
    """A path cannot be expressed as a directory label and a leaf label."""


class FileNotFound(IngestError):
    """A single referenced file is missing (remotely or in the bag)."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class FilesNotFound(IngestError):
    """One or more paths of a batch could not be resolved in the dataset."""

    def __init__(self, paths: Iterable[str], action: str = "edit"):
        self.paths = list(paths)
        self.action = action
        super().__init__(f"Files to {action} not found in dataset: {', '.join(self.paths)}")


class AlreadyInitialized(IngestError):
    """The files cache was already loaded from the remote dataset."""


class MissingMetadata(IngestError):
    """A new dataset was requested but the bag has no dataset metadata."""


class InvalidInstructions(IngestError, ValueError):
    """An instruction document in the bag is malformed or contradictory."""


class ResumeMismatch(IngestError):
    """A checkpointed list changed between the failed run and its retry."""


class RejectedDeposit(IngestError):
    """A precondition declared by the deposit does not hold."""


class PublishTimeout(IngestError):
    """The dataset did not reach the expected state while polling."""

    def __init__(self, expected_state: str, waited_ms: int, last_state: str):
        self.expected_state = expected_state
        self.waited_ms = waited_ms
        self.last_state = last_state
        super().__init__(
            f"Dataset did not become {expected_state} within the wait period "
            f"({waited_ms} ms); current state is {last_state}"
        )


class RemoteError(IngestError):
    """The remote repository rejected a call or could not be reached.

    ``status_code`` is None for transport failures (connection refused,
    timeouts). Transport failures, 429 and 5xx responses are retryable by
    restarting the bag; other responses are fatal.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Return True if a later retry of the same bag may succeed."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class DuplicateJob(IngestError):
    """An import job for the same location is still pending or running."""
