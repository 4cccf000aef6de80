"""Progress log persistence for resumable bag processing."""

from logging import getLogger
from pathlib import Path
from typing import Any

import orjson
from atomicwrites import atomic_write

from dvingest.domain.progress import ProgressLog

logger = getLogger(__name__)


class ProgressLogManager:
    """Context manager for the progress log of one bag.

    Keeps a JSON document next to the bag's instructions recording which
    remote effects were already applied. Every ``flush`` replaces the file
    atomically, so a crash leaves either the previous or the new record.

    Example:
        with ProgressLogManager(bag_dir / "progress.json") as progress:
            if not progress.data.dataset.completed:
                # Update dataset metadata
                progress.data.dataset.complete()
                progress.flush()
    """

    def __init__(self, path: str | Path):
        """Initialize the manager.

        Args:
            path: Path to the progress log JSON file
        """
        self.path = Path(path)
        self.data: ProgressLog = ProgressLog()
        self._loaded = False

    def __enter__(self) -> "ProgressLogManager":
        """Enter context manager, loading an existing progress log if available."""
        self.load()
        return self

    def load(self) -> ProgressLog:
        """Read the progress log from disk, or start a fresh one."""
        if self.path.exists():
            try:
                content = self.path.read_bytes()
                json_data = orjson.loads(content)
                self.data = ProgressLog.model_validate(self._sanitize_raw_log(json_data))
            except orjson.JSONDecodeError as e:
                logger.error(f"Failed to parse progress log {self.path}: {e}")
                raise
            except OSError as e:
                logger.error(f"Failed to read progress log {self.path}: {e}")
                raise
            logger.debug(f"Resuming from progress log {self.path}")
        else:
            logger.debug(f"No existing progress log at {self.path}, starting fresh")

        self._loaded = True
        return self.data

    def flush(self) -> None:
        """Durably write the current progress log."""
        payload = orjson.dumps(
            self.data.model_dump(mode="json", by_alias=True),
            option=orjson.OPT_INDENT_2,
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(self.path, mode="wb", overwrite=True) as f:
                f.write(payload)
                f.write(b"\n")
        except OSError as e:
            logger.error(f"Failed to write progress log {self.path}: {e}")
            raise

    def __exit__(self, exc_type, _exc_value, _traceback) -> bool:
        """Exit context manager, saving the log if no exception occurred.

        On failure the log is left exactly as last flushed.

        Returns:
            False to propagate any exceptions
        """
        if exc_type is None:
            self.flush()

        return False

    @classmethod
    def _sanitize_raw_log(_cls, payload: Any) -> dict[str, Any]:
        """Drop top-level sections that are not mappings."""
        if not isinstance(payload, dict):
            logger.warning("Progress log is not a mapping, ignoring its content")
            return {}

        sanitized = {key: value for key, value in payload.items() if isinstance(value, dict)}
        for key in payload.keys() - sanitized.keys():
            logger.warning(f"Ignoring malformed progress log section {key}")
        return sanitized
