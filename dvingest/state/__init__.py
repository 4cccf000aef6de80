"""State layer: progress log persistence and the remote files cache."""

from dvingest.state.files_cache import CacheState, FilesInDatasetCache
from dvingest.state.manager import ProgressLogManager

__all__ = ["CacheState", "FilesInDatasetCache", "ProgressLogManager"]
