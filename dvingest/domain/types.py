"""Shared type definitions."""

from collections.abc import Callable

# Progress hook for uploads (files uploaded so far, total files or None if unknown)
UploadProgressHook = Callable[[int, int | None], None]

# Sleep function used while polling (seconds)
Sleeper = Callable[[float], None]
