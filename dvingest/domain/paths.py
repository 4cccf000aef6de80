"""Conversion between bag paths and the remote two-part file address.

The remote repository addresses a file by a directory label and a leaf label.
Locally we reason about a single ``/``-separated path string.
"""

from typing import NamedTuple

from dvingest.domain.errors import InvalidPath

SEPARATOR = "/"


class DataversePath(NamedTuple):
    """A file address as the remote repository stores it."""

    directory_label: str
    label: str

    def __str__(self) -> str:
        return to_path(self.directory_label, self.label)


def to_pair(path: str) -> DataversePath:
    """Split ``path`` at its last separator.

    Args:
        path: Non-empty path relative to the payload root

    Returns:
        The directory label (empty if there is none) and the leaf label

    Raises:
        InvalidPath: If ``path`` is empty or ends in a separator
    """
    if not path:
        raise InvalidPath("path is empty")

    directory_label, _, label = path.rpartition(SEPARATOR)
    if not label:
        raise InvalidPath(f"path has no leaf label: {path}")
    return DataversePath(directory_label, label)


def to_path(directory_label: str | None, label: str) -> str:
    """Join a directory label and a leaf label into a single path.

    Raises:
        InvalidPath: If ``label`` is empty or contains a separator
    """
    if not label:
        raise InvalidPath("label is empty")
    if SEPARATOR in label:
        raise InvalidPath(f"label contains slash: {label}")

    return f"{directory_label}{SEPARATOR}{label}" if directory_label else label
