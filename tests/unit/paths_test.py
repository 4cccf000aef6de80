"""Unit tests for path reconciliation."""

import pytest

from dvingest.domain.errors import InvalidPath
from dvingest.domain.paths import DataversePath, to_pair, to_path


class TestToPair:
    def test_splits_at_last_separator(self):
        assert to_pair("a/b/c.txt") == DataversePath("a/b", "c.txt")

    def test_no_separator_gives_empty_directory(self):
        assert to_pair("c.txt") == DataversePath("", "c.txt")

    def test_empty_path_rejected(self):
        with pytest.raises(InvalidPath):
            to_pair("")

    def test_trailing_separator_rejected(self):
        with pytest.raises(InvalidPath, match="no leaf label"):
            to_pair("dir/")


class TestToPath:
    def test_joins_labels(self):
        assert to_path("a/b", "c.txt") == "a/b/c.txt"

    def test_empty_directory_label(self):
        assert to_path("", "c.txt") == "c.txt"
        assert to_path(None, "c.txt") == "c.txt"

    def test_label_with_separator_rejected(self):
        with pytest.raises(InvalidPath):
            to_path("", "sub/leaf.txt")

    def test_empty_label_rejected(self):
        with pytest.raises(InvalidPath):
            to_path("dir", "")


@pytest.mark.parametrize("path", ["file.txt", "dir/file.txt", "a/b/c/d.bin", "with space/x y.txt"])
def test_round_trip(path):
    """Splitting and joining gives back the original path."""
    assert to_path(*to_pair(path)) == path
    assert str(to_pair(path)) == path
