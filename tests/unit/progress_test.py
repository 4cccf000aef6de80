"""Unit tests for the progress log model."""

import pytest

from dvingest.domain.errors import ResumeMismatch
from dvingest.domain.progress import CompletableItemWithCount, ProgressLog, fingerprint


class TestCompletableItemWithCount:
    def test_begin_records_fingerprint(self):
        item = CompletableItemWithCount()
        assert item.begin(["a", "b"]) == 0
        assert item.fingerprint == fingerprint(["a", "b"])

    def test_resume_index(self):
        item = CompletableItemWithCount(number_completed=2, fingerprint=fingerprint(["a", "b", "c"]))
        assert item.begin(["a", "b", "c"]) == 2

    def test_changed_list_after_progress_rejected(self):
        item = CompletableItemWithCount(number_completed=1, fingerprint=fingerprint(["a", "b"]))
        with pytest.raises(ResumeMismatch):
            item.begin(["b", "a"])

    def test_changed_list_without_progress_is_rebound(self):
        item = CompletableItemWithCount(fingerprint=fingerprint(["a"]))
        assert item.begin(["b"]) == 0
        assert item.fingerprint == fingerprint(["b"])

    def test_count_beyond_list_rejected(self):
        item = CompletableItemWithCount(number_completed=3)
        with pytest.raises(ResumeMismatch):
            item.begin(["a"])

    def test_advance_cannot_exceed_total(self):
        item = CompletableItemWithCount(number_completed=2)
        with pytest.raises(ValueError):
            item.advance(2, 3)
        item.advance(1, 3)
        assert item.number_completed == 3

    def test_advance_cannot_decrease(self):
        with pytest.raises(ValueError):
            CompletableItemWithCount(number_completed=1).advance(-1, 3)

    def test_complete_sets_count(self):
        item = CompletableItemWithCount(number_completed=1)
        item.complete(4)
        assert item.completed
        assert item.number_completed == 4

    def test_complete_cannot_decrease(self):
        with pytest.raises(ValueError):
            CompletableItemWithCount(number_completed=3).complete(2)


class TestProgressLog:
    def test_serializes_camel_case(self):
        log = ProgressLog()
        log.edit_files.add_unrestricted_individually.number_completed = 2
        dumped = log.model_dump(by_alias=True)

        assert dumped["editFiles"]["addUnrestrictedIndividually"]["numberCompleted"] == 2
        assert dumped["init"]["expect"]["dataverseRoleAssignment"] == {"completed": False}
        assert dumped["updateState"] == {"completed": False}

    def test_reads_camel_case(self):
        log = ProgressLog.model_validate(
            {"editFiles": {"deleteFiles": {"completed": True, "numberCompleted": 1}}}
        )
        assert log.edit_files.delete_files.completed
        assert not log.edit_files.replace_files.completed

    def test_iter_items_lists_every_marker(self):
        names = [name for name, _ in ProgressLog().iter_items()]

        assert names[0] == "init.expect.state"
        assert "init.create" in names
        assert "editFiles.addEmbargoes" in names
        assert names[-1] == "updateState"
        assert len(names) == 3 + 1 + 1 + 2 + 9 + 3 + 1

    def test_fingerprint_is_order_sensitive(self):
        assert fingerprint(["a", "b"]) != fingerprint(["b", "a"])
