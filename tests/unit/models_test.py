"""Unit tests for instruction models and the lifecycle action."""

from datetime import date

import pytest
from pydantic import ValidationError

from dvingest.domain.errors import InvalidInstructions
from dvingest.domain.models import (
    EditFiles,
    FileMetaUpdate,
    PublishAction,
    ReleaseMigratedAction,
    RemoteFile,
    UpdateType,
    parse_lifecycle_action,
)


class TestParseLifecycleAction:
    def test_publish(self):
        action = parse_lifecycle_action({"publish": "major"})
        assert action == PublishAction(update_type=UpdateType.MAJOR)

    def test_publish_is_case_insensitive(self):
        assert parse_lifecycle_action({"publish": "MINOR"}).update_type is UpdateType.MINOR

    def test_release_migrated_from_string(self):
        action = parse_lifecycle_action({"releaseMigrated": "2020-02-29"})
        assert action == ReleaseMigratedAction(release_date=date(2020, 2, 29))

    def test_release_migrated_from_yaml_date(self):
        action = parse_lifecycle_action({"releaseMigrated": date(2021, 1, 1)})
        assert action.release_date == date(2021, 1, 1)

    @pytest.mark.parametrize(
        "document",
        [
            {},
            {"publish": "major", "releaseMigrated": "2020-01-01"},
            {"publish": "patch"},
            {"releaseMigrated": "01-01-2020"},
            {"releaseMigrated": "2020-13-01"},
            "publish: major",
            None,
        ],
    )
    def test_invalid_documents_rejected(self, document):
        with pytest.raises(InvalidInstructions):
            parse_lifecycle_action(document)


class TestEditFiles:
    def test_defaults_are_empty(self):
        edit_files = EditFiles()
        assert edit_files.delete_files == []
        assert edit_files.auto_rename_map == {}

    def test_reads_camel_case(self):
        edit_files = EditFiles.model_validate(
            {
                "addRestrictedFiles": ["a.txt"],
                "moveFiles": [{"from": "a/x.txt", "to": "b/x.txt"}],
                "autoRenameFiles": [{"from": "a b.txt", "to": "a_b.txt"}],
                "addEmbargoes": [{"dateAvailable": "2030-01-01", "filePaths": ["a.txt"]}],
            }
        )
        assert edit_files.add_restricted_files == ["a.txt"]
        assert edit_files.move_files[0].source == "a/x.txt"
        assert edit_files.move_files[0].target == "b/x.txt"
        assert edit_files.auto_rename_map == {"a b.txt": "a_b.txt"}
        assert edit_files.add_embargoes[0].date_available == date(2030, 1, 1)

    def test_path_in_two_lists_rejected(self):
        with pytest.raises(ValidationError):
            EditFiles(delete_files=["a.txt"], replace_files=["a.txt"])

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            EditFiles.model_validate({"deleteFile": ["a.txt"]})

    def test_auto_rename_map_is_read_only(self):
        edit_files = EditFiles.model_validate({"autoRenameFiles": [{"from": "a", "to": "b"}]})
        with pytest.raises(TypeError):
            edit_files.auto_rename_map["c"] = "d"


class TestRemoteFile:
    def test_from_api(self):
        remote = RemoteFile.from_api(
            {
                "label": "x.txt",
                "directoryLabel": "a",
                "restricted": True,
                "dataFile": {"id": 7},
            }
        )
        assert remote.id == 7
        assert remote.path == "a/x.txt"
        assert remote.restricted

    def test_with_path_keeps_identity(self):
        remote = RemoteFile(id=1, label="x.txt", directory_label="a", description="d")
        moved = remote.with_path("b/c/y.txt")
        assert moved.id == 1
        assert moved.directory_label == "b/c"
        assert moved.label == "y.txt"
        assert moved.description == "d"
        assert remote.path == "a/x.txt"

    def test_to_api(self):
        remote = RemoteFile(id=1, label="x.txt", directory_label="a", categories=["Data"])
        assert remote.to_api() == {
            "label": "x.txt",
            "directoryLabel": "a",
            "restrict": False,
            "categories": ["Data"],
        }


class TestFileMetaUpdate:
    def test_address_by_label(self):
        update = FileMetaUpdate.model_validate({"label": "x.txt", "directoryLabel": "a"})
        assert update.target_path == "a/x.txt"

    def test_needs_address(self):
        with pytest.raises(ValidationError):
            FileMetaUpdate(description="no address")

    def test_apply_to_only_changes_given_fields(self):
        remote = RemoteFile(id=1, label="x.txt", restricted=True, description="old")
        updated = FileMetaUpdate(path="x.txt", description="new").apply_to(remote)
        assert updated.description == "new"
        assert updated.restricted is True
