"""Configure tests."""

import zipfile
from datetime import date
from pathlib import Path

import pytest
import yaml

from dvingest.config import Settings
from dvingest.domain.errors import RemoteError
from dvingest.domain.models import RemoteFile, RoleAssignment, UpdateType
from dvingest.state.manager import ProgressLogManager

DEFAULT_PID = "doi:10.5072/FK2/ABCDEF"
CREATED_PID = "doi:10.5072/FK2/NEWONE"


class FakeRepository:
    """In-memory remote repository that records every call.

    ``fail_on`` maps a method name to the number of calls that succeed before
    the next one raises a retryable RemoteError, to simulate a crash.
    """

    def __init__(self, files: list[RemoteFile] | None = None, state: str | None = "DRAFT"):
        self.calls: list[tuple[str, tuple]] = []
        self.files: dict[int, RemoteFile] = {f.id: f for f in files or []}
        self._next_id = max(self.files, default=0) + 1
        self.state = state
        self.state_after_publish = "RELEASED"
        self.dataset_roles: list[RoleAssignment] = []
        self.collection_roles: list[RoleAssignment] = []
        self.renames: dict[str, str] = {}
        self.fail_on: dict[str, int] = {}

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        budget = self.fail_on.get(name)
        if budget is not None:
            if budget == 0:
                raise RemoteError(f"{name} failed", status_code=503)
            self.fail_on[name] = budget - 1

    def calls_to(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    def paths(self) -> set[str]:
        return {f.path for f in self.files.values()}

    def _new_file(self, path: str, restricted: bool) -> RemoteFile:
        path = self.renames.get(path, path)
        remote = RemoteFile(id=self._next_id, label="x", restricted=restricted).with_path(path)
        self.files[remote.id] = remote
        self._next_id += 1
        return remote

    def create_dataset(self, dataset):
        self._record("create_dataset", dataset)
        self.state = "DRAFT"
        return CREATED_PID

    def import_dataset(self, pid, dataset):
        self._record("import_dataset", pid, dataset)
        self.state = "DRAFT"

    def update_metadata(self, pid, dataset_version):
        self._record("update_metadata", pid, dataset_version)

    def get_dataset_state(self, pid):
        self._record("get_dataset_state", pid)
        return self.state

    def list_files(self, pid):
        self._record("list_files", pid)
        return list(self.files.values())

    def add_files(self, pid, path: Path, restricted, directory_label=None):
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as zf:
                entries = zf.namelist()
        else:
            entries = [path.name]
        if directory_label:
            entries = [f"{directory_label}/{entry}" for entry in entries]
        self._record("add_files", pid, tuple(entries), restricted)
        return [self._new_file(entry, restricted) for entry in entries]

    def replace_file(self, pid, existing, path):
        self._record("replace_file", pid, existing.path, path.name)
        del self.files[existing.id]
        replaced = existing.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self.files[replaced.id] = replaced
        return replaced

    def delete_files(self, pid, file_ids):
        self._record("delete_files", pid, tuple(file_ids))
        for file_id in file_ids:
            del self.files[file_id]

    def update_file_metadatas(self, pid, files):
        self._record("update_file_metadatas", pid, tuple(files))
        for f in files:
            self.files[f.id] = f

    def add_embargo(self, pid, date_available: date, reason, file_ids):
        self._record("add_embargo", pid, date_available, reason, tuple(file_ids))

    def get_role_assignments(self, pid):
        self._record("get_role_assignments", pid)
        return list(self.dataset_roles)

    def get_collection_role_assignments(self, alias):
        self._record("get_collection_role_assignments", alias)
        return list(self.collection_roles)

    def add_role_assignment(self, pid, assignment):
        self._record("add_role_assignment", pid, assignment)
        self.dataset_roles.append(assignment)

    def delete_role_assignment(self, pid, assignment):
        self._record("delete_role_assignment", pid, assignment)
        self.dataset_roles = [a for a in self.dataset_roles if a != assignment]

    def edit_metadata(self, pid, fields, replace):
        self._record("edit_metadata", pid, fields, replace)

    def delete_metadata(self, pid, fields):
        self._record("delete_metadata", pid, fields)

    def publish(self, pid, update_type: UpdateType):
        self._record("publish", pid, update_type)
        self.state = self.state_after_publish

    def release_migrated(self, pid, release_date: date):
        self._record("release_migrated", pid, release_date)
        self.state = "RELEASED"


def remote_file(file_id: int, path: str, **kwargs) -> RemoteFile:
    """Build a remote file addressed by ``path``."""
    return RemoteFile(id=file_id, label="x", **kwargs).with_path(path)


def write_bag(root: Path, files: dict[str, bytes | str] | None = None, **documents) -> Path:
    """Lay out a bag on disk.

    Args:
        root: Bag directory to create
        files: Payload files by path relative to ``data/``
        documents: Instruction documents by file name, with ``-`` written as ``_``
            (e.g. ``edit_files={"editFiles": {...}}`` becomes ``edit-files.yml``)

    Returns:
        The bag directory
    """
    root.mkdir(parents=True, exist_ok=True)
    (root / "bagit.txt").write_text("BagIt-Version: 1.0\nTag-File-Character-Encoding: UTF-8\n")
    data_dir = root / "data"
    data_dir.mkdir(exist_ok=True)
    for path, content in (files or {}).items():
        target = data_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            target.write_text(content)
        else:
            target.write_bytes(content)
    for name, document in documents.items():
        (root / f"{name.replace('_', '-')}.yml").write_text(yaml.safe_dump(document, sort_keys=False))
    return root


@pytest.fixture
def repository():
    """Empty fake repository holding a draft dataset."""
    return FakeRepository()


@pytest.fixture
def progress(tmp_path):
    """Fresh progress log manager, loaded."""
    with ProgressLogManager(tmp_path / "progress.json") as manager:
        yield manager


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment, with fast polling."""
    return Settings(
        _env_file=None,
        inbox=tmp_path / "inbox",
        outbox=tmp_path / "outbox",
        publish_poll_interval_ms=0,
        publish_max_retries=2,
    )


@pytest.fixture
def dataset_yml():
    """Minimal dataset metadata document."""
    return {
        "datasetVersion": {
            "metadataBlocks": {
                "citation": {
                    "fields": [{"typeName": "title", "typeClass": "primitive", "multiple": False, "value": "A title"}]
                }
            }
        }
    }
