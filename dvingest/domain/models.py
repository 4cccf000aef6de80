"""Domain models for bag instructions and remote files."""

import re
from collections.abc import Mapping
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from dvingest.domain.errors import InvalidInstructions
from dvingest.domain.paths import to_pair, to_path


class CamelModel(BaseModel):
    """Base for documents exchanged in camelCase (YAML instructions, progress log)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class DatasetState(str, Enum):
    """Lifecycle state of the latest dataset version."""

    DRAFT = "DRAFT"
    RELEASED = "RELEASED"
    DEACCESSIONED = "DEACCESSIONED"


class RemoteFile(BaseModel):
    """Identity and metadata of a file in a remote dataset version."""

    id: int
    label: str
    directory_label: str = ""
    restricted: bool = False
    description: str | None = None
    categories: list[str] = Field(default_factory=list)

    @property
    def path(self) -> str:
        """Return the reconciled path of the file."""
        return to_path(self.directory_label, self.label)

    def with_path(self, path: str) -> "RemoteFile":
        """Return a copy addressed at ``path``."""
        directory_label, label = to_pair(path)
        return self.model_copy(update={"directory_label": directory_label, "label": label})

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteFile":
        """Build from the file-metadata JSON returned by the remote API."""
        return cls(
            id=data["dataFile"]["id"],
            label=data["label"],
            directory_label=data.get("directoryLabel") or "",
            restricted=bool(data.get("restricted", False)),
            description=data.get("description"),
            categories=data.get("categories") or [],
        )

    def to_api(self) -> dict[str, Any]:
        """Render the editable metadata in the remote API's format."""
        payload: dict[str, Any] = {
            "label": self.label,
            "directoryLabel": self.directory_label,
            "restrict": self.restricted,
            "categories": self.categories,
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload


class Move(CamelModel):
    """Move of a file within the dataset."""

    source: str = Field(alias="from")
    target: str = Field(alias="to")


class AutoRename(CamelModel):
    """A rename the remote side applies to an uploaded file."""

    source: str = Field(alias="from")
    target: str = Field(alias="to")


class FileMetaUpdate(CamelModel):
    """New metadata for a file already in the dataset.

    The file is addressed either by ``path`` or by ``label`` plus
    ``directory_label``. ``restrict`` left as None keeps the current value.
    """

    path: str | None = None
    label: str | None = None
    directory_label: str | None = None
    description: str | None = None
    categories: list[str] | None = None
    restrict: bool | None = None

    @model_validator(mode="after")
    def check_address(self) -> "FileMetaUpdate":
        if self.path is None and self.label is None:
            raise ValueError("updateFileMetas entry needs a path or a label")
        return self

    @property
    def target_path(self) -> str:
        if self.path is not None:
            return self.path
        return to_path(self.directory_label or "", self.label or "")

    def apply_to(self, remote_file: RemoteFile) -> RemoteFile:
        """Return ``remote_file`` with this update applied."""
        changes: dict[str, Any] = {}
        if self.description is not None:
            changes["description"] = self.description
        if self.categories is not None:
            changes["categories"] = self.categories
        if self.restrict is not None:
            changes["restricted"] = self.restrict
        return remote_file.model_copy(update=changes)


class AddEmbargo(CamelModel):
    """Embargo on a set of files until ``date_available``."""

    date_available: date
    reason: str | None = None
    file_paths: list[str] = Field(default_factory=list)


class EditFiles(CamelModel):
    """File edit instructions of a bag."""

    delete_files: list[str] = Field(default_factory=list)
    replace_files: list[str] = Field(default_factory=list)
    add_restricted_files: list[str] = Field(default_factory=list)
    add_unrestricted_files: list[str] = Field(default_factory=list)
    add_restricted_individually: list[str] = Field(default_factory=list)
    add_unrestricted_individually: list[str] = Field(default_factory=list)
    ignore_files: list[str] = Field(default_factory=list)
    move_files: list[Move] = Field(default_factory=list)
    update_file_metas: list[FileMetaUpdate] = Field(default_factory=list)
    add_embargoes: list[AddEmbargo] = Field(default_factory=list)
    auto_rename_files: list[AutoRename] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_disjoint(self) -> "EditFiles":
        seen: dict[str, str] = {}
        for name in ("delete_files", "replace_files", "add_restricted_files", "add_unrestricted_files"):
            for path in getattr(self, name):
                if path in seen and seen[path] != name:
                    raise ValueError(f"{path} appears in both {seen[path]} and {name}")
                seen[path] = name
        return self

    @property
    def auto_rename_map(self) -> Mapping[str, str]:
        """Read-only map from bag path to the path the remote side stores."""
        return MappingProxyType({rename.source: rename.target for rename in self.auto_rename_files})

    @property
    def individually_added(self) -> set[str]:
        return set(self.add_restricted_individually) | set(self.add_unrestricted_individually)


class RoleAssignment(CamelModel):
    """A role held by an assignee (user or group alias)."""

    assignee: str
    role: str


class EditPermissions(CamelModel):
    add_role_assignments: list[RoleAssignment] = Field(default_factory=list)
    delete_role_assignments: list[RoleAssignment] = Field(default_factory=list)


class EditMetadata(CamelModel):
    """Field-level metadata edits; field values are passed to the remote side as-is."""

    add_field_values: list[dict[str, Any]] = Field(default_factory=list)
    replace_field_values: list[dict[str, Any]] = Field(default_factory=list)
    delete_field_values: list[dict[str, Any]] = Field(default_factory=list)


class ExpectedState(str, Enum):
    DRAFT = "draft"
    RELEASED = "released"
    ABSENT = "absent"


class Expect(CamelModel):
    state: ExpectedState | None = None
    dataverse_role_assignment: RoleAssignment | None = None
    dataset_role_assignment: RoleAssignment | None = None


class Create(CamelModel):
    import_pid: str | None = None


class Init(CamelModel):
    """Preconditions and creation options of a bag."""

    expect: Expect | None = None
    create: Create | None = None


class UpdateType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class PublishAction(BaseModel):
    """Publish the draft as a new major or minor version."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["publish"] = "publish"
    update_type: UpdateType


class ReleaseMigratedAction(BaseModel):
    """Release migrated content with its original publication date."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["releaseMigrated"] = "releaseMigrated"
    release_date: date


LifecycleAction = PublishAction | ReleaseMigratedAction

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_lifecycle_action(document: Any) -> LifecycleAction:
    """Build a lifecycle action from an ``updateState`` document.

    Args:
        document: Mapping holding exactly one of ``publish`` or ``releaseMigrated``

    Returns:
        The matching action variant

    Raises:
        InvalidInstructions: If both or neither variant is present, or a value is malformed
    """
    if not isinstance(document, dict):
        raise InvalidInstructions("updateState must be a mapping")

    publish = document.get("publish")
    release_migrated = document.get("releaseMigrated")
    if (publish is None) == (release_migrated is None):
        raise InvalidInstructions("Exactly one of publish or releaseMigrated must be set")

    if publish is not None:
        try:
            return PublishAction(update_type=UpdateType(str(publish).lower()))
        except ValueError as e:
            raise InvalidInstructions(f"Unknown publish update type: {publish}") from e

    # YAML loads an unquoted ISO date as a date object
    text = release_migrated.isoformat() if isinstance(release_migrated, date) else str(release_migrated)
    if not _DATE_PATTERN.fullmatch(text):
        raise InvalidInstructions("Release date must be in the format YYYY-MM-DD")
    try:
        return ReleaseMigratedAction(release_date=date.fromisoformat(text))
    except ValueError as e:
        raise InvalidInstructions(f"Invalid release date: {text}") from e


class BagInstructions(BaseModel):
    """All instruction documents of one bag, parsed."""

    init: Init | None = None
    dataset_metadata: dict[str, Any] | None = None
    edit_files: EditFiles | None = None
    edit_metadata: EditMetadata | None = None
    edit_permissions: EditPermissions | None = None
    update_state: LifecycleAction | None = None
