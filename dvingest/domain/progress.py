"""Progress log: durable record of which remote effects of a bag already happened.

Every top-level step owns a ``completed`` flag. Sub-steps that work through an
ordered instruction list also count how many leading items were applied
(``numberCompleted``), so a restarted run continues after the last durable
item instead of repeating it.
"""

import hashlib
from collections.abc import Iterator, Sequence
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dvingest.domain.errors import ResumeMismatch


class ProgressModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )


def fingerprint(items: Sequence[Any]) -> str:
    """Return a stable content hash of an instruction list."""
    normalized = [
        item.model_dump(mode="json", by_alias=True) if isinstance(item, BaseModel) else item
        for item in items
    ]
    return hashlib.sha256(orjson.dumps(normalized, option=orjson.OPT_SORT_KEYS)).hexdigest()


class CompletableItem(ProgressModel):
    completed: bool = False

    def complete(self) -> None:
        self.completed = True


class CompletableItemWithCount(ProgressModel):
    """Completion marker for a sub-step over an ordered list.

    ``number_completed`` never decreases and never exceeds the list length;
    ``completed`` implies that all items were applied. ``fingerprint`` is the
    hash of the list recorded at the first checkpoint, used to refuse a resume
    over an edited list.
    """

    completed: bool = False
    number_completed: int = Field(default=0, ge=0)
    fingerprint: str | None = None

    def begin(self, items: Sequence[Any]) -> int:
        """Bind this marker to ``items`` and return the index to resume at.

        Raises:
            ResumeMismatch: If the list differs from the one recorded earlier
        """
        current = fingerprint(items)
        if self.fingerprint is None:
            self.fingerprint = current
        elif self.fingerprint != current and self.number_completed > 0:
            raise ResumeMismatch(
                f"Instruction list changed after {self.number_completed} item(s) were applied; "
                "refusing to resume"
            )
        else:
            self.fingerprint = current

        if self.number_completed > len(items):
            raise ResumeMismatch(
                f"Progress log records {self.number_completed} completed item(s) "
                f"but the list only has {len(items)}"
            )
        return self.number_completed

    def advance(self, count: int, total: int) -> None:
        """Record that ``count`` more items of a list of ``total`` were applied."""
        if count < 0:
            raise ValueError("number of completed items cannot decrease")
        if self.number_completed + count > total:
            raise ValueError(f"cannot complete more than {total} item(s)")
        self.number_completed += count

    def complete(self, total: int | None = None) -> None:
        if total is not None:
            if total < self.number_completed:
                raise ValueError("number of completed items cannot decrease")
            self.number_completed = total
        self.completed = True


class ExpectLog(ProgressModel):
    state: CompletableItem = Field(default_factory=CompletableItem)
    dataverse_role_assignment: CompletableItem = Field(default_factory=CompletableItem)
    dataset_role_assignment: CompletableItem = Field(default_factory=CompletableItem)

    def complete_all(self) -> None:
        self.state.complete()
        self.dataverse_role_assignment.complete()
        self.dataset_role_assignment.complete()


class CreateLog(CompletableItem):
    pid: str | None = None


class InitLog(ProgressModel):
    expect: ExpectLog = Field(default_factory=ExpectLog)
    create: CreateLog = Field(default_factory=CreateLog)


class EditPermissionsLog(ProgressModel):
    delete_role_assignments: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_role_assignments: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)


class EditFilesLog(ProgressModel):
    delete_files: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    replace_files: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_restricted_files: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_unrestricted_files: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_restricted_individually: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_unrestricted_individually: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    move_files: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    update_file_metas: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)
    add_embargoes: CompletableItemWithCount = Field(default_factory=CompletableItemWithCount)

    def complete_all(self) -> None:
        for _, item in self:
            item.complete()


class EditMetadataLog(ProgressModel):
    add_field_values: CompletableItem = Field(default_factory=CompletableItem)
    replace_field_values: CompletableItem = Field(default_factory=CompletableItem)
    delete_field_values: CompletableItem = Field(default_factory=CompletableItem)

    def complete_all(self) -> None:
        for _, item in self:
            item.complete()


class ProgressLog(ProgressModel):
    """Complete progress record of one bag."""

    init: InitLog = Field(default_factory=InitLog)
    dataset: CompletableItem = Field(default_factory=CompletableItem)
    edit_permissions: EditPermissionsLog = Field(default_factory=EditPermissionsLog)
    edit_files: EditFilesLog = Field(default_factory=EditFilesLog)
    edit_metadata: EditMetadataLog = Field(default_factory=EditMetadataLog)
    update_state: CompletableItem = Field(default_factory=CompletableItem)

    def iter_items(self) -> Iterator[tuple[str, CompletableItem | CompletableItemWithCount]]:
        """Yield every completion marker with its dotted camelCase name."""
        yield from _walk(self, "")


def _walk(model: BaseModel, prefix: str) -> Iterator[tuple[str, Any]]:
    for name, value in model:
        key = f"{prefix}{to_camel(name)}"
        if isinstance(value, (CompletableItem, CompletableItemWithCount)):
            yield key, value
        elif isinstance(value, BaseModel):
            yield from _walk(value, f"{key}.")
