"""Reading a bag's instruction documents."""

from logging import getLogger
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from dvingest.domain.errors import InvalidInstructions
from dvingest.domain.models import (
    BagInstructions,
    EditFiles,
    EditMetadata,
    EditPermissions,
    Init,
    LifecycleAction,
    parse_lifecycle_action,
)

logger = getLogger(__name__)

BAGIT_TXT = "bagit.txt"
DATA_DIR = "data"
INIT_YML = "init.yml"
DATASET_YML = "dataset.yml"
EDIT_FILES_YML = "edit-files.yml"
EDIT_METADATA_YML = "edit-metadata.yml"
EDIT_PERMISSIONS_YML = "edit-permissions.yml"
UPDATE_STATE_YML = "update-state.yml"


def payload_files(data_dir: Path) -> list[Path]:
    """Return every file below ``data_dir``, sorted by bag-relative POSIX path.

    The order is stable across runs, which resuming a batched upload relies on.
    """
    if not data_dir.is_dir():
        return []
    return sorted(
        (p for p in data_dir.rglob("*") if p.is_file()),
        key=lambda p: p.relative_to(data_dir).as_posix(),
    )


class IngestBag:
    """A bag directory: payload under ``data/`` plus YAML instruction documents.

    Every document is optional. Documents other than ``dataset.yml`` wrap
    their content in a single root key (``init``, ``editFiles``,
    ``editMetadata``, ``editPermissions``, ``updateState``).
    """

    def __init__(self, location: str | Path, progress_log_name: str = "progress.json"):
        self.location = Path(location)
        if not (self.location / BAGIT_TXT).is_file():
            raise InvalidInstructions(f"Not a bag: {self.location}")
        self.progress_log_name = progress_log_name

    def __str__(self) -> str:
        return self.location.name

    def __lt__(self, other: "IngestBag") -> bool:
        return self.location.name < other.location.name

    @property
    def data_dir(self) -> Path:
        return self.location / DATA_DIR

    @property
    def progress_log_path(self) -> Path:
        return self.location / self.progress_log_name

    def _read_yaml(self, name: str) -> Any:
        path = self.location / name
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidInstructions(f"Malformed YAML in {path}: {e}") from e

    def _read_root(self, name: str, root_key: str) -> Any:
        document = self._read_yaml(name)
        if document is None:
            return None
        if not isinstance(document, dict) or root_key not in document:
            raise InvalidInstructions(f"No {root_key} found in {self.location / name}")
        return document[root_key]

    def _validate(self, model: type[BaseModel], name: str, root_key: str) -> Any:
        content = self._read_root(name, root_key)
        if content is None:
            return None
        try:
            return model.model_validate(content)
        except ValidationError as e:
            raise InvalidInstructions(f"Invalid {root_key} in {self.location / name}: {e}") from e

    def get_init(self) -> Init | None:
        return self._validate(Init, INIT_YML, "init")

    def get_dataset_metadata(self) -> dict[str, Any] | None:
        """Return the dataset document, with the file list of its version emptied.

        The remote side refuses a dataset version carrying files; files are
        only ever added through the file edit steps.
        """
        document = self._read_yaml(DATASET_YML)
        if document is None:
            return None
        if not isinstance(document, dict) or not isinstance(document.get("datasetVersion"), dict):
            raise InvalidInstructions(f"No datasetVersion found in {self.location / DATASET_YML}")
        document["datasetVersion"]["files"] = []
        return document

    def get_edit_files(self) -> EditFiles | None:
        return self._validate(EditFiles, EDIT_FILES_YML, "editFiles")

    def get_edit_metadata(self) -> EditMetadata | None:
        return self._validate(EditMetadata, EDIT_METADATA_YML, "editMetadata")

    def get_edit_permissions(self) -> EditPermissions | None:
        return self._validate(EditPermissions, EDIT_PERMISSIONS_YML, "editPermissions")

    def get_update_state(self) -> LifecycleAction | None:
        if not (self.location / UPDATE_STATE_YML).exists():
            return None
        return parse_lifecycle_action(self._read_root(UPDATE_STATE_YML, "updateState"))

    def read_instructions(self) -> BagInstructions:
        """Parse every instruction document of the bag.

        Raises:
            InvalidInstructions: If any document is malformed
        """
        logger.debug(f"Reading instructions of bag {self}")
        return BagInstructions(
            init=self.get_init(),
            dataset_metadata=self.get_dataset_metadata(),
            edit_files=self.get_edit_files(),
            edit_metadata=self.get_edit_metadata(),
            edit_permissions=self.get_edit_permissions(),
            update_state=self.get_update_state(),
        )

    def payload_files(self) -> list[Path]:
        return payload_files(self.data_dir)

    def local_file(self, path: str) -> Path:
        return self.data_dir / path
