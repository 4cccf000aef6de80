"""Field-level metadata edits applied after the file edits."""

from logging import getLogger

from dvingest.domain.models import EditMetadata
from dvingest.operations.remote import RemoteRepository
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)


class MetadataStep:
    """Add, then replace, then delete metadata field values."""

    def __init__(
        self,
        deposit_id: str,
        edit_metadata: EditMetadata | None,
        repository: RemoteRepository,
        progress: ProgressLogManager,
    ):
        self.deposit_id = deposit_id
        self.edit_metadata = edit_metadata
        self.repository = repository
        self.progress = progress

    def run(self, pid: str) -> None:
        log = self.progress.data.edit_metadata
        if self.edit_metadata is None:
            log.complete_all()
            return

        if not log.add_field_values.completed:
            if self.edit_metadata.add_field_values:
                logger.debug(f"Start adding field values for deposit {self.deposit_id}")
                self.repository.edit_metadata(pid, self.edit_metadata.add_field_values, replace=False)
                logger.debug(f"End adding field values for deposit {self.deposit_id}")
            log.add_field_values.complete()
            self.progress.flush()

        if not log.replace_field_values.completed:
            if self.edit_metadata.replace_field_values:
                logger.debug(f"Start replacing field values for deposit {self.deposit_id}")
                self.repository.edit_metadata(pid, self.edit_metadata.replace_field_values, replace=True)
                logger.debug(f"End replacing field values for deposit {self.deposit_id}")
            log.replace_field_values.complete()
            self.progress.flush()

        if not log.delete_field_values.completed:
            if self.edit_metadata.delete_field_values:
                logger.debug(f"Start deleting field values for deposit {self.deposit_id}")
                self.repository.delete_metadata(pid, self.edit_metadata.delete_field_values)
                logger.debug(f"End deleting field values for deposit {self.deposit_id}")
            log.delete_field_values.complete()
            self.progress.flush()
