"""Bag processing orchestrator.

Runs the steps of one bag in fixed order against one dataset.
"""

import time
from logging import getLogger

from dvingest.config import Settings
from dvingest.domain.models import BagInstructions
from dvingest.domain.types import Sleeper
from dvingest.operations.bag import IngestBag
from dvingest.operations.remote import RemoteRepository
from dvingest.orchestrators.dataset_version import DatasetVersionStep
from dvingest.orchestrators.files_editor import FilesEditor, HookFactory
from dvingest.orchestrators.metadata import MetadataStep
from dvingest.orchestrators.permissions import PermissionsStep
from dvingest.orchestrators.publish import PublishStep
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)


class BagProcessor:
    """Orchestrates the ingest of one bag.

    This orchestrator runs:
    1. Dataset version (expectations, create or import, metadata update)
    2. Permissions
    3. File edits
    4. Metadata field edits
    5. Lifecycle update (publish or release migrated)

    The dataset identifier produced by step 1 is passed explicitly to every
    later step. The progress log is owned by this processor for the
    duration of ``run`` and flushed after every remote effect.
    """

    def __init__(
        self,
        deposit_id: str,
        bag: IngestBag,
        repository: RemoteRepository,
        config: Settings | None = None,
        hook_factory: HookFactory | None = None,
        sleep: Sleeper = time.sleep,
    ):
        """Initialize the processor.

        Args:
            deposit_id: Deposit the bag belongs to
            bag: Bag to ingest
            repository: Remote repository
            config: Settings. If None, creates new Settings() from environment.
            hook_factory: Optional upload progress hooks for the file edits
            sleep: Blocking sleep used while polling for publication
        """
        self.deposit_id = deposit_id
        self.bag = bag
        self.repository = repository
        self.config = config if config is not None else Settings()
        self.hook_factory = hook_factory
        self.sleep = sleep
        self.pid: str | None = None

    def run(self, target_pid: str | None) -> str:
        """Ingest the bag.

        Args:
            target_pid: Dataset to update, or None to create a new one

        Returns:
            Identifier of the dataset the bag was applied to. It is also kept
            in ``pid`` as soon as it is known, for reporting a failure.
        """
        # Parse everything before the first remote call
        instructions = self.bag.read_instructions()

        logger.debug(f"Start processing bag {self.bag} of deposit {self.deposit_id}")
        with ProgressLogManager(self.bag.progress_log_path) as progress:
            pid = self._dataset_version_step(instructions, progress).run(target_pid)
            self.pid = pid
            PermissionsStep(self.deposit_id, instructions.edit_permissions, self.repository, progress).run(pid)
            self._files_editor(instructions, progress).edit_files(pid)
            MetadataStep(self.deposit_id, instructions.edit_metadata, self.repository, progress).run(pid)
            self._publish_step(progress).run(pid, instructions.update_state)
        logger.debug(f"End processing bag {self.bag} of deposit {self.deposit_id}: dataset {pid}")
        return pid

    def _dataset_version_step(self, instructions: BagInstructions, progress: ProgressLogManager) -> DatasetVersionStep:
        return DatasetVersionStep(
            self.deposit_id,
            instructions.init,
            instructions.dataset_metadata,
            self.repository,
            progress,
            root_collection=self.config.parent_collection,
        )

    def _files_editor(self, instructions: BagInstructions, progress: ProgressLogManager) -> FilesEditor:
        return FilesEditor(
            self.deposit_id,
            self.bag.data_dir,
            instructions.edit_files,
            self.repository,
            progress,
            max_files_per_upload=self.config.max_files_per_upload,
            max_bytes_per_upload=self.config.max_bytes_per_upload,
            temp_dir=self.config.temp_dir,
            hook_factory=self.hook_factory,
        )

    def _publish_step(self, progress: ProgressLogManager) -> PublishStep:
        return PublishStep(
            self.deposit_id,
            self.repository,
            progress,
            poll_interval_ms=self.config.publish_poll_interval_ms,
            max_retries=self.config.publish_max_retries,
            sleep=self.sleep,
        )
