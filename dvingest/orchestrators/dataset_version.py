"""Dataset version step.

Creates the target dataset (or imports it under a pre-minted identifier) and
brings its citation metadata up to date.
"""

from logging import getLogger
from typing import Any

from dvingest.domain.errors import MissingMetadata, RejectedDeposit
from dvingest.domain.models import Expect, ExpectedState, Init, RoleAssignment
from dvingest.operations.remote import RemoteRepository
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)

AUTHENTICATED_USERS = ":authenticated-users"


def _holds_role(
    assignments: list[RoleAssignment], expected: RoleAssignment, authenticated_suffices: bool
) -> bool:
    return any(
        (a.assignee == expected.assignee or (authenticated_suffices and a.assignee == AUTHENTICATED_USERS))
        and a.role == expected.role
        for a in assignments
    )


class DatasetVersionStep:
    """Create or update the dataset a bag is applied to."""

    def __init__(
        self,
        deposit_id: str,
        init: Init | None,
        dataset_metadata: dict[str, Any] | None,
        repository: RemoteRepository,
        progress: ProgressLogManager,
        root_collection: str = "root",
    ):
        self.deposit_id = deposit_id
        self.init = init
        self.dataset_metadata = dataset_metadata
        self.repository = repository
        self.progress = progress
        self.root_collection = root_collection

    def run(self, target_pid: str | None) -> str:
        """Run the step.

        Args:
            target_pid: Identifier of the dataset to update, or None to create one

        Returns:
            Identifier of the dataset every later step works on

        Raises:
            RejectedDeposit: If an expectation in ``init.yml`` does not hold
            MissingMetadata: If a dataset must be created but the bag has no metadata
        """
        log = self.progress.data
        if self.init is not None and self.init.expect is not None:
            self._check_expectations(self.init.expect, target_pid)
        else:
            log.init.expect.complete_all()

        pid = target_pid if target_pid is not None else self._create_dataset()

        # Always update, also right after creation: some fields are only
        # honoured by the update call
        if self.dataset_metadata is not None and not log.dataset.completed:
            logger.debug(f"Start updating dataset metadata for deposit {self.deposit_id}")
            self.repository.update_metadata(pid, self.dataset_metadata["datasetVersion"])
            logger.debug(f"End updating dataset metadata for deposit {self.deposit_id}")
        log.dataset.complete()
        self.progress.flush()
        return pid

    def _create_dataset(self) -> str:
        create_log = self.progress.data.init.create
        if create_log.completed and create_log.pid:
            logger.debug(f"Dataset {create_log.pid} already created for deposit {self.deposit_id}")
            return create_log.pid

        if self.dataset_metadata is None:
            raise MissingMetadata("Must have dataset metadata to create a new dataset")

        import_pid = self.init.create.import_pid if self.init and self.init.create else None
        if import_pid:
            logger.debug(f"Start importing dataset {import_pid} for deposit {self.deposit_id}")
            self.repository.import_dataset(import_pid, self.dataset_metadata)
            pid = import_pid
            logger.debug(f"End importing dataset for deposit {self.deposit_id}")
        else:
            logger.debug(f"Start creating dataset for deposit {self.deposit_id}")
            pid = self.repository.create_dataset(self.dataset_metadata)
            logger.debug(f"End creating dataset {pid} for deposit {self.deposit_id}")

        create_log.pid = pid
        create_log.complete()
        self.progress.flush()
        return pid

    def _check_expectations(self, expect: Expect, target_pid: str | None) -> None:
        expect_log = self.progress.data.init.expect

        if expect.state is not None and target_pid is None:
            logger.warning(f"Expectation of state {expect.state.value} but no target dataset, ignoring check")
        elif expect.state is not None and not expect_log.state.completed:
            self._check_state(expect.state, target_pid)
            expect_log.state.complete()
            self.progress.flush()

        if expect.dataverse_role_assignment is not None and not expect_log.dataverse_role_assignment.completed:
            expected = expect.dataverse_role_assignment
            assignments = self.repository.get_collection_role_assignments(self.root_collection)
            if not _holds_role(assignments, expected, authenticated_suffices=True):
                raise RejectedDeposit(
                    f"User '{expected.assignee}' does not have the expected role "
                    f"'{expected.role}' on dataverse {self.root_collection}"
                )
            logger.debug(f"Expected role assignment found for dataverse {self.root_collection}")
            expect_log.dataverse_role_assignment.complete()
            self.progress.flush()

        if (
            expect.dataset_role_assignment is not None
            and target_pid is not None
            and not expect_log.dataset_role_assignment.completed
        ):
            expected = expect.dataset_role_assignment
            assignments = self.repository.get_role_assignments(target_pid)
            if not _holds_role(assignments, expected, authenticated_suffices=False):
                raise RejectedDeposit(
                    f"User '{expected.assignee}' does not have the expected role "
                    f"'{expected.role}' on dataset {target_pid}"
                )
            logger.debug(f"Expected role assignment found for dataset {target_pid}")
            expect_log.dataset_role_assignment.complete()
            self.progress.flush()

    def _check_state(self, expected: ExpectedState, pid: str) -> None:
        state = self.repository.get_dataset_state(pid)
        if expected is ExpectedState.ABSENT:
            if state is not None:
                raise RejectedDeposit(f"Expected state absent but found {state} for dataset {pid}")
        elif state is None or state.lower() != expected.value:
            raise RejectedDeposit(f"Expected state {expected.value} but found {state} for dataset {pid}")
        logger.debug(f"Expected state {expected.value} found for dataset {pid}")
