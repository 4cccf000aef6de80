"""Role assignment edits on the dataset."""

from collections.abc import Callable
from logging import getLogger

from dvingest.domain.models import EditPermissions, RoleAssignment
from dvingest.domain.progress import CompletableItemWithCount
from dvingest.operations.remote import RemoteRepository
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)


class PermissionsStep:
    """Delete, then add, role assignments on the dataset.

    Deleting first lets a bag express a reassignment of the same role as a
    delete plus an add.
    """

    def __init__(
        self,
        deposit_id: str,
        edit_permissions: EditPermissions | None,
        repository: RemoteRepository,
        progress: ProgressLogManager,
    ):
        self.deposit_id = deposit_id
        self.edit_permissions = edit_permissions or EditPermissions()
        self.repository = repository
        self.progress = progress

    def run(self, pid: str) -> None:
        log = self.progress.data.edit_permissions
        self._apply(
            "deleting role assignments",
            self.edit_permissions.delete_role_assignments,
            log.delete_role_assignments,
            lambda assignment: self.repository.delete_role_assignment(pid, assignment),
        )
        self._apply(
            "adding role assignments",
            self.edit_permissions.add_role_assignments,
            log.add_role_assignments,
            lambda assignment: self.repository.add_role_assignment(pid, assignment),
        )

    def _apply(
        self,
        description: str,
        assignments: list[RoleAssignment],
        item: CompletableItemWithCount,
        call: Callable[[RoleAssignment], None],
    ) -> None:
        if item.completed:
            logger.debug(f"Already completed {description} for deposit {self.deposit_id}")
            return

        logger.debug(f"Start {description} for deposit {self.deposit_id}")
        start = item.begin(assignments)
        for assignment in assignments[start:]:
            call(assignment)
            item.advance(1, len(assignments))
            self.progress.flush()
        item.complete(len(assignments))
        self.progress.flush()
        logger.debug(f"End {description} for deposit {self.deposit_id}")
