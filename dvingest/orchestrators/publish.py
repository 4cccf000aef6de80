"""Lifecycle transition of the dataset at the end of a bag."""

import time
from logging import getLogger

from dvingest.domain.errors import PublishTimeout
from dvingest.domain.models import DatasetState, LifecycleAction, PublishAction, ReleaseMigratedAction
from dvingest.domain.types import Sleeper
from dvingest.operations.remote import RemoteRepository
from dvingest.state.manager import ProgressLogManager

logger = getLogger(__name__)


class PublishStep:
    """Publish the dataset, or release migrated content, and wait for the result."""

    def __init__(
        self,
        deposit_id: str,
        repository: RemoteRepository,
        progress: ProgressLogManager,
        poll_interval_ms: int = 3000,
        max_retries: int = 10,
        sleep: Sleeper = time.sleep,
    ):
        """Initialize the step.

        Args:
            deposit_id: Deposit the bag belongs to, for logging
            repository: Remote repository
            progress: Progress log of the bag
            poll_interval_ms: Wait between two state polls
            max_retries: Polls after the first one before giving up
            sleep: Blocking sleep in seconds (replaced in tests)
        """
        self.deposit_id = deposit_id
        self.repository = repository
        self.progress = progress
        self.poll_interval_ms = poll_interval_ms
        self.max_retries = max_retries
        self.sleep = sleep

    def run(self, pid: str, action: LifecycleAction | None) -> None:
        log = self.progress.data
        if log.update_state.completed:
            logger.debug(f"Already completed lifecycle update for deposit {self.deposit_id}")
            return

        if isinstance(action, PublishAction):
            logger.debug(f"Start publishing ({action.update_type.value}) for deposit {self.deposit_id}")
            self.repository.publish(pid, action.update_type)
            self.wait_for_state(pid, DatasetState.RELEASED)
            logger.debug(f"End publishing for deposit {self.deposit_id}")
        elif isinstance(action, ReleaseMigratedAction):
            logger.debug(f"Start releasing migrated dataset for deposit {self.deposit_id}")
            self.repository.release_migrated(pid, action.release_date)
            logger.debug(f"End releasing migrated dataset for deposit {self.deposit_id}")

        log.update_state.complete()
        self.progress.flush()

    def wait_for_state(self, pid: str, expected: DatasetState) -> None:
        """Poll the dataset state until it equals ``expected``.

        The state is read once, then up to ``max_retries`` more times with
        ``poll_interval_ms`` between reads.

        Raises:
            PublishTimeout: If the state is never observed
        """
        state = self.repository.get_dataset_state(pid)
        retries = 0
        while state != expected.value and retries < self.max_retries:
            self.sleep(self.poll_interval_ms / 1000)
            state = self.repository.get_dataset_state(pid)
            retries += 1
            logger.debug(f"Dataset {pid} is {state} after {retries} retries")

        if state != expected.value:
            raise PublishTimeout(expected.value, self.poll_interval_ms * self.max_retries, str(state))
