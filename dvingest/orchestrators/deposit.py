"""Deposits: a directory with ``deposit.properties`` and one or more bags.

``DepositTask`` ingests the bags of a deposit in order, records the outcome in
the properties file and moves the deposit to the outbox.
"""

import shutil
import time
from datetime import datetime
from enum import Enum
from logging import getLogger
from pathlib import Path

from atomicwrites import atomic_write

from dvingest.config import Settings
from dvingest.domain.errors import InvalidInstructions, RejectedDeposit
from dvingest.domain.types import Sleeper
from dvingest.operations.bag import IngestBag
from dvingest.operations.remote import RemoteRepository
from dvingest.orchestrators.bag_processor import BagProcessor
from dvingest.ui import Reporter

logger = getLogger(__name__)

DEPOSIT_PROPERTIES = "deposit.properties"
UPDATES_DATASET_KEY = "updates-dataset"
CREATION_TIMESTAMP_KEY = "creation.timestamp"


def read_properties(path: Path) -> dict[str, str]:
    """Read a ``key=value`` properties file, skipping blank lines and comments."""
    properties: dict[str, str] = {}
    with path.open(encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith(("#", "!")):
                continue
            key, separator, value = stripped.partition("=")
            if not separator:
                key, _, value = stripped.partition(":")
            properties[key.strip()] = value.strip().replace("\\n", "\n")
    return properties


def write_properties(path: Path, properties: dict[str, str]) -> None:
    with atomic_write(path, mode="w", overwrite=True, encoding="utf-8") as f:
        f.write("# Updated by dvingest\n")
        for key, value in properties.items():
            escaped = value.replace("\n", "\\n")
            f.write(f"{key}={escaped}\n")


class DepositStatus(str, Enum):
    TODO = "TODO"
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class Deposit:
    """A deposit directory in the inbox."""

    def __init__(self, location: str | Path, progress_log_name: str = "progress.json"):
        self.location = Path(location)
        self.progress_log_name = progress_log_name
        properties_file = self.location / DEPOSIT_PROPERTIES
        if not properties_file.is_file():
            raise InvalidInstructions(f"Deposit {self.location} does not contain {DEPOSIT_PROPERTIES}")
        self.properties = read_properties(properties_file)

        timestamp = self.properties.get(CREATION_TIMESTAMP_KEY)
        if timestamp is None:
            raise InvalidInstructions(f"Deposit {self.location} does not contain a creation timestamp")
        try:
            self.creation_timestamp = datetime.fromisoformat(timestamp)
        except ValueError as e:
            raise InvalidInstructions(f"Invalid creation timestamp in {self.location}: {timestamp}") from e

    @property
    def id(self) -> str:
        return self.location.name

    @property
    def updates_dataset(self) -> str | None:
        return self.properties.get(UPDATES_DATASET_KEY) or None

    def get_bags(self) -> list[IngestBag]:
        """Return the bags of the deposit, in name order."""
        return sorted(
            IngestBag(path, self.progress_log_name) for path in self.location.iterdir() if path.is_dir()
        )

    def update_properties(self, updates: dict[str, str]) -> None:
        self.properties.update(updates)
        write_properties(self.location / DEPOSIT_PROPERTIES, self.properties)

    def on_success(self, pid: str) -> None:
        self.update_properties({"identifier.doi": pid})

    def on_failed(self, pid: str | None, message: str) -> None:
        self._record_state("FAILED", pid, message)

    def on_rejected(self, pid: str | None, message: str) -> None:
        self._record_state("REJECTED", pid, message)

    def _record_state(self, label: str, pid: str | None, message: str) -> None:
        updates = {"state.label": label, "state.description": message}
        if pid is not None:
            updates["identifier.doi"] = pid
        self.update_properties(updates)

    def move_to(self, target_dir: Path) -> None:
        logger.debug(f"Moving deposit {self.location} to {target_dir}")
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / self.location.name
        shutil.move(self.location, target)
        self.location = target


class DepositTask:
    """Ingest all bags of one deposit and file the deposit in the outbox."""

    def __init__(
        self,
        deposit: Deposit,
        outbox: Path,
        repository: RemoteRepository,
        config: Settings | None = None,
        reporter: Reporter | None = None,
        sleep: Sleeper = time.sleep,
    ):
        self.deposit = deposit
        self.outbox = Path(outbox)
        self.repository = repository
        self.config = config if config is not None else Settings()
        self.reporter = reporter if reporter is not None else Reporter(silent=True)
        self.sleep = sleep
        self.status = DepositStatus.TODO

    def run(self) -> DepositStatus:
        """Process the deposit; errors are recorded on the deposit, never raised."""
        pid = self.deposit.updates_dataset
        try:
            for bag in self.deposit.get_bags():
                logger.info(f"START processing deposit / bag: {self.deposit.id} / {bag}")
                self.reporter.report_bag_started(self.deposit.id, str(bag))
                processor = BagProcessor(
                    self.deposit.id,
                    bag,
                    self.repository,
                    self.config,
                    hook_factory=self.reporter.create_upload_progress_hook,
                    sleep=self.sleep,
                )
                with self.reporter.upload_context():
                    try:
                        pid = processor.run(pid)
                    finally:
                        pid = processor.pid or pid
                self.reporter.report_bag_finished(self.deposit.id, str(bag), pid)
                logger.info(f"END processing deposit / bag: {self.deposit.id} / {bag}")

            if pid is None:
                raise InvalidInstructions(f"Deposit {self.deposit.id} contains no bags")
            self.deposit.on_success(pid)
            self.deposit.move_to(self.outbox / "processed")
            self.status = DepositStatus.SUCCESS
        except RejectedDeposit as e:
            logger.error(f"Deposit {self.deposit.id} rejected: {e}")
            self.reporter.report_error(f"Deposit {self.deposit.id} rejected: {e}")
            self._file_away("rejected", DepositStatus.REJECTED, pid, str(e))
        except Exception as e:
            logger.exception(f"Failed to ingest deposit {self.deposit.id}")
            self.reporter.report_error(f"Deposit {self.deposit.id} failed: {e}")
            self._file_away("failed", DepositStatus.FAILED, pid, str(e))
        return self.status

    def _file_away(self, subdir: str, status: DepositStatus, pid: str | None, message: str) -> None:
        try:
            if status is DepositStatus.REJECTED:
                self.deposit.on_rejected(pid, message)
            else:
                self.deposit.on_failed(pid, message)
            self.deposit.move_to(self.outbox / subdir)
        except OSError:
            logger.exception(f"Failed to move deposit {self.deposit.id} to {subdir} directory")
        self.status = status
