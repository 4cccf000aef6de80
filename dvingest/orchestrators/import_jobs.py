"""Import jobs: requests to ingest one deposit or a batch of deposits."""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from logging import getLogger
from pathlib import Path

from dvingest.config import Settings
from dvingest.domain.errors import DuplicateJob
from dvingest.domain.types import Sleeper
from dvingest.operations.remote import RemoteRepository
from dvingest.orchestrators.deposit import Deposit, DepositStatus, DepositTask
from dvingest.ui import Reporter

logger = getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class ImportJob:
    """State of one submitted import.

    Attributes:
        location: Deposit directory, or batch directory holding deposits
        single_object: True if ``location`` is a single deposit
        status: Current job status
        results: Outcome per processed deposit id
    """

    location: Path
    single_object: bool
    status: JobStatus = JobStatus.PENDING
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: dict[str, DepositStatus] = field(default_factory=dict)
    error: str | None = None
    cancel_requested: threading.Event = field(default_factory=threading.Event, repr=False)
    future: Future | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)


class ImportJobRegistry:
    """Run import jobs on a bounded thread pool, one active job per location.

    Deposits of a job are processed sequentially on the job's worker thread.
    Cancellation takes effect between deposits; a deposit that has started
    always runs to completion or failure.
    """

    def __init__(
        self,
        repository: RemoteRepository,
        config: Settings | None = None,
        reporter: Reporter | None = None,
        sleep: Sleeper = time.sleep,
    ):
        self.repository = repository
        self.config = config if config is not None else Settings()
        self.reporter = reporter if reporter is not None else Reporter(silent=True)
        self.sleep = sleep
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_import_workers, thread_name_prefix="dvingest-import"
        )
        self._jobs: dict[Path, ImportJob] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "ImportJobRegistry":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()

    @staticmethod
    def _key(path: str | Path) -> Path:
        return Path(path).resolve()

    def submit(self, path: str | Path, single_object: bool = True) -> ImportJob:
        """Schedule an import of ``path``.

        Raises:
            DuplicateJob: If a job for the same location is pending or running
        """
        key = self._key(path)
        with self._lock:
            existing = self._jobs.get(key)
            if existing is not None and existing.active:
                raise DuplicateJob(f"An import job for {key} is already {existing.status.value}")
            job = ImportJob(location=key, single_object=single_object)
            self._jobs[key] = job
            job.future = self._executor.submit(self._run, job)
        logger.info(f"Submitted import job for {key} (single object: {single_object})")
        return job

    def status(self, path: str | Path) -> ImportJob | None:
        with self._lock:
            return self._jobs.get(self._key(path))

    def cancel(self, path: str | Path) -> bool:
        """Request cancellation; returns False if no active job exists for ``path``."""
        job = self.status(path)
        if job is None or not job.active:
            return False
        job.cancel_requested.set()
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _deposits(self, job: ImportJob) -> list[Deposit]:
        if job.single_object:
            return [Deposit(job.location, self.config.progress_log_name)]
        deposits = [
            Deposit(path, self.config.progress_log_name) for path in job.location.iterdir() if path.is_dir()
        ]
        return sorted(deposits, key=lambda d: d.creation_timestamp)

    def _outbox(self, job: ImportJob) -> Path:
        if job.single_object:
            return self.config.outbox
        return self.config.outbox / job.location.name

    def _run(self, job: ImportJob) -> None:
        job.status = JobStatus.RUNNING
        try:
            outbox = self._outbox(job)
            for deposit in self._deposits(job):
                if job.cancel_requested.is_set():
                    logger.info(f"Import job for {job.location} cancelled")
                    job.status = JobStatus.CANCELLED
                    return
                task = DepositTask(deposit, outbox, self.repository, self.config, self.reporter, self.sleep)
                job.results[deposit.id] = task.run()
            job.status = JobStatus.DONE
        except Exception as e:
            logger.exception(f"Import job for {job.location} failed")
            job.error = str(e)
            job.status = JobStatus.FAILED
