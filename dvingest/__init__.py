"""Dataverse bag ingest SDK.

A Python library for ingesting bags (a payload plus declarative YAML
instructions) into datasets of a Dataverse installation, resumably.

Quick Start (High-Level API):
    >>> from dvingest import ingest_deposit
    >>> ingest_deposit("data/inbox/0b9bb5ee-3187-4387-bb39-2c09536c79f7")

Quick Start (SDK API):
    >>> from dvingest import BagProcessor, DataverseClient, IngestBag, Settings
    >>> config = Settings(api_url="https://demo.dataverse.org", api_key="...")
    >>> client = DataverseClient(config.api_url, api_key=config.api_key)
    >>> pid = BagProcessor("my-deposit", IngestBag("path/to/bag"), client, config).run(None)

Configuration:
    >>> import os
    >>> os.environ["DVINGEST_MAX_FILES_PER_UPLOAD"] = "500"
    >>> config = Settings()  # Loads from environment

Public API:
    High-level functions:
        - ingest_deposit: Ingest one deposit and file it in the outbox

    Orchestrators:
        - BagProcessor: All steps of one bag
        - DepositTask: All bags of one deposit
        - ImportJobRegistry: Deposits and batches on a worker pool

    Remote access:
        - RemoteRepository: Operations the pipeline needs
        - DataverseClient: Dataverse native API implementation

    State Management:
        - ProgressLogManager: Progress log persistence
        - FilesInDatasetCache: Files of the target dataset
"""

# Configuration
from dvingest.config import Settings

# Domain models
from dvingest.domain import (
    BagInstructions,
    EditFiles,
    IngestError,
    LifecycleAction,
    ProgressLog,
    RemoteFile,
)

# Operations
from dvingest.operations import BatchPacker, DataverseClient, IngestBag, RemoteRepository

# Orchestrators
from dvingest.orchestrators import (
    BagProcessor,
    Deposit,
    DepositStatus,
    DepositTask,
    ImportJobRegistry,
)

# State management
from dvingest.state import FilesInDatasetCache, ProgressLogManager

# UI Reporters
from dvingest.ui import Reporter

__all__ = [
    # High-level functions
    "ingest_deposit",
    # Orchestrators
    "BagProcessor",
    "Deposit",
    "DepositStatus",
    "DepositTask",
    "ImportJobRegistry",
    # Operations
    "BatchPacker",
    "DataverseClient",
    "IngestBag",
    "RemoteRepository",
    # Configuration
    "Settings",
    # Domain models
    "BagInstructions",
    "EditFiles",
    "IngestError",
    "LifecycleAction",
    "ProgressLog",
    "RemoteFile",
    # State management
    "FilesInDatasetCache",
    "ProgressLogManager",
    # Reporters
    "Reporter",
]

# Version
__version__ = "0.1.0"


def ingest_deposit(
    location: str,
    config: Settings | None = None,
    reporter: Reporter | None = None,
    repository: RemoteRepository | None = None,
) -> DepositStatus:
    """Ingest one deposit (high-level convenience function).

    Args:
        location: Deposit directory
        config: Settings. If None, loads Settings() from environment.
        reporter: Progress reporter. If None, uses Reporter().
        repository: Remote repository. If None, a DataverseClient is built from config.

    Returns:
        Final status of the deposit; the deposit has been moved to the outbox
    """
    config = config if config is not None else Settings()
    reporter = reporter if reporter is not None else Reporter()
    deposit = Deposit(location, config.progress_log_name)

    if repository is not None:
        return DepositTask(deposit, config.outbox, repository, config, reporter).run()

    with DataverseClient(
        config.api_url,
        api_key=config.api_key,
        timeout=config.api_timeout,
        parent_collection=config.parent_collection,
    ) as client:
        return DepositTask(deposit, config.outbox, client, config, reporter).run()
