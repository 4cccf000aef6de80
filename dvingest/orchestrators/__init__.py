"""Orchestration layer.

This module contains the orchestrators that turn a bag's instructions into
remote state, from a single step up to a batch of deposits.
"""

from dvingest.orchestrators.bag_processor import BagProcessor
from dvingest.orchestrators.dataset_version import DatasetVersionStep
from dvingest.orchestrators.deposit import Deposit, DepositStatus, DepositTask
from dvingest.orchestrators.files_editor import FilesEditor
from dvingest.orchestrators.import_jobs import ImportJob, ImportJobRegistry, JobStatus
from dvingest.orchestrators.metadata import MetadataStep
from dvingest.orchestrators.permissions import PermissionsStep
from dvingest.orchestrators.publish import PublishStep

__all__ = [
    "BagProcessor",
    "DatasetVersionStep",
    "Deposit",
    "DepositStatus",
    "DepositTask",
    "FilesEditor",
    "ImportJob",
    "ImportJobRegistry",
    "JobStatus",
    "MetadataStep",
    "PermissionsStep",
    "PublishStep",
]
