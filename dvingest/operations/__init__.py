"""Operations layer.

Low-level building blocks: reading bags, packing upload archives and talking
to the remote repository.
"""

from dvingest.operations.bag import IngestBag, payload_files
from dvingest.operations.packing import Batch, BatchPacker, wrap_if_archive
from dvingest.operations.remote import DataverseClient, RemoteRepository

__all__ = [
    "Batch",
    "BatchPacker",
    "DataverseClient",
    "IngestBag",
    "RemoteRepository",
    "payload_files",
    "wrap_if_archive",
]
