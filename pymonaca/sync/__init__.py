"""Sync engine for PyMonaca - tree scanning, diffing and batched transfers."""

from .comparator import TreeDiffer, diff_trees, filter_upload_scope, in_upload_scope
from .engine import SyncEngine, SyncReport
from .operations import SyncOperations
from .scanner import LocalTreeScanner
from .transfer import (
    BatchResult,
    BatchStream,
    TransferCoordinator,
    TransferDirection,
    TransferProgress,
    TransferTask,
)

__all__ = [
    "SyncEngine",
    "SyncReport",
    "SyncOperations",
    "LocalTreeScanner",
    "TreeDiffer",
    "diff_trees",
    "filter_upload_scope",
    "in_upload_scope",
    "TransferCoordinator",
    "TransferDirection",
    "TransferProgress",
    "TransferTask",
    "BatchResult",
    "BatchStream",
]
