"""Sync engine for pynetstorage - tree walks and upload/download/both syncs."""

from .comparator import (
    is_transfer_allowed,
    needs_transfer,
    resolve_conflict_action,
)
from .engine import SyncEngine
from .events import (
    SyncEventHandler,
    SyncResult,
    SyncSkipEvent,
    SyncTransferEvent,
)
from .modes import (
    CompareStrategy,
    ConflictAction,
    ConflictResolution,
    DeleteExtraneous,
    SyncDirection,
)
from .operations import SyncOperations
from .scanner import remote_walk, walk_local_dir

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "SyncEventHandler",
    "SyncResult",
    "SyncSkipEvent",
    "SyncTransferEvent",
    "SyncDirection",
    "CompareStrategy",
    "ConflictAction",
    "ConflictResolution",
    "DeleteExtraneous",
    "needs_transfer",
    "resolve_conflict_action",
    "is_transfer_allowed",
    "remote_walk",
    "walk_local_dir",
]
