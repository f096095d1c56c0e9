"""
Bhakti Tracker - Offline-First Sync Client

Keeps a local copy of daily mantra counters and ritual checklists and
reconciles it with the record-store server whenever it is reachable.
"""

from .engine import (
    # Main classes
    SyncEngine,
    SyncResult,

    # Convenience functions
    create_sync_engine,
    sync_session,
)
from .config import SyncConfig
from .store import LocalStore
from .remote import RemoteClient
from .reconciler import Reconciler, decide_checklist, decide_counter
from .mutations import MutationApplier
from .retry import RetrySupervisor
from .status import SyncState, SyncStatus
from .models import (
    # Data models
    ChecklistRecord,
    CompletionEvent,
    CounterRecord,
    DayView,
    MergeAction,
    RecordKey,
    RecordKind,
    RemoteActivity,
    RemoteCounter,
)
from .exceptions import (
    # Exceptions
    LocalStoreError,
    RecordNotFoundError,
    RemoteUnavailable,
    SyncError,
)

__version__ = "0.1.0"
__all__ = [
    # Main classes
    "SyncEngine",
    "SyncResult",
    "LocalStore",
    "RemoteClient",
    "Reconciler",
    "MutationApplier",
    "RetrySupervisor",
    "SyncStatus",
    "SyncState",

    # Configuration
    "SyncConfig",

    # Merge policy
    "decide_counter",
    "decide_checklist",

    # Data models
    "ChecklistRecord",
    "CompletionEvent",
    "CounterRecord",
    "DayView",
    "MergeAction",
    "RecordKey",
    "RecordKind",
    "RemoteActivity",
    "RemoteCounter",

    # Exceptions
    "SyncError",
    "RemoteUnavailable",
    "LocalStoreError",
    "RecordNotFoundError",

    # Convenience functions
    "create_sync_engine",
    "sync_session",
]
