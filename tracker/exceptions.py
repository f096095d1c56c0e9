"""
Exceptions raised by the sync engine.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for sync operations."""
    pass


class RemoteUnavailable(SyncError):
    """The server could not be used: timeout, transport error, non-2xx or bad body.

    Callers never distinguish the cause; ``reason`` is kept for logging.
    """
    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class LocalStoreError(SyncError):
    """A read or write against the local store failed."""
    pass


class RecordNotFoundError(SyncError):
    """Mutation on a (name, date) that has not been materialized."""
    def __init__(self, kind: str, name: str, date: str):
        super().__init__(f"No {kind} record '{name}' for {date}")
        self.kind = kind
        self.name = name
        self.date = date
