#!/usr/bin/env python3
"""
Bhakti Tracker - Offline-First Sync Engine

Wires the local store, remote client, reconciler, mutation applier and retry
supervisor of one running client instance around a shared ``SyncStatus``.

Features:
- SQLite local store, fully usable offline
- Optimistic increments and toggles with background push
- Per-date reconciliation against the server
- Deduplicated retry queue with exponential backoff
- Observable online / pending-sync state
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import httpx

from .config import SyncConfig
from .locks import KeyedLocks
from .models import (
    ChecklistRecord,
    CompletionEvent,
    CounterRecord,
    DayView,
    today,
    utcnow,
    validate_date,
)
from .mutations import MutationApplier
from .reconciler import Reconciler
from .remote import RemoteClient
from .retry import RetrySupervisor
from .stats import calculate_streak, weekly_stats
from .status import SyncState, SyncStatus
from .store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a full sync pass."""
    success: bool
    dates: list[str] = field(default_factory=list)
    pending: int = 0
    queued: int = 0
    duration_seconds: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)


class SyncEngine:
    """Main entry point for one running client."""

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or SyncConfig()
        self.status = SyncStatus()
        self.locks = KeyedLocks()
        self.store = LocalStore(self.config.db_path)
        self.remote = RemoteClient(self.config, self.status, transport=transport)
        self.supervisor = RetrySupervisor(
            self.store, self.remote, self.status, self.locks, self.config
        )
        self.reconciler = Reconciler(
            self.store, self.remote, self.status, self.locks, self.supervisor
        )
        self.mutations = MutationApplier(
            self.store, self.status, self.locks, self.supervisor
        )
        self.status.set_pending(self.store.pending_count())

    async def start(self) -> None:
        """Start the retry worker and queue anything left dirty by a previous run."""
        self.supervisor.start()
        self.supervisor.sweep()
        logger.info("Sync engine started")

    async def close(self) -> None:
        """Finish in-flight pushes, stop the worker and release resources."""
        await self.mutations.wait_for_pushes()
        await self.supervisor.stop()
        await self.remote.close()
        self.status.clear()
        logger.info("Sync engine closed")

    async def __aenter__(self) -> "SyncEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # === Reads ===

    def ensure_day(self, date: Optional[str] = None) -> bool:
        """Materialize the default catalog for a date without reading it."""
        return self.store.ensure_defaults(date or today())

    def local_day(self, date: Optional[str] = None) -> DayView:
        """Local state for a date, no network."""
        return self.store.get(date or today())

    async def load_day(self, date: Optional[str] = None) -> DayView:
        """Reconcile a date with the server and return the merged view."""
        return await self.reconciler.reconcile(date or today())

    # === Mutations ===

    async def increment(self, name: str, date: Optional[str] = None) -> CounterRecord:
        return await self.mutations.increment_counter(name, date or today())

    async def toggle(self, name: str, date: Optional[str] = None) -> ChecklistRecord:
        return await self.mutations.toggle_checklist_item(name, date or today())

    # === Sync ===

    async def sync_all(self, dates: Optional[list[str]] = None) -> SyncResult:
        """Reconcile today plus every date holding dirty records, then sweep.

        Stops reconciling further dates once the server proves unreachable;
        whatever is still dirty goes to the retry queue.
        """
        start_time = time.time()
        if not self.status.begin_sync():
            logger.debug("Sync already in progress")
            return SyncResult(success=False, pending=self.store.pending_count())

        targets = set(validate_date(d) for d in (dates or [today()]))
        targets.update(record.date for record in self.store.query_dirty())
        reconciled: list[str] = []
        completed = False
        try:
            for date in sorted(targets):
                await self.reconciler.reconcile(date)
                reconciled.append(date)
                if not self.status.is_online:
                    break
            queued = self.supervisor.sweep()
            completed = True
        finally:
            self.status.end_sync(completed=completed)

        pending = self.store.pending_count()
        duration = time.time() - start_time
        logger.info(
            f"Sync finished in {duration:.2f}s: {len(reconciled)} dates, "
            f"{pending} pending, online={self.status.is_online}"
        )
        return SyncResult(
            success=self.status.is_online and pending == 0,
            dates=reconciled,
            pending=pending,
            queued=queued,
            duration_seconds=duration,
        )

    # === Observers ===

    def subscribe(self, listener: Callable[[SyncState], None]) -> Callable[[], None]:
        return self.status.subscribe(listener)

    def on_completion(self, listener: Callable[[CompletionEvent], None]) -> Callable[[], None]:
        return self.mutations.subscribe_completion(listener)

    # === Statistics ===

    def streak(self, date: Optional[str] = None) -> int:
        return calculate_streak(self.store, date)

    def weekly_stats(self, end: Optional[str] = None) -> list[dict]:
        return weekly_stats(self.store, end)

    def get_sync_status(self) -> dict:
        """Current sync status information."""
        state = self.status.state
        return {
            "online": state.is_online,
            "syncing": state.is_syncing,
            "pending": state.pending_count,
            "last_sync": state.last_sync.isoformat() if state.last_sync else None,
            "retry_queue": [str(key) for key in self.supervisor.queued],
            "abandoned": sorted(str(key) for key in self.supervisor.abandoned),
            "retry_worker_running": self.supervisor.running,
        }


# =============================================================================
# Convenience Functions
# =============================================================================

async def create_sync_engine(
    config: Optional[SyncConfig] = None,
    auto_start: bool = True,
) -> SyncEngine:
    """Create and optionally start a sync engine."""
    engine = SyncEngine(config)

    if auto_start:
        await engine.start()

    return engine


@asynccontextmanager
async def sync_session(
    config: Optional[SyncConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """
    Context manager for a sync session.

    Usage:
        async with sync_session() as engine:
            await engine.increment("first")
    """
    engine = SyncEngine(config, transport=transport)
    await engine.start()
    try:
        yield engine
    finally:
        await engine.close()
