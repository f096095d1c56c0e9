"""
Connectivity / Retry Supervisor.

Failed pushes land in a bounded queue deduplicated by record key and drained
by a single worker task. Retry ``n`` waits ``min(base * 2^n, cap)`` seconds.
Each attempt pushes whatever the local store holds at that moment, never a
snapshot from enqueue time, and is skipped silently once the record is clean.
After ``max_attempts`` failures an entry is abandoned; the record stays dirty
and the next reconciliation or sweep picks it up again.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .config import SyncConfig
from .exceptions import SyncError
from .locks import KeyedLocks
from .models import CounterRecord, RecordKey
from .remote import RemoteClient
from .status import SyncStatus
from .store import LocalStore

logger = logging.getLogger(__name__)

# Re-pushes allowed within one push() when the value moves under it
MAX_CHASE = 3


@dataclass
class RetryEntry:
    """One queued record awaiting its next push attempt."""
    key: RecordKey
    attempt: int = 0
    due: float = 0.0


class RetrySupervisor:
    """Pushes dirty records to the server and retries failures with backoff."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteClient,
        status: SyncStatus,
        locks: KeyedLocks,
        config: SyncConfig,
    ):
        self.store = store
        self.remote = remote
        self.status = status
        self.locks = locks
        self.config = config

        self._push_locks = KeyedLocks()
        self._version = 0
        self._confirmed: dict[RecordKey, int] = {}
        self._passes: dict[int, int] = {}
        self._entries: dict[RecordKey, RetryEntry] = {}
        self._abandoned: set[RecordKey] = set()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: Optional[asyncio.Task] = None

    # === Introspection ===

    @property
    def queued(self) -> list[RecordKey]:
        return list(self._entries)

    @property
    def abandoned(self) -> set[RecordKey]:
        return set(self._abandoned)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def attempts_for(self, key: RecordKey) -> Optional[int]:
        entry = self._entries.get(key)
        return entry.attempt if entry else None

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt``."""
        return min(self.config.base_retry_delay * (2 ** attempt), self.config.max_retry_delay)

    @property
    def version(self) -> int:
        """Increases every time a push is confirmed by the server."""
        return self._version

    @property
    def tracked_confirmations(self) -> int:
        return len(self._confirmed)

    def begin_pass(self) -> int:
        """Register a reconciliation pass; returns the version to compare against."""
        version = self._version
        self._passes[version] = self._passes.get(version, 0) + 1
        return version

    def end_pass(self, version: int) -> None:
        """Unregister a pass and forget confirmations no open pass can ask about."""
        remaining = self._passes.get(version, 0) - 1
        if remaining > 0:
            self._passes[version] = remaining
        else:
            self._passes.pop(version, None)

        if not self._passes:
            self._confirmed.clear()
            return
        oldest = min(self._passes)
        self._confirmed = {k: v for k, v in self._confirmed.items() if v >= oldest}

    def confirmed_since(self, key: RecordKey, version: int) -> bool:
        """True if ``key`` was pushed and confirmed after ``version`` was read."""
        return self._confirmed.get(key, -1) >= version

    # === Pushing ===

    async def push(self, key: RecordKey) -> bool:
        """Push the current local value of ``key``.

        Pushes for one key never overlap, so a stale value cannot land after
        a fresher one. Returns True once the record is clean (or already was),
        False if the server could not be reached.
        """
        async with self._push_locks.hold(key):
            for _ in range(MAX_CHASE):
                record = self.store.get_record(key)
                if record is None or not record.dirty:
                    return True

                if not await self.remote.push_record(record):
                    return False

                pushed = record.count if isinstance(record, CounterRecord) else record.completed
                async with self.locks.hold(key):
                    cleared = self.store.mark_synced(key.name, key.date, key.kind, pushed_value=pushed)
                if cleared:
                    if self._passes:
                        self._confirmed[key] = self._version
                    self._version += 1
                    logger.debug(f"Pushed {key}")
                    self.status.set_pending(self.store.pending_count())
                    return True
                # Value changed while the push was in flight, push the newer one
                logger.debug(f"{key} changed during push, pushing again")
            return False

    async def push_or_enqueue(self, key: RecordKey) -> bool:
        """Immediate best-effort push; on failure hand the key to the retry loop."""
        try:
            ok = await self.push(key)
        except SyncError as e:
            logger.error(f"Push of {key} failed locally: {e}")
            ok = False
        if not ok:
            self.enqueue(key)
        return ok

    # === Queue ===

    def enqueue(self, key: RecordKey) -> bool:
        """Queue ``key`` for retry. No-op if already queued; False when full."""
        if key in self._entries:
            return False
        if len(self._entries) >= self.config.max_queue_size:
            logger.warning(f"Retry queue full, {key} left for the next sweep")
            return False

        loop = asyncio.get_running_loop()
        self._entries[key] = RetryEntry(key=key, due=loop.time() + self.backoff_delay(0))
        self._abandoned.discard(key)
        self._idle.clear()
        self._wakeup.set()
        logger.debug(f"Queued {key} for retry")
        return True

    def sweep(self) -> int:
        """Queue every dirty record in the store. Returns how many were newly queued."""
        added = 0
        for record in self.store.query_dirty():
            if self.enqueue(record.key):
                added += 1
        if added:
            logger.info(f"Sweep queued {added} dirty records")
        return added

    # === Worker ===

    def start(self) -> None:
        """Start the worker task on the running loop."""
        if self.running:
            logger.warning("Retry supervisor already running")
            return
        self._worker = asyncio.create_task(self._run(), name="retry-supervisor")
        logger.info("Retry supervisor started")

    async def stop(self) -> None:
        """Stop the worker. Queued entries stay queued; their records stay dirty."""
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            logger.info("Retry supervisor stopped")

    async def wait_idle(self) -> None:
        """Wait until the queue is empty (every entry pushed, dropped or abandoned)."""
        await self._idle.wait()

    async def _run(self) -> None:
        """Main retry loop."""
        while True:
            entry = await self._next_due()
            try:
                await self._attempt(entry)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Retry of {entry.key} crashed: {e}")
                self._record_failure(entry)

    async def _next_due(self) -> RetryEntry:
        loop = asyncio.get_running_loop()
        while True:
            if not self._entries:
                self._idle.set()
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            entry = min(self._entries.values(), key=lambda e: e.due)
            delay = entry.due - loop.time()
            if delay <= 0:
                return entry

            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def _attempt(self, entry: RetryEntry) -> None:
        record = self.store.get_record(entry.key)
        if record is None or not record.dirty:
            logger.debug(f"{entry.key} already synced, dropping retry")
            self._remove(entry.key)
            return

        logger.debug(f"Retrying {entry.key} (attempt {entry.attempt + 1}/{self.config.max_attempts})")
        if await self.push(entry.key):
            self._remove(entry.key)
        else:
            self._record_failure(entry)

    def _record_failure(self, entry: RetryEntry) -> None:
        entry.attempt += 1
        if entry.attempt >= self.config.max_attempts:
            logger.warning(
                f"Giving up on {entry.key} after {entry.attempt} attempts; "
                "it stays dirty until the next sync"
            )
            self._abandoned.add(entry.key)
            self._remove(entry.key)
            return
        loop = asyncio.get_running_loop()
        entry.due = loop.time() + self.backoff_delay(entry.attempt)

    def _remove(self, key: RecordKey) -> None:
        self._entries.pop(key, None)
        if not self._entries:
            self._idle.set()
