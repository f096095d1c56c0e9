"""
Mutation Applier - optimistic local writes for user actions.

Each call persists immediately, marks the record dirty and fires a
background push; it never waits on the network. Local storage failures
propagate to the caller as ``LocalStoreError``.
"""

import asyncio
import logging
from typing import Callable

from .exceptions import RecordNotFoundError
from .locks import KeyedLocks
from .models import (
    ChecklistRecord,
    CompletionEvent,
    CounterRecord,
    RecordKey,
    RecordKind,
    utcnow,
    validate_date,
)
from .retry import RetrySupervisor
from .status import SyncStatus
from .store import LocalStore

logger = logging.getLogger(__name__)

CompletionListener = Callable[[CompletionEvent], None]


class MutationApplier:
    """Applies increments and toggles to the local store."""

    def __init__(
        self,
        store: LocalStore,
        status: SyncStatus,
        locks: KeyedLocks,
        supervisor: RetrySupervisor,
    ):
        self.store = store
        self.status = status
        self.locks = locks
        self.supervisor = supervisor
        self._completion_listeners: list[CompletionListener] = []
        self._push_tasks: set[asyncio.Task] = set()

    def subscribe_completion(self, listener: CompletionListener) -> Callable[[], None]:
        """Register a listener for target-reached events; returns an unsubscribe callable."""
        self._completion_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._completion_listeners:
                self._completion_listeners.remove(listener)

        return unsubscribe

    async def increment_counter(self, name: str, date: str) -> CounterRecord:
        """Add exactly one to (name, date) and start a background push.

        The record must already be materialized for the date.
        """
        validate_date(date)
        key = RecordKey(RecordKind.COUNTER, name, date)
        async with self.locks.hold(key):
            record = self.store.get_counter(name, date)
            if record is None:
                raise RecordNotFoundError(RecordKind.COUNTER.value, name, date)
            updated = record.copy(count=record.count + 1, dirty=True, modified_at=utcnow())
            self.store.put([updated])

        logger.debug(f"Incremented {key} to {updated.count}")
        self.status.set_pending(self.store.pending_count())

        if record.target is not None and record.count < record.target <= updated.count:
            self._emit_completion(CompletionEvent(
                name=name,
                date=date,
                count=updated.count,
                target=record.target,
            ))

        self._schedule_push(key)
        return updated

    async def toggle_checklist_item(self, name: str, date: str) -> ChecklistRecord:
        """Flip (name, date) and start a background push."""
        validate_date(date)
        key = RecordKey(RecordKind.CHECKLIST, name, date)
        async with self.locks.hold(key):
            record = self.store.get_checklist_item(name, date)
            if record is None:
                raise RecordNotFoundError(RecordKind.CHECKLIST.value, name, date)
            now = utcnow()
            completed = not record.completed
            updated = record.copy(
                completed=completed,
                completed_at=now if completed else None,
                dirty=True,
                modified_at=now,
            )
            self.store.put([updated])

        logger.debug(f"Toggled {key} to {updated.completed}")
        self.status.set_pending(self.store.pending_count())
        self._schedule_push(key)
        return updated

    async def wait_for_pushes(self) -> None:
        """Wait for every background push started so far."""
        while self._push_tasks:
            await asyncio.gather(*list(self._push_tasks), return_exceptions=True)

    def _schedule_push(self, key: RecordKey) -> None:
        task = asyncio.create_task(self.supervisor.push_or_enqueue(key))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    def _emit_completion(self, event: CompletionEvent) -> None:
        logger.info(f"Target reached for {event.name} on {event.date}: {event.count}/{event.target}")
        for listener in list(self._completion_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Completion listener failed")
