"""
Reconciler - merges local and remote state for one date.

Counters and checklist items are merged independently. The server's name set
is the authoritative catalog: names only the server knows become new clean
local records, names only the device knows are left alone.

Counters only grow, so a dirty local count above the server's is an unsynced
increment and gets pushed. Checklist state has no order, so a dirty local
toggle always wins and gets pushed.
"""

import asyncio
import logging

from .catalog import DEFAULT_ACTIVITIES, default_label
from .exceptions import RemoteUnavailable
from .locks import KeyedLocks
from .models import (
    ChecklistRecord,
    CounterRecord,
    DayView,
    MergeAction,
    RecordKey,
    RecordKind,
    RemoteActivity,
    RemoteCounter,
    utcnow,
    validate_date,
)
from .remote import RemoteClient
from .retry import RetrySupervisor
from .status import SyncStatus
from .store import LocalStore

logger = logging.getLogger(__name__)

_CATALOG_ACTIVITIES = {name: (label, category) for name, label, category in DEFAULT_ACTIVITIES}


def decide_counter(local: CounterRecord, remote: RemoteCounter) -> MergeAction:
    """Three-way counter merge gated on the dirty flag."""
    if not local.dirty:
        return MergeAction.PULL
    if local.count > remote.count:
        return MergeAction.PUSH
    if local.count < remote.count:
        return MergeAction.PULL
    return MergeAction.MARK_SYNCED


def decide_checklist(local: ChecklistRecord, remote: RemoteActivity) -> MergeAction:
    """Local intent wins whenever it is unconfirmed."""
    if local.dirty:
        return MergeAction.PUSH
    return MergeAction.PULL


class Reconciler:
    """Produces a merged, durable view of a date and keeps ``dirty`` honest."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteClient,
        status: SyncStatus,
        locks: KeyedLocks,
        supervisor: RetrySupervisor,
    ):
        self.store = store
        self.remote = remote
        self.status = status
        self.locks = locks
        self.supervisor = supervisor

    async def reconcile(self, date: str) -> DayView:
        """Reconcile both kinds for ``date``."""
        validate_date(date)
        # Let both passes finish before surfacing a failure from either
        results = await asyncio.gather(
            self.reconcile_counters(date),
            self.reconcile_checklist(date),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        counters, checklist = results
        return DayView(date=date, counters=counters, checklist=checklist)

    # === Counters ===

    async def reconcile_counters(self, date: str) -> list[CounterRecord]:
        since = self.supervisor.begin_pass()
        try:
            return await self._merge_counters(date, since)
        finally:
            self.supervisor.end_pass(since)

    async def _merge_counters(self, date: str, since: int) -> list[CounterRecord]:
        local = self.store.get_counters(date)

        try:
            remote = await self.remote.fetch_counters(date)
        except RemoteUnavailable as e:
            logger.info(f"Counters for {date} not reconciled, using local state: {e}")
            self.status.mark_offline()
            self._refresh_pending()
            return local

        to_push: list[RecordKey] = []
        for remote_counter in remote:
            key = RecordKey(RecordKind.COUNTER, remote_counter.name, date)
            async with self.locks.hold(key):
                # Decide against the latest persisted value, not the pre-fetch snapshot
                current = self.store.get_counter(remote_counter.name, date)
                if current is None:
                    self.store.put([CounterRecord(
                        name=remote_counter.name,
                        date=date,
                        count=remote_counter.count,
                        target=remote_counter.target,
                        dirty=False,
                    )])
                    logger.debug(f"New counter {key} from server")
                    continue
                if self._confirmed_after_fetch(current, since):
                    continue

                action = decide_counter(current, remote_counter)
                logger.debug(
                    f"{key}: local={current.count} dirty={current.dirty} "
                    f"remote={remote_counter.count} -> {action.value}"
                )
                if action is MergeAction.PULL:
                    if current.dirty or current.count != remote_counter.count:
                        self.store.put([current.copy(count=remote_counter.count, dirty=False)])
                elif action is MergeAction.MARK_SYNCED:
                    self.store.mark_synced(current.name, date, RecordKind.COUNTER, pushed_value=current.count)
                else:
                    to_push.append(key)

        await self._push_all(to_push)
        self._refresh_pending()
        return self.store.peek_counters(date)

    # === Checklist ===

    async def reconcile_checklist(self, date: str) -> list[ChecklistRecord]:
        since = self.supervisor.begin_pass()
        try:
            return await self._merge_checklist(date, since)
        finally:
            self.supervisor.end_pass(since)

    async def _merge_checklist(self, date: str, since: int) -> list[ChecklistRecord]:
        local = self.store.get_checklist(date)

        try:
            remote = await self.remote.fetch_checklist(date)
        except RemoteUnavailable as e:
            logger.info(f"Checklist for {date} not reconciled, using local state: {e}")
            self.status.mark_offline()
            self._refresh_pending()
            return local

        to_push: list[RecordKey] = []
        for remote_item in remote:
            key = RecordKey(RecordKind.CHECKLIST, remote_item.name, date)
            async with self.locks.hold(key):
                current = self.store.get_checklist_item(remote_item.name, date)
                if current is None:
                    self.store.put([self._new_item(remote_item, date)])
                    logger.debug(f"New checklist item {key} from server")
                    continue
                if self._confirmed_after_fetch(current, since):
                    continue

                action = decide_checklist(current, remote_item)
                logger.debug(
                    f"{key}: local={current.completed} dirty={current.dirty} "
                    f"remote={remote_item.completed} -> {action.value}"
                )
                if action is MergeAction.PUSH:
                    to_push.append(key)
                elif current.completed != remote_item.completed:
                    self.store.put([self._apply_remote(current, remote_item.completed)])

        await self._push_all(to_push)
        self._refresh_pending()
        return self.store.peek_checklist(date)

    @staticmethod
    def _new_item(remote_item: RemoteActivity, date: str) -> ChecklistRecord:
        label, category = _CATALOG_ACTIVITIES.get(
            remote_item.name, (default_label(remote_item.name), "")
        )
        return ChecklistRecord(
            name=remote_item.name,
            date=date,
            category=remote_item.category or category,
            display_label=remote_item.display_name or label,
            completed=remote_item.completed,
            completed_at=utcnow() if remote_item.completed else None,
            dirty=False,
        )

    @staticmethod
    def _apply_remote(current: ChecklistRecord, completed: bool) -> ChecklistRecord:
        return current.copy(
            completed=completed,
            completed_at=(current.completed_at or utcnow()) if completed else None,
            dirty=False,
        )

    # === Helpers ===

    def _confirmed_after_fetch(self, current, since: int) -> bool:
        """A clean record pushed while the fetch was in flight is newer than the fetch."""
        if current.dirty or not self.supervisor.confirmed_since(current.key, since):
            return False
        logger.debug(f"{current.key} confirmed during fetch, keeping local value")
        return True

    async def _push_all(self, keys: list[RecordKey]) -> None:
        """Push local-ahead records; failures stay dirty and go to the retry queue."""
        if not keys:
            return
        results = await asyncio.gather(*(self.supervisor.push(key) for key in keys))
        for key, ok in zip(keys, results):
            if not ok:
                self.supervisor.enqueue(key)

    def _refresh_pending(self) -> None:
        self.status.set_pending(self.store.pending_count())
