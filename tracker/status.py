"""
Sync status shared by the components of one running client.

One ``SyncStatus`` is created per engine and handed to every component that
publishes or reads connectivity and pending-sync state. Subscribers receive
an immutable ``SyncState`` snapshot whenever something changes.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from .models import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncState:
    """Point-in-time view of sync status."""
    is_online: bool = True
    is_syncing: bool = False
    has_pending: bool = False
    pending_count: int = 0
    last_sync: Optional[datetime] = None


Listener = Callable[[SyncState], None]


class SyncStatus:
    """Observable connectivity and pending-sync state.

    ``is_online`` is advisory: it drives the offline indicator but never
    blocks network attempts. Every request is itself the connectivity probe.
    """

    def __init__(self, online: bool = True):
        self._state = SyncState(is_online=online)
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def has_pending(self) -> bool:
        return self._state.has_pending

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear(self) -> None:
        """Drop all listeners; called when the owning engine closes."""
        self._listeners.clear()

    def _update(self, **changes) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Sync status listener failed")

    # === Publishers ===

    def mark_online(self) -> None:
        if not self._state.is_online:
            logger.info("Server reachable, back online")
        self._update(is_online=True)

    def mark_offline(self) -> None:
        if self._state.is_online:
            logger.warning("Server unreachable, working offline")
        self._update(is_online=False)

    def set_pending(self, count: int) -> None:
        self._update(has_pending=count > 0, pending_count=count)

    def begin_sync(self) -> bool:
        """Flag a sync pass as running. Returns False if one already is."""
        if self._state.is_syncing:
            return False
        self._update(is_syncing=True)
        return True

    def end_sync(self, completed: bool = True) -> None:
        if completed:
            self._update(is_syncing=False, last_sync=utcnow())
        else:
            self._update(is_syncing=False)
