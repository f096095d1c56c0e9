"""
Shared fixtures.

The API reads its settings at import time, so the database URL is pointed at
a throwaway SQLite file before any test imports ``api``.
"""

import os
import tempfile
from pathlib import Path

_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="bhakti-api-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR / 'test.db'}"
os.environ.setdefault("ENVIRONMENT", "development")

import pytest

from tracker.config import SyncConfig
from tracker.exceptions import RemoteUnavailable
from tracker.locks import KeyedLocks
from tracker.models import (
    ChecklistRecord,
    CounterRecord,
    RemoteActivity,
    RemoteCounter,
)
from tracker.status import SyncStatus
from tracker.store import LocalStore
from tracker.catalog import DEFAULT_ACTIVITIES, DEFAULT_COUNTERS


class FakeRemote:
    """In-memory stand-in for RemoteClient.

    Materializes the default catalog per date like the real server.
    ``fail`` breaks every call; ``fail_pushes`` breaks only pushes.
    """

    def __init__(self):
        self.counters: dict[tuple[str, str], RemoteCounter] = {}
        self.activities: dict[tuple[str, str], RemoteActivity] = {}
        self.fail = False
        self.fail_pushes = False
        self.push_failures_left = 0
        self.pushes: list[tuple[str, str, object]] = []
        self.push_attempts = 0

    def _ensure(self, date: str) -> None:
        for name, target in DEFAULT_COUNTERS:
            self.counters.setdefault((name, date), RemoteCounter(name=name, count=0, target=target))
        for name, label, category in DEFAULT_ACTIVITIES:
            self.activities.setdefault(
                (name, date),
                RemoteActivity(name=name, completed=False, display_name=label, category=category),
            )

    def set_counter(self, name: str, date: str, count: int, target=None) -> None:
        self._ensure(date)
        self.counters[(name, date)] = RemoteCounter(name=name, count=count, target=target)

    def set_activity(self, name: str, date: str, completed: bool) -> None:
        self._ensure(date)
        old = self.activities[(name, date)]
        self.activities[(name, date)] = RemoteActivity(
            name=name, completed=completed, display_name=old.display_name, category=old.category
        )

    async def fetch_counters(self, date: str) -> list[RemoteCounter]:
        if self.fail:
            raise RemoteUnavailable("connection refused")
        self._ensure(date)
        return [c for (_, d), c in self.counters.items() if d == date]

    async def fetch_checklist(self, date: str) -> list[RemoteActivity]:
        if self.fail:
            raise RemoteUnavailable("connection refused")
        self._ensure(date)
        return [a for (_, d), a in self.activities.items() if d == date]

    async def push_record(self, record) -> bool:
        self.push_attempts += 1
        if self.fail or self.fail_pushes:
            return False
        if self.push_failures_left > 0:
            self.push_failures_left -= 1
            return False

        self._ensure(record.date)
        if isinstance(record, CounterRecord):
            old = self.counters.get((record.name, record.date))
            self.counters[(record.name, record.date)] = RemoteCounter(
                name=record.name,
                count=record.count,
                target=old.target if old else record.target,
            )
            self.pushes.append((record.name, record.date, record.count))
        else:
            self.set_activity(record.name, record.date, record.completed)
            self.pushes.append((record.name, record.date, record.completed))
        return True


@pytest.fixture
def config(tmp_path):
    """Client config with instant retries."""
    return SyncConfig(
        api_base_url="http://testserver",
        data_dir=tmp_path / "client",
        base_retry_delay=0.0,
        max_retry_delay=0.0,
    )


@pytest.fixture
def store(config):
    return LocalStore(config.db_path)


@pytest.fixture
def status():
    return SyncStatus()


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def supervisor(store, fake_remote, status, locks, config):
    from tracker.retry import RetrySupervisor
    return RetrySupervisor(store, fake_remote, status, locks, config)


@pytest.fixture
def reconciler(store, fake_remote, status, locks, supervisor):
    from tracker.reconciler import Reconciler
    return Reconciler(store, fake_remote, status, locks, supervisor)


@pytest.fixture
def mutations(store, status, locks, supervisor):
    from tracker.mutations import MutationApplier
    return MutationApplier(store, status, locks, supervisor)


def put_counter(store: LocalStore, name: str, date: str, count: int, target=None, dirty=False):
    store.put([CounterRecord(name=name, date=date, count=count, target=target, dirty=dirty)])


def put_item(store: LocalStore, name: str, date: str, completed: bool, dirty=False, category="aarti"):
    store.put([ChecklistRecord(
        name=name,
        date=date,
        category=category,
        display_label=name,
        completed=completed,
        dirty=dirty,
    )])
