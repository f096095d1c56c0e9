"""
Per-record locks.

Every read-decide-write on one (kind, name, date) runs under that key's lock,
so an increment can never interleave with a merge of the same record.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .models import RecordKey


class KeyedLocks:
    """``asyncio.Lock`` per record key, kept only while someone holds or awaits it."""

    def __init__(self):
        self._locks: dict[RecordKey, asyncio.Lock] = {}
        self._users: dict[RecordKey, int] = {}

    @asynccontextmanager
    async def hold(self, key: RecordKey) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
