"""Keyed asyncio locks — one in-flight operation per game upload / chat session."""

import asyncio
from contextlib import asynccontextmanager
from typing import Hashable


class KeyedLocks:
    """Hands out one asyncio.Lock per key and forgets it once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_held(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Re-ingestion of one game's rules must fully delete-then-insert before the next starts
rules_upload_locks = KeyedLocks()

# At most one generation per chat session, so replies never interleave
chat_session_locks = KeyedLocks()
