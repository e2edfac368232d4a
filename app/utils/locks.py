# app/utils/locks.py
"""
Per-key asyncio locks. Used to serialize create-if-absent paths on alert_id
within one worker; the UNIQUE constraints cover the multi-worker case.
"""

import asyncio
from contextlib import asynccontextmanager


class KeyedLock:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            # Drop idle locks so the registry doesn't grow with every alert ever seen
            if not self._holders[key]:
                del self._holders[key]
                self._locks.pop(key, None)

    def __len__(self):
        return len(self._locks)
