from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use.

    Holders of different keys never wait on each other. The arena only grows
    with the set of configured systems, so locks are never evicted.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        async with self._lock_for(key):
            yield

    @asynccontextmanager
    async def try_hold(self, key: str) -> AsyncIterator[bool]:
        """Enter only if the key is free right now; yields whether it was acquired."""
        lock = self._lock_for(key)
        if lock.locked():
            yield False
            return
        # A waiter woken by a just-released lock still goes first; callers
        # must re-validate whatever they checked before entering.
        await lock.acquire()
        try:
            yield True
        finally:
            lock.release()
