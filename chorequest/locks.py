"""Keyed asyncio locks used to serialise per-party and per-member work."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Tuple


class KeyedLockRegistry:
    """Hand out one :class:`asyncio.Lock` per key.

    Distribution passes lock on the party id and reward grants on the user id,
    so unrelated parties and members never wait on each other. The registry's
    own mapping is guarded by an internal lock.
    """

    __slots__ = ("_locks", "_lock")

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: Hashable) -> asyncio.Lock:
        """Return the lock associated with ``key``, creating it on first use."""

        async with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the ``async with`` block."""

        lock = await self.get(key)
        async with lock:
            yield

    async def discard(self, key: Hashable) -> bool:
        """Forget the lock for ``key`` unless it is currently held."""

        async with self._lock:
            lock = self._locks.get(key)
            if lock is None or lock.locked():
                return False
            del self._locks[key]
            return True

    async def keys(self) -> Tuple[Hashable, ...]:
        async with self._lock:
            return tuple(self._locks.keys())
