from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID


class ItemLockRegistry:
    """
    One asyncio.Lock per item id, shared by every service in the process.

    Locks are held weakly and disappear once no unit is waiting on them.
    Cross-process writers are serialized by the store (row locks plus the
    item version check); this registry only keeps in-process units of work on
    the same item from racing each other into retries.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, item_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(item_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[item_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, item_id: UUID) -> AsyncIterator[None]:
        lock = self.lock_for(item_id)
        async with lock:
            yield
