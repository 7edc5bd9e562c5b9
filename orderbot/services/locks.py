from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ConversationLockRegistry:
    """One asyncio.Lock per conversation thread, released from memory once idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, thread_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[thread_id] = lock
        self._waiters[thread_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[thread_id] -= 1
            if self._waiters[thread_id] <= 0:
                self._waiters.pop(thread_id, None)
                self._locks.pop(thread_id, None)

    def active_threads(self) -> int:
        return len(self._locks)
