"""
In-process cache store.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from .base import CachedEntry, StoreConfig, utcnow

IN_MEMORY_STORE_NAME = "In-Memory Store"


class ReadWriteLock:
    """Asyncio reader/writer lock: many readers or a single writer."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class InMemoryStore:
    """Process-local store backed by a dict.

    One reader/writer lock guards the whole map. There is no size bound and
    no eviction: entries stay until they are overwritten or deleted.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self._entries: Dict[str, CachedEntry] = {}
        self._lock = ReadWriteLock()
        self._config = config or StoreConfig(name=IN_MEMORY_STORE_NAME)

    async def store(self, key: str, payload: bytes) -> None:
        entry = CachedEntry(payload=bytes(payload), created_at=utcnow())
        async with self._lock.write():
            self._entries[key] = entry

    async def retrieve(self, key: str) -> Tuple[Optional[CachedEntry], bool]:
        async with self._lock.read():
            entry = self._entries.get(key)
        return entry, entry is not None

    async def delete(self, key: str) -> None:
        async with self._lock.write():
            self._entries.pop(key, None)

    def config(self) -> StoreConfig:
        return self._config

    def set_config(self, config: StoreConfig) -> None:
        self._config = config

    def keys(self) -> List[str]:
        """Snapshot of the stored keys."""
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)
