"""
Storage contract shared by every cache backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Tuple, runtime_checkable


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedEntry:
    """One cached response body and the moment it was written."""

    payload: bytes
    created_at: datetime

    def expires_at(self, ttl: timedelta) -> datetime:
        return self.created_at + ttl

    def is_fresh(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        """True while ``now`` is inside ``[created_at, created_at + ttl)``."""
        if now is None:
            now = utcnow()
        return now < self.expires_at(ttl)


@dataclass
class StoreConfig:
    """Descriptive store settings; the name is informational only."""

    name: str


@runtime_checkable
class CacheStore(Protocol):
    """Capability implemented by every cache backend.

    ``retrieve`` returns ``(None, False)`` for a missing key. Every backend
    fault is raised as ``shared.errors.StoreError``; a fault is never reported
    as a miss.
    """

    async def store(self, key: str, payload: bytes) -> None: ...

    async def retrieve(self, key: str) -> Tuple[Optional[CachedEntry], bool]: ...

    async def delete(self, key: str) -> None: ...

    def config(self) -> StoreConfig: ...

    def set_config(self, config: StoreConfig) -> None: ...
