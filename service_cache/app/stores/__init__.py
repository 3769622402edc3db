"""
Cache store backends.

Every backend implements the ``CacheStore`` protocol; pick one with
``create_store`` or construct it directly.
"""

from typing import Optional

from shared.errors import ConfigurationError
from .base import CachedEntry, CacheStore, StoreConfig
from .memory import IN_MEMORY_STORE_NAME, InMemoryStore
from .redis_store import REDIS_STORE_NAME, RedisStore

STORE_BACKENDS = ("memory", "redis")


def create_store(
    backend: str = "memory",
    *,
    redis_url: Optional[str] = None,
    client=None,
    key_prefix: str = "",
) -> CacheStore:
    """Resolve a store instance from a backend name."""
    key = backend.strip().lower()
    if key == "memory":
        return InMemoryStore()
    if key == "redis":
        return RedisStore(client, redis_url=redis_url, key_prefix=key_prefix)
    raise ConfigurationError(
        f"Unknown cache store backend '{backend}'",
        {"available": list(STORE_BACKENDS)},
    )


__all__ = [
    "CachedEntry",
    "CacheStore",
    "StoreConfig",
    "InMemoryStore",
    "RedisStore",
    "IN_MEMORY_STORE_NAME",
    "REDIS_STORE_NAME",
    "STORE_BACKENDS",
    "create_store",
]
