"""
Redis-backed cache store.

Entries are written as JSON records ``{"data": <base64>, "created_on": <iso>}``
with a plain ``SET``; no native Redis expiration is applied, so freshness is
decided entirely by the reader.
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from typing import Optional, Tuple

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from shared.errors import SerializationError, StoreError
from shared.logging import get_logger
from .base import CachedEntry, StoreConfig, utcnow

REDIS_STORE_NAME = "Redis Store"


class CachedRecord(BaseModel):
    """Wire format of a cached entry."""

    data: str
    created_on: datetime

    @classmethod
    def from_entry(cls, entry: CachedEntry) -> "CachedRecord":
        return cls(
            data=base64.b64encode(entry.payload).decode("ascii"),
            created_on=entry.created_at,
        )

    def to_entry(self) -> CachedEntry:
        payload = base64.b64decode(self.data.encode("ascii"), validate=True)
        created_at = self.created_on
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return CachedEntry(payload=payload, created_at=created_at)


class RedisStore:
    """Store that keeps entries in Redis for multi-process deployments."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        *,
        redis_url: Optional[str] = None,
        key_prefix: str = "",
        config: Optional[StoreConfig] = None,
    ):
        if client is None and redis_url is None:
            raise ValueError("RedisStore needs a client or a redis_url")
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._redis: Optional[redis.Redis] = client
        self._config = config or StoreConfig(name=REDIS_STORE_NAME)
        self.logger = get_logger("response_cache.redis_store")

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def store(self, key: str, payload: bytes) -> None:
        record = CachedRecord.from_entry(CachedEntry(payload=bytes(payload), created_at=utcnow()))
        blob = record.model_dump_json()
        try:
            await self._get_redis().set(self._make_key(key), blob)
        except RedisError as exc:
            raise StoreError("Redis SET failed", {"key": key, "error": str(exc)}) from exc

    async def retrieve(self, key: str) -> Tuple[Optional[CachedEntry], bool]:
        try:
            blob = await self._get_redis().get(self._make_key(key))
        except RedisError as exc:
            raise StoreError("Redis GET failed", {"key": key, "error": str(exc)}) from exc

        if blob is None:
            return None, False

        try:
            entry = CachedRecord.model_validate_json(blob).to_entry()
        except (ValidationError, binascii.Error, UnicodeEncodeError) as exc:
            raise SerializationError(
                "Cached record could not be decoded",
                {"key": key, "error": str(exc)},
            ) from exc
        return entry, True

    async def delete(self, key: str) -> None:
        try:
            await self._get_redis().delete(self._make_key(key))
        except RedisError as exc:
            raise StoreError("Redis DEL failed", {"key": key, "error": str(exc)}) from exc

    def config(self) -> StoreConfig:
        return self._config

    def set_config(self, config: StoreConfig) -> None:
        self._config = config

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except RedisError as exc:
            self.logger.warning("Redis ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
