"""
Unit tests for the Redis cache store.
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from service_cache.app.stores import CacheStore, RedisStore, StoreConfig, create_store
from service_cache.app.stores.redis_store import REDIS_STORE_NAME, CachedRecord
from shared.errors import SerializationError, StoreError


def encode_record(payload: bytes, created_on: str) -> bytes:
    return json.dumps({
        "data": base64.b64encode(payload).decode("ascii"),
        "created_on": created_on,
    }).encode()


class TestRedisStore:
    """Test cases for RedisStore."""

    @pytest.fixture
    def redis_client(self):
        """Mock redis.asyncio client."""
        client = AsyncMock()
        client.get.return_value = None
        return client

    @pytest.fixture
    def store(self, redis_client):
        """Create RedisStore instance."""
        return RedisStore(redis_client)

    def test_implements_store_protocol(self, store):
        assert isinstance(store, CacheStore)

    def test_default_config(self, store):
        assert store.config() == StoreConfig(name=REDIS_STORE_NAME)
        store.set_config(StoreConfig(name="Shared Redis"))
        assert store.config().name == "Shared Redis"

    def test_requires_client_or_url(self):
        with pytest.raises(ValueError):
            RedisStore()

    def test_lazy_client_from_url(self):
        with patch("service_cache.app.stores.redis_store.redis.from_url") as mock_from_url:
            store = RedisStore(redis_url="redis://localhost:6379/3")
            mock_from_url.assert_not_called()

            client = store._get_redis()

        mock_from_url.assert_called_once_with("redis://localhost:6379/3")
        assert client is mock_from_url.return_value

    @pytest.mark.asyncio
    async def test_store_writes_record_without_expiration(self, store, redis_client):
        """Entries are written with a plain SET carrying data and created_on."""
        payload = b'{"name":"test"}'
        before = datetime.now(timezone.utc)

        await store.store("abc", payload)

        redis_client.set.assert_awaited_once()
        args, kwargs = redis_client.set.call_args
        assert args[0] == "abc"
        assert kwargs == {}
        record = json.loads(args[1])
        assert set(record) == {"data", "created_on"}
        assert base64.b64decode(record["data"]) == payload
        created_on = datetime.fromisoformat(record["created_on"].replace("Z", "+00:00"))
        assert created_on >= before
        redis_client.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_retrieve_round_trip(self, store, redis_client):
        payload = bytes(range(256))
        await store.store("abc", payload)
        redis_client.get.return_value = redis_client.set.call_args[0][1].encode()

        entry, found = await store.retrieve("abc")

        assert found is True
        assert entry.payload == payload
        assert entry.is_fresh(timedelta(minutes=5))
        redis_client.get.assert_awaited_with("abc")

    @pytest.mark.asyncio
    async def test_retrieve_missing_key(self, store, redis_client):
        """A nil reply is a miss, not an error."""
        redis_client.get.return_value = None

        entry, found = await store.retrieve("missing")

        assert entry is None
        assert found is False

    @pytest.mark.asyncio
    async def test_retrieve_naive_timestamp_is_utc(self, store, redis_client):
        redis_client.get.return_value = encode_record(b"x", "2024-01-01T12:00:00")

        entry, found = await store.retrieve("abc")

        assert found is True
        assert entry.created_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert not entry.is_fresh(timedelta(minutes=5))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("blob", [
        b"not json",
        b'{"data": "aGVsbG8="}',
        b'{"data": "***", "created_on": "2024-01-01T00:00:00Z"}',
        b'{"data": "aGVsbG8=", "created_on": "yesterday"}',
    ])
    async def test_retrieve_malformed_record_raises(self, store, redis_client, blob):
        """Decode faults surface as errors instead of misses."""
        redis_client.get.return_value = blob

        with pytest.raises(SerializationError) as exc_info:
            await store.retrieve("abc")

        assert exc_info.value.code == "SERIALIZATION_ERROR"
        assert exc_info.value.details["key"] == "abc"

    @pytest.mark.asyncio
    async def test_retrieve_transport_error_raises(self, store, redis_client):
        redis_client.get.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(StoreError) as exc_info:
            await store.retrieve("abc")

        assert exc_info.value.code == "STORE_ERROR"
        assert "connection refused" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_store_transport_error_raises(self, store, redis_client):
        redis_client.set.side_effect = RedisConnectionError("connection reset")

        with pytest.raises(StoreError):
            await store.store("abc", b"payload")

    @pytest.mark.asyncio
    async def test_delete(self, store, redis_client):
        await store.delete("abc")

        redis_client.delete.assert_awaited_once_with("abc")

    @pytest.mark.asyncio
    async def test_delete_transport_error_raises(self, store, redis_client):
        redis_client.delete.side_effect = RedisConnectionError("down")

        with pytest.raises(StoreError):
            await store.delete("abc")

    @pytest.mark.asyncio
    async def test_key_prefix_applied_to_every_operation(self, redis_client):
        store = RedisStore(redis_client, key_prefix="cache:")

        await store.store("abc", b"v")
        await store.retrieve("abc")
        await store.delete("abc")

        assert redis_client.set.call_args[0][0] == "cache:abc"
        redis_client.get.assert_awaited_once_with("cache:abc")
        redis_client.delete.assert_awaited_once_with("cache:abc")

    @pytest.mark.asyncio
    async def test_ping(self, store, redis_client):
        redis_client.ping.return_value = True
        assert await store.ping() is True

        redis_client.ping.side_effect = RedisConnectionError("down")
        assert await store.ping() is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, store, redis_client):
        await store.close()

        redis_client.aclose.assert_awaited_once()
        assert store._redis is None


class TestCachedRecord:
    """Test cases for the Redis wire format."""

    def test_field_names(self):
        from service_cache.app.stores.base import CachedEntry

        entry = CachedEntry(payload=b"hello", created_at=datetime(2024, 5, 1, tzinfo=timezone.utc))
        record = json.loads(CachedRecord.from_entry(entry).model_dump_json())

        assert record["data"] == "aGVsbG8="
        assert record["created_on"].startswith("2024-05-01T00:00:00")


class TestCreateStore:
    """Test cases for the store factory."""

    def test_memory_backend(self):
        from service_cache.app.stores import InMemoryStore

        assert isinstance(create_store("memory"), InMemoryStore)

    def test_redis_backend(self):
        client = AsyncMock()
        store = create_store("Redis", client=client, key_prefix="p:")

        assert isinstance(store, RedisStore)
        assert store.key_prefix == "p:"

    def test_unknown_backend(self):
        from shared.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            create_store("memcached")
