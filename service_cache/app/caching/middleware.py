"""
Response caching middleware.

``ResponseCache`` decides hit or miss for each request, writes cacheable
responses back to its store and, when auto removal is on, schedules a
detached task that deletes the entry once it has gone stale.

Request flow:

1. ``request.state.skip_cache`` set upstream: pass through, store untouched.
2. Compute the key and record it on ``request.state.cache_key``.
3. Look the key up. A store fault propagates to the host app.
4. Fresh hit: serve the cached body with the configured content type.
5. Miss or stale: run the rest of the pipeline.
6. Only a response whose content type equals the configured one is cached.
7. Snapshot the body and write it back before returning.
8. With ``auto_remove``, spawn the deferred expiry check.
"""

from __future__ import annotations

import asyncio
import gzip
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Set, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from shared.errors import ConfigurationError, StoreError
from shared.logging import get_logger
from ..stores.base import CachedEntry, CacheStore
from ..stores.memory import InMemoryStore
from .keys import DEFAULT_KEY_SUPPLIER, KeySupplier

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_KEY_STATE = "cache_key"
SKIP_CACHE_STATE = "skip_cache"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_JSON_UTF8 = "application/json; charset=UTF-8"

CACHE_STATUS_HEADER = "X-Cache"

# Sleep past the TTL boundary so the freshness re-check sees the entry as expired.
EXPIRY_SLACK_SECONDS = 0.01

CallNext = Callable[[Request], Awaitable[Response]]


@dataclass(frozen=True)
class CacheConfig:
    """Immutable orchestrator settings, fixed at construction."""

    ttl: timedelta
    content_type: str = CONTENT_TYPE_JSON
    auto_remove: bool = False
    gzip_enabled: bool = False
    key_func: Optional[KeySupplier] = None

    def __post_init__(self):
        ttl: Union[timedelta, float, int] = self.ttl
        if not isinstance(ttl, timedelta):
            object.__setattr__(self, "ttl", timedelta(seconds=ttl))
        if self.ttl <= timedelta(0):
            raise ConfigurationError("Cache TTL must be positive", {"ttl_seconds": self.ttl.total_seconds()})
        if self.key_func is None:
            object.__setattr__(self, "key_func", DEFAULT_KEY_SUPPLIER)


def accepts_gzip(request: Request) -> bool:
    """True when the client's Accept-Encoding allows gzip."""
    header = request.headers.get("accept-encoding", "")
    for item in header.split(","):
        parts = [part.strip() for part in item.split(";")]
        coding = parts[0].lower()
        if coding not in ("gzip", "*"):
            continue
        quality = 1.0
        for param in parts[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if quality > 0:
            return True
    return False


async def snapshot_body(response: Response) -> bytes:
    """Independent copy of a response body, draining streamed bodies."""
    body = getattr(response, "body", None)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)

    chunks = []
    async for chunk in response.body_iterator:
        if isinstance(chunk, str):
            chunk = chunk.encode(response.charset)
        chunks.append(bytes(chunk))
    return b"".join(chunks)


class ResponseCache:
    """Cache orchestration engine: hit/miss decision, write-back and expiry."""

    def __init__(
        self,
        store: CacheStore,
        config: CacheConfig,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.config = config
        self.metrics = metrics
        self.logger = get_logger("response_cache.orchestrator")
        # Strong references only; tasks are never awaited or cancelled here.
        self._expiry_tasks: Set[asyncio.Task] = set()

    @property
    def store_name(self) -> str:
        return self.store.config().name

    @property
    def pending_expiry_tasks(self) -> int:
        return len(self._expiry_tasks)

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        """Serve ``request`` from cache or run the pipeline and cache the result."""
        if getattr(request.state, SKIP_CACHE_STATE, False):
            self._increment("cache_passthrough_total", reason="skipped")
            return await call_next(request)

        key = self.config.key_func(request)
        setattr(request.state, CACHE_KEY_STATE, key)

        entry = await self._lookup(key)
        if entry is not None:
            return self._cached_response(request, entry)

        response = await call_next(request)

        content_type = response.headers.get("content-type")
        if content_type != self.config.content_type:
            self._increment("cache_passthrough_total", reason="content_type")
            self.logger.debug(
                "Response not cacheable",
                key=key,
                content_type=content_type,
                expected=self.config.content_type,
            )
            return response

        body = await snapshot_body(response)
        await self._write_back(key, body)
        if self.config.auto_remove:
            self._schedule_expiry(key)

        fresh = Response(
            content=body,
            status_code=response.status_code,
            background=response.background,
        )
        fresh.raw_headers = list(response.raw_headers)
        fresh.headers["content-length"] = str(len(body))
        fresh.headers[CACHE_STATUS_HEADER] = "MISS"
        return fresh

    async def invalidate(self, key: str) -> None:
        """Delete ``key`` unconditionally, fresh or not."""
        try:
            await self.store.delete(key)
        except StoreError as exc:
            self._record_fault("delete", key, exc)
            raise
        self.logger.info("Cache entry invalidated", key=key, store=self.store_name)

    async def _lookup(self, key: str) -> Optional[CachedEntry]:
        start = time.perf_counter()
        try:
            entry, found = await self.store.retrieve(key)
        except StoreError as exc:
            self._record_fault("retrieve", key, exc)
            raise
        finally:
            self._observe("cache_lookup_duration_seconds", time.perf_counter() - start)

        if not found or entry is None:
            self._increment("cache_lookups_total", result="miss")
            self.logger.debug("Cache miss", key=key)
            return None

        if not entry.is_fresh(self.config.ttl):
            self._increment("cache_lookups_total", result="stale")
            self.logger.debug("Cache entry stale", key=key, created_at=entry.created_at.isoformat())
            return None

        self._increment("cache_lookups_total", result="hit")
        self.logger.debug("Cache hit", key=key)
        return entry

    def _cached_response(self, request: Request, entry: CachedEntry) -> Response:
        body = entry.payload
        headers = {CACHE_STATUS_HEADER: "HIT"}
        if self.config.gzip_enabled and accepts_gzip(request):
            body = gzip.compress(body)
            headers["Content-Encoding"] = "gzip"
            headers["Vary"] = "Accept-Encoding"

        return Response(
            content=body,
            status_code=200,
            headers=headers,
            media_type=self.config.content_type,
        )

    async def _write_back(self, key: str, body: bytes) -> None:
        try:
            await self.store.store(key, body)
        except StoreError as exc:
            self._record_fault("store", key, exc)
            raise
        self._increment("cache_writes_total")
        self.logger.debug("Cached response", key=key, size=len(body), store=self.store_name)

    def _schedule_expiry(self, key: str) -> None:
        task = asyncio.get_running_loop().create_task(self._expire_later(key))
        self._expiry_tasks.add(task)
        task.add_done_callback(self._expiry_tasks.discard)

    async def _expire_later(self, key: str) -> None:
        """Delete ``key`` after one TTL unless it was refreshed meanwhile."""
        await asyncio.sleep(self.config.ttl.total_seconds() + EXPIRY_SLACK_SECONDS)
        try:
            entry, found = await self.store.retrieve(key)
            if not found or entry is None or entry.is_fresh(self.config.ttl):
                return
            await self.store.delete(key)
        except Exception as exc:
            self.logger.error("Deferred cache expiry failed", key=key, store=self.store_name, error=str(exc))
            self._increment("cache_errors_total", operation="expire")
            return

        self._increment("cache_expiry_deletions_total")
        self.logger.info("Expired cache entry removed", key=key, store=self.store_name)

    def _record_fault(self, operation: str, key: str, exc: StoreError) -> None:
        self.logger.error(
            "Cache store error",
            operation=operation,
            key=key,
            store=self.store_name,
            code=exc.code,
            error=exc.message,
            details=exc.details,
        )
        self._increment("cache_errors_total", operation=operation)

    def _increment(self, metric_name: str, **labels) -> None:
        if not self.metrics:
            return
        if metric_name != "cache_passthrough_total":
            labels["store"] = self.store_name
        self.metrics.increment_counter(metric_name, **labels)

    def _observe(self, metric_name: str, value: float) -> None:
        if self.metrics:
            self.metrics.observe_histogram(metric_name, value, store=self.store_name)


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """Mounts a ``ResponseCache`` into a Starlette or FastAPI app."""

    def __init__(self, app, cache: ResponseCache):
        super().__init__(app)
        self.cache = cache

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        return await self.cache.handle(request, call_next)


def cache_json(
    ttl: Union[timedelta, float],
    *,
    content_type: str = CONTENT_TYPE_JSON,
    metrics: Optional["MetricsCollector"] = None,
) -> ResponseCache:
    """JSON response cache over a private in-memory store, with auto removal.

    The default gate is ``application/json``, the header FastAPI's
    ``JSONResponse`` emits. Pass ``content_type=CONTENT_TYPE_JSON_UTF8`` for
    handlers that send ``application/json; charset=UTF-8``; the match is exact.
    """
    config = CacheConfig(ttl=ttl, content_type=content_type, auto_remove=True)
    return ResponseCache(InMemoryStore(), config, metrics=metrics)
