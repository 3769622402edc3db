"""
Response cache demo service.

Wires ``ResponseCache`` into a FastAPI app from ``RESPONSE_CACHE_*`` settings
and exposes administrative routes for invalidation and stats.
"""

from typing import Any, Dict

from fastapi import Request, Response

from shared.base_service import BaseService
from service_cache.app.caching.middleware import (
    CACHE_KEY_STATE,
    CACHE_STATUS_HEADER,
    SKIP_CACHE_STATE,
    ResponseCache,
    ResponseCacheMiddleware,
)
from service_cache.app.stores import InMemoryStore, RedisStore, create_store

UNCACHED_PATHS = {"/health", "/metrics", "/docs", "/redoc", "/openapi.json"}
ADMIN_PREFIX = "/api/v1/cache"
# HEAD is left out: GET routes answer it with a 405 that shares the GET key.
CACHEABLE_METHODS = {"GET"}


class CacheService(BaseService):
    """Response cache service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("cache", 8000, **config_overrides)

        @self.app.on_event("shutdown")
        async def _shutdown():
            if isinstance(self.store, RedisStore):
                await self.store.close()

        self._setup_cache_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.cache_service = self

    def _setup_middleware(self):
        """Mount the cache inside request timing, behind the skip-flag marker."""
        self.store = create_store(
            self.config.store_backend,
            redis_url=self.config.redis_url,
            key_prefix=self.config.redis_key_prefix,
        )
        self.response_cache = ResponseCache(
            self.store,
            self.config.cache_config(),
            metrics=self.metrics,
        )
        self.app.add_middleware(ResponseCacheMiddleware, cache=self.response_cache)

        super()._setup_middleware()

        @self.app.middleware("http")
        async def mark_uncacheable(request: Request, call_next):
            if self._should_skip(request):
                setattr(request.state, SKIP_CACHE_STATE, True)
            return await call_next(request)

        self.logger.info(
            "Response cache mounted",
            store=self.store.config().name,
            ttl_seconds=self.config.ttl_seconds,
            content_type=self.config.content_type,
            auto_remove=self.config.auto_remove,
            gzip_enabled=self.config.gzip_enabled,
        )

    def _should_skip(self, request: Request) -> bool:
        """Requests the cache must not touch: non-GET methods, admin and ops routes."""
        path = request.url.path
        if request.method.upper() not in CACHEABLE_METHODS:
            return True
        if path in UNCACHED_PATHS or path.startswith(ADMIN_PREFIX):
            return True
        return "no-cache" in request.headers.get("cache-control", "").lower()

    def _setup_cache_routes(self):
        """Set up cache-specific routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "message": "Response Cache Layer",
                "store": self.store.config().name,
            }

        @self.app.delete(ADMIN_PREFIX + "/{key}")
        async def invalidate(key: str):
            """Drop one cached entry regardless of freshness."""
            await self.response_cache.invalidate(key)
            return {"invalidated": key}

        @self.app.get(ADMIN_PREFIX + "/stats")
        async def stats():
            return self._cache_stats()

    def _cache_stats(self) -> Dict[str, Any]:
        cache_config = self.response_cache.config
        stats: Dict[str, Any] = {
            "store": self.store.config().name,
            "backend": self.config.store_backend,
            "ttl_seconds": cache_config.ttl.total_seconds(),
            "content_type": cache_config.content_type,
            "auto_remove": cache_config.auto_remove,
            "gzip_enabled": cache_config.gzip_enabled,
            "pending_expiry_tasks": self.response_cache.pending_expiry_tasks,
        }
        if isinstance(self.store, InMemoryStore):
            stats["entries"] = len(self.store)
        return stats

    def _request_log_fields(self, request: Request, response: Response) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"cache": response.headers.get(CACHE_STATUS_HEADER, "BYPASS")}
        key = getattr(request.state, CACHE_KEY_STATE, None)
        if key is not None:
            fields["cache_key"] = key
        return fields

    async def _check_dependencies(self) -> Dict[str, str]:
        if isinstance(self.store, RedisStore):
            return {"redis": "ok" if await self.store.ping() else "error"}
        return {}


def create_app(**config_overrides):
    """Create FastAPI app instance."""
    service = CacheService(**config_overrides)
    return service.app


if __name__ == "__main__":
    CacheService().run()
