"""
Response caching package.

Provides the orchestration middleware and key suppliers. Cached bodies live
in a swappable store (see ``app.stores``); expiry is TTL based with an
optional deferred delete.
"""

from .keys import (
    DEFAULT_KEY_SUPPLIER,
    KEY_SUPPLIERS,
    KeySupplier,
    request_path_to_md5,
    request_path_to_sha1,
    request_uri,
    resolve_key_supplier,
)
from .middleware import (
    CACHE_KEY_STATE,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_JSON_UTF8,
    SKIP_CACHE_STATE,
    CacheConfig,
    ResponseCache,
    ResponseCacheMiddleware,
    cache_json,
)

__all__ = [
    "DEFAULT_KEY_SUPPLIER",
    "KEY_SUPPLIERS",
    "KeySupplier",
    "request_path_to_md5",
    "request_path_to_sha1",
    "request_uri",
    "resolve_key_supplier",
    "CACHE_KEY_STATE",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_JSON_UTF8",
    "SKIP_CACHE_STATE",
    "CacheConfig",
    "ResponseCache",
    "ResponseCacheMiddleware",
    "cache_json",
]
