"""
Cache key suppliers.

A key supplier maps a request to a cache key string. It must be pure and
deterministic for semantically identical requests.
"""

import hashlib
from typing import Callable, Dict

from starlette.requests import Request

from shared.errors import ConfigurationError

KeySupplier = Callable[[Request], str]


def request_uri(request: Request) -> str:
    """Path plus query string, as sent by the client.

    Uses the undecoded ``raw_path`` when the server provides it, so
    ``/a%2Fb`` and ``/a/b`` map to different keys.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.url.query
    if query:
        return f"{path}?{query}"
    return path


def request_path_to_md5(request: Request) -> str:
    """Hex MD5 digest of the request URI."""
    return hashlib.md5(request_uri(request).encode("utf-8")).hexdigest()


def request_path_to_sha1(request: Request) -> str:
    """Hex SHA-1 digest of the request URI."""
    return hashlib.sha1(request_uri(request).encode("utf-8")).hexdigest()


DEFAULT_KEY_SUPPLIER: KeySupplier = request_path_to_md5

KEY_SUPPLIERS: Dict[str, KeySupplier] = {
    "md5": request_path_to_md5,
    "sha1": request_path_to_sha1,
}


def resolve_key_supplier(name: str) -> KeySupplier:
    """Look up a reference key supplier by algorithm name."""
    supplier = KEY_SUPPLIERS.get(name.strip().lower())
    if supplier is None:
        raise ConfigurationError(
            f"Unknown key algorithm '{name}'",
            {"available": sorted(KEY_SUPPLIERS)},
        )
    return supplier
