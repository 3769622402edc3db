"""
Shared configuration management for the response cache layer.
"""

from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from service_cache.app.caching.middleware import CacheConfig


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RESPONSE_CACHE_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="")

    # Cache behaviour
    store_backend: str = Field(default="memory")
    ttl_seconds: float = Field(default=300.0, gt=0)
    content_type: str = Field(default="application/json")
    auto_remove: bool = Field(default=False)
    gzip_enabled: bool = Field(default=False)
    key_algorithm: str = Field(default="md5")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    def cache_config(self) -> "CacheConfig":
        """Build the immutable orchestrator config from these settings."""
        from service_cache.app.caching.keys import resolve_key_supplier
        from service_cache.app.caching.middleware import CacheConfig

        return CacheConfig(
            ttl=self.ttl,
            content_type=self.content_type,
            auto_remove=self.auto_remove,
            gzip_enabled=self.gzip_enabled,
            key_func=resolve_key_supplier(self.key_algorithm),
        )


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
