"""
Unit tests for settings.
"""

from datetime import timedelta

import pytest

from service_cache.app.caching.keys import request_path_to_md5, request_path_to_sha1
from shared.config import get_config
from shared.errors import ConfigurationError


class TestServiceConfig:
    """Test cases for ServiceConfig."""

    def test_defaults(self, monkeypatch):
        for name in ("TTL_SECONDS", "STORE_BACKEND", "AUTO_REMOVE", "KEY_ALGORITHM"):
            monkeypatch.delenv(f"RESPONSE_CACHE_{name}", raising=False)

        config = get_config("cache", 8000)

        assert config.service_name == "cache"
        assert config.store_backend == "memory"
        assert config.ttl == timedelta(minutes=5)
        assert config.content_type == "application/json"
        assert config.auto_remove is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RESPONSE_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("RESPONSE_CACHE_AUTO_REMOVE", "true")
        monkeypatch.setenv("RESPONSE_CACHE_GZIP_ENABLED", "1")
        monkeypatch.setenv("RESPONSE_CACHE_KEY_ALGORITHM", "sha1")

        config = get_config("cache", 8000)
        cache_config = config.cache_config()

        assert cache_config.ttl == timedelta(seconds=60)
        assert cache_config.auto_remove is True
        assert cache_config.gzip_enabled is True
        assert cache_config.key_func is request_path_to_sha1

    def test_keyword_overrides_win(self, monkeypatch):
        monkeypatch.setenv("RESPONSE_CACHE_TTL_SECONDS", "60")

        config = get_config("cache", 8000, ttl_seconds=5, key_algorithm="md5")

        assert config.cache_config().ttl == timedelta(seconds=5)
        assert config.cache_config().key_func is request_path_to_md5

    def test_unknown_key_algorithm(self):
        config = get_config("cache", 8000, key_algorithm="crc32")

        with pytest.raises(ConfigurationError):
            config.cache_config()

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            get_config("cache", 8000, ttl_seconds=0)
