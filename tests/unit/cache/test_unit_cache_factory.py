# tests/unit/cache/test_cache_factory.py — v4
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

import pytest

from cacheplan.cache.cache_factory import create_cache_store
from cacheplan.cache.json_store import JsonCacheStore
from cacheplan.cache.sqlite_store import SqliteCacheStore
from cacheplan.config.settings import Settings


class TestCreateCacheStore:
    def test_default_json(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = create_cache_store()
        assert isinstance(store, JsonCacheStore)

    def test_json_backend(self, tmp_path):
        s = Settings(_env_file=None, cache_backend="json", cache_root=tmp_path)
        assert isinstance(create_cache_store(s), JsonCacheStore)

    def test_sqlite_backend(self, tmp_path):
        s = Settings(_env_file=None, cache_backend="sqlite", cache_root=tmp_path)
        store = create_cache_store(s)
        assert isinstance(store, SqliteCacheStore)
        assert (tmp_path / "cacheplan.db").exists()
        store.close()

    def test_redis_missing_url(self):
        s = Settings(
            _env_file=None, cache_backend="redis", cache_redis_url="", cache_enabled=False
        )
        with pytest.raises(ValueError, match="CACHE_REDIS_URL"):
            create_cache_store(s)

    def test_unsupported_backend(self):
        """Settings validation rejects invalid backends before factory is reached."""
        with pytest.raises(ValueError):
            s = Settings(_env_file=None, cache_backend="nonexistent")
            create_cache_store(s)
