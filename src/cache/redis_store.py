# src/cache/redis_store.py — v3
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Lets several runners share one cache over the network.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cacheplan.cache.base_cache_store import BaseCacheStore, CacheStoreError
from cacheplan.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "cacheplan:entry:"
_PAYLOAD_PREFIX = "cacheplan:payload:"
_INDEX_KEY = "cacheplan:index"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store."""

    # Client exceptions translated into CacheStoreError.
    _client_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url)
        self._client_errors = (redis.RedisError,)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve entry metadata by key."""
        data = self._call("get", f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry(**json.loads(data))
        except Exception as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry, payload: bytes) -> None:
        """Store an entry and its payload."""
        self._call("set", f"{_PAYLOAD_PREFIX}{key}", payload)
        self._call("set", f"{_KEY_PREFIX}{key}", entry.model_dump_json())
        # Index of all keys for list_entries / prefix restore
        self._call("sadd", _INDEX_KEY, key)

    async def read_payload(self, key: str) -> bytes | None:
        data = self._call("get", f"{_PAYLOAD_PREFIX}{key}")
        if data is None:
            return None
        return data if isinstance(data, bytes) else data.encode("latin-1")

    async def delete(self, key: str) -> None:
        """Remove an entry."""
        self._call("delete", f"{_KEY_PREFIX}{key}")
        self._call("delete", f"{_PAYLOAD_PREFIX}{key}")
        self._call("srem", _INDEX_KEY, key)

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        keys = self._call("smembers", _INDEX_KEY)
        entries: list[CacheEntry] = []
        for key in keys:
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            entry = await self.get(key)
            if entry is not None:
                entries.append(entry)
        return entries

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()

    def _call(self, command: str, *args: Any) -> Any:
        try:
            return getattr(self._client, command)(*args)
        except self._client_errors as e:
            raise CacheStoreError(f"Redis {command} failed: {e}") from e
