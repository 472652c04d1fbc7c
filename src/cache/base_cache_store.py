# src/cache/base_cache_store.py — v2
"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from cacheplan.cache.keys import matches_restore_key
from cacheplan.cache.models import CacheEntry, CacheLookupResult


class CacheStoreError(Exception):
    """Raised when a backend cannot be reached or is inconsistent."""


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve entry metadata by exact key."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry, payload: bytes) -> None:
        """Store entry metadata and its archive payload."""

    @abstractmethod
    async def read_payload(self, key: str) -> bytes | None:
        """Return the archive payload stored under *key*."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an entry and its payload."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all stored entries."""

    async def lookup(
        self, key: str, restore_keys: Sequence[str] = ()
    ) -> CacheLookupResult:
        """Exact key first, then each restore prefix in order.

        For a restore prefix the newest matching entry wins.
        """
        entry = await self.get(key)
        if entry is not None:
            return CacheLookupResult(
                hit_level="exact", matched_key=key, matched_entry=entry
            )

        if not restore_keys:
            return CacheLookupResult()

        entries = await self.list_entries()
        for restore_key in restore_keys:
            newest = newest_matching(entries, restore_key)
            if newest is not None:
                return CacheLookupResult(
                    hit_level="restore",
                    matched_key=newest.key,
                    matched_entry=newest,
                )

        return CacheLookupResult()


def newest_matching(
    entries: Iterable[CacheEntry], restore_key: str
) -> CacheEntry | None:
    """Newest entry whose key starts with *restore_key*."""
    candidates = [e for e in entries if matches_restore_key(e.key, restore_key)]
    if not candidates:
        return None
    return max(candidates, key=lambda e: (e.created_at, e.key))
