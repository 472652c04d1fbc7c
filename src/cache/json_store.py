# src/cache/json_store.py — v3
"""JSON file-based cache store (default CACHE_BACKEND=json).

Each entry is a ``<key>.json`` metadata file plus a ``<key>.tar.gz``
archive under CACHE_ROOT.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import quote

from cacheplan.cache.base_cache_store import BaseCacheStore, CacheStoreError
from cacheplan.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON metadata and tarball payloads."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve entry metadata by key."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(**data)
        except (json.JSONDecodeError, Exception) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry, payload: bytes) -> None:
        """Store payload first, then metadata, so readers never see a half entry."""
        try:
            self._payload_path(key).write_bytes(payload)
            self._entry_path(key).write_text(
                entry.model_dump_json(indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise CacheStoreError(f"Cannot write cache entry {key}: {e}") from e

    async def read_payload(self, key: str) -> bytes | None:
        path = self._payload_path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise CacheStoreError(f"Cannot read cache payload {key}: {e}") from e

    async def delete(self, key: str) -> None:
        """Remove an entry and its archive."""
        for path in (self._entry_path(key), self._payload_path(key)):
            if path.exists():
                path.unlink()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        entries: list[CacheEntry] = []
        if not self._root.is_dir():
            return entries

        for path in self._root.glob("*.json"):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append(CacheEntry(**data))
            except Exception as e:
                logger.warning("Skipping unreadable cache entry %s: %s", path.name, e)

        return entries

    def _entry_path(self, key: str) -> Path:
        return self._root / f"{_safe_key(key)}.json"

    def _payload_path(self, key: str) -> Path:
        return self._root / f"{_safe_key(key)}.tar.gz"


def _safe_key(key: str) -> str:
    """Make a cache key usable as a filename, one file per distinct key."""
    return quote(key, safe="-._~")
