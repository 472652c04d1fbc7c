# src/cache/sqlite_store.py — v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3; archives live in a BLOB column beside the metadata.
Restore-prefix lookups are answered with an indexed range query.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Sequence

from cacheplan.cache.base_cache_store import BaseCacheStore, CacheStoreError
from cacheplan.cache.models import CacheEntry, CacheLookupResult

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    payload BLOB NOT NULL,
    cache_class TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_class ON cache_entries(cache_class);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve entry metadata by key."""
        cursor = self._execute(
            "SELECT data FROM cache_entries WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return CacheEntry(**json.loads(row[0]))
        except Exception as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry, payload: bytes) -> None:
        """Store an entry (upsert)."""
        self._execute(
            """INSERT OR REPLACE INTO cache_entries
               (key, data, payload, cache_class, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                key,
                entry.model_dump_json(),
                sqlite3.Binary(payload),
                entry.cache_class,
                entry.created_at.isoformat(),
            ),
        )
        self._commit()

    async def read_payload(self, key: str) -> bytes | None:
        cursor = self._execute(
            "SELECT payload FROM cache_entries WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        return bytes(row[0]) if row else None

    async def delete(self, key: str) -> None:
        """Remove an entry."""
        self._execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        self._commit()

    async def lookup(
        self, key: str, restore_keys: Sequence[str] = ()
    ) -> CacheLookupResult:
        """Exact key, then newest entry per restore prefix.

        ``key >= prefix AND key < prefix || U+FFFF`` selects keys starting
        with the prefix without LIKE wildcard escaping.
        """
        entry = await self.get(key)
        if entry is not None:
            return CacheLookupResult(
                hit_level="exact", matched_key=key, matched_entry=entry
            )

        for restore_key in restore_keys:
            cursor = self._execute(
                """SELECT data FROM cache_entries
                   WHERE key >= ? AND key < ?
                   ORDER BY created_at DESC, key DESC""",
                (restore_key, restore_key + "\uffff"),
            )
            for row in cursor.fetchall():
                try:
                    candidate = CacheEntry(**json.loads(row[0]))
                except Exception as e:
                    logger.warning("Skipping unreadable cache entry: %s", e)
                    continue
                return CacheLookupResult(
                    hit_level="restore",
                    matched_key=candidate.key,
                    matched_entry=candidate,
                )

        return CacheLookupResult()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        cursor = self._execute("SELECT data FROM cache_entries")
        entries: list[CacheEntry] = []
        for row in cursor.fetchall():
            try:
                entries.append(CacheEntry(**json.loads(row[0])))
            except Exception as e:
                logger.warning("Skipping unreadable cache entry: %s", e)
        return entries

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise CacheStoreError(f"SQLite cache error: {e}") from e

    def _commit(self) -> None:
        try:
            self._conn.commit()
        except sqlite3.Error as e:
            raise CacheStoreError(f"SQLite cache error: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
