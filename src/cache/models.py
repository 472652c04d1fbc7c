# src/cache/models.py — v2
"""Cache domain models: CacheEntry, CacheLookupResult, restore/save outcomes."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Metadata for one stored cache archive."""

    key: str
    cache_class: str
    path: str
    created_at: datetime
    size_bytes: int = 0
    platform: str = ""


class CacheLookupResult(BaseModel):
    """Result of an exact-then-restore-prefix lookup."""

    hit_level: Literal["exact", "restore"] | None = None
    matched_key: str | None = None
    matched_entry: CacheEntry | None = None

    @property
    def is_exact(self) -> bool:
        return self.hit_level == "exact"


class RestoreOutcome(BaseModel):
    """What happened when one cache class was restored.

    ``hit_level`` reflects the lookup. A hit whose archive could not be read
    or unpacked keeps its level, reports ``restored_bytes == 0`` and carries
    the failure in ``error``.
    """

    cache_class: str
    key: str
    hit_level: Literal["exact", "restore"] | None = None
    matched_key: str | None = None
    restored_bytes: int = 0
    error: str | None = None

    @property
    def exact_hit(self) -> bool:
        return self.hit_level == "exact"


class SaveOutcome(BaseModel):
    """What happened when one cache class was saved."""

    cache_class: str
    key: str
    saved: bool = False
    size_bytes: int = 0
    skipped: Literal["exact_hit", "missing_path", "empty"] | None = None
    error: str | None = None
