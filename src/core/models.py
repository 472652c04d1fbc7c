# src/core/models.py — v1
"""Shared Pydantic value types used across modules.

A ``RunContext`` is built once per pipeline run and passed explicitly into
every key derivation, so all cache classes of one run agree on the date.
"""

from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DATE_STAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Not allowed in key prefixes.
KEY_FORBIDDEN_CHARS = frozenset("/\\:")


# === CACHE CLASSES ===


class CacheClass(BaseModel):
    """A category of cached data with its own storage path and key prefix."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    description: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or any(ch.isspace() or ch in KEY_FORBIDDEN_CHARS for ch in v):
            raise ValueError(
                f"cache class name must be non-empty without whitespace or path separators: {v!r}"
            )
        return v


# === RUN INPUTS ===


class ManifestFingerprint(BaseModel):
    """Digest over the dependency-declaration files of a project."""

    model_config = ConfigDict(frozen=True)

    value: str
    files: tuple[str, ...] = ()

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        if not v:
            raise ValueError("fingerprint must be non-empty")
        return v

    def __str__(self) -> str:
        return self.value


class DateStamp(BaseModel):
    """Calendar date formatted as ``YYYY-MM-DD``."""

    model_config = ConfigDict(frozen=True)

    value: str

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        if not _DATE_STAMP_RE.match(v):
            raise ValueError(f"date stamp must be YYYY-MM-DD, got {v!r}")
        date.fromisoformat(v)
        return v

    @classmethod
    def from_date(cls, day: date) -> DateStamp:
        return cls(value=day.isoformat())

    def __str__(self) -> str:
        return self.value


class RunContext(BaseModel):
    """Immutable per-run inputs shared by every cache class."""

    model_config = ConfigDict(frozen=True)

    date_stamp: DateStamp
    fingerprint: ManifestFingerprint
    platform: str = ""
    run_id: str = ""


# === PLANS ===


class CachePlan(BaseModel):
    """Exact key and restore chain planned for one cache class."""

    model_config = ConfigDict(frozen=True)

    cache_class: CacheClass
    key: str
    restore_keys: tuple[str, ...] = Field(default_factory=tuple)
