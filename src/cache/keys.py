# src/cache/keys.py — v1
"""Cache key planner.

Each cache class gets an exact key that changes daily and a date-less
restore prefix, so the first run of a day restores yesterday's entry and
writes a fresh one, while later runs that day hit the exact key.

    exact key:      {class}-{fingerprint}-{YYYY-MM-DD}
    restore chain:  [{class}-{fingerprint}]
"""

from __future__ import annotations

from typing import Iterable

from cacheplan.core.models import (
    KEY_FORBIDDEN_CHARS,
    CacheClass,
    CachePlan,
    DateStamp,
    ManifestFingerprint,
    RunContext,
)


def plan_keys(
    cache_class: CacheClass | str,
    fingerprint: ManifestFingerprint | str,
    date_stamp: DateStamp | str,
) -> tuple[str, list[str]]:
    """Compose the exact cache key and its restore chain.

    Args:
        cache_class: Class (or bare class prefix) to plan for.
        fingerprint: Manifest fingerprint of the project.
        date_stamp: Date stamp computed once for the run.

    Returns:
        Tuple of (exact key, restore keys ordered most to least specific).

    Raises:
        ValueError: If the prefix is empty or contains a path separator, the
            fingerprint is empty, or the date stamp is not a ``YYYY-MM-DD``
            calendar date.
    """
    prefix = cache_class.name if isinstance(cache_class, CacheClass) else cache_class
    fp = fingerprint.value if isinstance(fingerprint, ManifestFingerprint) else fingerprint
    stamp = date_stamp if isinstance(date_stamp, DateStamp) else DateStamp(value=date_stamp)

    if not prefix:
        raise ValueError("cache class prefix must be non-empty")
    if any(ch in KEY_FORBIDDEN_CHARS for ch in prefix):
        raise ValueError(f"cache class prefix contains a path separator: {prefix!r}")
    if not fp:
        raise ValueError("fingerprint must be non-empty")

    base = f"{prefix}-{fp}"
    return f"{base}-{stamp.value}", [base]


def class_prefix(
    cache_class: CacheClass,
    platform: str = "",
    namespace_by_platform: bool = False,
) -> str:
    """Return the key prefix for a class, optionally scoped by platform."""
    if namespace_by_platform and platform:
        return f"{platform}-{cache_class.name}"
    return cache_class.name


def plan_all(
    classes: Iterable[CacheClass],
    context: RunContext,
    namespace_by_platform: bool = False,
) -> list[CachePlan]:
    """Plan keys for every cache class from one shared run context."""
    plans: list[CachePlan] = []
    seen: set[str] = set()
    for cache_class in classes:
        prefix = class_prefix(cache_class, context.platform, namespace_by_platform)
        if prefix in seen:
            raise ValueError(f"Duplicate cache class prefix: {prefix!r}")
        seen.add(prefix)

        key, restore_keys = plan_keys(prefix, context.fingerprint, context.date_stamp)
        plans.append(
            CachePlan(
                cache_class=cache_class,
                key=key,
                restore_keys=tuple(restore_keys),
            )
        )
    return plans


def matches_restore_key(candidate: str, restore_key: str) -> bool:
    """True if *candidate* is eligible for *restore_key* by prefix."""
    return candidate.startswith(restore_key)
