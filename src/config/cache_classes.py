# src/config/cache_classes.py — v1
"""Declarative cache class configuration.

Three independent classes, each with its own storage path and key prefix.
Paths starting with ``~`` are expanded per host; relative paths are
anchored at the project root.
"""

from __future__ import annotations

from cacheplan.core.models import CacheClass

DEFAULT_CACHE_CLASSES: tuple[CacheClass, ...] = (
    CacheClass(
        name="cargo-registry",
        path="~/.cargo/registry",
        description="Dependency registry (downloaded crates)",
    ),
    CacheClass(
        name="cargo-index",
        path="~/.cargo/git",
        description="Dependency index and git sources",
    ),
    CacheClass(
        name="cargo-build-target",
        path="target",
        description="Compiled build output",
    ),
)
