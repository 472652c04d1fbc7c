# src/logging/context.py — v2
"""Contextual logging support: attach run_id, platform, cache class and step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per job and per cache class.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_platform: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "platform", default=None
)
_cache_class: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cache_class", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    platform: str | None = None
    cache_class: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        platform=_platform.get(),
        cache_class=_cache_class.get(),
        step=_step.get(),
    )


def set_job_context(run_id: str, platform: str) -> None:
    """Set job-level context (called once per matrix job)."""
    _run_id.set(run_id)
    _platform.set(platform)


def set_cache_class_context(cache_class: str | None) -> None:
    """Set the cache class being restored or saved.

    Each class runs in its own asyncio task, so the value does not leak
    between concurrently processed classes.
    """
    _cache_class.set(cache_class)


def set_step_context(step: str | None) -> None:
    """Set the pipeline step (restore, build, test, save)."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _platform.set(None)
    _cache_class.set(None)
    _step.set(None)
