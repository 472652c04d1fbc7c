# src/pipeline/state.py — v2
"""Restore state handed from the ``restore`` step to the ``save`` step.

CI runners execute restore and save as separate processes. The state file
carries the run context, so the save step reuses the date stamp and keys
computed at restore time instead of recomputing them.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from cacheplan.cache.models import RestoreOutcome
from cacheplan.core.models import CachePlan, RunContext


class RestoreState(BaseModel):
    """Everything the save step needs from the restore step."""

    context: RunContext
    workdir: str
    plans: list[CachePlan] = Field(default_factory=list)
    outcomes: list[RestoreOutcome] = Field(default_factory=list)


def write_state(path: Path, state: RestoreState) -> None:
    """Persist restore state as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(indent=2), encoding="utf-8")


def read_state(path: Path) -> RestoreState:
    """Load restore state written by :func:`write_state`.

    Raises:
        FileNotFoundError: If the restore step never ran.
    """
    if not path.exists():
        raise FileNotFoundError(f"Restore state not found: {path}")
    return RestoreState.model_validate_json(path.read_text(encoding="utf-8"))
