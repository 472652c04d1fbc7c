# src/pipeline/triggers.py — v1
"""Trigger filter: push to a primary branch or pull request into an integration branch."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Literal, Mapping

from pydantic import BaseModel

if TYPE_CHECKING:
    from cacheplan.config.settings import Settings

logger = logging.getLogger(__name__)

_BRANCH_REF_PREFIX = "refs/heads/"


class TriggerEvent(BaseModel):
    """Event that started a pipeline run.

    ``branch`` is the pushed branch for ``push`` and the target branch for
    ``pull_request``.
    """

    name: Literal["push", "pull_request", "manual"]
    branch: str = ""


def event_from_env(environ: Mapping[str, str] | None = None) -> TriggerEvent:
    """Build the trigger event from CI environment variables.

    Without ``GITHUB_EVENT_NAME`` the run is treated as manual.
    """
    env = os.environ if environ is None else environ
    name = env.get("GITHUB_EVENT_NAME", "")

    if name == "push":
        ref = env.get("GITHUB_REF", "")
        branch = ref[len(_BRANCH_REF_PREFIX):] if ref.startswith(_BRANCH_REF_PREFIX) else ref
        return TriggerEvent(name="push", branch=branch)

    if name == "pull_request":
        return TriggerEvent(name="pull_request", branch=env.get("GITHUB_BASE_REF", ""))

    return TriggerEvent(name="manual")


def should_run(event: TriggerEvent, settings: Settings) -> bool:
    """True if the configured triggers accept *event*.

    Manual runs always proceed.
    """
    if event.name == "manual":
        return True
    if event.name == "push":
        accepted = event.branch in settings.push_branches_list
    else:
        accepted = event.branch in settings.pull_request_branches_list
    if not accepted:
        logger.info("Ignoring %s event on branch %r", event.name, event.branch)
    return accepted
