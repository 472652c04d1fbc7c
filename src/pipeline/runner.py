# src/pipeline/runner.py — v2
"""Job runner: one matrix job of restore, build, test, save.

The run context (date stamp, fingerprint) is created once at job start and
threaded into every cache class. Build and test are external commands; the
test step only runs after a successful build. Caches are saved whether or
not build and test passed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform as host_platform
import shlex
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from pydantic import BaseModel, Field, computed_field

from cacheplan.cache.datestamp import current_date_stamp, parse_date_stamp
from cacheplan.cache.fingerprint import compute_fingerprint
from cacheplan.cache.keys import plan_all
from cacheplan.cache.models import RestoreOutcome, SaveOutcome
from cacheplan.config.cache_classes import DEFAULT_CACHE_CLASSES
from cacheplan.core.models import CacheClass, CachePlan, DateStamp, RunContext
from cacheplan.logging.context import set_job_context, set_step_context
from cacheplan.pipeline.session import CacheSession

if TYPE_CHECKING:
    from cacheplan.cache.base_cache_store import BaseCacheStore
    from cacheplan.config.settings import Settings

logger = logging.getLogger(__name__)

# Host OS to matrix label of the hosted runner image.
HOST_PLATFORM_LABELS: dict[str, str] = {
    "Linux": "ubuntu-latest",
    "Darwin": "macos-latest",
    "Windows": "windows-latest",
}

MAX_OUTPUT_CHARS = 200_000


class StepResult(BaseModel):
    """Outcome of one external build or test command."""

    name: str
    command: str
    returncode: int
    output: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class JobResult(BaseModel):
    """Outcome of one matrix job."""

    platform: str
    run_id: str = ""
    date_stamp: str = ""
    fingerprint: str = ""
    build: StepResult | None = None
    test: StepResult | None = None
    restores: list[RestoreOutcome] = Field(default_factory=list)
    saves: list[SaveOutcome] = Field(default_factory=list)
    error: str | None = None
    duration_ms: int = 0

    @property
    def build_ok(self) -> bool:
        return self.build is not None and self.build.ok

    @property
    def test_ok(self) -> bool:
        return self.test is not None and self.test.ok

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.error is None and self.build_ok and self.test_ok


def detect_platform() -> str:
    """Matrix label for the current host, falling back to the OS name."""
    system = host_platform.system()
    return HOST_PLATFORM_LABELS.get(system, system.lower() or "unknown")


def generate_run_id(timestamp: datetime | None = None) -> str:
    """Generate a run_id: yyyymmdd_hhmm_{uuid4_short}."""
    ts = timestamp or datetime.now(timezone.utc)
    short_uuid = uuid.uuid4().hex[:5]
    return f"{ts.strftime('%Y%m%d_%H%M')}_{short_uuid}"


def create_run_context(
    settings: Settings,
    workdir: Path,
    platform: str,
    date_stamp: DateStamp | str | None = None,
) -> RunContext:
    """Compute the date stamp and fingerprint once for a run.

    Raises:
        FingerprintError: If no manifest can be fingerprinted.
    """
    if isinstance(date_stamp, str):
        date_stamp = parse_date_stamp(date_stamp)
    if date_stamp is None:
        if settings.cache_date_stamp:
            date_stamp = parse_date_stamp(settings.cache_date_stamp)
        else:
            date_stamp = current_date_stamp(tz=settings.cache_timezone or None)

    fingerprint = compute_fingerprint(workdir, settings.manifest_patterns_list)
    return RunContext(
        date_stamp=date_stamp,
        fingerprint=fingerprint,
        platform=platform,
        run_id=generate_run_id(),
    )


async def run_command(name: str, command: str, cwd: Path) -> StepResult:
    """Run an external command, capturing combined stdout/stderr."""
    set_step_context(name)
    logger.info("Running %s: %s", name, command)
    start_ns = time.monotonic_ns()
    try:
        argv = shlex.split(command, posix=os.name != "nt")
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        raw, _ = await proc.communicate()
        returncode = proc.returncode if proc.returncode is not None else -1
        output = raw.decode("utf-8", errors="replace")
    except (OSError, ValueError) as e:
        returncode = 127
        output = f"{name} could not start: {e}"

    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
    if returncode == 0:
        logger.info("%s succeeded in %d ms", name, duration_ms)
    else:
        logger.error("%s failed with exit code %d", name, returncode)
    return StepResult(
        name=name,
        command=command,
        returncode=returncode,
        output=output[-MAX_OUTPUT_CHARS:],
        duration_ms=duration_ms,
    )


class JobRunner:
    """Execute one matrix job.

    Args:
        settings: Application settings.
        store: Cache store, or None to run without caching.
        workdir: Project root (fingerprint root, build cwd, relative paths).
        classes: Cache classes to restore and save.
    """

    def __init__(
        self,
        settings: Settings,
        store: BaseCacheStore | None,
        workdir: Path,
        classes: Sequence[CacheClass] = DEFAULT_CACHE_CLASSES,
    ) -> None:
        self._settings = settings
        self._store = store
        self._workdir = workdir
        self._classes = tuple(classes)

    def plan(self, context: RunContext) -> list[CachePlan]:
        return plan_all(
            self._classes,
            context,
            namespace_by_platform=self._settings.cache_namespace_by_platform,
        )

    async def run(
        self,
        platform: str,
        date_stamp: DateStamp | str | None = None,
    ) -> JobResult:
        """Run restore, build, test and save for *platform*.

        Raises:
            FingerprintError: Setup failure, before any cache lookup.
        """
        start_ns = time.monotonic_ns()
        context = create_run_context(self._settings, self._workdir, platform, date_stamp)
        set_job_context(context.run_id, platform)
        result = JobResult(
            platform=platform,
            run_id=context.run_id,
            date_stamp=context.date_stamp.value,
            fingerprint=context.fingerprint.value,
        )

        plans = self.plan(context)
        session = self._session(platform)

        if session is not None:
            set_step_context("restore")
            result.restores = await session.restore_all(plans)

        result.build = await run_command("build", self._settings.build_command, self._workdir)
        if not result.build.ok:
            logger.warning("Skipping tests because the build failed")
        elif self._settings.test_command.strip():
            result.test = await run_command("test", self._settings.test_command, self._workdir)
        else:
            logger.info("No test command configured, treating tests as passed")
            result.test = StepResult(name="test", command="", returncode=0)

        if session is not None:
            set_step_context("save")
            result.saves = await session.save_all(plans, result.restores)

        set_step_context(None)
        result.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        logger.info(
            "Job %s on %s finished: %s",
            context.run_id, platform, "success" if result.success else "failure",
        )
        return result

    def _session(self, platform: str) -> CacheSession | None:
        if self._store is None or not self._settings.cache_enabled:
            logger.info("Caching disabled for this job")
            return None
        return CacheSession(self._store, workdir=self._workdir, platform=platform)
