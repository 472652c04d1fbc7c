# src/pipeline/matrix.py — v1
"""Matrix expansion and result aggregation.

Jobs are independent. With fail-fast off (the default) a failing job never
cancels its siblings; the overall result is the AND of every job.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from pydantic import BaseModel, Field

from cacheplan.pipeline.runner import JobResult

if TYPE_CHECKING:
    from cacheplan.config.settings import Settings

logger = logging.getLogger(__name__)

RunJob = Callable[["MatrixJob"], Awaitable[JobResult]]


class MatrixJob(BaseModel):
    """One combination of matrix parameters."""

    platform: str


class MatrixSummary(BaseModel):
    """Aggregated outcome of all matrix jobs."""

    results: list[JobResult] = Field(default_factory=list)
    success: bool = True
    failed_platforms: list[str] = Field(default_factory=list)


def expand_matrix(settings: Settings) -> list[MatrixJob]:
    """One job per configured platform, duplicates removed, order kept."""
    seen: set[str] = set()
    jobs: list[MatrixJob] = []
    for platform in settings.matrix_platforms_list:
        if platform in seen:
            continue
        seen.add(platform)
        jobs.append(MatrixJob(platform=platform))
    return jobs


def summarize(results: Sequence[JobResult]) -> MatrixSummary:
    """Overall success is the AND of every job's success."""
    failed = [r.platform for r in results if not r.success]
    return MatrixSummary(
        results=list(results),
        success=bool(results) and not failed,
        failed_platforms=failed,
    )


def load_results(paths: Sequence[Path]) -> list[JobResult]:
    """Read job result files written by ``cacheplan run --result``."""
    return [
        JobResult.model_validate_json(p.read_text(encoding="utf-8")) for p in paths
    ]


async def run_matrix(
    jobs: Sequence[MatrixJob],
    run_job: RunJob,
    fail_fast: bool = False,
) -> MatrixSummary:
    """Run every job concurrently and summarize.

    Args:
        jobs: Expanded matrix.
        run_job: Coroutine running one job.
        fail_fast: Cancel unfinished jobs after the first failure.

    Returns:
        MatrixSummary in job order. Jobs that raised or were cancelled are
        reported as failed results carrying the error.
    """
    tasks = {asyncio.ensure_future(_guarded(job, run_job)): job for job in jobs}
    results: dict[str, JobResult] = {}

    pending = set(tasks)
    while pending:
        done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        failed = False
        for task in done:
            result = task.result()
            results[tasks[task].platform] = result
            failed = failed or not result.success
        if failed and fail_fast and pending:
            logger.warning("Fail-fast: cancelling %d remaining job(s)", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                platform = tasks[task].platform
                results[platform] = JobResult(platform=platform, error="cancelled")
            pending = set()

    return summarize([results[job.platform] for job in jobs])


async def _guarded(job: MatrixJob, run_job: RunJob) -> JobResult:
    """Turn a job's exception into a failed result so siblings keep running."""
    try:
        return await run_job(job)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error("Job on %s failed: %s", job.platform, e)
        return JobResult(platform=job.platform, error=str(e))
