# src/main.py — v3
"""CLI entry point: plan, restore, save, run, matrix, summary commands.

Usage:
    cacheplan plan [--root DIR] [--date YYYY-MM-DD] [--platform P]
    cacheplan restore --state FILE [--root DIR] [--date YYYY-MM-DD] [--platform P]
    cacheplan save --state FILE
    cacheplan run [--root DIR] [--date YYYY-MM-DD] [--platform P] [--result FILE] [--all-platforms]
    cacheplan matrix
    cacheplan summary RESULT...
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from cacheplan.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings()
        _setup_logging(settings, args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="cacheplan",
        description=f"cacheplan v{__version__} - dated build cache keys with fallback restore",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- plan ---
    p_plan = subparsers.add_parser(
        "plan", help="Print cache keys and restore keys as JSON",
    )
    _add_context_arguments(p_plan)
    p_plan.set_defaults(func=_cmd_plan)

    # --- restore ---
    p_restore = subparsers.add_parser(
        "restore", help="Restore every cache class and record state for save",
    )
    _add_context_arguments(p_restore)
    p_restore.add_argument(
        "--state", type=Path, required=True,
        help="State file to write for the save step",
    )
    p_restore.set_defaults(func=_cmd_restore)

    # --- save ---
    p_save = subparsers.add_parser(
        "save", help="Save cache classes that missed their exact key",
    )
    p_save.add_argument(
        "--state", type=Path, required=True,
        help="State file written by the restore step",
    )
    p_save.set_defaults(func=_cmd_save)

    # --- run ---
    p_run = subparsers.add_parser(
        "run", help="Restore, build, test and save for this platform",
    )
    _add_context_arguments(p_run)
    p_run.add_argument(
        "--result", type=Path, default=None,
        help="Write the job result as JSON to this file (a directory with --all-platforms)",
    )
    p_run.add_argument(
        "--all-platforms", action="store_true",
        help="Run every MATRIX_PLATFORMS label on this host, honouring MATRIX_FAIL_FAST",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- matrix ---
    p_matrix = subparsers.add_parser(
        "matrix", help="Print the platform matrix strategy as JSON",
    )
    p_matrix.set_defaults(func=_cmd_matrix)

    # --- summary ---
    p_summary = subparsers.add_parser(
        "summary", help="Aggregate job result files from every platform",
    )
    p_summary.add_argument(
        "results", type=Path, nargs="+", help="Job result files",
    )
    p_summary.set_defaults(func=_cmd_summary)

    return parser


def _add_context_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root", type=Path, default=Path("."),
        help="Project root (default: current directory)",
    )
    parser.add_argument(
        "--date", default=None,
        help="Date stamp YYYY-MM-DD (default: today in the runner's timezone)",
    )
    parser.add_argument(
        "--platform", default=None,
        help="Matrix platform label (default: detected from the host)",
    )


async def _cmd_plan(args: argparse.Namespace, settings) -> int:
    """Print plans for every cache class."""
    from cacheplan.config.cache_classes import DEFAULT_CACHE_CLASSES
    from cacheplan.cache.keys import plan_all
    from cacheplan.pipeline.runner import create_run_context, detect_platform

    platform = args.platform or detect_platform()
    context = create_run_context(settings, args.root, platform, args.date)
    plans = plan_all(
        DEFAULT_CACHE_CLASSES,
        context,
        namespace_by_platform=settings.cache_namespace_by_platform,
    )
    payload = {
        "date_stamp": context.date_stamp.value,
        "fingerprint": context.fingerprint.value,
        "manifest_files": list(context.fingerprint.files),
        "platform": platform,
        "caches": [
            {
                "class": p.cache_class.name,
                "path": p.cache_class.path,
                "key": p.key,
                "restore_keys": list(p.restore_keys),
            }
            for p in plans
        ],
    }
    print(json.dumps(payload, indent=2))
    return 0


async def _cmd_restore(args: argparse.Namespace, settings) -> int:
    """Restore every class and persist state for the save step."""
    from cacheplan.cache.cache_factory import create_cache_store
    from cacheplan.logging.context import set_job_context
    from cacheplan.pipeline.runner import JobRunner, create_run_context, detect_platform
    from cacheplan.pipeline.session import CacheSession
    from cacheplan.pipeline.state import RestoreState, write_state

    platform = args.platform or detect_platform()
    workdir = args.root.resolve()
    context = create_run_context(settings, workdir, platform, args.date)
    set_job_context(context.run_id, platform)

    plans = JobRunner(settings, None, workdir).plan(context)
    outcomes = []
    store = _open_store(settings, create_cache_store)
    if store is not None:
        outcomes = await CacheSession(store, workdir=workdir, platform=platform).restore_all(plans)

    write_state(
        args.state,
        RestoreState(
            context=context, workdir=str(workdir), plans=plans, outcomes=outcomes,
        ),
    )
    for outcome in outcomes:
        line = f"{outcome.cache_class}: {outcome.hit_level or 'miss'} ({outcome.key})"
        if outcome.error:
            line = f"{line} error: {outcome.error}"
        print(line)
    return 0


async def _cmd_save(args: argparse.Namespace, settings) -> int:
    """Save classes whose exact key missed at restore time."""
    from cacheplan.cache.cache_factory import create_cache_store
    from cacheplan.logging.context import set_job_context
    from cacheplan.pipeline.session import CacheSession
    from cacheplan.pipeline.state import read_state

    state = read_state(args.state)
    set_job_context(state.context.run_id, state.context.platform)

    store = _open_store(settings, create_cache_store)
    if store is None:
        return 0
    session = CacheSession(
        store, workdir=Path(state.workdir), platform=state.context.platform,
    )
    for outcome in await session.save_all(state.plans, state.outcomes):
        status = "saved" if outcome.saved else (outcome.skipped or "error")
        print(f"{outcome.cache_class}: {status} ({outcome.key})")
    return 0


async def _cmd_run(args: argparse.Namespace, settings) -> int:
    """Run one matrix job for this host, or every configured platform."""
    from cacheplan.cache.cache_factory import create_cache_store
    from cacheplan.pipeline.matrix import MatrixJob, expand_matrix, run_matrix
    from cacheplan.pipeline.runner import JobRunner, detect_platform
    from cacheplan.pipeline.triggers import event_from_env, should_run

    event = event_from_env()
    if not should_run(event, settings):
        print(f"Skipped: {event.name} on {event.branch!r} is not a configured trigger")
        return 0

    workdir = args.root.resolve()
    runner = JobRunner(settings, _open_store(settings, create_cache_store), workdir)

    async def run_job(job: MatrixJob):
        return await runner.run(job.platform, args.date)

    if args.all_platforms:
        jobs = expand_matrix(settings)
    else:
        jobs = [MatrixJob(platform=args.platform or detect_platform())]
    summary = await run_matrix(jobs, run_job, fail_fast=settings.matrix_fail_fast)

    if args.result is not None:
        for result in summary.results:
            path = args.result / f"{result.platform}.json" if args.all_platforms else args.result
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(result.model_dump_json(indent=2), encoding="utf-8")

    for result in summary.results:
        _print_job_result(result)
    if args.all_platforms and not summary.success:
        print(f"Failed platforms: {', '.join(summary.failed_platforms)}")
    return 0 if summary.success else 1


async def _cmd_matrix(args: argparse.Namespace, settings) -> int:
    """Print the strategy a CI workflow feeds into its job matrix."""
    from cacheplan.pipeline.matrix import expand_matrix

    payload = {
        "platform": [job.platform for job in expand_matrix(settings)],
        "fail-fast": settings.matrix_fail_fast,
    }
    print(json.dumps(payload))
    return 0



async def _cmd_summary(args: argparse.Namespace, settings) -> int:
    """Aggregate result files; success only if every job succeeded."""
    from cacheplan.pipeline.matrix import load_results, summarize

    missing = [p for p in args.results if not p.exists()]
    if missing:
        logger.error("Result file(s) not found: %s", ", ".join(map(str, missing)))
        return 1

    summary = summarize(load_results(args.results))
    for result in summary.results:
        _print_job_result(result)
    if summary.success:
        print(f"All {len(summary.results)} job(s) succeeded")
        return 0
    print(f"Failed platforms: {', '.join(summary.failed_platforms)}")
    return 1


def _open_store(settings, factory):
    """Open the cache store; an unavailable store degrades to no caching."""
    if not settings.cache_enabled:
        return None
    try:
        return factory(settings)
    except ValueError:
        raise
    except Exception as e:
        logger.warning("Cache store unavailable, building cold: %s", e)
        return None


def _print_job_result(result) -> None:
    """Print a compact job summary to stdout."""
    status = "OK" if result.success else "FAILED"
    print(f"[{status}] {result.platform}")
    if result.error:
        print(f"  error: {result.error}")
    for restore in result.restores:
        print(f"  restore {restore.cache_class}: {restore.hit_level or 'miss'}")
    for step in (result.build, result.test):
        if step is not None:
            print(f"  {step.name}: exit {step.returncode} ({step.duration_ms} ms)")
    for save in result.saves:
        print(f"  save {save.cache_class}: {'saved' if save.saved else save.skipped or 'error'}")


def _load_settings():
    from cacheplan.config.settings import load_settings

    return load_settings()


def _setup_logging(settings, verbose: bool) -> None:
    from cacheplan.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
