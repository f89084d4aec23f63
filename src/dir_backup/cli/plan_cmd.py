"""Plan command: Show what a backup would change without changing anything."""

import argparse
import logging
from typing import Optional

from ..__logger__ import create_logger
from ..config import JobConfig
from ..core.operations import BackupResult
from .common import get_log_level, show_progress
from .run import load_configuration, run_jobs, select_jobs

logger = logging.getLogger(__name__)


def print_results(results: list[tuple[JobConfig, Optional[BackupResult]]]) -> None:
    """Print the plan of every job."""
    print("Dry run mode - showing what would be done:")
    print("")

    for job, result in results:
        print(f"Job: {job.name}")
        print(f"  {job.source} -> {job.destination}")
        if result is None:
            print("  (aborted, see log)")
            print("")
            continue

        plan = result.plan
        if plan.is_empty and not result.to_delete:
            print("  Up to date")
            print("")
            continue

        for path in sorted(plan.directories_to_create):
            print(f"  mkdir   {path}")
        for path in sorted(plan.files_to_copy):
            print(f"  copy    {path}")
        for path, target in sorted(plan.symlinks_to_materialize.items()):
            print(f"  link    {path} -> {target}")
        for path in result.to_delete:
            print(f"  delete  {path}")
        print(
            f"  Total: {len(plan.directories_to_create)} dir(s), "
            f"{len(plan.files_to_copy)} file(s), "
            f"{len(plan.symlinks_to_materialize)} link(s), "
            f"{len(result.to_delete)} deletion(s)"
        )
        print("")


def execute_plan(args: argparse.Namespace) -> int:
    """Execute the plan command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    create_logger(get_log_level(args))

    config = load_configuration(args)
    if config is None:
        return 1

    jobs = select_jobs(config, getattr(args, "job", None))
    if not jobs:
        logger.error("No jobs to plan")
        return 1

    results = run_jobs(
        jobs,
        config.global_config,
        dry_run=True,
        with_progress=show_progress(args, config.global_config),
    )
    print_results(results)

    return 0 if all(result is not None for _, result in results) else 1
