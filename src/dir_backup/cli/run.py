"""Run command: Execute configured (or ad-hoc) backup jobs."""

import argparse
import contextlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterator, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .. import __logger__, __util__
from ..__logger__ import create_logger
from ..config import (
    Config,
    ConfigError,
    GlobalConfig,
    JobConfig,
    find_config_file,
    load_config,
)
from ..core.operations import BackupResult, run_backup
from .common import get_log_level, show_progress

logger = logging.getLogger(__name__)


def load_configuration(args: argparse.Namespace) -> Optional[Config]:
    """Find and load the config file, logging problems.

    Returns:
        Config, or None if no usable config was found
    """
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Create one with: dir-backup config init")
            print("")
            print("Or back up a single directory: dir-backup /source /dest")
            return None

        logger.info("Loading configuration from: %s", config_path)
        config, warnings = load_config(config_path)

        for warning in warnings:
            logger.warning("Config: %s", warning)

    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return None

    settings = config.global_config
    create_logger(get_log_level(args, settings), log_file=settings.log_file)

    return config


def select_jobs(config: Config, names: list[str] | None) -> list[JobConfig]:
    """Return enabled jobs, or the named jobs when ``names`` is given."""
    if not names:
        return config.get_enabled_jobs()

    jobs = []
    for name in names:
        job = config.get_job(name)
        if job is None:
            logger.error("No job named '%s' in configuration", name)
            continue
        jobs.append(job)
    return jobs


@contextlib.contextmanager
def progress_display(enabled: bool) -> Iterator[Optional[Progress]]:
    """Rich progress bar sharing the logging console, or None."""
    if not enabled:
        yield None
        return

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=__logger__.cons,
        transient=True,
    )
    with progress:
        yield progress


def _progress_callback(progress: Optional[Progress], job: JobConfig):
    if progress is None:
        return None

    task_id = progress.add_task(f"Planning {job.name}", total=None)

    def on_progress(done: int, total: int) -> None:
        progress.update(task_id, completed=done, total=total)

    return on_progress


def _backup_job(
    job: JobConfig,
    settings: GlobalConfig,
    dry_run: bool,
    progress: Optional[Progress],
) -> Optional[BackupResult]:
    """Run one job, logging instead of raising backup errors."""
    try:
        return run_backup(
            job,
            settings,
            on_progress=_progress_callback(progress, job),
            dry_run=dry_run,
        )
    except __util__.ScanError as e:
        logger.error("Job %s aborted, scan failed: %s", job.name, e)
    except __util__.BackupError as e:
        logger.error("Job %s aborted: %s", job.name, e)
    return None


def run_jobs(
    jobs: list[JobConfig],
    settings: GlobalConfig,
    parallel_jobs: int = 1,
    dry_run: bool = False,
    with_progress: bool = True,
) -> list[tuple[JobConfig, Optional[BackupResult]]]:
    """Run ``jobs`` and return each job's result (None if it aborted)."""
    results: list[tuple[JobConfig, Optional[BackupResult]]] = []

    with progress_display(with_progress) as progress:
        if parallel_jobs > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=parallel_jobs) as executor:
                futures = {
                    executor.submit(_backup_job, job, settings, dry_run, progress): job
                    for job in jobs
                }
                for future in as_completed(futures):
                    results.append((futures[future], future.result()))
        else:
            for job in jobs:
                results.append((job, _backup_job(job, settings, dry_run, progress)))

    return results


def summarize(results: list[tuple[JobConfig, Optional[BackupResult]]]) -> int:
    """Log a summary and return the exit code."""
    success_count = sum(1 for _, r in results if r is not None and r.succeeded)
    fail_count = len(results) - success_count

    if fail_count > 0:
        logger.warning(
            "Completed with errors: %d succeeded, %d failed", success_count, fail_count
        )
        return 1
    logger.info("All %d job(s) completed successfully", success_count)
    return 0


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    create_logger(get_log_level(args))

    config = load_configuration(args)
    if config is None:
        return 1

    jobs = select_jobs(config, getattr(args, "job", None))
    if not jobs:
        logger.error("No jobs to run")
        return 1

    if getattr(args, "dry_run", False):
        from .plan_cmd import print_results

        results = run_jobs(
            jobs,
            config.global_config,
            dry_run=True,
            with_progress=show_progress(args, config.global_config),
        )
        print_results(results)
        return 0 if all(r is not None for _, r in results) else 1

    parallel_jobs = (
        getattr(args, "parallel_jobs", None) or config.global_config.parallel_jobs
    )

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    logger.info("Running %d job(s), %d at a time", len(jobs), parallel_jobs)

    results = run_jobs(
        jobs,
        config.global_config,
        parallel_jobs=parallel_jobs,
        with_progress=show_progress(args, config.global_config),
    )

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return summarize(results)


def execute_adhoc(args: argparse.Namespace) -> int:
    """Back up a single source directory given on the command line."""
    create_logger(get_log_level(args))

    if args.share_size < 1:
        logger.error("--share-size must be at least 1")
        return 1

    job = JobConfig(
        source=args.source,
        destination=args.destination,
        mirror=args.mirror,
        skip_content_check=args.skip_content_check,
        preserve_symlinks=not args.no_symlinks,
    )
    settings = GlobalConfig(
        hash_algorithm=args.hash_algorithm, share_size=args.share_size
    )

    results = run_jobs(
        [job], settings, dry_run=args.dry_run, with_progress=show_progress(args)
    )

    if args.dry_run:
        from .plan_cmd import print_results

        print_results(results)
        return 0 if results[0][1] is not None else 1

    return summarize(results)
