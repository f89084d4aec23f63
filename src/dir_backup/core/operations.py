"""Core backup operation: scan, plan and apply a single job."""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from filelock import FileLock, Timeout

from .. import __util__
from ..config.schema import GlobalConfig, JobConfig
from .execution import ApplyReport, apply_plan, stale_paths
from .fingerprint import ContentComparator
from .inventory import Inventory, scan_tree, scan_trees
from .planning import BackupPlan, BackupPlanner

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Outcome of one backup job."""

    job: JobConfig
    plan: BackupPlan
    source_entries: int = 0
    dest_entries: int = 0
    to_delete: list[str] = field(default_factory=list)
    report: Optional[ApplyReport] = None
    scan_seconds: float = 0.0
    plan_seconds: float = 0.0
    apply_seconds: float = 0.0

    @property
    def dry_run(self) -> bool:
        return self.report is None

    @property
    def succeeded(self) -> bool:
        return self.report is None or self.report.succeeded


def run_backup(
    job: JobConfig,
    settings: GlobalConfig | None = None,
    log: logging.Logger | None = None,
    on_progress: Callable[[int, int], None] | None = None,
    dry_run: bool = False,
) -> BackupResult:
    """Back up ``job.source`` into ``job.destination``.

    Args:
        job: Job configuration
        settings: Global settings (hash algorithm, share size, lock file)
        log: Logger for this job
        on_progress: Planning progress callback ``(done, total)``
        dry_run: Compute the plan only; nothing is written

    Returns:
        BackupResult with the plan and, unless dry run, the apply report

    Raises:
        AbortError: if the source is missing, the destination cannot be
            created, or another backup holds the destination lock
        ScanError: if either tree cannot be enumerated
    """
    settings = settings or GlobalConfig()
    log = log or logger
    source_root = os.path.abspath(os.path.expanduser(job.source))
    dest_root = os.path.abspath(os.path.expanduser(job.destination))

    log.info(__util__.log_heading(f"Job: {job.name}"))
    log.info("Source: %s", source_root)
    log.info("Destination: %s", dest_root)

    if not os.path.isdir(source_root):
        raise __util__.AbortError(f"Source is not a directory: {source_root}")

    if dry_run:
        return _execute(job, settings, source_root, dest_root, log, on_progress, False)

    try:
        os.makedirs(dest_root, exist_ok=True)
    except OSError as e:
        raise __util__.AbortError(f"Cannot create destination {dest_root}: {e}") from e

    lock_path = os.path.join(dest_root, settings.lock_file_name)
    try:
        with FileLock(lock_path, timeout=0):
            return _execute(
                job, settings, source_root, dest_root, log, on_progress, True
            )
    except Timeout as e:
        raise __util__.AbortError(
            f"Destination {dest_root} is locked by another backup ({lock_path})"
        ) from e


def _execute(
    job: JobConfig,
    settings: GlobalConfig,
    source_root: str,
    dest_root: str,
    log: logging.Logger,
    on_progress: Callable[[int, int], None] | None,
    apply: bool,
) -> BackupResult:
    follow_symlinks = not job.preserve_symlinks

    start = time.monotonic()
    log.info("Scanning source and destination...")
    if os.path.isdir(dest_root):
        source_inventory, dest_inventory = scan_trees(
            source_root,
            dest_root,
            follow_symlinks=follow_symlinks,
            dest_exclude=(settings.lock_file_name,),
            log=log,
        )
    else:
        source_inventory = scan_tree(source_root, follow_symlinks, log=log)
        dest_inventory = Inventory(dest_root)
    scan_seconds = time.monotonic() - start
    log.info(
        "Found %d source entries (%s), %d destination entries",
        len(source_inventory),
        __util__.format_size(source_inventory.total_size()),
        len(dest_inventory),
    )

    start = time.monotonic()
    planner = BackupPlanner(
        comparator=ContentComparator(settings.hash_algorithm, log=log),
        log=log,
        share_size=settings.share_size,
        on_progress=on_progress,
    )
    plan = planner.plan(
        source_inventory,
        dest_inventory,
        source_root,
        dest_root,
        skip_content_check=job.skip_content_check,
    )
    plan_seconds = time.monotonic() - start

    result = BackupResult(
        job=job,
        plan=plan,
        source_entries=len(source_inventory),
        dest_entries=len(dest_inventory),
        to_delete=stale_paths(source_inventory, dest_inventory) if job.mirror else [],
        scan_seconds=scan_seconds,
        plan_seconds=plan_seconds,
    )
    log.info(
        "Planned %d director(ies), %d file(s), %d symlink(s)%s",
        len(plan.directories_to_create),
        len(plan.files_to_copy),
        len(plan.symlinks_to_materialize),
        f", {len(result.to_delete)} deletion(s)" if job.mirror else "",
    )

    if not apply:
        return result

    log.info(__util__.log_heading("Applying"))
    start = time.monotonic()
    result.report = apply_plan(
        plan,
        source_inventory,
        dest_inventory,
        source_root,
        dest_root,
        mirror=job.mirror,
        log=log,
    )
    result.apply_seconds = time.monotonic() - start

    report = result.report
    log.info(
        "Copied %d file(s) (%s), created %d director(ies) and %d symlink(s), "
        "deleted %d",
        report.files_copied,
        __util__.format_size(report.bytes_copied),
        report.directories_created,
        report.symlinks_created,
        report.deleted,
    )
    if report.errors:
        log.warning("%d action(s) failed for job %s", len(report.errors), job.name)
    return result
