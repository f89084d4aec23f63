"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class JobConfig:
    """A single source -> destination backup job.

    Attributes:
        source: Directory to back up
        destination: Directory the source is backed up into
        mirror: Delete destination entries that no longer exist in the source
        skip_content_check: Treat same-size files as unchanged without hashing
        preserve_symlinks: Recreate symlinks as links instead of following them
        enabled: Whether this job runs with ``dir-backup run``
        name: Job name used in logs and ``--job`` selection
    """

    source: str
    destination: str
    mirror: bool = False
    skip_content_check: bool = False
    preserve_symlinks: bool = True
    enabled: bool = True
    name: str = ""

    def __post_init__(self):
        # /home/user/docs -> docs
        if not self.name:
            self.name = os.path.basename(self.source.rstrip("/")) or "root"


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        hash_algorithm: hashlib algorithm used for content comparison
        share_size: Source entries handled per planning worker
        parallel_jobs: Max concurrent jobs
        lock_file_name: Lock file created in each destination root
        log_file: Path to log file (None for no file logging)
        quiet: Warnings only and no progress bar, unless -v/--debug is given
        verbose: Debug logging, unless -q is given
    """

    hash_algorithm: str = "md5"
    share_size: int = 100
    parallel_jobs: int = 1
    lock_file_name: str = ".dir-backup.lock"
    log_file: Optional[str] = None
    quiet: bool = False
    verbose: bool = False


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Global settings that apply to all jobs
        jobs: List of job configurations
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    jobs: list[JobConfig] = field(default_factory=list)

    def get_enabled_jobs(self) -> list[JobConfig]:
        """Get list of enabled jobs."""
        return [j for j in self.jobs if j.enabled]

    def get_job(self, name: str) -> Optional[JobConfig]:
        """Find a job by name."""
        for job in self.jobs:
            if job.name == name:
                return job
        return None
