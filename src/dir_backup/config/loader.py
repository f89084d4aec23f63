"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from .. import __util__
from .schema import Config, GlobalConfig, JobConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "dir-backup" / "config.toml",
    Path("/etc/dir-backup/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _parse_job(data: dict[str, Any]) -> JobConfig:
    """Parse job configuration from dict."""
    for key in ("source", "destination"):
        if key not in data:
            raise ConfigError(f"Job missing required '{key}' field")

    return JobConfig(
        source=data["source"],
        destination=data["destination"],
        mirror=data.get("mirror", False),
        skip_content_check=data.get("skip_content_check", False),
        preserve_symlinks=data.get("preserve_symlinks", True),
        enabled=data.get("enabled", True),
        name=data.get("name", ""),
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    global_config = GlobalConfig(
        hash_algorithm=data.get("hash_algorithm", "md5"),
        share_size=data.get("share_size", 100),
        parallel_jobs=data.get("parallel_jobs", 1),
        lock_file_name=data.get("lock_file_name", ".dir-backup.lock"),
        log_file=data.get("log_file"),
        quiet=data.get("quiet", False),
        verbose=data.get("verbose", False),
    )

    if not __util__.is_fixed_length_hash(global_config.hash_algorithm):
        raise ConfigError(
            f"Unsupported hash_algorithm: {global_config.hash_algorithm}"
            " (must be a fixed-length hashlib digest)"
        )
    if not isinstance(global_config.share_size, int) or global_config.share_size < 1:
        raise ConfigError("share_size must be a positive integer")
    if (
        not isinstance(global_config.parallel_jobs, int)
        or global_config.parallel_jobs < 1
    ):
        raise ConfigError("parallel_jobs must be a positive integer")

    return global_config


def _is_within(path: str, parent: str) -> bool:
    path = os.path.abspath(os.path.expanduser(path))
    parent = os.path.abspath(os.path.expanduser(parent))
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if not config.jobs:
        warnings.append("No jobs configured")

    for job in config.jobs:
        if _is_within(job.destination, job.source):
            warnings.append(
                f"Job '{job.name}' destination '{job.destination}' is inside its source"
            )

    # Check for duplicate destinations
    destinations = [os.path.abspath(j.destination) for j in config.jobs]
    if len(destinations) != len(set(destinations)):
        warnings.append("Duplicate job destinations detected")

    names = [j.name for j in config.jobs]
    if len(names) != len(set(names)):
        warnings.append("Duplicate job names detected")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    global_config = _parse_global(data.get("global", {}))
    jobs = [_parse_job(job_data) for job_data in data.get("jobs", [])]

    config = Config(global_config=global_config, jobs=jobs)

    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# dir-backup configuration
# See documentation for full options

[global]
hash_algorithm = "md5"       # hashlib algorithm, e.g. "sha256" (not shake)
share_size = 100             # source entries per planning worker
parallel_jobs = 1            # jobs run at the same time
lock_file_name = ".dir-backup.lock"
# log_file = "/var/log/dir-backup.log"
# quiet = false              # warnings only, no progress bar (-v overrides)
# verbose = false            # debug logging

# Documents backup
[[jobs]]
name = "documents"
source = "/home/user/Documents"
destination = "/mnt/backup/Documents"
mirror = false               # true: delete files removed from the source
skip_content_check = false   # true: same size means unchanged (no hashing)
preserve_symlinks = true     # false: copy what links point to

# Photos, mirrored
# [[jobs]]
# name = "photos"
# source = "/home/user/Pictures"
# destination = "/mnt/backup/Pictures"
# mirror = true
# skip_content_check = true
"""
