"""Configuration system for dir-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions for backup jobs.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import Config, GlobalConfig, JobConfig

__all__ = [
    "GlobalConfig",
    "JobConfig",
    "Config",
    "load_config",
    "find_config_file",
    "ConfigError",
]
