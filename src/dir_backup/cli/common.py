"""Shared CLI utilities and argument parsers."""

import argparse

from .. import __util__


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_progress_args(parser: argparse.ArgumentParser) -> None:
    """Add progress display arguments to a parser."""
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not display a progress bar while planning",
    )


def add_backup_args(parser: argparse.ArgumentParser) -> None:
    """Add per-job backup behaviour arguments (ad-hoc mode)."""
    group = parser.add_argument_group("Backup options")
    group.add_argument(
        "-m",
        "--mirror",
        action="store_true",
        help="Delete destination entries that no longer exist in the source",
    )
    group.add_argument(
        "-s",
        "--skip-content-check",
        action="store_true",
        help="Assume same-size files are unchanged (no hashing)",
    )
    group.add_argument(
        "--no-symlinks",
        action="store_true",
        help="Follow symlinks and back up their targets instead of the links",
    )
    group.add_argument(
        "--hash-algorithm",
        metavar="NAME",
        default="md5",
        choices=__util__.hash_algorithms(),
        help="Hash algorithm for content comparison (default: md5)",
    )
    group.add_argument(
        "--share-size",
        type=int,
        default=100,
        metavar="N",
        help="Source entries handled per planning worker (default: 100)",
    )
    group.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )


def get_log_level(args: argparse.Namespace, global_config=None) -> str:
    """Determine log level from parsed arguments and the config file.

    Command line flags win; the config's ``quiet``/``verbose`` apply only
    when no flag was given.

    Args:
        args: Parsed command line arguments
        global_config: Optional GlobalConfig from the loaded config file

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    elif global_config is not None and global_config.quiet:
        return "WARNING"
    elif global_config is not None and global_config.verbose:
        return "DEBUG"
    else:
        return "INFO"


def show_progress(args: argparse.Namespace, global_config=None) -> bool:
    """Whether a progress bar should be displayed."""
    if getattr(args, "quiet", False) or getattr(args, "no_progress", False):
        return False
    if getattr(args, "verbose", False) or getattr(args, "debug", False):
        return True
    return not (global_config is not None and global_config.quiet)
