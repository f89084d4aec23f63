"""CLI dispatcher with ad-hoc mode detection.

This module handles routing between the subcommand-based CLI and the
positional ``dir-backup SOURCE DEST`` form for one-off backups.
"""

import argparse
import sys
from typing import Callable

from .common import add_backup_args, add_progress_args, add_verbosity_args

# Known subcommands
SUBCOMMANDS = frozenset({"run", "plan", "config"})


def is_adhoc_mode(argv: list[str]) -> bool:
    """Detect if arguments indicate the positional ad-hoc mode.

    Ad-hoc mode is when the first argument looks like a path rather
    than a subcommand:
        dir-backup /source /dest

    Args:
        argv: Command line arguments (without program name)

    Returns:
        True if ad-hoc mode should be used
    """
    if not argv:
        return False

    first = argv[0]

    # Explicit subcommand
    if first in SUBCOMMANDS:
        return False

    # Help/version flags
    if first in {"-h", "--help", "-V", "--version"}:
        return False

    # Absolute or relative path
    if first.startswith("/") or first.startswith("./") or first.startswith("../"):
        return True
    if first.startswith("~") or first == ".":
        return True

    # Contains path separator but not URL scheme
    if "/" in first and "://" not in first:
        return True

    # Starts with option flags - let parser handle
    if first.startswith("-"):
        return False

    # Default: assume subcommand mode (will error if invalid subcommand)
    return False


def create_adhoc_parser() -> argparse.ArgumentParser:
    """Create the parser for ``dir-backup SOURCE DEST [options]``."""
    parser = argparse.ArgumentParser(
        prog="dir-backup",
        description="Back up SOURCE into DEST, copying only new or changed files",
    )
    add_verbosity_args(parser)
    parser.add_argument("source", help="The directory you wish to back up")
    parser.add_argument(
        "destination", help="The directory the source will be backed up to"
    )
    add_backup_args(parser)
    add_progress_args(parser)
    return parser


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="dir-backup",
        description="Incremental directory backups with optional mirroring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Execute configured backup jobs",
        description="Scan, plan and apply every enabled job",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    run_parser.add_argument(
        "--job",
        metavar="NAME",
        action="append",
        help="Only run specific job(s)",
    )
    run_parser.add_argument(
        "--parallel-jobs",
        type=int,
        metavar="N",
        help="Max concurrent jobs (overrides config)",
    )
    add_progress_args(run_parser)

    # plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show what would be backed up",
        description="Compute and print the backup plan without applying it",
    )
    plan_parser.add_argument(
        "--job",
        metavar="NAME",
        action="append",
        help="Only plan specific job(s)",
    )
    add_progress_args(plan_parser)

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def run_adhoc_mode(argv: list[str]) -> int:
    """Run a single ad-hoc backup from positional arguments.

    Args:
        argv: Command line arguments

    Returns:
        Exit code
    """
    from .run import execute_adhoc

    args = create_adhoc_parser().parse_args(argv)
    return execute_adhoc(args)


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"dir-backup {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "run": cmd_run,
        "plan": cmd_plan,
        "config": cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    from .run import execute_run

    return execute_run(args)


def cmd_plan(args: argparse.Namespace) -> int:
    """Execute plan command."""
    from .plan_cmd import execute_plan

    return execute_plan(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for dir-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    if is_adhoc_mode(argv):
        return run_adhoc_mode(argv)

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
