# pyright: standard

"""dir-backup: dir_backup/__logger__.py
A common logger for displaying through rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.getLogger("dir_backup")

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def create_logger(level: str = "INFO", log_file: str | None = None) -> None:
    """Helper function to setup logging for a CLI run."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_path=False)

    level_name = str(level).upper()
    if level_name not in LEVELS:
        print(f"Invalid log level: {level}, using INFO")
        level_name = "INFO"

    handlers: list[logging.Handler] = [rich_handler]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        format="(%(threadName)s) %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, level_name),
        handlers=handlers,
        force=True,
    )
    logger.setLevel(getattr(logging, level_name))
