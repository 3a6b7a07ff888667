"""
Logging configuration for Specwatch.

Library modules log through `get_logger(name)`, which hands out children of
the `specwatch` logger. Entry points configure handlers once with
`setup_cli_logging()` or `setup_daemon_logging()`.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


ROOT_LOGGER = "specwatch"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the specwatch namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the specwatch logger.

    Existing handlers are replaced so repeated calls do not duplicate output.

    Args:
        level: Logging level for the specwatch namespace
        log_file: Optional file to mirror log records into
        console: Whether to log to stderr
        rich_console: Use rich formatting for the console handler
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if console:
        if rich_console:
            handler: logging.Handler = RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        else:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def setup_daemon_logging(log_file: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """Configure logging for the supervisor daemon process.

    Library records go to stderr (redirected to supervisor.log when spawned).
    In verbose mode debug records are also written to log_file.
    """
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        log_file=log_file if verbose else None,
        console=True,
        rich_console=False,
    )
    return get_logger("daemon")


def setup_cli_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging for foreground CLI invocations."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, console=True)
    return get_logger("cli")
