"""Loguru sink setup for the CLI."""

import sys
from pathlib import Path

from loguru import logger

from .paths import debug_log_path


def configure_logging(workspace: Path, debug: bool = False) -> Path | None:
    """Route engine logs to stderr, and to a debug log file with ``debug``.

    Without ``debug`` only warnings and errors reach stderr, the console
    output of the command covers the rest.

    Returns:
        Path of the debug log file, if one is written
    """
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "WARNING")
    if not debug:
        return None

    log_file = debug_log_path(workspace)
    logger.add(log_file, level="DEBUG", mode="a", encoding="utf-8")
    return log_file
