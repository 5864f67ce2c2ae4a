"""Logging configuration driven by environment variables."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "TERMFLOW_LOG_LEVEL"
LOG_FILE_ENV = "TERMFLOW_LOG_FILE"
DEFAULT_LOG_LEVEL = "WARNING"


def setup_logging(level: str = DEFAULT_LOG_LEVEL, log_file: str | None = None) -> logging.Logger:
    """Configure the termflow logger.

    Args:
        level: Level name (DEBUG, INFO, ...). Unknown names fall back to WARNING.
        log_file: Write to this file instead of stderr, so diagnostics do not
            interleave with scheduled terminal output.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("termflow")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def setup_logging_from_env() -> logging.Logger:
    """Configure logging from TERMFLOW_LOG_LEVEL and TERMFLOW_LOG_FILE."""
    return setup_logging(
        level=os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL),
        log_file=os.environ.get(LOG_FILE_ENV) or None,
    )
