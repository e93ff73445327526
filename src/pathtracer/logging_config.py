"""Logging setup for the renderer and its command-line interface."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

LOGGER_NAME = "pathtracer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: Union[int, str] = "INFO",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger.

    Progress and errors go to stderr so that nothing is mixed into an image
    written to stdout by a caller.

    Args:
        level: Logging level name or number.
        log_file: Optional path of a rotating log file.

    Returns:
        The configured ``pathtracer`` logger.

    Raises:
        ValueError: If the level name is unknown.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = numeric

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Replace handlers from an earlier call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=3)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the package logger, e.g. ``get_logger("cli")``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
