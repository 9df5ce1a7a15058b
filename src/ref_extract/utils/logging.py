"""Logging utilities for ref-extract.

Library code only ever asks for a logger with :func:`get_logger` and never
configures handlers. The package logger carries a ``NullHandler`` so nothing
is printed unless the command-line entry point calls :func:`setup_logging`.
"""

import logging
import os
import sys
from typing import Optional

from ..config.settings import get_settings

PACKAGE_LOGGER = "ref_extract"

# Above CRITICAL, so nothing gets through
SILENT = logging.CRITICAL + 10

LOG_LEVELS = {
    "SILENT": SILENT,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None
) -> logging.Logger:
    """Configure the package logger for command-line use.

    Args:
        level: The log level (silent, info, debug, or any stdlib level name)
        log_file: Path to log file (if None, uses default from settings)
        log_format: Log message format

    Returns:
        logging.Logger: The configured package logger
    """
    settings = get_settings()

    # Use parameters or settings if not provided
    level = level or settings.logging.level
    log_format = log_format or settings.logging.format
    if log_file is None:
        log_file = settings.logging.file

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(LOG_LEVELS.get(level.upper(), logging.INFO))
    logger.propagate = False

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    # stdout carries converted output, so the console handler writes to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging configured: level={level}, log_file={log_file}")
    return logger


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Get a logger with the specified name.

    Names outside the package namespace are nested under it so that a single
    :func:`setup_logging` call controls every module logger.

    Args:
        name: The name of the logger

    Returns:
        logging.Logger: Logger instance
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
