"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from memberdesk.utils.config import ENV_PREFIX, get_settings


PACKAGE_LOGGER = "memberdesk"
HANDLER_NAME = "memberdesk.stdout"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def resolve_level(level: Optional[str] = None) -> str:
    resolved = (level or get_settings().log_level).strip().upper()
    if resolved not in LOG_LEVELS:
        raise ValueError(f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {resolved!r}")
    return resolved


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the pipe-delimited stdout handler to the ``memberdesk`` logger.

    Only the package logger is configured, so an embedding application keeps
    control of the root logger. Records still propagate upwards. Calling this
    again changes the level without adding a second handler.
    """

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(resolve_level(level))
    if not any(handler.get_name() == HANDLER_NAME for handler in package_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the requested module, configuring the package on first use."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(handler.get_name() == HANDLER_NAME for handler in package_logger.handlers):
        configure_logging()
    return logging.getLogger(name)
