# -*- coding: utf-8 -*-
"""
Logging setup: loguru sinks for the console and an optional log file.
"""

import sys

from loguru import logger

LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}

LOG_FORMAT = (
    "[{time:YYYY-MM-DD}][{time:HH:mm:ss}]"
    "[<level>{level}</level>][{name}] {message}"
)


def resolve_level(level):
    """Map a config level name to a loguru level, defaulting to INFO"""
    return LEVELS.get((level or "").strip().lower(), "INFO")


def setup_logging(level="info", log_file="", stream=None):
    """
    Replace loguru's default sink.

    Args:
        level: "debug", "info", "warn" or "error"; anything else means info
        log_file: Also append to this file when non-empty
        stream: Console stream, defaults to stdout

    Returns:
        The resolved loguru level name
    """
    resolved = resolve_level(level)
    logger.remove()
    logger.add(stream or sys.stdout, level=resolved, format=LOG_FORMAT, colorize=None)
    if log_file:
        logger.add(log_file, level=resolved, format=LOG_FORMAT, colorize=False)
    return resolved
