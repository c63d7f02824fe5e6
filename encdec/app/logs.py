"""Logging setup: progress and diagnostics go to stderr."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stderr handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)

    Raises:
        ValueError: If the level name is unknown
    """
    if level.upper() not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    numeric_level = getattr(logging, level.upper())
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(numeric_level)
    root.addHandler(handler)
