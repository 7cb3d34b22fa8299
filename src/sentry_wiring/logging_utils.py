# sentry_wiring/logging_utils.py
from __future__ import annotations

import logging
import sys

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """Send log records to stderr; stdout carries the JSON result only."""

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    stream_handler.setLevel(level)
    root_logger.addHandler(stream_handler)

    logger = logging.getLogger("sentry_wiring")
    logger.setLevel(level)
    return logger
