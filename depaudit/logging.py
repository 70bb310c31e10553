"""Logger hierarchy and handler setup for analysis runs."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List

ROOT_LOGGER = "depaudit"
CONSOLE_FORMAT = "[depaudit] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Handlers installed by configure_logging; anything else on the logger is left alone.
_installed: List[logging.Handler] = []


def get_logger(component: str | None = None) -> logging.Logger:
    """Logger for one depaudit component, e.g. ``get_logger("cache")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}" if component else ROOT_LOGGER)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Route depaudit records to stderr and, optionally, a log file.

    The console shows INFO and above unless ``verbose``. A log file always
    receives DEBUG records so per-file cache and analysis decisions are kept.
    Calling this again replaces the handlers from the previous call.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    _release_handlers(logger)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers: List[logging.Handler] = [console]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(sink)

    for handler in handlers:
        logger.addHandler(handler)
        _installed.append(handler)
    logger.setLevel(min(handler.level for handler in handlers))
    logger.propagate = False
    return logger


def _release_handlers(logger: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()


__all__ = ["CONSOLE_FORMAT", "FILE_FORMAT", "ROOT_LOGGER", "configure_logging", "get_logger"]
