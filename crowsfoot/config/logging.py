"""Logging setup for the CLI and the HTTP service."""

import logging
import sys
from pathlib import Path
from typing import Optional
from .settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Attach handlers to the package logger.

    Output goes to stderr, plus `settings.log_file` when one is configured.

    Args:
        level: Level name overriding `settings.log_level`
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper())
    formatter = logging.Formatter(LOG_FORMAT)

    # stderr keeps the CLI's JSON output on stdout clean
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))

    package_logger = logging.getLogger("crowsfoot")
    package_logger.handlers.clear()
    package_logger.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Module logger; callers pass `__name__`, which already sits under `crowsfoot`."""
    return logging.getLogger(name)
