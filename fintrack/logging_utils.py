"""Stream logging for the FinTrack API process.

Every module logs through the root stream handler installed here. Startup,
store readiness, rejected gate checks, quote fallbacks and internal errors
all share one format. ``FINTRACK_LOG_LEVEL`` and ``FINTRACK_LOG_FORMAT``
override the defaults.
"""

from __future__ import annotations

import logging
import os
from functools import cache
from typing import Final

DEFAULT_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"


@cache
def _determine_level() -> int:
    level_name = os.environ.get("FINTRACK_LOG_LEVEL", DEFAULT_LEVEL).upper().strip()
    level = logging.getLevelName(level_name)
    if isinstance(level, int):
        return level
    return logging.INFO


@cache
def _determine_format() -> str:
    fmt = os.environ.get("FINTRACK_LOG_FORMAT", DEFAULT_FORMAT).strip()
    return fmt or DEFAULT_FORMAT


def get_stream_logger(name: str) -> logging.Logger:
    """Return the named logger, installing the shared stderr handler on first call.

    Unknown level names in ``FINTRACK_LOG_LEVEL`` fall back to INFO.
    """

    logger = logging.getLogger(name)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())
    formatter = logging.Formatter(_determine_format())
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)
    root_logger.setLevel(_determine_level())
    return logger


__all__ = ["get_stream_logger"]
