"""Logging setup for pairbot.

Modules log through ``logging.getLogger(__name__)``; this only configures
the root handler once per process.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str | int = "INFO") -> None:
    """Configure root logging.

    Args:
        level: Log level name or number
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(format=LOG_FORMAT, level=level, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["setup_logging", "LOG_FORMAT"]
