"""Logging utilities with a compact console-friendly formatter."""

from __future__ import annotations

import logging
from logging.config import dictConfig

LOG_FORMAT = "%(levelname).1s %(asctime)s %(name)s:%(lineno)d | %(message)s"

# uvicorn installs its own handlers when it starts; routing its loggers through
# the root console handler keeps request and audit lines in one format.
MANAGED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "imgguardrails")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str = logging.INFO) -> None:
    """
    Send the service and uvicorn loggers to one stdout handler.

    Accepts a numeric level or a name such as ``"debug"`` (unknown names fall
    back to INFO). Calling it again only adjusts levels, so the app module and
    tests can both call it safely.
    """
    level = _resolve_level(level)

    if getattr(configure_logging, "_configured", False):
        logging.getLogger().setLevel(level)
        for name in MANAGED_LOGGERS:
            logging.getLogger(name).setLevel(level)
        return

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "compact": {"format": LOG_FORMAT, "datefmt": "%H:%M:%S"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "compact",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {name: {"level": level, "propagate": True} for name in MANAGED_LOGGERS},
        }
    )

    configure_logging._configured = True  # type: ignore[attr-defined]
