"""
Logging setup shared by the API process and the import pipeline.

All modules log through ``logging.getLogger(__name__)``; this module wires
those loggers to a single stdout handler so inspect/commit traces read as one
stream.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Iterable, Optional


_is_configured = False

# Client libraries used for LLM-assisted mapping are chatty at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")


def configure_logging(
    level: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure root and package loggers once per process.

    Args:
        level: Optional log level override (e.g., "DEBUG", "INFO").
        quiet_loggers: Third-party logger names capped at WARNING.
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger("sheetsync").setLevel(log_level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(log_level)))

    _is_configured = True
