"""Structlog-based logging for Family Studies.

Library code logs through structlog; nothing prints.
"""
from __future__ import annotations

from typing import Literal, get_args

import logging
import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)


def configure_logging(level: LogLevel = "INFO") -> None:
    numeric = getattr(logging, level if level in LOG_LEVELS else "INFO")
    logging.basicConfig(format="%(message)s", level=numeric)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "family_studies"):
    return structlog.get_logger(name)
