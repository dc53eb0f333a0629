"""
Structured logging for the asset API.

structlog with ISO timestamps and the log level on every line. JSON output by
default (LOG_FORMAT=json), human-readable console output with LOG_FORMAT=console.
LOG_LEVEL and LOG_FORMAT may come from the environment or the project .env.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from asset_api.config import load_env


def log_settings() -> tuple[int, str]:
    """Return (level, format) after loading .env."""
    load_env()
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    fmt = os.getenv("LOG_FORMAT", "json").strip().lower()
    return getattr(logging, level, logging.INFO), fmt


def configure_structlog() -> None:
    level, fmt = log_settings()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to the given module name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger
