"""Structured logging setup shared by the job runner and scripts."""

from __future__ import annotations

import logging

import structlog

from fundflow.config import get_settings

_LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _get_log_level() -> int:
    level_str = get_settings().log_level.upper()
    return _LOG_LEVEL_MAP.get(level_str, logging.INFO)


def configure_logging() -> None:
    """Configure structlog from settings (`log_level`, `log_format`)."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if get_settings().log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
