"""Structured logging setup.

Everything goes through structlog; stdlib loggers (uvicorn, sqlalchemy) are
routed through the same ``ProcessorFormatter`` so output is uniform.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from commissiondesk import config


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and the root logger.

    Args:
        log_level: Override for ``COMMISSION_LOG_LEVEL`` (DEBUG, INFO, ...).
        log_format: Override for ``COMMISSION_LOG_FORMAT`` ("console" or "json").
    """
    level = (log_level or config.LOG_LEVEL).upper()
    fmt = (log_format or config.LOG_FORMAT).lower()
    numeric_level = getattr(logging, level, logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if fmt == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    formatter = ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.setLevel(numeric_level)
        uvicorn_logger.propagate = False

    get_logger(__name__).info("logging_configured", level=level, format=fmt, environment=config.ENVIRONMENT)


def get_logger(name: str):
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


__all__ = ["configure_logging", "get_logger"]
