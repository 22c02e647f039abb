"""Logging utilities for the export service."""

from __future__ import annotations

import logging
from functools import lru_cache

import structlog


@lru_cache(maxsize=1)
def configure_logging(log_level: str = "INFO") -> structlog.stdlib.BoundLogger:
    """Set up JSON logging for export requests and jobs.

    Returns the ``export_service`` logger that the engine and the HTTP
    handlers share. Only the first call takes effect, so the level passed when
    the first app is built wins for the whole process.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger("export_service")


__all__ = ["configure_logging"]
