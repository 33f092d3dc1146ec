"""
Structured logging for the authorization engine.

The engine never writes through a process-wide logger of its own: every component
receives the structlog logger injected at construction. When no logger is injected a
silent structlog logger is used. Applications that want output call configure_logging()
once at startup, which sets up structlog on top of the standard library logging module
with a JSON or console renderer.
"""

import logging
import sys
from typing import Any, Optional

import structlog

from ..config.settings import RBACSettings

DEFAULT_LOGGER_NAME = "rolegate"


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Level name; defaults to RBAC_LOG_LEVEL
        log_format: "json" or "console"; defaults to RBAC_LOG_FORMAT

    Returns:
        Logger named after the package, ready to be injected into RBACOptions
    """
    settings = RBACSettings()
    level = (log_level or settings.log_level).upper()
    render_format = (log_format or settings.log_format).lower()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if render_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        # Default to JSON for log aggregation
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    logger = structlog.get_logger(DEFAULT_LOGGER_NAME)
    logger.info(
        "Structured logging initialized",
        log_level=level,
        log_format=render_format
    )
    return logger


def get_logger(name: Optional[str] = None) -> Any:
    """Get a structlog logger, named after the package unless a name is given."""
    return structlog.get_logger(name or DEFAULT_LOGGER_NAME)


def create_silent_logger() -> Any:
    """
    Build a logger that accepts every structlog call and writes nothing.

    The processor chain is fixed so the global structlog configuration (which may
    contain stdlib-only processors) is never applied to it.
    """
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[structlog.processors.KeyValueRenderer()],
        wrapper_class=structlog.BoundLogger,
    )


__all__ = [
    'DEFAULT_LOGGER_NAME',
    'configure_logging',
    'get_logger',
    'create_silent_logger'
]
