"""Logging, audit and metrics for the authorization engine."""

from .audit import AuditEventType, AuditLogger
from .logging import configure_logging, create_silent_logger, get_logger
from .metrics import audit_metrics, authorization_metrics, cache_metrics

__all__ = [
    'AuditEventType',
    'AuditLogger',
    'configure_logging',
    'create_silent_logger',
    'get_logger',
    'audit_metrics',
    'authorization_metrics',
    'cache_metrics'
]
