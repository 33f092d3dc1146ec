"""
Audit logging for authorization decisions and configuration changes.

Every mutation of the authorization state (grant, revoke, role add/remove, configuration
replacement, hierarchy replacement) and, optionally, every middleware decision emits one
structured audit record. Records are written through the injected structlog logger,
counted in Prometheus and kept in a bounded in-memory buffer for inspection.

Records only ever carry identifiers that already passed validation.
"""

import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Optional

from .metrics import audit_metrics

DEFAULT_AUDIT_BUFFER_SIZE = 1000


class AuditEventType:
    """Audit event type identifiers."""

    # Authorization Events (AZ.*)
    AUTHZ_PERMISSION_GRANTED = "AZ.PERMISSION.GRANTED"
    AUTHZ_PERMISSION_DENIED = "AZ.PERMISSION.DENIED"

    # Administrative Events (AD.*)
    ADMIN_PERMISSION_GRANT = "AD.PERMISSION.GRANT"
    ADMIN_PERMISSION_REVOKE = "AD.PERMISSION.REVOKE"
    ADMIN_ROLE_CREATION = "AD.ROLE.CREATION"
    ADMIN_ROLE_DELETION = "AD.ROLE.DELETION"
    ADMIN_CONFIGURATION_CHANGE = "AD.CONFIGURATION.CHANGE"
    ADMIN_HIERARCHY_CHANGE = "AD.HIERARCHY.CHANGE"


class AuditLogger:
    """
    Structured audit trail writer.

    Args:
        logger: Injected structlog logger
        buffer_size: Number of recent records retained in memory
    """

    def __init__(self, logger: Any, buffer_size: int = DEFAULT_AUDIT_BUFFER_SIZE):
        self.logger = logger
        self._events: Deque[Dict[str, Any]] = deque(maxlen=buffer_size)
        self._lock = threading.Lock()

    def log_event(
        self,
        event_type: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Record a single audit event.

        Returns:
            Unique event identifier for correlation
        """
        event_id = str(uuid.uuid4())
        event = {
            'event_id': event_id,
            'event_type': event_type,
            'message': message,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'metadata': dict(metadata or {})
        }

        with self._lock:
            self._events.append(event)

        audit_metrics['events_total'].labels(event_type=event_type).inc()
        self.logger.info(
            "Authorization audit event",
            event_id=event_id,
            event_type=event_type,
            audit_message=message,
            **event['metadata']
        )
        return event_id

    def log_configuration_change(
        self,
        event_type: str,
        role: Optional[str] = None,
        resource: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
        outcome: str = "applied",
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Record an administrative change to roles, permissions or hierarchy."""
        change_metadata = {
            'role': role,
            'resource': resource,
            'permissions': sorted(permissions) if permissions is not None else None,
            'outcome': outcome,
            **(metadata or {})
        }
        return self.log_event(
            event_type=event_type,
            message=f"Authorization configuration change {outcome}",
            metadata=change_metadata
        )

    def log_authorization_event(
        self,
        allowed: bool,
        roles: Iterable[str],
        resource: Optional[str],
        permission: Optional[str],
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Record an access decision taken at a request boundary."""
        decision = "granted" if allowed else "denied"
        event_type = (
            AuditEventType.AUTHZ_PERMISSION_GRANTED if allowed
            else AuditEventType.AUTHZ_PERMISSION_DENIED
        )
        return self.log_event(
            event_type=event_type,
            message=f"Authorization {decision}",
            metadata={
                'decision': decision,
                'roles': list(roles),
                'resource': resource,
                'permission': permission,
                **(metadata or {})
            }
        )

    def recent_events(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return copies of buffered records, oldest first."""
        with self._lock:
            events = list(self._events)
        if event_type is not None:
            events = [event for event in events if event['event_type'] == event_type]
        return [dict(event, metadata=dict(event['metadata'])) for event in events]


__all__ = [
    'AuditEventType',
    'AuditLogger',
    'DEFAULT_AUDIT_BUFFER_SIZE'
]
