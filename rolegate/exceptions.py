"""
Authorization Exception Classes

This module provides the exception hierarchy for the role-based access control engine.
Exceptions carry a standardized error code, a unique error identifier and a safe
user-facing message so that nothing attacker-controlled or internal is ever reflected
back through an error channel consumed by end users.

The exception hierarchy is designed to:
- Provide specific exception types for configuration, hierarchy, role and input failures
- Prevent information disclosure through security-focused user messages
- Support audit logging with structured metadata
- Integrate with web error handlers through safe response payloads
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid


class RBACErrorCode(Enum):
    """
    Standardized error codes for authorization failures.

    These codes provide consistent categorization for log aggregation,
    Prometheus metrics labels and audit trails.
    """

    # Configuration Error Codes (1000-1999)
    CONFIG_INVALID = "CFG_1001"
    CONFIG_NO_ROLES = "CFG_1002"
    CONFIG_DEFAULT_ROLE_UNDEFINED = "CFG_1003"
    CONFIG_OPTIONS_INVALID = "CFG_1004"

    # Hierarchy Error Codes (2000-2999)
    HIERARCHY_CIRCULAR = "HIER_2001"
    HIERARCHY_INVALID = "HIER_2002"

    # Authorization Error Codes (3000-3999)
    AUTHZ_ROLE_UNKNOWN = "AUTHZ_3001"
    AUTHZ_PERMISSION_DENIED = "AUTHZ_3002"

    # Validation Error Codes (4000-4999)
    VAL_INPUT_INVALID = "VAL_4001"
    VAL_INJECTION_DETECTED = "VAL_4002"
    VAL_SCHEMA_VIOLATION = "VAL_4003"


class RBACException(Exception):
    """
    Base exception class for all authorization engine failures.

    Args:
        message: Human-readable error description for logging and debugging
        error_code: Standardized error code for categorization
        user_message: Safe message for client responses (prevents info disclosure)
        metadata: Additional context for audit logging

    Example:
        try:
            rbac.grant(role, resource, permission)
        except RBACException as e:
            audit.log_exception(e)
            return create_safe_error_response(e), 400
    """

    def __init__(
        self,
        message: str,
        error_code: RBACErrorCode,
        user_message: str = "Access denied",
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_id = str(uuid.uuid4())
        self.error_code = error_code
        self.user_message = user_message
        self.metadata = dict(metadata or {})
        self.timestamp = datetime.now(timezone.utc)

        self.metadata.update({
            'error_id': self.error_id,
            'error_code': self.error_code.value,
            'timestamp': self.timestamp.isoformat(),
            'exception_type': self.__class__.__name__
        })


class ConfigurationError(RBACException):
    """
    Raised when a configuration or option set is structurally broken.

    Configuration errors indicate a broken deployment (no roles, a default role that
    does not resolve, malformed role definitions) and are always propagated to the
    caller at construction or update time.
    """

    def __init__(
        self,
        message: str,
        error_code: RBACErrorCode = RBACErrorCode.CONFIG_INVALID,
        **kwargs
    ) -> None:
        kwargs.setdefault('user_message', 'Authorization configuration is invalid')
        super().__init__(message, error_code, **kwargs)


class CircularHierarchyError(RBACException):
    """
    Raised when a role hierarchy contains a cycle.

    Args:
        role: Role at which the traversal re-entered a node already on the stack
    """

    def __init__(self, role: str, **kwargs) -> None:
        kwargs.setdefault('user_message', 'Role hierarchy is invalid')
        super().__init__(
            f'Circular reference detected in role hierarchy at role "{role}"',
            RBACErrorCode.HIERARCHY_CIRCULAR,
            **kwargs
        )
        self.role = role
        self.metadata['role'] = role


class UnknownRoleError(RBACException):
    """Raised when a role is not defined in the configuration."""

    def __init__(self, role: str, **kwargs) -> None:
        kwargs.setdefault('user_message', 'Insufficient permissions for this operation')
        super().__init__(
            f'Role "{role}" does not exist',
            RBACErrorCode.AUTHZ_ROLE_UNKNOWN,
            **kwargs
        )
        self.role = role
        self.metadata['role'] = role


class InvalidInputError(RBACException):
    """
    Raised when a role, resource or permission identifier is malformed.

    The message names the field and the kind of failure only. The rejected value is
    never part of the message; callers log it separately.
    """

    def __init__(
        self,
        field_name: str,
        reason: str = "has an invalid format",
        error_code: RBACErrorCode = RBACErrorCode.VAL_INPUT_INVALID,
        **kwargs
    ) -> None:
        kwargs.setdefault('user_message', 'Invalid input data provided')
        super().__init__(f"{field_name} {reason}", error_code, **kwargs)
        self.field_name = field_name
        self.reason = reason
        self.metadata['field_name'] = field_name


CONFIGURATION_ERROR_CODES = {
    RBACErrorCode.CONFIG_INVALID,
    RBACErrorCode.CONFIG_NO_ROLES,
    RBACErrorCode.CONFIG_DEFAULT_ROLE_UNDEFINED,
    RBACErrorCode.CONFIG_OPTIONS_INVALID
}

HIERARCHY_ERROR_CODES = {
    RBACErrorCode.HIERARCHY_CIRCULAR,
    RBACErrorCode.HIERARCHY_INVALID
}

AUTHORIZATION_ERROR_CODES = {
    RBACErrorCode.AUTHZ_ROLE_UNKNOWN,
    RBACErrorCode.AUTHZ_PERMISSION_DENIED
}


def get_error_category(error_code: RBACErrorCode) -> str:
    """
    Get the category for an error code.

    Example:
        category = get_error_category(RBACErrorCode.HIERARCHY_CIRCULAR)
        # Returns: "hierarchy"
    """
    if error_code in CONFIGURATION_ERROR_CODES:
        return "configuration"
    elif error_code in HIERARCHY_ERROR_CODES:
        return "hierarchy"
    elif error_code in AUTHORIZATION_ERROR_CODES:
        return "authorization"
    elif error_code.value.startswith("VAL_"):
        return "validation"
    else:
        return "unknown"


def create_safe_error_response(exception: RBACException) -> Dict[str, Any]:
    """
    Create a safe error response for client consumption.

    Only the user message, code, identifier, timestamp and category are exposed. The
    internal message, metadata and traceback stay in the logs.
    """
    return {
        'error': True,
        'error_code': exception.error_code.value,
        'message': exception.user_message,
        'error_id': exception.error_id,
        'timestamp': exception.timestamp.isoformat(),
        'category': get_error_category(exception.error_code)
    }


__all__ = [
    'RBACErrorCode',
    'RBACException',
    'ConfigurationError',
    'CircularHierarchyError',
    'UnknownRoleError',
    'InvalidInputError',
    'get_error_category',
    'create_safe_error_response'
]
