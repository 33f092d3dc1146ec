"""
rolegate: in-process role-based access control.

Answers "may this role or user perform this action on this resource?" from a validated
role configuration, with role inheritance, a bounded result cache, policy evaluation and
a fail-closed request middleware adapter.
"""

from .builder import RBACBuilder, ResourceBuilder, RoleBuilder
from .cache import PermissionCache
from .config import CacheOptions, RBACOptions, RBACSettings
from .core import PolicyEvaluator, RBACEngine, RBACManager, RoleHierarchy
from .exceptions import (
    CircularHierarchyError,
    ConfigurationError,
    InvalidInputError,
    RBACErrorCode,
    RBACException,
    UnknownRoleError,
    create_safe_error_response,
)
from .middleware import PermissionMiddleware, forbidden_response
from .models import (
    FULL_ACCESS_PERMISSIONS,
    READ_ONLY_PERMISSIONS,
    Policy,
    PolicyResult,
    RBACConfig,
    RoleDefinition,
    User,
)
from .monitoring import AuditEventType, AuditLogger, configure_logging, create_silent_logger

__version__ = "1.0.0"

__all__ = [
    'RBACManager',
    'RBACEngine',
    'RBACBuilder',
    'RoleBuilder',
    'ResourceBuilder',
    'RoleHierarchy',
    'PolicyEvaluator',
    'PermissionCache',
    'PermissionMiddleware',
    'forbidden_response',
    'RBACConfig',
    'RoleDefinition',
    'Policy',
    'PolicyResult',
    'User',
    'FULL_ACCESS_PERMISSIONS',
    'READ_ONLY_PERMISSIONS',
    'CacheOptions',
    'RBACOptions',
    'RBACSettings',
    'RBACErrorCode',
    'RBACException',
    'ConfigurationError',
    'CircularHierarchyError',
    'UnknownRoleError',
    'InvalidInputError',
    'create_safe_error_response',
    'AuditEventType',
    'AuditLogger',
    'configure_logging',
    'create_silent_logger'
]
