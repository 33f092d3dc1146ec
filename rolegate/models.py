"""
Authorization data models.

This module defines the validated, immutable structures the engine operates on:

    Configuration Models:
        RoleDefinition: Optional description plus resource -> permission set mapping
        RBACConfig: Role name -> RoleDefinition mapping with an optional default role

    Decision Models:
        Policy: A (role, resource, permission) triple to evaluate
        PolicyResult: Allow/deny outcome with a human-readable reason

    Identity Models:
        User: A caller record carrying a list of role identifiers

Ingestion always goes through an explicit field-by-field copy that doubles as schema
validation, so the stored configuration never shares a mutable container with the
caller and never holds values of unexpected types.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    ValidationError as PydanticValidationError
)

from .exceptions import ConfigurationError, InvalidInputError, RBACErrorCode
from .utils.validators import PERMISSION_COLLECTION_TYPES, validate_identifier

# Explicit enumerations used by the configuration builder. No wildcard is ever honored.
FULL_ACCESS_PERMISSIONS: Tuple[str, ...] = ("CREATE", "READ", "UPDATE", "DELETE", "VIEW")
READ_ONLY_PERMISSIONS: Tuple[str, ...] = ("READ", "VIEW")


def _checked_identifier(value: Any, field_name: str) -> str:
    """Run the identifier validator inside a pydantic validator."""
    try:
        return validate_identifier(value, field_name)
    except InvalidInputError as exc:
        raise ValueError(exc.message) from None


# Location parts that are model field names; anything else came from the caller
SCHEMA_LOCATION_PARTS = frozenset({'roles', 'permissions', 'description', 'default_role', 'defaultRole'})


def summarize_validation_error(exc: PydanticValidationError) -> str:
    """Render a pydantic error without echoing rejected input values or caller-supplied keys."""
    parts = []
    for error in exc.errors():
        location = ".".join(
            item if item in SCHEMA_LOCATION_PARTS else "*"
            for item in error.get('loc', ())
        ) or "config"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class RoleDefinition(BaseModel):
    """
    Permissions granted to a single role.

    Attributes:
        description: Optional human-readable description
        permissions: Resource identifier -> frozenset of permission identifiers
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    description: Optional[str] = None
    permissions: Dict[str, FrozenSet[str]]

    @field_validator('description', mode='before')
    @classmethod
    def coerce_description(cls, value: Any) -> Optional[str]:
        """Coerce scalar descriptions to strings and drop anything else."""
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator('permissions', mode='before')
    @classmethod
    def copy_permissions(cls, value: Any) -> Dict[str, FrozenSet[str]]:
        if not isinstance(value, Mapping):
            raise ValueError("permissions must be a mapping of resource to permissions")

        copied: Dict[str, FrozenSet[str]] = {}
        for resource, permissions in value.items():
            resource = _checked_identifier(resource, "resource")
            if not isinstance(permissions, PERMISSION_COLLECTION_TYPES):
                raise ValueError("permissions for a resource must be a collection of identifiers")
            copied[resource] = frozenset(
                _checked_identifier(permission, "permission") for permission in permissions
            )
        return copied

    @classmethod
    def ingest(cls, source: Any) -> 'RoleDefinition':
        """
        Build a validated copy of a role definition.

        Raises:
            InvalidInputError: If the definition has an unexpected shape
        """
        if isinstance(source, RoleDefinition):
            source = source.to_dict()
        if not isinstance(source, Mapping):
            raise InvalidInputError(
                "definition",
                "must be a mapping",
                error_code=RBACErrorCode.VAL_SCHEMA_VIOLATION
            )
        try:
            return cls.model_validate(dict(source))
        except PydanticValidationError as exc:
            raise InvalidInputError(
                "definition",
                f"has an invalid format ({summarize_validation_error(exc)})",
                error_code=RBACErrorCode.VAL_SCHEMA_VIOLATION
            ) from exc

    def to_dict(self) -> Dict[str, Any]:
        """Return a mutable deep copy."""
        return {
            'description': self.description,
            'permissions': {
                resource: set(permissions)
                for resource, permissions in self.permissions.items()
            }
        }


class RBACConfig(BaseModel):
    """
    Complete authorization configuration.

    Invariants enforced by ingest():
        - at least one role is defined
        - the default role, if any, names a defined role
        - every permission set is deduplicated
    """

    model_config = ConfigDict(frozen=True, extra='forbid', populate_by_name=True)

    roles: Dict[str, RoleDefinition]
    default_role: Optional[str] = Field(default=None, alias='defaultRole')

    @field_validator('roles', mode='before')
    @classmethod
    def copy_roles(cls, value: Any) -> Dict[str, Any]:
        if not isinstance(value, Mapping):
            raise ValueError("roles must be a mapping of role to role definition")

        return {
            _checked_identifier(name, "role"): (
                definition.to_dict() if isinstance(definition, RoleDefinition) else definition
            )
            for name, definition in value.items()
        }

    @field_validator('default_role', mode='before')
    @classmethod
    def check_default_role(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return _checked_identifier(value, "default_role")

    @classmethod
    def ingest(cls, source: Any) -> 'RBACConfig':
        """
        Build a validated, fully copied configuration from a model or a plain mapping.

        Raises:
            ConfigurationError: If the structure or its integrity checks are invalid
        """
        if isinstance(source, RBACConfig):
            source = source.to_dict()
        if not isinstance(source, Mapping):
            raise ConfigurationError("RBAC configuration must be a mapping")

        try:
            config = cls.model_validate(dict(source))
        except PydanticValidationError as exc:
            raise ConfigurationError(
                f"Invalid RBAC configuration: {summarize_validation_error(exc)}"
            ) from exc

        config.check_integrity()
        return config

    def check_integrity(self) -> None:
        if not self.roles:
            raise ConfigurationError(
                "RBAC configuration must contain at least one role",
                error_code=RBACErrorCode.CONFIG_NO_ROLES
            )

        if self.default_role is not None and self.default_role not in self.roles:
            raise ConfigurationError(
                f'Default role "{self.default_role}" is not defined in the configuration',
                error_code=RBACErrorCode.CONFIG_DEFAULT_ROLE_UNDEFINED
            )

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def role_names(self) -> List[str]:
        return list(self.roles)

    def to_dict(self) -> Dict[str, Any]:
        """Return a mutable deep copy built field by field."""
        return {
            'roles': {name: definition.to_dict() for name, definition in self.roles.items()},
            'default_role': self.default_role
        }


class Policy(BaseModel):
    """A single (role, resource, permission) authorization question."""

    model_config = ConfigDict(frozen=True)

    role: str
    resource: str
    permission: str


class PolicyResult(BaseModel):
    """Outcome of a policy evaluation."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str


@dataclass(frozen=True)
class User:
    """
    Caller record carrying role claims.

    Attributes:
        id: User identifier
        roles: Role identifiers held by the user, in the order they were granted
        attributes: Additional user properties, ignored by authorization decisions
    """

    id: Union[str, int]
    roles: Tuple[str, ...] = ()
    attributes: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.roles, str):
            object.__setattr__(self, 'roles', (self.roles,))
        elif not isinstance(self.roles, tuple):
            object.__setattr__(self, 'roles', tuple(self.roles))


__all__ = [
    'FULL_ACCESS_PERMISSIONS',
    'READ_ONLY_PERMISSIONS',
    'RoleDefinition',
    'RBACConfig',
    'Policy',
    'PolicyResult',
    'User',
    'summarize_validation_error'
]
