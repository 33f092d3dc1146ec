"""
Fluent configuration builder.

    config = (
        RBACBuilder()
        .role("ADMIN", "Shop administrator")
            .grant_full_access("Products")
            .for_resource("Bookings").grant("READ", "UPDATE")
            .done()
        .role("CLIENT")
            .grant_read_only("Products")
            .done()
        .set_default_role("CLIENT")
        .build()
    )

build() returns a validated RBACConfig. Full access is the explicit permission
enumeration in FULL_ACCESS_PERMISSIONS; no wildcard is ever produced.
"""

from typing import Any, Dict, Optional, Set

from .exceptions import ConfigurationError, RBACErrorCode
from .models import FULL_ACCESS_PERMISSIONS, READ_ONLY_PERMISSIONS, RBACConfig


class RBACBuilder:
    """Accumulates roles and permissions, then emits an RBACConfig."""

    def __init__(self) -> None:
        self._roles: Dict[str, Dict[str, Any]] = {}
        self._default_role: Optional[str] = None

    def role(self, name: str, description: Optional[str] = None) -> 'RoleBuilder':
        """Start a role definition. Redefining a role discards its previous permissions."""
        self._roles[name] = {'description': description, 'permissions': {}}
        return RoleBuilder(self, name)

    def set_default_role(self, role: str) -> 'RBACBuilder':
        if role not in self._roles:
            raise ConfigurationError(
                f'Cannot set default role: Role "{role}" does not exist',
                error_code=RBACErrorCode.CONFIG_DEFAULT_ROLE_UNDEFINED
            )
        self._default_role = role
        return self

    def extend_role(self, role: str, base_role: str) -> 'RBACBuilder':
        """Copy every permission of base_role into role (union per resource)."""
        if role not in self._roles:
            raise ConfigurationError(f'Cannot extend role: Role "{role}" does not exist')
        if base_role not in self._roles:
            raise ConfigurationError(f'Cannot extend role: Base role "{base_role}" does not exist')

        target = self._roles[role]['permissions']
        for resource, permissions in self._roles[base_role]['permissions'].items():
            target.setdefault(resource, set()).update(permissions)
        return self

    def build(self) -> RBACConfig:
        """
        Validate and return the configuration.

        Raises:
            ConfigurationError: If no role was defined or an identifier is malformed
        """
        return RBACConfig.ingest({
            'roles': self._roles,
            'default_role': self._default_role
        })

    def _permissions_for(self, role: str, resource: str) -> Set[str]:
        return self._roles[role]['permissions'].setdefault(resource, set())

    def _replace_permissions(self, role: str, resource: str, permissions) -> None:
        self._roles[role]['permissions'][resource] = set(permissions)


class RoleBuilder:
    """Configures the resources of one role."""

    def __init__(self, builder: RBACBuilder, role: str):
        self._builder = builder
        self._role = role

    def for_resource(self, resource: str) -> 'ResourceBuilder':
        return ResourceBuilder(self._builder, self._role, resource)

    def grant_full_access(self, resource: str) -> 'RoleBuilder':
        self._builder._replace_permissions(self._role, resource, FULL_ACCESS_PERMISSIONS)
        return self

    def grant_read_only(self, resource: str) -> 'RoleBuilder':
        self._builder._replace_permissions(self._role, resource, READ_ONLY_PERMISSIONS)
        return self

    def done(self) -> RBACBuilder:
        return self._builder


class ResourceBuilder:
    """Configures the permissions of one role on one resource."""

    def __init__(self, builder: RBACBuilder, role: str, resource: str):
        self._builder = builder
        self._role = role
        self._resource = resource

    def grant(self, *permissions: str) -> 'ResourceBuilder':
        self._builder._permissions_for(self._role, self._resource).update(permissions)
        return self

    def grant_all(self) -> 'ResourceBuilder':
        """Replace this resource's permissions with full access."""
        self._builder._replace_permissions(self._role, self._resource, FULL_ACCESS_PERMISSIONS)
        return self

    def grant_read_only(self) -> 'ResourceBuilder':
        """Replace this resource's permissions with read-only access."""
        self._builder._replace_permissions(self._role, self._resource, READ_ONLY_PERMISSIONS)
        return self

    def for_resource(self, resource: str) -> 'ResourceBuilder':
        return ResourceBuilder(self._builder, self._role, resource)

    def and_(self) -> RoleBuilder:
        return RoleBuilder(self._builder, self._role)

    def done(self) -> RBACBuilder:
        return self._builder


__all__ = ['RBACBuilder', 'RoleBuilder', 'ResourceBuilder']
