"""
Authorization facade.

RBACManager is the public surface of the package. It composes the resolution engine with
the audit trail and adds the operations that change the authorization state at runtime:
grant, revoke, add_role and remove_role. Every write clones the current configuration,
edits the clone, and hands it to the engine, which validates it, swaps it in and clears
the cache.

Error policy:
- construction and mutation errors propagate (ConfigurationError, InvalidInputError,
  UnknownRoleError, CircularHierarchyError)
- user_can, evaluate_policy and the middleware adapter never raise; any failure is a denial
- can denies malformed input and raises UnknownRoleError only in strict mode

Example:
    rbac = RBACManager(
        {
            "roles": {
                "ADMIN": {"permissions": {"Products": ["CREATE", "READ", "UPDATE", "DELETE"]}},
                "CLIENT": {"permissions": {"Products": ["READ"]}},
            },
            "default_role": "CLIENT",
        },
        RBACOptions(cache=CacheOptions(enabled=True)),
    )
    rbac.set_role_hierarchy({"ADMIN": ["CLIENT"]})
    rbac.user_can(["CLIENT"], "Products", "READ")  # True
"""

import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from ..exceptions import InvalidInputError, UnknownRoleError
from ..middleware import PermissionMiddleware
from ..models import PolicyResult, RoleDefinition, User
from ..monitoring.audit import AuditEventType, AuditLogger
from ..monitoring.metrics import authorization_metrics
from ..utils.validators import PERMISSION_COLLECTION_TYPES
from .engine import RBACEngine


class RBACManager:
    """
    Role-based access control facade.

    Args:
        config: RBACConfig or plain mapping of roles and an optional default role
        options: RBACOptions, mapping of options, or None
    """

    def __init__(self, config: Any, options: Any = None):
        self.engine = RBACEngine(config, options)
        self.logger = self.engine.logger
        self.audit = AuditLogger(self.logger)
        self._write_lock = threading.RLock()

    @property
    def strict(self) -> bool:
        return self.engine.strict

    # Queries

    def can(self, role: str, resource: str, permission: str) -> bool:
        """
        Check a single role. Malformed identifiers deny.

        Raises:
            UnknownRoleError: Only in strict mode, for a role not in the configuration
        """
        try:
            return self.engine.can(role, resource, permission)
        except InvalidInputError:
            return False

    def user_can(self, user_or_roles: Any, resource: str, permission: str) -> bool:
        """
        Check whether any of a caller's roles grants the permission.

        Accepts a collection of role identifiers, a User, or a mapping with a "roles" key.
        An empty role collection falls back to the default role when one is configured.
        Never raises.
        """
        try:
            roles = self._extract_roles(user_or_roles)
            if roles is None:
                self.logger.debug("User permission check denied, no role claims")
                return False

            resource = self.engine.check_identifier(resource, "resource")
            permission = self.engine.check_identifier(permission, "permission")

            if not roles:
                default_role = self.engine.default_role
                if default_role is None:
                    return False
                roles = [default_role]

            for role in roles:
                try:
                    if self.engine.can(role, resource, permission):
                        return True
                except (InvalidInputError, UnknownRoleError):
                    continue
            return False

        except InvalidInputError:
            return False
        except Exception as e:
            self.logger.error(
                "User permission check failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return False

    @staticmethod
    def _extract_roles(user_or_roles: Any) -> Optional[List[Any]]:
        """Resolve the accepted caller variants to a role list, or None for anything else."""
        if isinstance(user_or_roles, User):
            return list(user_or_roles.roles)

        if isinstance(user_or_roles, Mapping):
            roles = user_or_roles.get('roles')
            if isinstance(roles, PERMISSION_COLLECTION_TYPES):
                return list(roles)
            return None

        if isinstance(user_or_roles, PERMISSION_COLLECTION_TYPES):
            return list(user_or_roles)

        return None

    def get_permissions(self, role: str, resource: str) -> Set[str]:
        return self.engine.get_permissions(role, resource)

    def get_resources(self, role: str) -> Set[str]:
        return self.engine.get_resources(role)

    def get_roles(self) -> List[str]:
        return self.engine.get_roles()

    def get_config(self) -> Dict[str, Any]:
        return self.engine.get_config()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.engine.get_cache_stats()

    def evaluate_policy(self, policy: Any) -> PolicyResult:
        return self.engine.evaluate_policy(policy)

    # Mutations

    def update_config(self, config: Any) -> None:
        """Replace the whole configuration. Raises ConfigurationError if it is invalid."""
        with self._write_lock:
            self.engine.update_config(config, reason='update_config')
        self.audit.log_configuration_change(
            AuditEventType.ADMIN_CONFIGURATION_CHANGE,
            metadata={'role_count': len(self.engine.get_roles())}
        )

    def set_role_hierarchy(self, hierarchy: Mapping[str, List[str]]) -> None:
        """Replace the role hierarchy. Raises CircularHierarchyError on any cycle."""
        with self._write_lock:
            self.engine.set_role_hierarchy(hierarchy)
        self.audit.log_configuration_change(
            AuditEventType.ADMIN_HIERARCHY_CHANGE,
            metadata={'child_role_count': len(self.engine.hierarchy)}
        )

    def grant(self, role: str, resource: str, permissions: Any) -> None:
        """
        Add one or more permissions on a resource to an existing role.

        Raises:
            InvalidInputError: If any identifier is malformed or no permission is given
            UnknownRoleError: If the role is not defined
        """
        role = self.engine.check_identifier(role, "role")
        resource = self.engine.check_identifier(resource, "resource")
        granted = self.engine.check_permissions(permissions)

        with self._write_lock:
            if not self.engine.has_role(role):
                self.logger.warning("Grant rejected for undefined role", role=role)
                raise UnknownRoleError(role)

            config = self.engine.get_config()
            role_permissions = config['roles'][role]['permissions']
            role_permissions.setdefault(resource, set()).update(granted)
            self.engine.update_config(config, reason='grant')

        self.audit.log_configuration_change(
            AuditEventType.ADMIN_PERMISSION_GRANT,
            role=role,
            resource=resource,
            permissions=granted
        )

    def revoke(self, role: str, resource: str, permissions: Any = None) -> None:
        """
        Remove permissions on a resource from a role.

        With no permissions argument the resource keeps an empty permission set. Revoking
        from an undefined role or an unconfigured resource changes nothing.

        Raises:
            InvalidInputError: If any identifier is malformed
        """
        role = self.engine.check_identifier(role, "role")
        resource = self.engine.check_identifier(resource, "resource")
        revoked = self.engine.check_permissions(permissions) if permissions is not None else None

        with self._write_lock:
            config = self.engine.get_config()
            definition = config['roles'].get(role)

            if definition is None or resource not in definition['permissions']:
                self.logger.debug("Revoke found nothing to remove", role=role, resource=resource)
                self.engine.clear_cache(reason='revoke')
                outcome = 'noop'
            else:
                if revoked is None:
                    definition['permissions'][resource] = set()
                else:
                    definition['permissions'][resource] -= revoked
                self.engine.update_config(config, reason='revoke')
                outcome = 'applied'

        self.audit.log_configuration_change(
            AuditEventType.ADMIN_PERMISSION_REVOKE,
            role=role,
            resource=resource,
            permissions=revoked,
            outcome=outcome
        )

    def add_role(self, role: str, definition: Any) -> None:
        """
        Install a role, replacing any existing role of the same name.

        Raises:
            InvalidInputError: If the role name or definition is malformed
        """
        role = self.engine.check_identifier(role, "role")

        try:
            role_definition = RoleDefinition.ingest(definition)
        except InvalidInputError as e:
            authorization_metrics['configuration_changes_total'].labels(
                operation='add_role', result='rejected'
            ).inc()
            self.logger.warning("Rejected role definition", role=role, reason=e.message)
            raise

        with self._write_lock:
            config = self.engine.get_config()
            replaced = role in config['roles']
            config['roles'][role] = role_definition.to_dict()
            self.engine.update_config(config, reason='add_role')

        self.audit.log_configuration_change(
            AuditEventType.ADMIN_ROLE_CREATION,
            role=role,
            metadata={
                'replaced': replaced,
                'resources': sorted(role_definition.permissions)
            }
        )

    def remove_role(self, role: str) -> None:
        """
        Remove a role.

        Clears the default role if it pointed at the removed role. Hierarchy entries that
        still reference the role are kept and logged; they resolve to no permissions.

        Raises:
            InvalidInputError: If the role name is malformed
            ConfigurationError: If the role is the last one in the configuration
        """
        role = self.engine.check_identifier(role, "role")

        with self._write_lock:
            if not self.engine.has_role(role):
                self.logger.warning("Attempted to remove an undefined role", role=role)
                self.engine.clear_cache(reason='remove_role')
                return

            config = self.engine.get_config()
            del config['roles'][role]

            default_cleared = config.get('default_role') == role
            if default_cleared:
                config['default_role'] = None

            self.engine.update_config(config, reason='remove_role')
            dependent_roles = self.engine.hierarchy.children_of(role)

        if default_cleared:
            self.logger.info("Default role cleared after role removal", role=role)

        if dependent_roles:
            self.logger.warning(
                "Removed role is still referenced as a parent in the role hierarchy",
                role=role,
                child_roles=dependent_roles
            )

        self.audit.log_configuration_change(
            AuditEventType.ADMIN_ROLE_DELETION,
            role=role,
            metadata={
                'default_role_cleared': default_cleared,
                'dependent_roles': dependent_roles
            }
        )

    def clear_cache(self) -> None:
        self.engine.clear_cache(reason='manual')

    # Adapters

    def middleware(
        self,
        get_user_roles: Any,
        resource: Any,
        permission: Any,
        on_denied: Optional[Callable[..., Any]] = None,
        audit_log: bool = False
    ) -> PermissionMiddleware:
        """
        Build a request adapter enforcing one resource/permission check.

        Args:
            get_user_roles: Roles, or a callable of the request returning roles (may be async)
            resource: Resource identifier, or a callable of the request returning one
            permission: Permission identifier, or a callable of the request returning one
            on_denied: Optional handler called as on_denied(request, response, next_handler)
            audit_log: Emit an audit record for every decision
        """
        return PermissionMiddleware(
            self,
            get_user_roles=get_user_roles,
            resource=resource,
            permission=permission,
            on_denied=on_denied,
            audit_log=audit_log
        )


__all__ = ['RBACManager']
