"""
Permission resolution engine.

RBACEngine combines the current configuration, the role hierarchy and the optional
result cache to answer permission queries, and owns the configuration lifecycle.

Resolution of can(role, resource, permission):

1. validate the three identifiers; rejected values are logged and raised
2. serve a live cache hit if one exists
3. direct check: the role's permission set for the resource contains the permission
4. otherwise walk the role's parents in declared order, resolving each one with this same
   algorithm (so inheritance is transitive) and stopping at the first grant
   (a role missing from the configuration grants nothing and inherits nothing)
5. store the outcome in the cache, stamped with the cache version read in step 1

No wildcard permission is ever honored. Unknown resources and permissions always deny.
Unknown roles deny with a warning, or raise UnknownRoleError in strict mode.

Writes never mutate state in place: a new configuration or hierarchy is fully built and
validated, the reference is swapped, then the cache is cleared. A reader holding the old
references finishes against a consistent snapshot, and the version stamp keeps its result
out of the cleared cache.
"""

import time
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..cache.permission_cache import PermissionCache
from ..config.settings import RBACOptions
from ..exceptions import (
    CircularHierarchyError,
    InvalidInputError,
    UnknownRoleError
)
from ..models import RBACConfig, PolicyResult
from ..monitoring.logging import create_silent_logger
from ..monitoring.metrics import authorization_metrics
from ..utils.validators import describe_rejected_value, validate_identifier, validate_permissions
from .hierarchy import RoleHierarchy
from .policy import PolicyEvaluator


class RBACEngine:
    """
    Resolution engine over a validated configuration and role hierarchy.

    Args:
        config: RBACConfig instance or plain mapping; ingested by copy
        options: RBACOptions, mapping of options, or None for defaults

    Raises:
        ConfigurationError: If the configuration or options are invalid
    """

    def __init__(self, config: Any, options: Any = None):
        self.options = RBACOptions.coerce(options)
        self.logger = self.options.logger or create_silent_logger()
        self.strict = self.options.strict

        self._config = RBACConfig.ingest(config)
        self._hierarchy = RoleHierarchy()

        cache_options = self.options.cache
        self._cache: Optional[PermissionCache] = None
        if cache_options.enabled:
            self._cache = PermissionCache(
                max_size=cache_options.max_size,
                ttl=cache_options.ttl,
                logger=self.logger
            )

        self._policy_evaluator = PolicyEvaluator(self, self.logger)

        self.logger.debug(
            "RBAC engine initialized",
            role_count=len(self._config.roles),
            default_role=self._config.default_role,
            cache_enabled=self._cache is not None,
            strict=self.strict
        )

    @property
    def hierarchy(self) -> RoleHierarchy:
        return self._hierarchy

    @property
    def cache(self) -> Optional[PermissionCache]:
        return self._cache

    @property
    def default_role(self) -> Optional[str]:
        return self._config.default_role

    def has_role(self, role: str) -> bool:
        return self._config.has_role(role)

    # Input validation

    def check_identifier(self, value: Any, field_name: str) -> str:
        """
        Validate an identifier, logging the rejected value before raising.

        Raises:
            InvalidInputError: If the identifier is malformed
        """
        try:
            return validate_identifier(value, field_name)
        except InvalidInputError as e:
            self._log_rejected_input(e, value)
            raise

    def check_permissions(self, value: Any, field_name: str = "permission") -> frozenset:
        """Validate one permission or a collection of permissions, logging rejections."""
        try:
            return validate_permissions(value, field_name)
        except InvalidInputError as e:
            self._log_rejected_input(e, value)
            raise

    def _log_rejected_input(self, error: InvalidInputError, value: Any) -> None:
        authorization_metrics['rejected_inputs_total'].labels(field=error.field_name).inc()
        self.logger.warning(
            "Rejected invalid authorization input",
            field=error.field_name,
            reason=error.reason,
            rejected_value=describe_rejected_value(value),
            error_code=error.error_code.value
        )

    # Queries

    def can(self, role: str, resource: str, permission: str) -> bool:
        """
        Check whether a role holds a permission on a resource, directly or by inheritance.

        Raises:
            InvalidInputError: If any identifier is malformed
            UnknownRoleError: If strict mode is on and the role is not defined
        """
        start_time = time.perf_counter()

        role = self.check_identifier(role, "role")
        resource = self.check_identifier(resource, "resource")
        permission = self.check_identifier(permission, "permission")

        config = self._config
        hierarchy = self._hierarchy
        version = self._cache.version if self._cache is not None else None

        if self.strict and not config.has_role(role):
            self.logger.warning("Unknown role in strict mode", role=role)
            raise UnknownRoleError(role)

        source = 'resolution'
        cached = self._cache.get(role, resource, permission) if self._cache is not None else None
        if cached is not None:
            allowed = cached
            source = 'cache'
        else:
            allowed = self._resolve(config, hierarchy, role, resource, permission, version)

        decision = 'allowed' if allowed else 'denied'
        authorization_metrics['decisions_total'].labels(decision=decision, source=source).inc()
        authorization_metrics['permission_check_duration'].labels(decision=decision).observe(
            time.perf_counter() - start_time
        )

        self.logger.debug(
            "Permission check completed",
            role=role,
            resource=resource,
            permission=permission,
            allowed=allowed,
            source=source
        )
        return allowed

    def _resolve(
        self,
        config: RBACConfig,
        hierarchy: RoleHierarchy,
        role: str,
        resource: str,
        permission: str,
        version: Optional[int]
    ) -> bool:
        """
        Direct check, then a depth-first walk of the parents in declared order.

        The walk keeps an explicit stack of (role, remaining parents) frames, so chain
        depth is not bounded by recursion. A grant anywhere below a frame grants every
        role on the stack; a frame whose parents are exhausted is denied. An undefined role
        grants nothing and inherits nothing. Each outcome is cached for the role it was
        computed for.
        """
        if self._check_direct(config, role, resource, permission, top_level=True):
            self._remember(role, resource, permission, True, version)
            return True
        if not config.has_role(role):
            self._remember(role, resource, permission, False, version)
            return False

        settled: Dict[str, bool] = {}
        stack: List[Tuple[str, Iterator[str]]] = [(role, iter(hierarchy.parents_of(role)))]

        while stack:
            current, parents = stack[-1]
            parent = next(parents, None)

            if parent is None:
                stack.pop()
                settled[current] = False
                self._remember(current, resource, permission, False, version)
                continue

            outcome = settled.get(parent)
            if outcome is None and self._cache is not None:
                outcome = self._cache.get(parent, resource, permission)

            if outcome is None:
                if self._check_direct(config, parent, resource, permission, top_level=False):
                    outcome = True
                    self._remember(parent, resource, permission, True, version)
                elif config.has_role(parent):
                    stack.append((parent, iter(hierarchy.parents_of(parent))))
                    continue
                else:
                    outcome = False
                    settled[parent] = False
                    self._remember(parent, resource, permission, False, version)

            if outcome:
                for granted_role, _ in reversed(stack):
                    self._remember(granted_role, resource, permission, True, version)
                return True

        return False

    def _remember(
        self,
        role: str,
        resource: str,
        permission: str,
        allowed: bool,
        version: Optional[int]
    ) -> None:
        if self._cache is not None:
            self._cache.set(role, resource, permission, allowed, version=version)

    def _check_direct(
        self,
        config: RBACConfig,
        role: str,
        resource: str,
        permission: str,
        top_level: bool
    ) -> bool:
        definition = config.roles.get(role)
        if definition is None:
            if top_level:
                self.logger.warning("Unknown role denied", role=role)
            else:
                self.logger.debug("Parent role not defined in configuration", role=role)
            return False

        granted = definition.permissions.get(resource)
        if granted is None:
            return False

        return permission in granted

    def get_permissions(self, role: str, resource: str) -> Set[str]:
        """
        Union of the role's direct and inherited permissions on a resource.

        An undefined role has no permissions, whatever the hierarchy lists for it.

        Raises:
            InvalidInputError: If an identifier is malformed
            UnknownRoleError: If strict mode is on and the role is not defined
        """
        role = self.check_identifier(role, "role")
        resource = self.check_identifier(resource, "resource")
        config, hierarchy = self._config, self._hierarchy
        if not self._require_known_role(config, role):
            return set()

        permissions: Set[str] = set()
        for name in self._ancestry(hierarchy, role):
            definition = config.roles.get(name)
            if definition is not None:
                permissions.update(definition.permissions.get(resource, ()))
        return permissions

    def get_resources(self, role: str) -> Set[str]:
        """Union of resources configured on the role and on every ancestor."""
        role = self.check_identifier(role, "role")
        config, hierarchy = self._config, self._hierarchy
        if not self._require_known_role(config, role):
            return set()

        resources: Set[str] = set()
        for name in self._ancestry(hierarchy, role):
            definition = config.roles.get(name)
            if definition is not None:
                resources.update(definition.permissions)
        return resources

    def _require_known_role(self, config: RBACConfig, role: str) -> bool:
        """Return True if the role is defined; raise in strict mode, otherwise warn."""
        if config.has_role(role):
            return True
        if self.strict:
            self.logger.warning("Unknown role in strict mode", role=role)
            raise UnknownRoleError(role)
        self.logger.warning("Unknown role has no permissions", role=role)
        return False

    @staticmethod
    def _ancestry(hierarchy: RoleHierarchy, role: str) -> List[str]:
        """The role followed by every ancestor, each listed once, depth-first in parent order."""
        seen: Dict[str, None] = {}
        pending = [role]

        while pending:
            name = pending.pop()
            if name in seen:
                continue
            seen[name] = None
            pending.extend(reversed(hierarchy.parents_of(name)))

        return list(seen)

    def get_roles(self) -> List[str]:
        return self._config.role_names()

    def get_config(self) -> Dict[str, Any]:
        """Return a deep copy of the current configuration as plain data."""
        return self._config.to_dict()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            'enabled': self._cache is not None,
            'size': self._cache.size() if self._cache is not None else 0
        }

    def evaluate_policy(self, policy: Any) -> PolicyResult:
        """Evaluate a policy; never raises."""
        return self._policy_evaluator.evaluate(policy)

    # Configuration lifecycle

    def update_config(self, config: Any, reason: str = "update_config") -> None:
        """
        Replace the configuration wholesale.

        Raises:
            ConfigurationError: If the new configuration is invalid; the current one is kept
        """
        try:
            new_config = RBACConfig.ingest(config)
        except Exception:
            authorization_metrics['configuration_changes_total'].labels(
                operation=reason, result='rejected'
            ).inc()
            raise

        self._config = new_config
        self.clear_cache(reason=reason)
        self._warn_dangling_parents(self._hierarchy, new_config)

        authorization_metrics['configuration_changes_total'].labels(
            operation=reason, result='applied'
        ).inc()
        self.logger.info(
            "RBAC configuration updated",
            operation=reason,
            role_count=len(new_config.roles),
            default_role=new_config.default_role
        )

    def set_role_hierarchy(self, mapping: Any) -> None:
        """
        Replace the role hierarchy wholesale.

        Raises:
            InvalidInputError: If the mapping is malformed
            CircularHierarchyError: If the mapping contains a cycle; the current one is kept
        """
        try:
            hierarchy = RoleHierarchy.from_mapping(mapping)
        except CircularHierarchyError as e:
            authorization_metrics['configuration_changes_total'].labels(
                operation='set_role_hierarchy', result='rejected'
            ).inc()
            self.logger.error(
                "Rejected circular role hierarchy",
                role=e.role,
                error_code=e.error_code.value
            )
            raise
        except InvalidInputError as e:
            authorization_metrics['configuration_changes_total'].labels(
                operation='set_role_hierarchy', result='rejected'
            ).inc()
            self.logger.warning(
                "Rejected malformed role hierarchy",
                field=e.field_name,
                reason=e.reason
            )
            raise

        self._hierarchy = hierarchy
        self.clear_cache(reason='set_role_hierarchy')
        self._warn_dangling_parents(hierarchy, self._config)

        authorization_metrics['configuration_changes_total'].labels(
            operation='set_role_hierarchy', result='applied'
        ).inc()
        self.logger.info("Role hierarchy updated", child_role_count=len(hierarchy))

    def _warn_dangling_parents(self, hierarchy: RoleHierarchy, config: RBACConfig) -> None:
        dangling = hierarchy.dangling_parents(config.roles)
        if dangling:
            self.logger.warning(
                "Role hierarchy references roles missing from the configuration",
                missing_roles=dangling
            )

    def clear_cache(self, reason: str = "manual") -> None:
        if self._cache is not None:
            self._cache.clear(reason=reason)


__all__ = ['RBACEngine']
