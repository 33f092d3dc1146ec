"""
Request middleware adapter.

PermissionMiddleware translates a web request into a (roles, resource, permission) check
against RBACManager.user_can. It is an async callable with the three-argument shape
(request, response, next_handler) used by common middleware stacks, plus Flask helpers:

    guard = rbac.middleware(
        get_user_roles=lambda request: request.headers.get("X-Roles", "").split(","),
        resource="Products",
        permission=lambda request: "READ" if request.method == "GET" else "UPDATE",
    )

    @app.route("/products")
    @guard.protect
    def list_products():
        return jsonify(products=[])

    guard.init_app(admin_blueprint)   # enforce on every request of the blueprint

Every branch of the authorization step is fail-closed. A failing role resolver yields an
empty role list; a failing resource or permission resolver denies; a failing denial
handler falls back to the generic 403 response. Exceptions raised by the downstream
handler are not authorization failures and propagate unchanged.
"""

import inspect
import json
import time
from functools import wraps
from typing import Any, Callable, List, NamedTuple, Optional

from flask import Response, request

from .monitoring.metrics import authorization_metrics
from .utils.validators import PERMISSION_COLLECTION_TYPES, is_valid_identifier

FORBIDDEN_STATUS = 403
FORBIDDEN_BODY = {
    'error': 'Forbidden',
    'message': 'Insufficient permissions for this operation'
}


def forbidden_response() -> Response:
    """Generic 403 response that carries no request or exception detail."""
    return Response(
        json.dumps(FORBIDDEN_BODY),
        status=FORBIDDEN_STATUS,
        mimetype='application/json'
    )


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AuthorizationDecision(NamedTuple):
    allowed: bool
    roles: List[str]
    resource: Optional[str]
    permission: Optional[str]


class PermissionMiddleware:
    """
    Fail-closed authorization adapter.

    Args:
        manager: RBACManager used for user_can() and the audit trail
        get_user_roles: Roles, or a callable of the request returning roles (may be async)
        resource: Resource identifier, or a callable of the request (may be async)
        permission: Permission identifier, or a callable of the request (may be async)
        on_denied: Optional handler called as on_denied(request, response, next_handler)
        audit_log: Emit an audit record for every decision
    """

    def __init__(
        self,
        manager: Any,
        get_user_roles: Any,
        resource: Any,
        permission: Any,
        on_denied: Optional[Callable[..., Any]] = None,
        audit_log: bool = False
    ):
        self.manager = manager
        self.get_user_roles = get_user_roles
        self.resource = resource
        self.permission = permission
        self.on_denied = on_denied
        self.audit_log = audit_log
        self.logger = manager.logger

    async def __call__(self, req: Any, response: Any = None, next_handler: Optional[Callable[[], Any]] = None) -> Any:
        decision = await self.authorize(req)

        if decision.allowed:
            if next_handler is None:
                return None
            return await _maybe_await(next_handler())

        return await self.deny(req, response, next_handler)

    async def authorize(self, req: Any) -> AuthorizationDecision:
        """Resolve the request to a decision. Never raises."""
        start_time = time.perf_counter()
        roles: List[Any] = []
        resource = permission = None
        allowed = False

        try:
            roles = await self._resolve_roles(req)

            try:
                resource = await self._resolve_value(self.resource, req)
                permission = await self._resolve_value(self.permission, req)
            except Exception as e:
                self.logger.warning(
                    "Middleware could not resolve resource or permission",
                    error=str(e),
                    error_type=type(e).__name__
                )
            else:
                allowed = self.manager.user_can(roles, resource, permission) is True

        except Exception as e:
            self.logger.error(
                "Middleware authorization failed",
                error=str(e),
                error_type=type(e).__name__
            )
            allowed = False

        decision = AuthorizationDecision(
            allowed=allowed,
            roles=[role for role in roles if is_valid_identifier(role)],
            resource=resource if is_valid_identifier(resource) else None,
            permission=permission if is_valid_identifier(permission) else None
        )
        self._record(decision, time.perf_counter() - start_time)
        return decision

    async def _resolve_roles(self, req: Any) -> List[Any]:
        try:
            roles = await self._resolve_value(self.get_user_roles, req)
        except Exception as e:
            self.logger.warning(
                "Role resolution failed, continuing with no roles",
                error=str(e),
                error_type=type(e).__name__
            )
            return []

        if roles is None:
            return []
        if isinstance(roles, PERMISSION_COLLECTION_TYPES):
            return list(roles)
        if isinstance(roles, str):
            return [roles]

        self.logger.warning(
            "Role resolver returned an unsupported value, continuing with no roles",
            value_type=type(roles).__name__
        )
        return []

    @staticmethod
    async def _resolve_value(source: Any, req: Any) -> Any:
        if callable(source):
            return await _maybe_await(source(req))
        return source

    def _record(self, decision: AuthorizationDecision, duration: float) -> None:
        try:
            outcome = 'allowed' if decision.allowed else 'denied'
            authorization_metrics['middleware_decisions_total'].labels(decision=outcome).inc()

            self.logger.debug(
                "Middleware authorization decision",
                allowed=decision.allowed,
                roles=decision.roles,
                resource=decision.resource,
                permission=decision.permission,
                duration_ms=round(duration * 1000, 3)
            )

            if self.audit_log:
                self.manager.audit.log_authorization_event(
                    allowed=decision.allowed,
                    roles=decision.roles,
                    resource=decision.resource,
                    permission=decision.permission
                )
        except Exception as e:
            self.logger.error(
                "Failed to record middleware decision",
                error=str(e),
                error_type=type(e).__name__
            )

    async def deny(self, req: Any, response: Any = None, next_handler: Optional[Callable[[], Any]] = None) -> Any:
        """Run the denial handler, or return the generic 403 response."""
        if self.on_denied is not None:
            try:
                return await _maybe_await(self.on_denied(req, response, next_handler))
            except Exception as e:
                self.logger.error(
                    "Denial handler failed, returning generic forbidden response",
                    error=str(e),
                    error_type=type(e).__name__
                )
        return forbidden_response()

    # Flask integration

    def protect(self, view: Callable[..., Any]) -> Callable[..., Any]:
        """
        Route decorator enforcing this check before the view runs.

        Example:
            @app.route("/news/<int:news_id>", methods=["PUT"])
            @guard.protect
            def update_news(news_id):
                ...
        """
        @wraps(view)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async def next_handler() -> Any:
                return await _maybe_await(view(*args, **kwargs))

            decision = await self.authorize(request)
            if decision.allowed:
                return await next_handler()

            denied = await self.deny(request, None, next_handler)
            return denied if denied is not None else forbidden_response()

        return wrapper

    def init_app(self, app: Any) -> None:
        """
        Register the check as a before_request hook on a Flask app or blueprint.

        Allowed requests continue to their view; denied requests receive the denial
        handler's result or the generic 403 response.
        """
        @app.before_request
        async def enforce_permissions() -> Any:
            decision = await self.authorize(request)
            if decision.allowed:
                return None
            denied = await self.deny(request)
            return denied if denied is not None else forbidden_response()


__all__ = [
    'AuthorizationDecision',
    'PermissionMiddleware',
    'FORBIDDEN_BODY',
    'FORBIDDEN_STATUS',
    'forbidden_response'
]
