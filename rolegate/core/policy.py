"""
Policy evaluation.

PolicyEvaluator turns a (role, resource, permission) policy into a PolicyResult with a
templated, human-readable reason. Evaluation never raises: a malformed policy or any
failure inside the engine resolves to a denial. Reasons never carry raw exception text,
exception class names or rejected input; identifiers are only named once validated.
"""

from typing import Any, Mapping, Optional, Tuple

from ..exceptions import InvalidInputError, UnknownRoleError
from ..models import Policy, PolicyResult
from ..monitoring.metrics import authorization_metrics
from ..utils.validators import describe_rejected_value, validate_identifier

POLICY_FIELDS = ('role', 'resource', 'permission')

REASON_MALFORMED = "Policy has an invalid format"
REASON_MISSING_FIELDS = "Policy is missing required fields"
REASON_INVALID_INPUT = "Policy contains an invalid role, resource or permission"
REASON_EVALUATION_FAILED = "Policy could not be evaluated"
REASON_UNKNOWN_ROLE = 'Role "{role}" is not defined'
REASON_ALLOWED = 'Role "{role}" has "{permission}" permission on "{resource}"'
REASON_DENIED = 'Role "{role}" does not have "{permission}" permission on "{resource}"'
REASON_ALLOWED_GENERIC = "The requested permission is granted"
REASON_DENIED_GENERIC = "The requested permission is not granted"

# Identifiers containing these are left out of reasons
UNSAFE_REASON_TOKENS = ('undefined', 'error', 'exception', 'traceback')


def _is_mentionable(*values: str) -> bool:
    return not any(token in value.lower() for value in values for token in UNSAFE_REASON_TOKENS)


class PolicyEvaluator:
    """
    Structured allow/deny decisions on top of RBACEngine.can().

    Args:
        engine: Resolution engine exposing can()
        logger: structlog logger
    """

    def __init__(self, engine: Any, logger: Any):
        self.engine = engine
        self.logger = logger

    def evaluate(self, policy: Any) -> PolicyResult:
        fields, reason = self._extract_fields(policy)
        if fields is None:
            return self._deny(reason, result='invalid')

        try:
            role, resource, permission = (
                validate_identifier(value, name) for name, value in zip(POLICY_FIELDS, fields)
            )
        except InvalidInputError as e:
            self.logger.warning(
                "Policy rejected by input validation",
                field=e.field_name,
                reason=e.reason,
                rejected_value=describe_rejected_value(fields[POLICY_FIELDS.index(e.field_name)])
            )
            return self._deny(REASON_INVALID_INPUT, result='invalid')

        try:
            allowed = self.engine.can(role, resource, permission)
        except UnknownRoleError:
            reason = REASON_UNKNOWN_ROLE.format(role=role) if _is_mentionable(role) else REASON_DENIED_GENERIC
            return self._deny(reason, result='denied')
        except Exception as e:
            self.logger.error(
                "Policy evaluation failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return self._deny(REASON_EVALUATION_FAILED, result='error')

        mentionable = _is_mentionable(role, resource, permission)
        if allowed:
            reason = (
                REASON_ALLOWED.format(role=role, resource=resource, permission=permission)
                if mentionable else REASON_ALLOWED_GENERIC
            )
            authorization_metrics['policy_evaluations_total'].labels(result='allowed').inc()
            return PolicyResult(allowed=True, reason=reason)

        reason = (
            REASON_DENIED.format(role=role, resource=resource, permission=permission)
            if mentionable else REASON_DENIED_GENERIC
        )
        return self._deny(reason, result='denied')

    @staticmethod
    def _extract_fields(policy: Any) -> Tuple[Optional[Tuple[Any, Any, Any]], str]:
        """Pull the three policy fields from a Policy or a mapping."""
        if isinstance(policy, Policy):
            return (policy.role, policy.resource, policy.permission), ""
        if not isinstance(policy, Mapping):
            return None, REASON_MALFORMED

        values = tuple(policy.get(name) for name in POLICY_FIELDS)
        if any(value is None for value in values):
            return None, REASON_MISSING_FIELDS
        return values, ""

    def _deny(self, reason: str, result: str) -> PolicyResult:
        authorization_metrics['policy_evaluations_total'].labels(result=result).inc()
        return PolicyResult(allowed=False, reason=reason)


__all__ = ['PolicyEvaluator', 'POLICY_FIELDS']
