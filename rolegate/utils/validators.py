"""
Identifier validation utilities for roles, resources and permissions.

Every mutating and checking operation of the authorization engine passes its
identifiers through these functions before touching configuration, hierarchy or cache.
The functions are pure: they either return the accepted value or raise
InvalidInputError. Callers are responsible for logging the rejected value; the raised
exception never carries it, so attacker-controlled strings are not reflected into
error channels consumed by end users.

Rejected identifiers:
- values that are not strings
- empty or whitespace-only strings
- strings containing control characters (code points 0-31 and 127)
- strings containing template or code injection markers
"""

import re
from typing import Any, FrozenSet, Iterable, List, Pattern

from ..exceptions import InvalidInputError, RBACErrorCode

# Control characters, code points 0-31 and 127
CONTROL_CHARACTER_PATTERN = re.compile(r'[\x00-\x1f\x7f]')

# Template and code injection markers
INJECTION_PATTERNS: List[Pattern[str]] = [
    re.compile(r'\$\{'),                  # ${...} template interpolation
    re.compile(r'\$\('),                  # $(...) command substitution
    re.compile(r'\{\{'),                  # {{...}} template expression
    re.compile(r'\}\}'),
    re.compile(r'<\s*/?\s*script', re.IGNORECASE),
    re.compile(r';\s*[\'"`]'),            # statement terminator followed by a quote
]

# Collections accepted wherever "one or many permissions" is allowed
PERMISSION_COLLECTION_TYPES = (list, tuple, set, frozenset)

MAX_REJECTED_VALUE_LENGTH = 64


def validate_identifier(value: Any, field_name: str) -> str:
    """
    Validate a role, resource or permission identifier.

    Args:
        value: Candidate identifier
        field_name: Name of the field for error reporting ("role", "resource", ...)

    Returns:
        The identifier, unchanged

    Raises:
        InvalidInputError: If the identifier is malformed
    """
    if not isinstance(value, str):
        raise InvalidInputError(field_name, "must be a string")

    if not value.strip():
        raise InvalidInputError(field_name, "cannot be empty")

    if CONTROL_CHARACTER_PATTERN.search(value):
        raise InvalidInputError(field_name, "contains control characters")

    for pattern in INJECTION_PATTERNS:
        if pattern.search(value):
            raise InvalidInputError(
                field_name,
                "has an invalid format",
                error_code=RBACErrorCode.VAL_INJECTION_DETECTED
            )

    return value


def is_valid_identifier(value: Any) -> bool:
    """Return True if value would pass validate_identifier."""
    try:
        validate_identifier(value, "identifier")
    except InvalidInputError:
        return False
    return True


def validate_permissions(value: Any, field_name: str = "permission") -> FrozenSet[str]:
    """
    Validate a single permission or a non-empty collection of permissions.

    Duplicates collapse. A bare string is treated as a single permission; any other
    non-collection type is rejected.

    Raises:
        InvalidInputError: If the value or any member is malformed, or the collection is empty
    """
    if isinstance(value, str):
        return frozenset([validate_identifier(value, field_name)])

    if not isinstance(value, PERMISSION_COLLECTION_TYPES):
        raise InvalidInputError(field_name, "must be a string or a collection of strings")

    if not value:
        raise InvalidInputError(field_name, "cannot be an empty collection")

    return frozenset(validate_identifier(item, field_name) for item in value)


def validate_identifier_collection(values: Iterable[Any], field_name: str) -> List[str]:
    """Validate every member of an ordered collection, preserving order and dropping duplicates."""
    return list(dict.fromkeys(validate_identifier(item, field_name) for item in values))


def describe_rejected_value(value: Any) -> str:
    """
    Render a rejected value for log output.

    The representation is truncated so that oversized payloads cannot flood the logs.
    """
    rendered = repr(value)
    if len(rendered) > MAX_REJECTED_VALUE_LENGTH:
        rendered = rendered[:MAX_REJECTED_VALUE_LENGTH] + "..."
    return rendered


__all__ = [
    'CONTROL_CHARACTER_PATTERN',
    'INJECTION_PATTERNS',
    'PERMISSION_COLLECTION_TYPES',
    'validate_identifier',
    'is_valid_identifier',
    'validate_permissions',
    'validate_identifier_collection',
    'describe_rejected_value'
]
