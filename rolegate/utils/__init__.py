"""Shared utilities for the authorization engine."""

from .validators import (
    describe_rejected_value,
    is_valid_identifier,
    validate_identifier,
    validate_identifier_collection,
    validate_permissions,
)

__all__ = [
    'describe_rejected_value',
    'is_valid_identifier',
    'validate_identifier',
    'validate_identifier_collection',
    'validate_permissions'
]
