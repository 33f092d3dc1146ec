"""Configuration layer for the authorization engine."""

from .settings import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL,
    CacheOptions,
    RBACOptions,
    RBACSettings,
)

__all__ = [
    'DEFAULT_CACHE_MAX_SIZE',
    'DEFAULT_CACHE_TTL',
    'CacheOptions',
    'RBACOptions',
    'RBACSettings'
]
