"""Permission decision caching."""

from .permission_cache import CacheEntry, CacheKeyPatterns, PermissionCache, escape_key_component

__all__ = [
    'CacheEntry',
    'CacheKeyPatterns',
    'PermissionCache',
    'escape_key_component'
]
