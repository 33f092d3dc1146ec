"""
Bounded, time-expiring LRU cache for permission decisions.

The cache maps a (role, resource, permission) triple to the boolean outcome of a
permission check. Every entry carries an expiration timestamp and the cache version
that was current when the decision was computed:

- an entry is served only if its version equals the live version and it has not expired;
  either failure is a miss and the entry is dropped (lazy eviction)
- clear() empties the store and bumps the version, so a write computed against the old
  configuration that lands after the clear is discarded instead of stored
- insertion order is recency order; reads promote an entry to most-recently-used and
  writes at capacity evict the least-recently-used entry

Keys are built from a per-instance random salt and escaped components. Escaping is
injective, so no two distinct triples can alias to the same cache slot.
"""

import secrets
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, NamedTuple, Optional

from ..config.settings import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL
from ..exceptions import ConfigurationError, InvalidInputError, RBACErrorCode
from ..monitoring.logging import create_silent_logger
from ..monitoring.metrics import cache_metrics


class CacheKeyPatterns:
    """Structured cache key layout."""

    KEY_DELIMITER = ":"
    ESCAPE_CHARACTER = "\\"
    PERMISSION_DECISION = "rbac:{salt}:{role}:{resource}:{permission}"


# Escape the escape character first so the mapping stays injective
_ESCAPE_SEQUENCE = (
    (CacheKeyPatterns.ESCAPE_CHARACTER, CacheKeyPatterns.ESCAPE_CHARACTER * 2),
    (CacheKeyPatterns.KEY_DELIMITER, CacheKeyPatterns.ESCAPE_CHARACTER + CacheKeyPatterns.KEY_DELIMITER),
    ("\n", CacheKeyPatterns.ESCAPE_CHARACTER + "n"),
    ("\r", CacheKeyPatterns.ESCAPE_CHARACTER + "r"),
)


def escape_key_component(value: str) -> str:
    """Escape a key component so it can never merge with the key delimiter."""
    for raw, escaped in _ESCAPE_SEQUENCE:
        value = value.replace(raw, escaped)
    return value


class CacheEntry(NamedTuple):
    value: bool
    expires_at: float
    version: int


class PermissionCache:
    """
    LRU + TTL cache of permission decisions with version stamping.

    Args:
        max_size: Maximum number of entries
        ttl: Entry lifetime in seconds
        clock: Monotonic time source, injectable for tests
        logger: structlog logger for cache diagnostics

    Raises:
        ConfigurationError: If max_size or ttl is not positive

    Example:
        cache = PermissionCache(max_size=500, ttl=60)
        version = cache.version
        cache.set("ADMIN", "Products", "READ", True, version=version)
        cache.get("ADMIN", "Products", "READ")  # True
        cache.clear()
        cache.get("ADMIN", "Products", "READ")  # None
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[Any] = None
    ):
        if max_size <= 0:
            raise ConfigurationError(
                "Cache max_size must be a positive integer",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )
        if ttl <= 0:
            raise ConfigurationError(
                "Cache ttl must be a positive number of seconds",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )

        self.max_size = max_size
        self.ttl = float(ttl)
        self.clock = clock
        self.logger = logger or create_silent_logger()

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._version = 1
        self._salt = secrets.token_hex(8)
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def version(self) -> int:
        """Current cache version; stamp writes with the value read before resolving."""
        return self._version

    def create_key(self, role: str, resource: str, permission: str) -> str:
        """
        Build the salted cache key for a decision.

        Raises:
            InvalidInputError: If any component is not a non-empty string
        """
        for field_name, value in (('role', role), ('resource', resource), ('permission', permission)):
            if not isinstance(value, str) or not value:
                raise InvalidInputError(field_name, "is not a valid cache key component")

        return CacheKeyPatterns.PERMISSION_DECISION.format(
            salt=self._salt,
            role=escape_key_component(role),
            resource=escape_key_component(resource),
            permission=escape_key_component(permission)
        )

    def get(self, role: str, resource: str, permission: str) -> Optional[bool]:
        """
        Look up a cached decision.

        Returns:
            The cached boolean, or None on a miss (absent, expired, stale or bad key)
        """
        try:
            key = self.create_key(role, resource, permission)
        except InvalidInputError as e:
            self.logger.debug("Cache lookup skipped", reason=e.reason, field=e.field_name)
            cache_metrics['operations_total'].labels(operation='get', result='error').inc()
            return None

        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                return self._record_miss('absent')

            if entry.expires_at <= self.clock():
                del self._entries[key]
                self._evictions += 1
                cache_metrics['evictions_total'].labels(reason='expired').inc()
                return self._record_miss('expired')

            if entry.version != self._version:
                del self._entries[key]
                self._evictions += 1
                cache_metrics['evictions_total'].labels(reason='stale_version').inc()
                return self._record_miss('stale')

            self._entries.move_to_end(key)
            self._hits += 1

        cache_metrics['operations_total'].labels(operation='get', result='hit').inc()
        return entry.value

    def set(
        self,
        role: str,
        resource: str,
        permission: str,
        value: bool,
        version: Optional[int] = None
    ) -> bool:
        """
        Store a decision.

        Args:
            version: Cache version observed before the decision was computed. A write
                stamped with an older version than the live one is discarded.

        Returns:
            True if the entry was stored
        """
        try:
            key = self.create_key(role, resource, permission)
        except InvalidInputError as e:
            self.logger.debug("Cache write skipped", reason=e.reason, field=e.field_name)
            cache_metrics['operations_total'].labels(operation='set', result='error').inc()
            return False

        with self._lock:
            stamp = self._version if version is None else version
            if stamp != self._version:
                cache_metrics['operations_total'].labels(operation='set', result='stale').inc()
                self.logger.debug(
                    "Discarded stale cache write",
                    write_version=stamp,
                    current_version=self._version
                )
                return False

            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
                self._evictions += 1
                cache_metrics['evictions_total'].labels(reason='capacity').inc()

            self._entries[key] = CacheEntry(
                value=bool(value),
                expires_at=self.clock() + self.ttl,
                version=stamp
            )

        cache_metrics['operations_total'].labels(operation='set', result='stored').inc()
        return True

    def clear(self, reason: str = "manual") -> None:
        """Drop every entry and advance the version."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._version += 1

        cache_metrics['invalidations_total'].labels(reason=reason).inc()
        self.logger.debug(
            "Permission cache cleared",
            reason=reason,
            entries_removed=removed,
            cache_version=self._version
        )

    def increment_version(self) -> None:
        """Invalidate every entry on next access without dropping them eagerly."""
        with self._lock:
            self._version += 1

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def statistics(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            'size': len(self._entries),
            'max_size': self.max_size,
            'ttl': self.ttl,
            'version': self._version,
            'hits': self._hits,
            'misses': self._misses,
            'evictions': self._evictions,
            'hit_ratio': self._hits / lookups if lookups else 0.0
        }

    def _record_miss(self, reason: str) -> None:
        self._misses += 1
        cache_metrics['operations_total'].labels(operation='get', result=f'miss_{reason}').inc()
        return None


__all__ = [
    'CacheEntry',
    'CacheKeyPatterns',
    'PermissionCache',
    'escape_key_component'
]
