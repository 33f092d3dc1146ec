"""
Authorization engine configuration.

Environment-driven settings are loaded with python-dotenv and read into RBACSettings,
then turned into the option objects the engine is constructed with:

- CacheOptions: result cache switch, capacity and time-to-live (seconds)
- RBACOptions: cache options, strict mode and an injected structlog logger

Environment variables:
    RBAC_STRICT          Raise on unknown roles instead of denying (default: false)
    RBAC_CACHE_ENABLED   Enable the permission result cache (default: false)
    RBAC_CACHE_MAX_SIZE  Maximum number of cached decisions (default: 1000)
    RBAC_CACHE_TTL       Cached decision lifetime in seconds (default: 300)
    RBAC_LOG_LEVEL       Log level used by configure_logging (default: INFO)
    RBAC_LOG_FORMAT      json or console (default: json)
"""

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from ..exceptions import ConfigurationError, RBACErrorCode

# Load environment variables early
load_dotenv()

DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_CACHE_TTL = 300.0  # 5 minutes


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class RBACSettings:
    """
    Environment-backed settings for the authorization engine.

    Values are read when the instance is created so that tests and long-running
    processes observe the environment at construction time.
    """

    def __init__(self) -> None:
        self.strict = _env_flag('RBAC_STRICT')
        self.cache_enabled = _env_flag('RBAC_CACHE_ENABLED')
        self.log_level = os.getenv('RBAC_LOG_LEVEL', 'INFO').upper()
        self.log_format = os.getenv('RBAC_LOG_FORMAT', 'json').lower()

        try:
            self.cache_max_size = int(os.getenv('RBAC_CACHE_MAX_SIZE', str(DEFAULT_CACHE_MAX_SIZE)))
            self.cache_ttl = float(os.getenv('RBAC_CACHE_TTL', str(DEFAULT_CACHE_TTL)))
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid numeric RBAC cache setting: {str(e)}",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            ) from e


@dataclass
class CacheOptions:
    """Result cache options. ttl is expressed in seconds."""

    enabled: bool = False
    max_size: int = DEFAULT_CACHE_MAX_SIZE
    ttl: float = DEFAULT_CACHE_TTL

    def __post_init__(self) -> None:
        if isinstance(self.max_size, bool) or not isinstance(self.max_size, int) or self.max_size <= 0:
            raise ConfigurationError(
                "Cache max_size must be a positive integer",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )
        if isinstance(self.ttl, bool) or not isinstance(self.ttl, (int, float)) or self.ttl <= 0:
            raise ConfigurationError(
                "Cache ttl must be a positive number of seconds",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'CacheOptions':
        """Accept both max_size and the camelCase maxSize spelling."""
        max_size = values.get('max_size', values.get('maxSize', DEFAULT_CACHE_MAX_SIZE))
        return cls(
            enabled=bool(values.get('enabled', False)),
            max_size=max_size if max_size is not None else DEFAULT_CACHE_MAX_SIZE,
            ttl=values.get('ttl') if values.get('ttl') is not None else DEFAULT_CACHE_TTL
        )


@dataclass
class RBACOptions:
    """
    Engine construction options.

    Attributes:
        cache: Result cache options
        strict: Raise UnknownRoleError for unknown roles instead of denying
        logger: structlog-compatible logger; a silent logger is used when omitted
    """

    cache: CacheOptions = field(default_factory=CacheOptions)
    strict: bool = False
    logger: Optional[Any] = None

    @classmethod
    def coerce(cls, options: Any) -> 'RBACOptions':
        """
        Normalize the accepted option shapes.

        Accepts None, an RBACOptions instance, or a mapping shaped like
        {"cache": {"enabled", "maxSize", "ttl"}, "strict", "logger"}.
        """
        if options is None:
            return cls()
        if isinstance(options, RBACOptions):
            return options
        if not isinstance(options, Mapping):
            raise ConfigurationError(
                "RBAC options must be a mapping or an RBACOptions instance",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )

        cache = options.get('cache')
        if cache is None:
            cache_options = CacheOptions()
        elif isinstance(cache, CacheOptions):
            cache_options = cache
        elif isinstance(cache, Mapping):
            cache_options = CacheOptions.from_mapping(cache)
        else:
            raise ConfigurationError(
                "Cache options must be a mapping or a CacheOptions instance",
                error_code=RBACErrorCode.CONFIG_OPTIONS_INVALID
            )

        return cls(
            cache=cache_options,
            strict=bool(options.get('strict', False)),
            logger=options.get('logger')
        )

    @classmethod
    def from_env(cls, logger: Optional[Any] = None) -> 'RBACOptions':
        settings = RBACSettings()
        return cls(
            cache=CacheOptions(
                enabled=settings.cache_enabled,
                max_size=settings.cache_max_size,
                ttl=settings.cache_ttl
            ),
            strict=settings.strict,
            logger=logger
        )


__all__ = [
    'DEFAULT_CACHE_MAX_SIZE',
    'DEFAULT_CACHE_TTL',
    'RBACSettings',
    'CacheOptions',
    'RBACOptions'
]
