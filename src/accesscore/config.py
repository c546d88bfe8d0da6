"""Configuration contract for the access resolution engine.

This module provides the Pydantic-validated configuration model shared by
every component of accesscore (logging, the module gate, the effective
permission cache and its Redis backend).

Components receive an ``AccessConfig`` through their constructors.
Direct os.environ/os.getenv usage is reserved for
:func:`load_access_config_from_env`.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


DEFAULT_CACHE_TTL_SECONDS = 15 * 60
DEFAULT_CACHE_KEY_PREFIX = "accesscore:effective"


class AccessConfig(BaseModel):
    """Configuration for the permission resolution engine.

    The module gate and the role resolvers deliberately use opposite
    failure policies: resolvers always fail closed, while the gate's
    behaviour on lookup failure is controlled by ``module_gate_fail_open``.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the engine",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Effective permission cache
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for the effective permission cache",
    )
    cache_ttl_seconds: int = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        description="Lifetime of a cached effective permission row (15 minutes)",
    )
    cache_key_prefix: str = Field(
        default=DEFAULT_CACHE_KEY_PREFIX,
        description="Key prefix for cache rows stored in Redis",
    )

    # Module entitlement gate
    module_gate_fail_open: bool = Field(
        default=True,
        description="Allow access when module entitlement lookup fails",
    )

    # Service identification
    service_name: Optional[str] = Field(
        default=None,
        description="Service name used as the logger name for the engine",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


_TRUTHY = ("true", "1", "yes", "on")


def load_access_config_from_env() -> AccessConfig:
    """Load engine configuration from environment variables.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL for the cache
    - ACCESS_CACHE_TTL_SECONDS: Cache row lifetime (default: 900)
    - ACCESS_CACHE_KEY_PREFIX: Redis key prefix for cache rows
    - ACCESS_MODULE_GATE_FAIL_OPEN: Gate policy on lookup failure (default: true)
    - SERVICE_NAME: Service name for logging

    Returns:
        AccessConfig instance with values from environment or defaults.
    """
    import os

    return AccessConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        redis_url=os.getenv("REDIS_URL"),
        cache_ttl_seconds=int(os.getenv("ACCESS_CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS))),
        cache_key_prefix=os.getenv("ACCESS_CACHE_KEY_PREFIX", DEFAULT_CACHE_KEY_PREFIX),
        module_gate_fail_open=os.getenv("ACCESS_MODULE_GATE_FAIL_OPEN", "true").lower() in _TRUTHY,
        service_name=os.getenv("SERVICE_NAME"),
    )


__all__ = [
    "AccessConfig",
    "DEFAULT_CACHE_KEY_PREFIX",
    "DEFAULT_CACHE_TTL_SECONDS",
    "LogLevel",
    "load_access_config_from_env",
]
