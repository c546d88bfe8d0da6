from .config import AccessConfig, LogLevel, load_access_config_from_env
from .exceptions import (
    AccessCoreError,
    CacheError,
    ConfigurationError,
    DataAccessError,
    PermissionDeniedError,
)
from .logging import (
    safe_preview,
    redact_secrets,
    safe_log_value,
    AccessLogFormatter,
    AccessLoggerAdapter,
    setup_logging,
    get_access_logger,
)
from .permissions import (
    AccessRequirement,
    Action,
    EffectivePermissionCache,
    GrantState,
    InMemoryAssignmentStore,
    InMemoryCacheStore,
    ModuleGate,
    PermissionResolver,
    RedisCacheStore,
    Scope,
    check_access,
    require_access,
)

__all__ = [
    'AccessConfig',
    'LogLevel',
    'load_access_config_from_env',
    'AccessCoreError',
    'CacheError',
    'ConfigurationError',
    'DataAccessError',
    'PermissionDeniedError',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'AccessLogFormatter',
    'AccessLoggerAdapter',
    'setup_logging',
    'get_access_logger',
    'AccessRequirement',
    'Action',
    'EffectivePermissionCache',
    'GrantState',
    'InMemoryAssignmentStore',
    'InMemoryCacheStore',
    'ModuleGate',
    'PermissionResolver',
    'RedisCacheStore',
    'Scope',
    'check_access',
    'require_access',
]
