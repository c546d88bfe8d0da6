"""Exception hierarchy for accesscore.

All errors raised by the engine inherit from AccessCoreError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for protocol mapping
- gRPC status mapping and a handler decorator for services that expose decisions

Two failure classes exist in the engine:

- **Data access failures** (a store lookup raised): wrapped as
  :class:`DataAccessError`. The request-path resolvers convert them into
  denials; administrative operations (cache recompute/invalidate, bulk
  enumeration) let them propagate.
- **Policy absence** (no applicable grant): not an exception at all, it is an
  ordinary deny decision.

:class:`PermissionDeniedError` is raised only by the enforcement helpers at
the consuming boundary, where a ``False`` decision becomes "forbidden".

Usage:
    from accesscore.exceptions import (
        AccessCoreError,
        DataAccessError,
        PermissionDeniedError,
        grpc_error_handler,
    )
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "AccessCoreError",
    "ConfigurationError",
    "DataAccessError",
    "CacheError",
    "PermissionDeniedError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class AccessCoreError(Exception):
    """Base exception for the access resolution engine.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "PERMISSION_DENIED").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(AccessCoreError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class DataAccessError(AccessCoreError):
    """An assignment store or resource catalog lookup failed."""

    code: str = "DATA_ACCESS_ERROR"
    message: str = "Permission data lookup failed"


class CacheError(DataAccessError):
    """Reading or writing effective permission rows failed."""

    code: str = "CACHE_ERROR"
    message: str = "Effective permission cache operation failed"


class PermissionDeniedError(AccessCoreError):
    """A resolved decision denied access to a view, feature action or module."""

    code: str = "PERMISSION_DENIED"
    message: str = "Forbidden"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[AccessCoreError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[AccessCoreError]] = {}

    def register(self, code: str, error_cls: type[AccessCoreError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[AccessCoreError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[AccessCoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("AUDIT_ERROR")
        class AuditError(AccessCoreError):
            code = "AUDIT_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


error_registry.register("INTERNAL_ERROR", AccessCoreError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("DATA_ACCESS_ERROR", DataAccessError)
error_registry.register("CACHE_ERROR", CacheError)
error_registry.register("PERMISSION_DENIED", PermissionDeniedError)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: AccessCoreError) -> Any:
    """Map AccessCoreError to a ``grpc.StatusCode``.

    Unknown codes map to ``INTERNAL``.
    """
    import grpc

    error_to_status = {
        "PERMISSION_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "DATA_ACCESS_ERROR": grpc.StatusCode.UNAVAILABLE,
        "CACHE_ERROR": grpc.StatusCode.UNAVAILABLE,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods guarded by accesscore.

    Catches AccessCoreError (typically :class:`PermissionDeniedError` from
    ``require_access``) and aborts the call with the mapped status code.

    Usage:
        @grpc_error_handler
        async def UpdateInvoice(self, request, context):
            await require_access(resolver, user_id, tenant_id, requirement)
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except AccessCoreError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.warning(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e)}: {e}",
            )
            return

    return wrapper
