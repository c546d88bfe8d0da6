"""Tests for the exception hierarchy and gRPC mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import grpc
import pytest

from accesscore.exceptions import (
    AccessCoreError,
    CacheError,
    ConfigurationError,
    DataAccessError,
    PermissionDeniedError,
    error_registry,
    get_grpc_status_code,
    grpc_error_handler,
    register_error,
)


class TestHierarchy:
    def test_defaults(self) -> None:
        error = PermissionDeniedError()
        assert error.code == "PERMISSION_DENIED"
        assert error.message == "Forbidden"
        assert str(error) == "Forbidden"
        assert error.details == {}

    def test_message_and_details(self) -> None:
        error = DataAccessError("lookup failed", tenant_id="acme")
        assert str(error) == "lookup failed"
        assert error.details == {"tenant_id": "acme"}

    def test_cache_error_is_data_access_error(self) -> None:
        assert isinstance(CacheError(), DataAccessError)
        assert CacheError().code == "CACHE_ERROR"

    def test_code_override(self) -> None:
        assert AccessCoreError("x", code="CUSTOM").code == "CUSTOM"


class TestErrorRegistry:
    def test_builtin_codes_registered(self) -> None:
        assert error_registry.get("PERMISSION_DENIED") is PermissionDeniedError
        assert error_registry.get("CACHE_ERROR") is CacheError
        assert error_registry.get("UNKNOWN") is None

    def test_register_error(self) -> None:
        @register_error("AUDIT_ERROR")
        class AuditError(AccessCoreError):
            code = "AUDIT_ERROR"

        assert error_registry.get("AUDIT_ERROR") is AuditError
        assert "AUDIT_ERROR" in error_registry.all()


class TestGrpcStatus:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (PermissionDeniedError(), grpc.StatusCode.PERMISSION_DENIED),
            (ConfigurationError(), grpc.StatusCode.FAILED_PRECONDITION),
            (DataAccessError(), grpc.StatusCode.UNAVAILABLE),
            (CacheError(), grpc.StatusCode.UNAVAILABLE),
            (AccessCoreError(), grpc.StatusCode.INTERNAL),
        ],
    )
    def test_mapping(self, error: AccessCoreError, status: grpc.StatusCode) -> None:
        assert get_grpc_status_code(error) == status


class _Servicer:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    @grpc_error_handler
    async def Check(self, request, context):
        if self.error is not None:
            raise self.error
        return "ok"


def _context() -> MagicMock:
    context = MagicMock()
    context.abort = AsyncMock()
    return context


class TestGrpcErrorHandler:
    @pytest.mark.asyncio
    async def test_passthrough(self) -> None:
        context = _context()
        assert await _Servicer().Check(object(), context) == "ok"
        context.abort.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_permission_denied(self) -> None:
        context = _context()

        await _Servicer(PermissionDeniedError("Forbidden: explicit deny")).Check(object(), context)

        context.set_trailing_metadata.assert_called_once_with([("error-code", "PERMISSION_DENIED")])
        context.abort.assert_awaited_once_with(
            grpc.StatusCode.PERMISSION_DENIED, "[PERMISSION_DENIED] Forbidden: explicit deny"
        )

    @pytest.mark.asyncio
    async def test_unexpected_error(self) -> None:
        context = _context()

        await _Servicer(RuntimeError("boom")).Check(object(), context)

        status, message = context.abort.await_args.args
        assert status == grpc.StatusCode.INTERNAL
        assert "boom" in message
