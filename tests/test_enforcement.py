"""Tests for enforcement helpers."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest

from accesscore import ConfigurationError, DataAccessError, PermissionDeniedError
from accesscore.permissions import (
    AccessRequirement,
    Action,
    GrantState,
    InMemoryAssignmentStore,
    PermissionResolver,
    Scope,
    check_access,
    require_access,
    require_module,
    require_own,
    require_superadmin,
)


@pytest.fixture
def granted(store: InMemoryAssignmentStore) -> InMemoryAssignmentStore:
    store.set_view_grant("L1", "view_invoices", "acme", GrantState.ALLOW)
    store.set_feature_grant("L1", "invoices", "Read", "acme", True, Scope.COMPANY)
    store.set_feature_grant("L1", "invoices", "Update", "acme", True, Scope.OWN)
    store.assign_bundle("u-1", "L1")
    return store


class TestAccessRequirement:
    def test_feature_needs_action(self) -> None:
        with pytest.raises(ConfigurationError):
            AccessRequirement(feature_id="invoices")

    def test_action_needs_feature(self) -> None:
        with pytest.raises(ConfigurationError):
            AccessRequirement(action=Action.READ)

    def test_details(self) -> None:
        requirement = AccessRequirement(view_id="view_invoices", feature_id="invoices", action=Action.READ)
        assert requirement.as_details() == {
            "view_id": "view_invoices",
            "feature_id": "invoices",
            "action": "Read",
        }


class TestCheckAccess:
    """check_access evaluates the view, then the feature action."""

    @pytest.mark.asyncio
    async def test_authorized(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        check = await check_access(
            resolver,
            "u-1",
            "acme",
            AccessRequirement(view_id="view_invoices", feature_id="invoices", action="Read"),
        )
        assert check.allowed is True
        assert check.reason == "authorized"
        assert bool(check) is True

    @pytest.mark.asyncio
    async def test_no_tenant(self, resolver: PermissionResolver) -> None:
        check = await check_access(resolver, "u-1", "", AccessRequirement(view_id="view_invoices"))
        assert (check.allowed, check.reason) == (False, "no tenant context")

    @pytest.mark.asyncio
    async def test_view_denial_reported_first(self, resolver: PermissionResolver) -> None:
        check = await check_access(
            resolver,
            "u-1",
            "acme",
            AccessRequirement(view_id="view_risks", feature_id="invoices", action="Read"),
        )
        assert (check.allowed, check.reason) == (False, "module not entitled")

    @pytest.mark.asyncio
    async def test_feature_denial(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        check = await check_access(
            resolver, "u-1", "acme", AccessRequirement(feature_id="invoices", action=Action.DELETE)
        )
        assert (check.allowed, check.reason) == (False, "not defined for this action")

    @pytest.mark.asyncio
    async def test_empty_requirement(self, resolver: PermissionResolver) -> None:
        assert (await check_access(resolver, "u-1", "acme", AccessRequirement())).allowed is True


class TestRequireAccess:
    @pytest.mark.asyncio
    async def test_passes(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        await require_access(resolver, "u-1", "acme", AccessRequirement(view_id="view_invoices"))

    @pytest.mark.asyncio
    async def test_raises_with_details(self, resolver: PermissionResolver) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_access(
                resolver, "u-2", "acme", AccessRequirement(feature_id="invoices", action=Action.APPROVE)
            )

        error = exc_info.value
        assert error.code == "PERMISSION_DENIED"
        assert error.message == "Forbidden: no role bundles assigned"
        assert error.details == {
            "user_id": "u-2",
            "tenant_id": "acme",
            "reason": "no role bundles assigned",
            "feature_id": "invoices",
            "action": "Approve",
        }

    @pytest.mark.asyncio
    async def test_store_failure_denies(self) -> None:
        catalog = AsyncMock()
        catalog.modules_for_view.return_value = set()
        catalog.bundles_for_user.side_effect = DataAccessError("db down")

        with pytest.raises(PermissionDeniedError, match="error: db down"):
            await require_access(
                PermissionResolver(catalog), "u-1", "acme", AccessRequirement(view_id="view_invoices")
            )


class TestRequireOwn:
    @pytest.mark.asyncio
    async def test_owner_with_permission(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        await require_own(resolver, "u-1", "u-1", "invoices", "Update", "acme")

    @pytest.mark.asyncio
    async def test_other_owner_denied(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_own(resolver, "u-1", "u-9", "invoices", "Update", "acme")
        assert exc_info.value.details["reason"] == "can only access own resources"
        assert exc_info.value.details["resource_owner_id"] == "u-9"

    @pytest.mark.asyncio
    async def test_owner_without_permission(self, granted: InMemoryAssignmentStore, resolver: PermissionResolver) -> None:
        with pytest.raises(PermissionDeniedError, match="not defined"):
            await require_own(resolver, "u-1", "u-1", "invoices", "Delete", "acme")


class TestRequireModule:
    @pytest.mark.asyncio
    async def test_owned(self, store: InMemoryAssignmentStore) -> None:
        await require_module(store, "acme", "module_billing")

    @pytest.mark.asyncio
    async def test_not_owned(self, store: InMemoryAssignmentStore) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_module(store, "acme", "module_risks")
        assert exc_info.value.details["module_id"] == "module_risks"

    @pytest.mark.asyncio
    async def test_no_tenant(self, store: InMemoryAssignmentStore) -> None:
        with pytest.raises(PermissionDeniedError, match="no tenant context"):
            await require_module(store, "", "module_billing")

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self) -> None:
        """Unlike the gate, require_module does not fail open."""
        catalog = AsyncMock()
        catalog.modules_owned_by_tenant.side_effect = RuntimeError("db down")

        with pytest.raises(DataAccessError, match="db down"):
            await require_module(catalog, "acme", "module_billing")


class TestSuperAdmin:
    """Super admins bypass every check; the bypass is logged."""

    @pytest.mark.asyncio
    async def test_check_access_bypass(
        self, resolver: PermissionResolver, caplog: pytest.LogCaptureFixture
    ) -> None:
        requirement = AccessRequirement(view_id="view_risks", feature_id="invoices", action=Action.DELETE)

        with caplog.at_level(logging.INFO, logger="accesscore.permissions.enforcement"):
            check = await check_access(resolver, "root", "", requirement, is_super_admin=True)

        assert (check.allowed, check.reason) == (True, "super admin")
        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.user_id == "root"
        assert "view_risks" in record.getMessage()

    @pytest.mark.asyncio
    async def test_bypass_skips_resolution(self) -> None:
        catalog = AsyncMock()
        await require_access(
            PermissionResolver(catalog),
            "root",
            "acme",
            AccessRequirement(view_id="view_invoices"),
            is_super_admin=True,
        )
        catalog.bundles_for_user.assert_not_called()
        catalog.modules_for_view.assert_not_called()

    @pytest.mark.asyncio
    async def test_require_own_bypass(self, resolver: PermissionResolver) -> None:
        await require_own(resolver, "root", "u-9", "invoices", "Delete", "acme", is_super_admin=True)

    @pytest.mark.asyncio
    async def test_require_module_bypass(self) -> None:
        catalog = AsyncMock()
        await require_module(catalog, "acme", "module_risks", user_id="root", is_super_admin=True)
        catalog.modules_owned_by_tenant.assert_not_called()

    @pytest.mark.asyncio
    async def test_flag_defaults_to_regular_user(self, resolver: PermissionResolver) -> None:
        with pytest.raises(PermissionDeniedError):
            await require_own(resolver, "root", "u-9", "invoices", "Delete", "acme")


class TestRequireSuperadmin:
    def test_allowed(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="accesscore.permissions.enforcement"):
            require_superadmin("root", True)
        assert caplog.records[-1].user_id == "root"

    def test_denied(self) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_superadmin("u-1", False)
        assert exc_info.value.message == "Forbidden: super admin access required"
        assert exc_info.value.details == {"user_id": "u-1", "reason": "super admin access required"}
