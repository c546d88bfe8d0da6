"""Enforcement helpers for the consuming boundary.

Resolvers answer with decisions; HTTP handlers, gRPC servicers and jobs
need a yes/no plus an exception to raise. This module provides:
- ``AccessRequirement`` — what a route or RPC needs (a view, a feature action, or both).
- ``check_access`` — evaluate a requirement and return an ``AccessCheck``.
- ``require_access`` / ``require_own`` / ``require_module`` / ``require_superadmin`` — raise
  :class:`PermissionDeniedError` on denial.

Every check accepts ``is_super_admin``; a super admin bypasses role
grants, ownership, tenant context and module entitlement, and each bypass
is logged at INFO.

Usage::

    @grpc_error_handler
    async def ApproveInvoice(self, request, context):
        await require_access(
            resolver,
            request.user_id,
            request.tenant_id,
            AccessRequirement(feature_id="invoices", action=Action.APPROVE),
        )
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..exceptions import ConfigurationError, DataAccessError, PermissionDeniedError
from .constants import Action
from .merge import REASON_MODULE_NOT_ENTITLED
from .resolver import PermissionResolver
from .store import AssignmentStore

logger = logging.getLogger(__name__)

REASON_AUTHORIZED = "authorized"
REASON_NO_TENANT = "no tenant context"
REASON_NOT_OWNER = "can only access own resources"
REASON_SUPER_ADMIN = "super admin"
REASON_SUPER_ADMIN_REQUIRED = "super admin access required"


@dataclass(frozen=True)
class AccessRequirement:
    """A view and/or a feature action that must be allowed.

    A feature requirement needs both ``feature_id`` and ``action``.
    """

    view_id: Optional[str] = None
    feature_id: Optional[str] = None
    action: Optional[Action | str] = None

    def __post_init__(self) -> None:
        if (self.feature_id is None) != (self.action is None):
            raise ConfigurationError(
                "feature_id and action must be given together",
                feature_id=self.feature_id,
                action=self.action,
            )

    def as_details(self) -> dict[str, str]:
        details: dict[str, str] = {}
        if self.view_id is not None:
            details["view_id"] = self.view_id
        if self.feature_id is not None:
            details["feature_id"] = self.feature_id
            details["action"] = getattr(self.action, "value", str(self.action))
        return details


@dataclass(frozen=True)
class AccessCheck:
    """Outcome of :func:`check_access`."""

    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


async def check_access(
    resolver: PermissionResolver,
    user_id: str,
    tenant_id: str,
    requirement: AccessRequirement,
    *,
    is_super_admin: bool = False,
) -> AccessCheck:
    """Evaluate ``requirement``: the view first, then the feature action.

    The reason of the first denial is returned.
    """
    if is_super_admin:
        _log_bypass(user_id, tenant_id, requirement.as_details())
        return AccessCheck(True, REASON_SUPER_ADMIN)

    if not tenant_id:
        return AccessCheck(False, REASON_NO_TENANT)

    if requirement.view_id is not None:
        view = await resolver.resolve_view(user_id, requirement.view_id, tenant_id)
        if view.denied:
            return AccessCheck(False, view.reason)

    if requirement.feature_id is not None:
        feature = await resolver.resolve_feature(
            user_id, requirement.feature_id, requirement.action, tenant_id
        )
        if feature.denied:
            return AccessCheck(False, feature.reason)

    return AccessCheck(True, REASON_AUTHORIZED)


async def require_access(
    resolver: PermissionResolver,
    user_id: str,
    tenant_id: str,
    requirement: AccessRequirement,
    *,
    is_super_admin: bool = False,
) -> None:
    """Raise :class:`PermissionDeniedError` unless ``requirement`` is met."""
    check = await check_access(resolver, user_id, tenant_id, requirement, is_super_admin=is_super_admin)
    if not check.allowed:
        logger.info(
            "Access denied: %s",
            check.reason,
            extra={"user_id": user_id, "tenant_id": tenant_id},
        )
        raise PermissionDeniedError(
            f"Forbidden: {check.reason}",
            user_id=user_id,
            tenant_id=tenant_id,
            reason=check.reason,
            **requirement.as_details(),
        )


async def require_own(
    resolver: PermissionResolver,
    user_id: str,
    resource_owner_id: str,
    feature_id: str,
    action: Action | str,
    tenant_id: str,
    *,
    is_super_admin: bool = False,
) -> None:
    """Like :func:`require_access` for a feature action, restricted to the caller's own resources."""
    if is_super_admin:
        _log_bypass(user_id, tenant_id, {"resource_owner_id": resource_owner_id})
        return
    if user_id != resource_owner_id:
        raise PermissionDeniedError(
            f"Forbidden: {REASON_NOT_OWNER}",
            user_id=user_id,
            tenant_id=tenant_id,
            reason=REASON_NOT_OWNER,
            resource_owner_id=resource_owner_id,
        )
    await require_access(
        resolver,
        user_id,
        tenant_id,
        AccessRequirement(feature_id=feature_id, action=action),
    )


async def require_module(
    store: AssignmentStore,
    tenant_id: str,
    module_id: str,
    *,
    user_id: Optional[str] = None,
    is_super_admin: bool = False,
) -> None:
    """Raise :class:`PermissionDeniedError` unless the tenant owns ``module_id``.

    Unlike the module gate this does not fail open: lookup errors propagate
    as :class:`DataAccessError`.
    """
    if is_super_admin:
        _log_bypass(user_id, tenant_id, {"module_id": module_id})
        return
    if not tenant_id:
        raise PermissionDeniedError(f"Forbidden: {REASON_NO_TENANT}", module_id=module_id, reason=REASON_NO_TENANT)
    try:
        owned = await store.modules_owned_by_tenant(tenant_id)
    except DataAccessError:
        raise
    except Exception as e:
        raise DataAccessError(f"Failed to read tenant modules: {e}", tenant_id=tenant_id) from e
    if module_id not in owned:
        raise PermissionDeniedError(
            f"Forbidden: module {module_id} is not enabled for this tenant",
            tenant_id=tenant_id,
            module_id=module_id,
            reason=REASON_MODULE_NOT_ENTITLED,
        )


def require_superadmin(user_id: str, is_super_admin: bool) -> None:
    """Raise :class:`PermissionDeniedError` unless the caller is a super admin."""
    if not is_super_admin:
        raise PermissionDeniedError(
            f"Forbidden: {REASON_SUPER_ADMIN_REQUIRED}",
            user_id=user_id,
            reason=REASON_SUPER_ADMIN_REQUIRED,
        )
    logger.info("Super admin access granted", extra={"user_id": user_id})


def _log_bypass(user_id: Optional[str], tenant_id: Optional[str], target: dict[str, str]) -> None:
    logger.info(
        "Super admin bypass for %s",
        target or "any resource",
        extra={"user_id": user_id, "tenant_id": tenant_id},
    )


__all__ = [
    "AccessCheck",
    "AccessRequirement",
    "REASON_AUTHORIZED",
    "REASON_NOT_OWNER",
    "REASON_NO_TENANT",
    "REASON_SUPER_ADMIN",
    "REASON_SUPER_ADMIN_REQUIRED",
    "check_access",
    "require_access",
    "require_module",
    "require_own",
    "require_superadmin",
]
