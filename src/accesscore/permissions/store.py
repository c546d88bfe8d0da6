"""Storage contracts consumed by the resolution engine.

``AssignmentStore`` is the read side: role-bundle assignments, per-bundle
grants, and the resource catalog (views, features, module ownership).
``CacheStore`` is the write side for effective permission rows.

No ordering is required from any method: resolution is order-independent.
Implementations should raise :class:`accesscore.exceptions.DataAccessError`
(or let the driver exception propagate) on lookup failure; the engine
decides whether a failure becomes a denial, an allow (module gate) or an
error for the caller.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Iterable

from .constants import Action, GrantState
from .models import (
    EffectiveFeaturePermission,
    EffectiveViewPermission,
    FeatureGrant,
    ViewDescriptor,
)

CacheRow = EffectiveViewPermission | EffectiveFeaturePermission

FeatureKey = tuple[str, Action]


class AssignmentStore(ABC):
    """Read contract for assignments, grants and the resource catalog.

    The ``*_grants`` methods are batched forms keyed by the bundle-id set.
    Their default implementations fan out to the single-bundle lookups
    concurrently; stores backed by a database should override them with a
    single query.
    """

    # ── Assignments ─────────────────────────────────────

    @abstractmethod
    async def bundles_for_user(self, user_id: str) -> set[str]:
        """Role bundles currently assigned to ``user_id``."""

    # ── View grants ─────────────────────────────────────

    @abstractmethod
    async def view_grant(self, bundle_id: str, view_id: str, tenant_id: str) -> GrantState | None:
        """Grant of one bundle on one view, or None when the bundle has none."""

    async def view_grants(
        self, bundle_ids: Iterable[str], view_id: str, tenant_id: str
    ) -> dict[str, GrantState]:
        """Grants of several bundles on one view; bundles without a grant are omitted."""
        bundle_ids = list(bundle_ids)
        states = await asyncio.gather(*(self.view_grant(b, view_id, tenant_id) for b in bundle_ids))
        return {b: s for b, s in zip(bundle_ids, states) if s is not None}

    @abstractmethod
    async def view_grants_for_bundles(
        self, bundle_ids: Iterable[str], tenant_id: str
    ) -> dict[str, dict[str, GrantState]]:
        """Every view grant held by the given bundles: ``{bundle: {view: state}}``."""

    # ── Feature grants ──────────────────────────────────

    @abstractmethod
    async def feature_grant(
        self, bundle_id: str, feature_id: str, action: Action, tenant_id: str
    ) -> FeatureGrant | None:
        """Grant of one bundle on one feature action, or None."""

    async def feature_grants(
        self, bundle_ids: Iterable[str], feature_id: str, action: Action, tenant_id: str
    ) -> dict[str, FeatureGrant]:
        """Grants of several bundles on one feature action."""
        bundle_ids = list(bundle_ids)
        grants = await asyncio.gather(
            *(self.feature_grant(b, feature_id, action, tenant_id) for b in bundle_ids)
        )
        return {b: g for b, g in zip(bundle_ids, grants) if g is not None}

    @abstractmethod
    async def feature_grants_for_bundles(
        self, bundle_ids: Iterable[str], tenant_id: str
    ) -> dict[str, dict[FeatureKey, FeatureGrant]]:
        """Every feature grant held by the given bundles: ``{bundle: {(feature, action): grant}}``."""

    # ── Catalog ─────────────────────────────────────────

    @abstractmethod
    async def all_views(self) -> list[ViewDescriptor]:
        """All views with their owning modules."""

    @abstractmethod
    async def all_features(self) -> set[str]:
        """All feature ids."""

    @abstractmethod
    async def modules_for_view(self, view_id: str) -> set[str]:
        """Modules owning ``view_id`` (empty = ungated)."""

    @abstractmethod
    async def modules_owned_by_tenant(self, tenant_id: str) -> set[str]:
        """Modules the tenant is entitled to."""


class CacheStore(ABC):
    """Write contract for effective permission rows.

    Rows are keyed by (user, tenant). The store also maintains the tenant
    membership index (which users hold rows in a tenant) that tenant-wide
    invalidation relies on.
    """

    @abstractmethod
    async def delete_cache_rows(self, user_id: str, tenant_id: str) -> None:
        """Delete every row for (user, tenant)."""

    @abstractmethod
    async def upsert_cache_row(self, row: CacheRow) -> None:
        """Insert or replace a single row, keyed by its resource."""

    @abstractmethod
    async def cache_rows(self, user_id: str, tenant_id: str) -> list[CacheRow]:
        """Rows for (user, tenant), expired ones included."""

    @abstractmethod
    async def users_with_rows(self, tenant_id: str) -> set[str]:
        """Users holding at least one row in ``tenant_id``."""

    async def replace_rows(self, user_id: str, tenant_id: str, rows: Iterable[CacheRow]) -> None:
        """Replace all rows for (user, tenant).

        The default is a plain delete followed by upserts. Stores that can
        make the swap atomic override this so readers never see a partially
        populated key.
        """
        await self.delete_cache_rows(user_id, tenant_id)
        for row in rows:
            await self.upsert_cache_row(row)


__all__ = [
    "AssignmentStore",
    "CacheRow",
    "CacheStore",
    "FeatureKey",
]
