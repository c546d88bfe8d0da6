"""In-memory store implementations.

Useful for tests, local development and single-process deployments. Grant
and assignment mutators here do not touch any cache: callers that change
assignments or grants must invalidate the affected users themselves (see
``EffectivePermissionCache.invalidate``).
"""

from __future__ import annotations

from typing import Iterable

from .constants import LOWEST_SCOPE, Action, GrantState, Scope
from .models import FeatureGrant, ViewDescriptor
from .store import AssignmentStore, CacheRow, CacheStore, FeatureKey


class InMemoryAssignmentStore(AssignmentStore):
    """Dict-backed assignment store and resource catalog."""

    def __init__(self) -> None:
        self._view_modules: dict[str, set[str]] = {}
        self._features: set[str] = set()
        self._tenant_modules: dict[str, set[str]] = {}
        self._user_bundles: dict[str, set[str]] = {}
        # (tenant, bundle, view) -> state
        self._view_grants: dict[tuple[str, str, str], GrantState] = {}
        # (tenant, bundle, feature, action) -> grant
        self._feature_grants: dict[tuple[str, str, str, Action], FeatureGrant] = {}

    # ── Catalog mutators ────────────────────────────────

    def add_view(self, view_id: str, module_ids: Iterable[str] = ()) -> None:
        self._view_modules.setdefault(view_id, set()).update(module_ids)

    def add_feature(self, feature_id: str) -> None:
        self._features.add(feature_id)

    def grant_module(self, tenant_id: str, module_id: str) -> None:
        self._tenant_modules.setdefault(tenant_id, set()).add(module_id)

    def revoke_module(self, tenant_id: str, module_id: str) -> None:
        self._tenant_modules.get(tenant_id, set()).discard(module_id)

    # ── Assignment mutators ─────────────────────────────

    def assign_bundle(self, user_id: str, bundle_id: str) -> None:
        self._user_bundles.setdefault(user_id, set()).add(bundle_id)

    def unassign_bundle(self, user_id: str, bundle_id: str) -> None:
        self._user_bundles.get(user_id, set()).discard(bundle_id)

    def users_with_bundle(self, bundle_id: str) -> set[str]:
        return {user for user, bundles in self._user_bundles.items() if bundle_id in bundles}

    def set_view_grant(self, bundle_id: str, view_id: str, tenant_id: str, state: GrantState | str) -> None:
        self._view_grants[(tenant_id, bundle_id, view_id)] = GrantState(state)

    def set_feature_grant(
        self,
        bundle_id: str,
        feature_id: str,
        action: Action | str,
        tenant_id: str,
        value: bool,
        scope: Scope | str = LOWEST_SCOPE,
    ) -> None:
        self._feature_grants[(tenant_id, bundle_id, feature_id, Action(action))] = FeatureGrant(
            value=value, scope=Scope(scope)
        )

    # ── AssignmentStore ─────────────────────────────────

    async def bundles_for_user(self, user_id: str) -> set[str]:
        return set(self._user_bundles.get(user_id, ()))

    async def view_grant(self, bundle_id: str, view_id: str, tenant_id: str) -> GrantState | None:
        return self._view_grants.get((tenant_id, bundle_id, view_id))

    async def view_grants(
        self, bundle_ids: Iterable[str], view_id: str, tenant_id: str
    ) -> dict[str, GrantState]:
        found = {}
        for bundle_id in bundle_ids:
            state = self._view_grants.get((tenant_id, bundle_id, view_id))
            if state is not None:
                found[bundle_id] = state
        return found

    async def view_grants_for_bundles(
        self, bundle_ids: Iterable[str], tenant_id: str
    ) -> dict[str, dict[str, GrantState]]:
        wanted = set(bundle_ids)
        result: dict[str, dict[str, GrantState]] = {}
        for (tenant, bundle_id, view_id), state in self._view_grants.items():
            if tenant == tenant_id and bundle_id in wanted:
                result.setdefault(bundle_id, {})[view_id] = state
        return result

    async def feature_grant(
        self, bundle_id: str, feature_id: str, action: Action, tenant_id: str
    ) -> FeatureGrant | None:
        return self._feature_grants.get((tenant_id, bundle_id, feature_id, Action(action)))

    async def feature_grants(
        self, bundle_ids: Iterable[str], feature_id: str, action: Action, tenant_id: str
    ) -> dict[str, FeatureGrant]:
        action = Action(action)
        found = {}
        for bundle_id in bundle_ids:
            grant = self._feature_grants.get((tenant_id, bundle_id, feature_id, action))
            if grant is not None:
                found[bundle_id] = grant
        return found

    async def feature_grants_for_bundles(
        self, bundle_ids: Iterable[str], tenant_id: str
    ) -> dict[str, dict[FeatureKey, FeatureGrant]]:
        wanted = set(bundle_ids)
        result: dict[str, dict[FeatureKey, FeatureGrant]] = {}
        for (tenant, bundle_id, feature_id, action), grant in self._feature_grants.items():
            if tenant == tenant_id and bundle_id in wanted:
                result.setdefault(bundle_id, {})[(feature_id, action)] = grant
        return result

    async def all_views(self) -> list[ViewDescriptor]:
        return [
            ViewDescriptor(id=view_id, module_ids=frozenset(modules))
            for view_id, modules in self._view_modules.items()
        ]

    async def all_features(self) -> set[str]:
        return set(self._features)

    async def modules_for_view(self, view_id: str) -> set[str]:
        return set(self._view_modules.get(view_id, ()))

    async def modules_owned_by_tenant(self, tenant_id: str) -> set[str]:
        return set(self._tenant_modules.get(tenant_id, ()))


class InMemoryCacheStore(CacheStore):
    """Dict-backed effective permission rows.

    ``replace_rows`` swaps the whole key in one step with no suspension
    point, so concurrent readers see either the old or the new row set.
    """

    def __init__(self) -> None:
        # (user, tenant) -> {resource_key: row}
        self._rows: dict[tuple[str, str], dict[str, CacheRow]] = {}

    async def delete_cache_rows(self, user_id: str, tenant_id: str) -> None:
        self._rows.pop((user_id, tenant_id), None)

    async def upsert_cache_row(self, row: CacheRow) -> None:
        self._rows.setdefault((row.user_id, row.tenant_id), {})[row.resource_key] = row

    async def cache_rows(self, user_id: str, tenant_id: str) -> list[CacheRow]:
        return list(self._rows.get((user_id, tenant_id), {}).values())

    async def users_with_rows(self, tenant_id: str) -> set[str]:
        return {user for (user, tenant), rows in self._rows.items() if tenant == tenant_id and rows}

    async def replace_rows(self, user_id: str, tenant_id: str, rows: Iterable[CacheRow]) -> None:
        fresh = {row.resource_key: row for row in rows}
        if fresh:
            self._rows[(user_id, tenant_id)] = fresh
        else:
            self._rows.pop((user_id, tenant_id), None)


__all__ = [
    "InMemoryAssignmentStore",
    "InMemoryCacheStore",
]
