"""Permission resolution engine.

``PermissionResolver`` merges grants from every role bundle a user holds
into one decision per view or feature action.

Resolution order for a view:
1. Module gate (tenant entitlement), which may deny before any grant is read.
2. Role bundles of the user; none means deny.
3. Tri-state merge: deny > allow > inherit/absent.

Resolution order for a feature action:
1. Role bundles of the user; none means deny.
2. Boolean merge: any deny wins, otherwise the most permissive allowed scope.

Single-item resolvers never raise: a lookup failure becomes a denial whose
reason embeds the error. Bulk enumeration is an administrative path and
raises :class:`DataAccessError` instead.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..config import AccessConfig
from ..exceptions import DataAccessError
from ..logging import safe_log_value
from .constants import ALL_ACTIONS, LOWEST_SCOPE, Action
from .gate import ModuleGate
from .merge import (
    REASON_MODULE_NOT_ENTITLED,
    REASON_NO_BUNDLES,
    error_reason,
    merge_feature_grants,
    merge_view_grants,
)
from .models import FeatureDecision, FeaturePermissionMap, ViewDecision
from .store import AssignmentStore

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Resolves view and feature permissions for (user, tenant).

    Args:
        store: Assignment store and resource catalog.
        gate: Module gate; built from ``config`` when omitted.
        config: Engine configuration (module gate policy).

    Example::

        store = InMemoryAssignmentStore()
        resolver = PermissionResolver(store)
        decision = await resolver.resolve_view("u-1", "view_invoices", "acme")
        decision.allowed, decision.reason
    """

    def __init__(
        self,
        store: AssignmentStore,
        *,
        gate: ModuleGate | None = None,
        config: AccessConfig | None = None,
    ) -> None:
        self._config = config or AccessConfig()
        self._store = store
        self._gate = gate or ModuleGate.from_config(store, self._config)

    @property
    def store(self) -> AssignmentStore:
        return self._store

    @property
    def gate(self) -> ModuleGate:
        return self._gate

    # ── Boolean forms ───────────────────────────────────

    async def can_access_view(self, user_id: str, view_id: str, tenant_id: str) -> bool:
        decision = await self.resolve_view(user_id, view_id, tenant_id)
        return decision.allowed

    async def can_perform_action(
        self, user_id: str, feature_id: str, action: Action | str, tenant_id: str
    ) -> bool:
        decision = await self.resolve_feature(user_id, feature_id, action, tenant_id)
        return decision.allowed

    # ── Single-item resolution ──────────────────────────

    async def resolve_view(self, user_id: str, view_id: str, tenant_id: str) -> ViewDecision:
        """Resolve one view with the reason for the outcome."""
        context = {"user_id": user_id, "tenant_id": tenant_id}
        try:
            if not await self._gate.is_module_access_allowed(tenant_id, view_id):
                return self._log_view(ViewDecision(view_id, False, REASON_MODULE_NOT_ENTITLED), context)

            bundle_ids = await self._store.bundles_for_user(user_id)
            if not bundle_ids:
                return self._log_view(ViewDecision(view_id, False, REASON_NO_BUNDLES), context)

            grants = await self._store.view_grants(bundle_ids, view_id, tenant_id)
            allowed, reason = merge_view_grants(grants.values())
        except Exception as e:
            logger.error(
                "Error resolving view permission for %s: %s",
                view_id,
                safe_log_value(e),
                exc_info=True,
                extra=context,
            )
            return ViewDecision(view_id, False, error_reason(e))

        return self._log_view(ViewDecision(view_id, allowed, reason), context)

    async def resolve_feature(
        self, user_id: str, feature_id: str, action: Action | str, tenant_id: str
    ) -> FeatureDecision:
        """Resolve one feature action with scope and reason."""
        context = {"user_id": user_id, "tenant_id": tenant_id}
        try:
            action = Action(action)
            bundle_ids = await self._store.bundles_for_user(user_id)
            if not bundle_ids:
                return self._log_feature(
                    FeatureDecision(feature_id, action, False, LOWEST_SCOPE, REASON_NO_BUNDLES), context
                )

            grants = await self._store.feature_grants(bundle_ids, feature_id, action, tenant_id)
            allowed, scope, reason = merge_feature_grants(grants.values())
        except Exception as e:
            logger.error(
                "Error resolving feature permission for %s/%s: %s",
                feature_id,
                action,
                safe_log_value(e),
                exc_info=True,
                extra=context,
            )
            return FeatureDecision(feature_id, action, False, LOWEST_SCOPE, error_reason(e))

        return self._log_feature(FeatureDecision(feature_id, action, allowed, scope, reason), context)

    # ── Bulk enumeration ────────────────────────────────

    async def resolve_all_views(self, user_id: str, tenant_id: str) -> dict[str, ViewDecision]:
        """Resolve every catalog view with one batched grant fetch.

        Raises:
            DataAccessError: a catalog or grant lookup failed.
        """
        try:
            views = await self._store.all_views()
            gate = await self._gate.allowed_views(tenant_id, views)
            bundle_ids = await self._store.bundles_for_user(user_id)
            grants_by_bundle = (
                await self._store.view_grants_for_bundles(bundle_ids, tenant_id) if bundle_ids else {}
            )
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError(
                f"Failed to enumerate views: {e}", user_id=user_id, tenant_id=tenant_id
            ) from e

        decisions: dict[str, ViewDecision] = {}
        for view in views:
            if not gate[view.id]:
                decisions[view.id] = ViewDecision(view.id, False, REASON_MODULE_NOT_ENTITLED)
            elif not bundle_ids:
                decisions[view.id] = ViewDecision(view.id, False, REASON_NO_BUNDLES)
            else:
                states = [grants[view.id] for grants in grants_by_bundle.values() if view.id in grants]
                allowed, reason = merge_view_grants(states)
                decisions[view.id] = ViewDecision(view.id, allowed, reason)
        return decisions

    async def accessible_views(self, user_id: str, tenant_id: str) -> set[str]:
        """Ids of every view the user can reach in the tenant."""
        decisions = await self.resolve_all_views(user_id, tenant_id)
        return {view_id for view_id, decision in decisions.items() if decision.allowed}

    async def resolve_all_features(
        self,
        user_id: str,
        tenant_id: str,
        actions: Iterable[Action] = ALL_ACTIONS,
    ) -> dict[str, dict[Action, FeatureDecision]]:
        """Resolve every catalog feature × action with one batched grant fetch.

        Raises:
            DataAccessError: a catalog or grant lookup failed.
        """
        actions = tuple(Action(a) for a in actions)
        try:
            features = await self._store.all_features()
            bundle_ids = await self._store.bundles_for_user(user_id)
            grants_by_bundle = (
                await self._store.feature_grants_for_bundles(bundle_ids, tenant_id) if bundle_ids else {}
            )
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError(
                f"Failed to enumerate features: {e}", user_id=user_id, tenant_id=tenant_id
            ) from e

        decisions: dict[str, dict[Action, FeatureDecision]] = {}
        for feature_id in features:
            per_action: dict[Action, FeatureDecision] = {}
            for action in actions:
                if not bundle_ids:
                    per_action[action] = FeatureDecision(
                        feature_id, action, False, LOWEST_SCOPE, REASON_NO_BUNDLES
                    )
                    continue
                key = (feature_id, action)
                collected = [grants[key] for grants in grants_by_bundle.values() if key in grants]
                allowed, scope, reason = merge_feature_grants(collected)
                per_action[action] = FeatureDecision(feature_id, action, allowed, scope, reason)
            decisions[feature_id] = per_action
        return decisions

    async def all_feature_permissions(self, user_id: str, tenant_id: str) -> FeaturePermissionMap:
        """``{feature: {action: FeatureAccess(allowed, scope)}}`` for every catalog feature."""
        decisions = await self.resolve_all_features(user_id, tenant_id)
        return {
            feature_id: {action: decision.access for action, decision in per_action.items()}
            for feature_id, per_action in decisions.items()
        }

    # ── Helpers ─────────────────────────────────────────

    @staticmethod
    def _log_view(decision: ViewDecision, context: dict[str, str]) -> ViewDecision:
        if decision.denied:
            logger.debug("View %s denied: %s", decision.view_id, decision.reason, extra=context)
        return decision

    @staticmethod
    def _log_feature(decision: FeatureDecision, context: dict[str, str]) -> FeatureDecision:
        if decision.denied:
            logger.debug(
                "Feature %s/%s denied: %s",
                decision.feature_id,
                decision.action.value,
                decision.reason,
                extra=context,
            )
        return decision

    def __repr__(self) -> str:
        return f"PermissionResolver(store={type(self._store).__name__}, gate={self._gate!r})"


__all__ = ["PermissionResolver"]
