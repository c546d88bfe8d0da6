"""Module entitlement gate.

A view owned by one or more modules is reachable only when the tenant owns
at least one of them. The gate runs before role grants are evaluated and
is independent of them.

Failure policy is the opposite of the role resolvers: on a lookup failure
the gate returns ``fail_open`` (default True, availability over
restriction) and logs the failure instead of raising.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable

from ..config import AccessConfig
from ..logging import safe_log_value
from .models import ViewDescriptor
from .store import AssignmentStore

logger = logging.getLogger(__name__)


class ModuleGate:
    """Decides whether a tenant's entitlements permit a view at all.

    Args:
        store: Catalog providing view → module and tenant → module lookups.
        fail_open: Decision returned when a lookup fails.
    """

    __slots__ = ("_store", "_fail_open")

    def __init__(self, store: AssignmentStore, *, fail_open: bool = True) -> None:
        self._store = store
        self._fail_open = fail_open

    @classmethod
    def from_config(cls, store: AssignmentStore, config: AccessConfig) -> ModuleGate:
        return cls(store, fail_open=config.module_gate_fail_open)

    @property
    def fail_open(self) -> bool:
        return self._fail_open

    @staticmethod
    def allows(view_modules: AbstractSet[str], tenant_modules: AbstractSet[str]) -> bool:
        """Pure gate rule: ungated views pass, gated views need a shared module."""
        if not view_modules:
            return True
        return not view_modules.isdisjoint(tenant_modules)

    async def is_module_access_allowed(self, tenant_id: str, view_id: str) -> bool:
        try:
            view_modules = await self._store.modules_for_view(view_id)
            if not view_modules:
                return True
            tenant_modules = await self._store.modules_owned_by_tenant(tenant_id)
        except Exception as e:
            logger.warning(
                "Module gate lookup failed for view %s in tenant %s (fail_open=%s): %s",
                view_id,
                tenant_id,
                self._fail_open,
                safe_log_value(e),
            )
            return self._fail_open
        return self.allows(view_modules, tenant_modules)

    async def allowed_views(self, tenant_id: str, views: Iterable[ViewDescriptor]) -> dict[str, bool]:
        """Gate many views with a single tenant entitlement lookup.

        Module ownership comes from the descriptors themselves, so only the
        tenant side is fetched. The same failure policy applies.
        """
        views = list(views)
        if all(not view.module_ids for view in views):
            return {view.id: True for view in views}
        try:
            tenant_modules = await self._store.modules_owned_by_tenant(tenant_id)
        except Exception as e:
            logger.warning(
                "Module gate lookup failed for tenant %s (fail_open=%s): %s",
                tenant_id,
                self._fail_open,
                safe_log_value(e),
            )
            return {view.id: (True if not view.module_ids else self._fail_open) for view in views}
        return {view.id: self.allows(view.module_ids, tenant_modules) for view in views}

    def __repr__(self) -> str:
        return f"ModuleGate(fail_open={self._fail_open!r})"


__all__ = ["ModuleGate"]
