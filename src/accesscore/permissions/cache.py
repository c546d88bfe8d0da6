"""Effective permission cache.

A derived, time-bound materialization of resolved decisions per
(user, tenant). It is written out of band (after sign-in, after an
assignment or grant change) and is not consulted by the synchronous
decision path in :class:`PermissionResolver`; readers are summary and
reporting consumers.

Obligations on callers:
- Call :meth:`EffectivePermissionCache.invalidate` after any change to a
  user's bundle assignments or to the grants of a bundle they hold.
- Call :meth:`EffectivePermissionCache.invalidate_for_tenant` after a
  tenant's module entitlements change.

Rows expire ``ttl`` after computation and are never refreshed
automatically. Reader methods hide expired rows.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..config import AccessConfig
from ..exceptions import CacheError, DataAccessError
from ..logging import get_access_logger
from .constants import Action
from .models import (
    CacheSnapshot,
    EffectiveFeaturePermission,
    EffectiveViewPermission,
)
from .resolver import PermissionResolver
from .store import CacheRow, CacheStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EffectivePermissionCache:
    """Recompute, invalidate and read cached effective permissions.

    ``recompute`` and ``invalidate`` are serialized per (user, tenant) key;
    calls for different keys run concurrently. Together with
    :meth:`CacheStore.replace_rows` this keeps readers from observing a
    half-written key.

    Args:
        resolver: Resolver used to compute decisions.
        store: Where rows are persisted.
        config: Supplies the row lifetime (``cache_ttl_seconds``).
        ttl: Explicit row lifetime, overriding ``config``.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        resolver: PermissionResolver,
        store: CacheStore,
        *,
        config: AccessConfig | None = None,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or AccessConfig()
        self._resolver = resolver
        self._store = store
        self._ttl = ttl if ttl is not None else timedelta(seconds=self._config.cache_ttl_seconds)
        self._clock = clock or _utcnow
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _lock_for(self, user_id: str, tenant_id: str) -> asyncio.Lock:
        key = (user_id, tenant_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ── Write path ──────────────────────────────────────

    async def recompute(self, user_id: str, tenant_id: str) -> CacheSnapshot:
        """Replace the rows for (user, tenant) with freshly resolved decisions.

        A recompute is requested because the old rows may be stale, so when
        resolution fails the key is emptied before the error propagates.

        Raises:
            DataAccessError: resolution lookups failed (the key is left empty).
            CacheError: persisting the rows failed.
        """
        log = get_access_logger(__name__, user_id=user_id, tenant_id=tenant_id)
        async with self._lock_for(user_id, tenant_id):
            try:
                views = await self._resolver.resolve_all_views(user_id, tenant_id)
                features = await self._resolver.resolve_all_features(user_id, tenant_id)
            except DataAccessError:
                log.warning("Resolution failed during recompute, dropping cached permissions")
                await self._delete_rows(user_id, tenant_id)
                raise

            computed_at = self._clock()
            expires_at = computed_at + self._ttl
            view_rows = tuple(
                EffectiveViewPermission(
                    user_id=user_id,
                    tenant_id=tenant_id,
                    view_id=view_id,
                    allowed=decision.allowed,
                    computed_at=computed_at,
                    expires_at=expires_at,
                )
                for view_id, decision in views.items()
            )
            feature_rows = tuple(
                EffectiveFeaturePermission(
                    user_id=user_id,
                    tenant_id=tenant_id,
                    feature_id=feature_id,
                    action=action,
                    allowed=decision.allowed,
                    scope=decision.scope,
                    computed_at=computed_at,
                    expires_at=expires_at,
                )
                for feature_id, per_action in features.items()
                for action, decision in per_action.items()
            )

            try:
                await self._store.replace_rows(user_id, tenant_id, (*view_rows, *feature_rows))
            except DataAccessError:
                raise
            except Exception as e:
                raise CacheError(
                    f"Failed to store effective permissions: {e}", user_id=user_id, tenant_id=tenant_id
                ) from e

        log.info(
            "Computed and cached permissions (%d views, %d feature actions, expires %s)",
            len(view_rows),
            len(feature_rows),
            expires_at.isoformat(),
        )
        return CacheSnapshot(
            user_id=user_id,
            tenant_id=tenant_id,
            computed_at=computed_at,
            expires_at=expires_at,
            view_rows=view_rows,
            feature_rows=feature_rows,
        )

    async def invalidate(self, user_id: str, tenant_id: str) -> None:
        """Delete every cached row for (user, tenant).

        Raises:
            CacheError: the store delete failed.
        """
        async with self._lock_for(user_id, tenant_id):
            await self._delete_rows(user_id, tenant_id)
        get_access_logger(__name__, user_id=user_id, tenant_id=tenant_id).info("Invalidated cached permissions")

    async def _delete_rows(self, user_id: str, tenant_id: str) -> None:
        # Caller holds the key's lock.
        try:
            await self._store.delete_cache_rows(user_id, tenant_id)
        except DataAccessError:
            raise
        except Exception as e:
            raise CacheError(
                f"Failed to invalidate effective permissions: {e}", user_id=user_id, tenant_id=tenant_id
            ) from e

    async def invalidate_for_tenant(self, tenant_id: str) -> int:
        """Invalidate every user holding rows in ``tenant_id``.

        Uses the store's tenant membership index; users without rows have
        nothing to invalidate.

        Returns:
            Number of users invalidated.
        """
        try:
            user_ids = await self._store.users_with_rows(tenant_id)
        except DataAccessError:
            raise
        except Exception as e:
            raise CacheError(f"Failed to read tenant membership index: {e}", tenant_id=tenant_id) from e

        for user_id in sorted(user_ids):
            await self.invalidate(user_id, tenant_id)
        logger.info("Invalidated cached permissions for %d users", len(user_ids), extra={"tenant_id": tenant_id})
        return len(user_ids)

    # ── Read path ───────────────────────────────────────

    async def rows(self, user_id: str, tenant_id: str, *, include_expired: bool = False) -> list[CacheRow]:
        """Cached rows for (user, tenant); expired rows are dropped unless asked for."""
        try:
            rows = await self._store.cache_rows(user_id, tenant_id)
        except DataAccessError:
            raise
        except Exception as e:
            raise CacheError(
                f"Failed to read effective permissions: {e}", user_id=user_id, tenant_id=tenant_id
            ) from e
        if include_expired:
            return rows
        now = self._clock()
        return [row for row in rows if not row.is_expired(now=now)]

    async def cached_view(self, user_id: str, view_id: str, tenant_id: str) -> EffectiveViewPermission | None:
        """Unexpired cached decision for a view, or None (recompute needed)."""
        for row in await self.rows(user_id, tenant_id):
            if isinstance(row, EffectiveViewPermission) and row.view_id == view_id:
                return row
        return None

    async def cached_feature(
        self, user_id: str, feature_id: str, action: Action | str, tenant_id: str
    ) -> EffectiveFeaturePermission | None:
        """Unexpired cached decision for a feature action, or None (recompute needed)."""
        action = Action(action)
        for row in await self.rows(user_id, tenant_id):
            if isinstance(row, EffectiveFeaturePermission) and row.feature_id == feature_id and row.action == action:
                return row
        return None


__all__ = ["EffectivePermissionCache"]
