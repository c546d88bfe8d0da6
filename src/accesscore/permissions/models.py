"""Data models for permission resolution.

Catalog entries and decisions are frozen dataclasses; effective permission
cache rows are Pydantic models because they are persisted and read back
from external stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

from .constants import LOWEST_SCOPE, Action, Scope


# ── Catalog & grants ────────────────────────────────────


@dataclass(frozen=True)
class ViewDescriptor:
    """A navigable surface and the modules that own it.

    A view owned by no module is ungated.
    """

    id: str
    module_ids: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class FeatureGrant:
    """Boolean grant plus scope for (bundle, feature, action, tenant)."""

    value: bool
    scope: Scope = LOWEST_SCOPE


# ── Decisions ───────────────────────────────────────────


@dataclass(frozen=True)
class ViewDecision:
    """Resolved view permission with a human-readable reason."""

    view_id: str
    allowed: bool
    reason: str

    @property
    def denied(self) -> bool:
        return not self.allowed


@dataclass(frozen=True)
class FeatureAccess:
    """Compact feature decision used by bulk enumeration."""

    allowed: bool
    scope: Scope = LOWEST_SCOPE


@dataclass(frozen=True)
class FeatureDecision:
    """Resolved feature-action permission with scope and reason.

    ``scope`` is only meaningful when ``allowed``; denials carry the lowest scope.
    ``action`` holds the raw string only when it failed to parse as an Action.
    """

    feature_id: str
    action: Action | str
    allowed: bool
    scope: Scope
    reason: str

    @property
    def denied(self) -> bool:
        return not self.allowed

    @property
    def access(self) -> FeatureAccess:
        return FeatureAccess(allowed=self.allowed, scope=self.scope)


FeaturePermissionMap = dict[str, dict[Action, FeatureAccess]]


# ── Effective permission cache rows ─────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EffectiveRow(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    tenant_id: str
    allowed: bool
    computed_at: datetime
    expires_at: datetime

    model_config = {"frozen": True}

    def is_expired(self, *, now: datetime | None = None) -> bool:
        """Rows are untrusted from ``expires_at`` onward."""
        t = _utcnow() if now is None else now
        return t >= self.expires_at


class EffectiveViewPermission(_EffectiveRow):
    """Cached view decision for (user, tenant, view)."""

    kind: Literal["view"] = "view"
    view_id: str

    @property
    def resource_key(self) -> str:
        return f"view:{self.view_id}"


class EffectiveFeaturePermission(_EffectiveRow):
    """Cached feature decision for (user, tenant, feature, action)."""

    kind: Literal["feature"] = "feature"
    feature_id: str
    action: Action
    scope: Scope = LOWEST_SCOPE

    @property
    def resource_key(self) -> str:
        return f"feature:{self.feature_id}:{self.action.value}"


EffectivePermission = Annotated[
    Union[EffectiveViewPermission, EffectiveFeaturePermission],
    Field(discriminator="kind"),
]

effective_permission_adapter: TypeAdapter[EffectivePermission] = TypeAdapter(EffectivePermission)


@dataclass(frozen=True)
class CacheSnapshot:
    """Rows written by one recompute of a (user, tenant) key."""

    user_id: str
    tenant_id: str
    computed_at: datetime
    expires_at: datetime
    view_rows: tuple[EffectiveViewPermission, ...] = ()
    feature_rows: tuple[EffectiveFeaturePermission, ...] = ()

    @property
    def rows(self) -> tuple[EffectiveViewPermission | EffectiveFeaturePermission, ...]:
        return (*self.view_rows, *self.feature_rows)

    @property
    def accessible_views(self) -> set[str]:
        return {row.view_id for row in self.view_rows if row.allowed}


__all__ = [
    "CacheSnapshot",
    "EffectiveFeaturePermission",
    "EffectivePermission",
    "EffectiveViewPermission",
    "FeatureAccess",
    "FeatureDecision",
    "FeatureGrant",
    "FeaturePermissionMap",
    "ViewDecision",
    "ViewDescriptor",
    "effective_permission_adapter",
]
