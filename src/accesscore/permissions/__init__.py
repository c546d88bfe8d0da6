"""Permission resolution for multi-tenant role bundles.

Defines:
- GrantState, Action, Scope: the grant vocabulary
- ModuleGate: tenant module entitlement check
- PermissionResolver: view and feature decisions with reasons
- EffectivePermissionCache: time-bound materialized decisions
- AssignmentStore / CacheStore: storage contracts, with in-memory and Redis implementations
- check_access / require_access / require_own / require_module / require_superadmin: enforcement helpers
"""

from .cache import EffectivePermissionCache
from .constants import (
    ALL_ACTIONS,
    LOWEST_SCOPE,
    SCOPE_HIERARCHY,
    Action,
    GrantState,
    Scope,
)
from .enforcement import (
    AccessCheck,
    AccessRequirement,
    check_access,
    require_access,
    require_module,
    require_own,
    require_superadmin,
)
from .gate import ModuleGate
from .memory import InMemoryAssignmentStore, InMemoryCacheStore
from .merge import merge_feature_grants, merge_view_grants, most_permissive_scope
from .models import (
    CacheSnapshot,
    EffectiveFeaturePermission,
    EffectivePermission,
    EffectiveViewPermission,
    FeatureAccess,
    FeatureDecision,
    FeatureGrant,
    FeaturePermissionMap,
    ViewDecision,
    ViewDescriptor,
)
from .redis_cache import RedisCacheStore
from .resolver import PermissionResolver
from .store import AssignmentStore, CacheStore

__all__ = [
    "ALL_ACTIONS",
    "AccessCheck",
    "AccessRequirement",
    "Action",
    "AssignmentStore",
    "CacheSnapshot",
    "CacheStore",
    "EffectiveFeaturePermission",
    "EffectivePermission",
    "EffectivePermissionCache",
    "EffectiveViewPermission",
    "FeatureAccess",
    "FeatureDecision",
    "FeatureGrant",
    "FeaturePermissionMap",
    "GrantState",
    "InMemoryAssignmentStore",
    "InMemoryCacheStore",
    "LOWEST_SCOPE",
    "ModuleGate",
    "PermissionResolver",
    "RedisCacheStore",
    "SCOPE_HIERARCHY",
    "Scope",
    "ViewDecision",
    "ViewDescriptor",
    "check_access",
    "merge_feature_grants",
    "merge_view_grants",
    "most_permissive_scope",
    "require_access",
    "require_module",
    "require_own",
    "require_superadmin",
]
