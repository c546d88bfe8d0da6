"""Merge rules for combining grants from several role bundles.

Both rules are commutative and associative: they only look at the *set* of
grants collected across bundles, so the order in which bundles are
enumerated never changes the outcome.

View grants:     deny > allow > inherit/absent (absent defaults to deny).
Feature grants:  any ``False`` denies; otherwise the most permissive scope
                 among ``True`` grants wins (any > team > company > own).
"""

from __future__ import annotations

from typing import Iterable

from .constants import LOWEST_SCOPE, SCOPE_HIERARCHY, GrantState, Scope
from .models import FeatureGrant

REASON_MODULE_NOT_ENTITLED = "module not entitled"
REASON_NO_BUNDLES = "no role bundles assigned"
REASON_EXPLICIT_DENY = "explicit deny"
REASON_EXPLICIT_ALLOW = "explicit allow"
REASON_NO_EXPLICIT_ALLOW = "no explicit allow"
REASON_NOT_DEFINED = "not defined for this action"


def merge_view_grants(states: Iterable[GrantState]) -> tuple[bool, str]:
    """Merge tri-state view grants into ``(allowed, reason)``.

    Example::

        merge_view_grants([GrantState.ALLOW, GrantState.DENY])   # (False, "explicit deny")
        merge_view_grants([GrantState.INHERIT, GrantState.ALLOW]) # (True, "explicit allow")
        merge_view_grants([])                                      # (False, "no explicit allow")
    """
    present = set(states)
    if GrantState.DENY in present:
        return False, REASON_EXPLICIT_DENY
    if GrantState.ALLOW in present:
        return True, REASON_EXPLICIT_ALLOW
    return False, REASON_NO_EXPLICIT_ALLOW


def most_permissive_scope(scopes: Iterable[Scope]) -> Scope:
    """Highest-ranked scope present, scanning any > team > company > own.

    Returns the lowest scope when ``scopes`` is empty.
    """
    present = set(scopes)
    for scope in reversed(SCOPE_HIERARCHY):
        if scope in present:
            return scope
    return LOWEST_SCOPE


def allowed_with_scope_reason(scope: Scope) -> str:
    return f"allowed with '{scope.value}' scope"


def merge_feature_grants(grants: Iterable[FeatureGrant]) -> tuple[bool, Scope, str]:
    """Merge feature grants into ``(allowed, scope, reason)``.

    Denials always carry the lowest scope.

    Example::

        merge_feature_grants([FeatureGrant(True, Scope.OWN), FeatureGrant(True, Scope.COMPANY)])
        # (True, Scope.COMPANY, "allowed with 'company' scope")
    """
    collected = list(grants)
    if not collected:
        return False, LOWEST_SCOPE, REASON_NOT_DEFINED

    if any(grant.value is False for grant in collected):
        return False, LOWEST_SCOPE, REASON_EXPLICIT_DENY

    allows = [grant for grant in collected if grant.value is True]
    if not allows:
        return False, LOWEST_SCOPE, REASON_NO_EXPLICIT_ALLOW

    scope = most_permissive_scope(grant.scope for grant in allows)
    return True, scope, allowed_with_scope_reason(scope)


def error_reason(exc: BaseException) -> str:
    """Reason string for a decision produced from a lookup failure."""
    message = str(exc) or type(exc).__name__
    return f"error: {message}"


__all__ = [
    "REASON_EXPLICIT_ALLOW",
    "REASON_EXPLICIT_DENY",
    "REASON_MODULE_NOT_ENTITLED",
    "REASON_NOT_DEFINED",
    "REASON_NO_BUNDLES",
    "REASON_NO_EXPLICIT_ALLOW",
    "allowed_with_scope_reason",
    "error_reason",
    "merge_feature_grants",
    "merge_view_grants",
    "most_permissive_scope",
]
