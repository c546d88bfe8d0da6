"""Grant states, action names and scopes.

Provides:
- ``GrantState`` — tri-state view grant (deny / allow / inherit).
- ``Action`` — the fixed action set every feature exposes.
- ``Scope`` — breadth of records an allowed action applies to, totally ordered.
"""

from __future__ import annotations

from enum import Enum


class GrantState(str, Enum):
    """Tri-state view grant attached to (role bundle, view, tenant).

    ``INHERIT`` means the bundle expresses no opinion about the view.
    """

    DENY = "deny"
    ALLOW = "allow"
    INHERIT = "inherit"


class Action(str, Enum):
    """Operation on a feature."""

    CREATE = "Create"
    READ = "Read"
    UPDATE = "Update"
    DELETE = "Delete"
    EXPORT = "Export"
    APPROVE = "Approve"


ALL_ACTIONS: tuple[Action, ...] = tuple(Action)


class Scope(str, Enum):
    """Breadth of records an allowed action applies to.

    Ordering: ``own`` < ``company`` < ``team`` < ``any``.
    Comparison uses the rank, never the string value.
    """

    OWN = "own"
    COMPANY = "company"
    TEAM = "team"
    ANY = "any"

    @property
    def rank(self) -> int:
        return SCOPE_HIERARCHY.index(self)

    @classmethod
    def _rank_of(cls, other: object) -> int:
        """Rank of a Scope or scope string; other types cannot be ordered."""
        if isinstance(other, str):
            return cls(other).rank
        raise TypeError(f"cannot compare Scope with {type(other).__name__}")

    def __lt__(self, other: object) -> bool:
        return self.rank < self._rank_of(other)

    def __le__(self, other: object) -> bool:
        return self.rank <= self._rank_of(other)

    def __gt__(self, other: object) -> bool:
        return self.rank > self._rank_of(other)

    def __ge__(self, other: object) -> bool:
        return self.rank >= self._rank_of(other)


# Lowest to highest
SCOPE_HIERARCHY: tuple[Scope, ...] = (Scope.OWN, Scope.COMPANY, Scope.TEAM, Scope.ANY)

LOWEST_SCOPE = SCOPE_HIERARCHY[0]


__all__ = [
    "ALL_ACTIONS",
    "Action",
    "GrantState",
    "LOWEST_SCOPE",
    "SCOPE_HIERARCHY",
    "Scope",
]
