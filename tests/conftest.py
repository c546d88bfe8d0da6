"""Shared fixtures for accesscore tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from accesscore.permissions import InMemoryAssignmentStore, InMemoryCacheStore, PermissionResolver


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def store() -> InMemoryAssignmentStore:
    """Catalog with one gated view, one ungated view and two features."""
    s = InMemoryAssignmentStore()
    s.add_view("view_dashboard")
    s.add_view("view_invoices", module_ids=["module_billing"])
    s.add_view("view_risks", module_ids=["module_risks", "module_audit"])
    s.add_feature("invoices")
    s.add_feature("reports")
    s.grant_module("acme", "module_billing")
    return s


@pytest.fixture
def resolver(store: InMemoryAssignmentStore) -> PermissionResolver:
    return PermissionResolver(store)


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
