"""
Pytest fixtures and test configuration for holarchy tests.
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from holarchy.graph import Holarchy
from holarchy.storage import JsonPageStore, SQLitePageStore
from holarchy.sync import SyncReconciler
from holarchy.trust import TrustLedger


class FakeClock:
    """Deterministic timestamp source, one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return self.current.isoformat(timespec="microseconds")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"h{next(counter)}"


@pytest.fixture
def ledger(clock):
    return TrustLedger(now_fn=clock)


@pytest.fixture
def graph(clock, sequential_ids):
    """An empty graph with deterministic ids and timestamps."""
    return Holarchy(now_fn=clock, id_fn=sequential_ids)


@pytest.fixture(params=["sqlite", "json"])
def page_store(request, tmp_path, clock):
    """Each page store test runs against both backends."""
    if request.param == "sqlite":
        store = SQLitePageStore(tmp_path / "browser.db", now_fn=clock)
    else:
        store = JsonPageStore(tmp_path / "browser.json", now_fn=clock)
    yield store
    store.close()


@pytest.fixture
def reconciler(page_store, clock):
    return SyncReconciler(page_store, now_fn=clock)
