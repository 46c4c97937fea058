"""
Pytest fixtures shared across the test suite.

- `now`: fixed reference time so elapsed-day maths is deterministic
- `make_order`: factory for RepairOrderRecord with day offsets relative to `now`
- `clock`: controllable millisecond clock for cache TTL/LRU tests
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

# Add project root to path so tests can import shop_analytics
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from shop_analytics.cache import AnalyticsCache  # noqa: E402
from shop_analytics.records import RepairOrderRecord  # noqa: E402


class FakeClock:
    """Callable returning seconds; advance in milliseconds."""

    def __init__(self, start_ms: float = 1_000_000.0):
        self.ms = start_ms

    def __call__(self) -> float:
        return self.ms / 1000

    def advance(self, ms: float) -> None:
        self.ms += ms


@pytest.fixture
def now() -> pd.Timestamp:
    return pd.Timestamp("2026-10-17 12:00:00")


@pytest.fixture
def make_order(now):
    """Build an order; dates are given as 'days ago' relative to `now`."""
    counter = {"n": 0}

    def _make(
        shop_name: str = "Acme Repair, TX",
        status: str = "BEING REPAIRED",
        dropped_days_ago: float | None = 20,
        status_days_ago: float | None = 5,
        made_days_ago: float | None = None,
        ro_number: str | None = None,
    ) -> RepairOrderRecord:
        counter["n"] += 1

        def ago(days):
            return None if days is None else now - pd.Timedelta(days=days)

        made = made_days_ago if made_days_ago is not None else dropped_days_ago
        return RepairOrderRecord(
            ro_number=ro_number or f"RO-{counter['n']:04d}",
            shop_name=shop_name,
            date_made=ago(made),
            date_dropped_off=ago(dropped_days_ago),
            current_status=status,
            current_status_date=ago(status_days_ago),
            estimated_cost=1000.0,
        )

    return _make


@pytest.fixture
def completed_order(make_order):
    """Completed order with an exact turnaround, finishing `finished_days_ago`."""

    def _make(turnaround: float, finished_days_ago: float = 5, **kwargs):
        return make_order(
            status="COMPLETED",
            dropped_days_ago=finished_days_ago + turnaround,
            status_days_ago=finished_days_ago,
            **kwargs,
        )

    return _make


@pytest.fixture
def acme_orders(make_order, completed_order):
    """5 completed (turnarounds 10, 12, 11, 13, 12) + 5 active Acme orders."""
    completed = [completed_order(t) for t in (10, 12, 11, 13, 12)]
    active = [make_order(status="WAITING QUOTE", dropped_days_ago=4 + i) for i in range(5)]
    return completed + active


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> AnalyticsCache:
    return AnalyticsCache(max_size=10, ttl_ms=60_000, clock=clock)
