"""
Dashboard-ready output functions.

These are the primary entry points for a request-handling layer. Each query
function checks the injected AnalyticsCache first and only recomputes on a
miss (or when `force_refresh` is set). Table functions return DataFrames
suitable for rendering shop and open-order tables.
"""

import dataclasses
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import pandas as pd

from .cache import (
    AnalyticsCache,
    CacheKey,
    DateRangeKey,
    GlobalKey,
    ShopKey,
    ShopListKey,
    StatusKey,
    create_invalidation_event,
)
from .normalize import normalize_shop_name
from .prediction import predict_completion
from .profiles import (
    ShopAnalyticsProfile,
    build_profile,
    build_shop_analytics,
    group_orders,
    is_completed,
)
from .records import RepairOrderRecord, normalise_date

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = [
    "shop_name", "state", "median_turnaround", "variance", "shipping_avg",
    "trend", "recent_median", "active_ros", "total_ros",
]
_PREDICTION_COLUMNS = [
    "ro_number", "shop_name", "estimated_date", "confidence_days", "status",
]
_STATUS_ORDER = ["overdue", "at-risk", "on-track"]


def _detached(value: Any) -> Any:
    # Profiles are frozen; only the mapping around them needs copying
    return dict(value) if isinstance(value, dict) else value


def _cached(
    cache: AnalyticsCache,
    key: CacheKey,
    compute: Callable[[], Any],
    force_refresh: bool,
) -> Any:
    """Return the cached value for `key`, computing and storing it on a miss.

    Mappings are handed back as shallow copies so callers cannot alter the
    stored entry.
    """
    if not force_refresh:
        cached = cache.get(key)
        if cached is not None:
            return _detached(cached)

    result = compute()
    if result is not None:
        cache.set(key, result)
    return _detached(result)


def compute_shop_profile(
    shop_name: str,
    orders: Iterable[RepairOrderRecord],
    now: Any = None,
) -> ShopAnalyticsProfile | None:
    """Uncached profile for one shop, matched by normalized name."""
    group = group_orders(orders).get(normalize_shop_name(shop_name))
    if group is None:
        return None
    return build_profile(group.display_name, group.orders, now)


def filter_by_date_range(
    orders: Iterable[RepairOrderRecord],
    start_date: Any,
    end_date: Any,
) -> list[RepairOrderRecord]:
    """Orders whose creation date falls between start and end, inclusive by day.

    An empty bound is open.
    """
    start = normalise_date(start_date) if start_date else None
    end = normalise_date(end_date) if end_date else None
    start_day = start.normalize() if start is not None else None
    end_day = end.normalize() if end is not None else None

    selected = []
    for order in orders:
        made = normalise_date(order.date_made)
        if made is None:
            continue
        made_day = made.normalize()
        if start_day is not None and made_day < start_day:
            continue
        if end_day is not None and made_day > end_day:
            continue
        selected.append(order)
    return selected


# ---------------------------------------------------------------------------
# Cached queries
# ---------------------------------------------------------------------------
def get_shop_analytics(
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    force_refresh: bool = False,
    now: Any = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles for every shop, keyed by display name."""
    return _cached(
        cache, GlobalKey(),
        lambda: build_shop_analytics(orders, now),
        force_refresh,
    )


def get_shop_profile(
    shop_name: str,
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    force_refresh: bool = False,
    now: Any = None,
) -> ShopAnalyticsProfile | None:
    """Profile for one shop; None if no orders match it."""
    return _cached(
        cache, ShopKey(shop_name),
        lambda: compute_shop_profile(shop_name, orders, now),
        force_refresh,
    )


def get_shops_analytics(
    shop_names: Sequence[str],
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    force_refresh: bool = False,
    now: Any = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles for a list of shops, keyed by the requested names.

    Also populates the per-shop entries along the way.
    """
    def compute() -> dict[str, ShopAnalyticsProfile]:
        profiles = {}
        for shop_name in shop_names:
            profile = get_shop_profile(shop_name, orders, cache, force_refresh, now)
            if profile is not None:
                profiles[shop_name] = profile
        return profiles

    return _cached(cache, ShopListKey(tuple(shop_names)), compute, force_refresh)


def get_analytics_by_status(
    status: str,
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    force_refresh: bool = False,
    now: Any = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles built only from orders currently in `status`."""
    key = StatusKey(status)
    return _cached(
        cache, key,
        lambda: build_shop_analytics(
            [o for o in orders if (o.current_status or "") == key.status], now
        ),
        force_refresh,
    )


def get_analytics_by_date_range(
    start_date: Any,
    end_date: Any,
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    force_refresh: bool = False,
    now: Any = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles built from orders created within the date range."""
    key = DateRangeKey(start_date, end_date)
    return _cached(
        cache, key,
        lambda: build_shop_analytics(
            filter_by_date_range(orders, key.start_date, key.end_date), now
        ),
        force_refresh,
    )


def warm_analytics_cache(
    orders: Sequence[RepairOrderRecord],
    cache: AnalyticsCache,
    now: Any = None,
) -> int:
    """Populate the global entry and the busiest shops. Call at startup."""
    orders = list(orders)

    def compute(key: CacheKey) -> Any:
        if isinstance(key, GlobalKey):
            return build_shop_analytics(orders, now)
        if isinstance(key, ShopKey):
            return compute_shop_profile(key.shop_name, orders, now)
        return None

    return cache.warm(orders, compute)


def invalidate_for_orders(
    cache: AnalyticsCache,
    orders: Iterable[RepairOrderRecord],
    reason: str = "update",
) -> int:
    """Admin hook: drop cached analytics touched by changed orders."""
    return cache.invalidate(create_invalidation_event(reason, orders))


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
def get_profile_table(profiles: dict[str, ShopAnalyticsProfile]) -> pd.DataFrame:
    """One row per shop, busiest first.

    Returns
    -------
    DataFrame with columns:
        shop_name, state, median_turnaround, variance, shipping_avg,
        trend, recent_median, active_ros, total_ros
    """
    if not profiles:
        return pd.DataFrame(columns=_PROFILE_COLUMNS)

    rows = [
        {
            "shop_name": p.shop_name,
            "state": p.state,
            "median_turnaround": round(p.median_turnaround, 1),
            "variance": round(p.variance, 1),
            "shipping_avg": p.shipping_days.avg,
            "trend": p.trend,
            "recent_median": round(p.recent_median, 1),
            "active_ros": len(p.active_ros),
            "total_ros": p.total_ros,
        }
        for p in profiles.values()
    ]
    df = pd.DataFrame(rows, columns=_PROFILE_COLUMNS)
    return df.sort_values(
        ["total_ros", "shop_name"], ascending=[False, True]
    ).reset_index(drop=True)


def get_prediction_table(
    orders: Iterable[RepairOrderRecord],
    profiles: dict[str, ShopAnalyticsProfile],
    now: Any = None,
) -> pd.DataFrame:
    """Predicted completion for every open order that can be predicted.

    Overdue orders sort first, then at-risk, then on-track; ties by date.
    """
    rows = []
    for order in orders:
        if is_completed(order):
            continue
        prediction = predict_completion(order, profiles, now)
        if prediction is None:
            continue
        rows.append({
            "ro_number": order.ro_number,
            "shop_name": order.shop_name,
            "estimated_date": prediction.estimated_date,
            "confidence_days": prediction.confidence_days,
            "status": prediction.status,
        })

    if not rows:
        return pd.DataFrame(columns=_PREDICTION_COLUMNS)

    df = pd.DataFrame(rows, columns=_PREDICTION_COLUMNS)
    df["status"] = pd.Categorical(df["status"], categories=_STATUS_ORDER, ordered=True)
    return df.sort_values(["status", "estimated_date"]).reset_index(drop=True)


def get_cache_summary(cache: AnalyticsCache) -> dict:
    """Cache statistics as a plain dict for an admin card."""
    return dataclasses.asdict(cache.get_stats())
