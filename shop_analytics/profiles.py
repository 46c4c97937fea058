"""
Profile builder: group repair orders by shop and compute a
ShopAnalyticsProfile per group.

Profiles are immutable and always built whole. Insufficient data degrades
to zeros and empty collections rather than raising, so a dashboard can
always render something.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from .config import (
    COMPLETED_STATUS_MARKERS,
    TREND_DECLINING_RATIO,
    TREND_IMPROVING_RATIO,
    TREND_MIN_SAMPLES,
    TREND_OLDER_DAYS,
    TREND_RECENT_DAYS,
    UNKNOWN_SHOP,
    UNKNOWN_STATUS,
)
from .geo import ShippingEstimate, estimate_shipping
from .normalize import normalize_shop_name
from .records import RepairOrderRecord, normalise_date
from .stats import (
    days_since,
    median,
    median_absolute_deviation,
    resolve_now,
    turnaround_days,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShopAnalyticsProfile:
    """Computed turnaround analytics for one shop."""

    shop_name: str
    state: str
    shipping_days: ShippingEstimate
    median_turnaround: float
    variance: float  # MAD of turnaround samples, not statistical variance
    status_velocity: dict[str, float] = field(default_factory=dict)
    trend: str = "stable"
    recent_median: float = 0.0
    overall_median: float = 0.0
    active_ros: tuple[str, ...] = ()
    total_ros: int = 0


@dataclass
class ShopGroup:
    """Orders sharing one normalized shop name, with raw-spelling counts."""

    key: str
    orders: list[RepairOrderRecord] = field(default_factory=list)
    spellings: Counter = field(default_factory=Counter)

    @property
    def display_name(self) -> str:
        """Most frequent raw spelling; ties go to the longest string."""
        if not self.spellings:
            return UNKNOWN_SHOP
        # Sorting by (count, length, name) keeps the choice deterministic
        return max(self.spellings, key=lambda name: (self.spellings[name], len(name), name))


def is_completed(order: RepairOrderRecord) -> bool:
    status = (order.current_status or "").upper()
    return any(marker in status for marker in COMPLETED_STATUS_MARKERS)


def extract_state(shop_name: str | None) -> str:
    """Text after the first comma, e.g. "Acme Repair, TX" -> "TX".

    Best-effort only; the shop-name field is free text.
    """
    if not shop_name or "," not in shop_name:
        return ""
    return shop_name.split(",")[1].strip().rstrip(".")


def classify_trend(recent_median: float, older_median: float) -> str:
    """Return 'improving', 'stable', or 'declining'.

    Logic
    -----
    improving  if recent < older * 0.9
    declining  if recent > older * 1.1
    stable     otherwise
    """
    if recent_median < older_median * TREND_IMPROVING_RATIO:
        return "improving"
    if recent_median > older_median * TREND_DECLINING_RATIO:
        return "declining"
    return "stable"


def group_orders(orders: Iterable[RepairOrderRecord]) -> dict[str, ShopGroup]:
    """Group orders by normalized shop name.

    Blank shop names group under "Unknown".
    """
    groups: dict[str, ShopGroup] = {}
    for order in orders:
        raw_name = (order.shop_name or "").strip() or UNKNOWN_SHOP
        key = normalize_shop_name(raw_name) or normalize_shop_name(UNKNOWN_SHOP)
        group = groups.get(key)
        if group is None:
            group = groups[key] = ShopGroup(key=key)
        group.orders.append(order)
        group.spellings[raw_name] += 1
    return groups


def _turnaround_sample(orders: Iterable[RepairOrderRecord]) -> list[float]:
    return [t for t in (turnaround_days(o) for o in orders) if t is not None]


def _trend(
    completed: Sequence[RepairOrderRecord],
    overall_median: float,
    now: pd.Timestamp,
) -> tuple[str, float, float]:
    """Return (trend, recent_median, overall_median).

    When both windows have enough samples the trend is measured against the
    older-window median, and that median is reported as the overall one.
    Otherwise both medians fall back to `overall_median`.
    """
    recent_cutoff = now - pd.Timedelta(days=TREND_RECENT_DAYS)
    older_cutoff = now - pd.Timedelta(days=TREND_OLDER_DAYS)

    recent, older = [], []
    for order in completed:
        status_date = normalise_date(order.current_status_date)
        if status_date is None:
            continue
        if status_date > recent_cutoff:
            recent.append(order)
        elif status_date > older_cutoff:
            older.append(order)

    recent_sample = _turnaround_sample(recent)
    older_sample = _turnaround_sample(older)

    if len(recent_sample) < TREND_MIN_SAMPLES or len(older_sample) < TREND_MIN_SAMPLES:
        return "stable", overall_median, overall_median

    recent_median = median(recent_sample)
    older_median = median(older_sample)
    return classify_trend(recent_median, older_median), recent_median, older_median


def _status_velocity(
    orders: Iterable[RepairOrderRecord],
    now: pd.Timestamp,
) -> dict[str, float]:
    """Median days each order has sat in its current status, per status."""
    by_status: dict[str, list[float]] = {}
    for order in orders:
        status = (order.current_status or "").strip() or UNKNOWN_STATUS
        days = by_status.setdefault(status, [])
        elapsed = days_since(order.current_status_date, now)
        if elapsed is not None:
            days.append(elapsed)
    return {status: median(days) for status, days in by_status.items()}


def build_profile(
    shop_name: str,
    orders: Sequence[RepairOrderRecord],
    now: Any = None,
) -> ShopAnalyticsProfile | None:
    """Build the analytics profile for one shop.

    Parameters
    ----------
    shop_name : Display name to carry on the profile.
    orders : All orders for this shop (already grouped).
    now : Reference time for elapsed-day calculations. Defaults to now.

    Returns
    -------
    ShopAnalyticsProfile, or None when `orders` is empty.
    """
    if not orders:
        return None

    now = resolve_now(now)
    state = extract_state(orders[0].shop_name)

    completed = [o for o in orders if is_completed(o)]
    active = [o for o in orders if not is_completed(o)]

    sample = _turnaround_sample(completed)
    if not sample:
        # New shops with nothing finished yet: use time elapsed on open orders
        sample = [
            d for d in (days_since(o.date_dropped_off, now) for o in active)
            if d is not None
        ]

    median_turnaround = median(sample)
    trend, recent_median, overall_median = _trend(completed, median_turnaround, now)

    return ShopAnalyticsProfile(
        shop_name=shop_name,
        state=state,
        shipping_days=estimate_shipping(state),
        median_turnaround=median_turnaround,
        variance=median_absolute_deviation(sample),
        status_velocity=_status_velocity(orders, now),
        trend=trend,
        recent_median=recent_median,
        overall_median=overall_median,
        active_ros=tuple(o.ro_number for o in active),
        total_ros=len(orders),
    )


def build_shop_analytics(
    orders: Iterable[RepairOrderRecord],
    now: Any = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Build profiles for every shop, keyed by display name.

    Raw spellings that normalize identically are consolidated into one
    profile.
    """
    now = resolve_now(now)
    profiles: dict[str, ShopAnalyticsProfile] = {}

    for group in group_orders(orders).values():
        profile = build_profile(group.display_name, group.orders, now)
        if profile is not None:
            profiles[profile.shop_name] = profile

    logger.info("Built %d shop analytics profiles", len(profiles))
    return profiles
