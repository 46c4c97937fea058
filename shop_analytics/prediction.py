"""
Completion prediction for open repair orders.

Uses a shop's cached profile (median turnaround plus one-way shipping) to
estimate when an order will be back, and how worried to be about it.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pandas as pd

from .normalize import normalize_shop_name
from .profiles import ShopAnalyticsProfile
from .records import RepairOrderRecord, normalise_date
from .stats import days_since, resolve_now


@dataclass(frozen=True)
class PredictionResult:
    estimated_date: pd.Timestamp
    confidence_days: int
    status: str  # 'on-track' | 'at-risk' | 'overdue'


def find_profile(
    shop_name: str | None,
    profiles: Mapping[str, ShopAnalyticsProfile],
) -> ShopAnalyticsProfile | None:
    """Look up a shop's profile by display name, then by normalized name."""
    if not shop_name:
        return None
    profile = profiles.get(shop_name)
    if profile is not None:
        return profile
    wanted = normalize_shop_name(shop_name)
    for name, candidate in profiles.items():
        if normalize_shop_name(name) == wanted:
            return candidate
    return None


def classify_prediction(elapsed: float, expected: float, confidence: float) -> str:
    """Return 'overdue', 'at-risk', or 'on-track'.

    Logic
    -----
    overdue   if elapsed > expected + confidence
    at-risk   if elapsed > expected
    on-track  otherwise
    """
    if elapsed > expected + confidence:
        return "overdue"
    if elapsed > expected:
        return "at-risk"
    return "on-track"


def predict_completion(
    order: RepairOrderRecord,
    profiles: Mapping[str, ShopAnalyticsProfile],
    now: Any = None,
) -> PredictionResult | None:
    """Estimate the completion date of an order.

    Returns None when the order's shop has no profile or the order has no
    usable drop-off date.
    """
    profile = find_profile(order.shop_name, profiles)
    if profile is None or normalise_date(order.date_dropped_off) is None:
        return None

    now = resolve_now(now)
    shipping = profile.shipping_days

    elapsed = days_since(order.date_dropped_off, now) or 0.0
    expected = profile.median_turnaround + shipping.avg
    days_remaining = max(0.0, expected - elapsed)
    confidence_days = math.ceil(profile.variance + shipping.max - shipping.min)

    return PredictionResult(
        estimated_date=now + pd.Timedelta(days=days_remaining),
        confidence_days=confidence_days,
        status=classify_prediction(elapsed, expected, confidence_days),
    )
