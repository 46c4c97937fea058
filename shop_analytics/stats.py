"""
Turnaround statistics — pure functions with no side effects.

Median and median absolute deviation (MAD) are used instead of mean and
standard deviation because repair turnaround times are heavy-tailed: a
single order stuck for months should not distort a shop's profile.
"""

from collections.abc import Iterable
from typing import Any

import pandas as pd

from .records import RepairOrderRecord, normalise_date

_SECONDS_PER_DAY = 24 * 60 * 60


def resolve_now(now: Any = None) -> pd.Timestamp:
    """Return `now` as a naive Timestamp, defaulting to the current time."""
    if now is None:
        return pd.Timestamp.now()
    ts = normalise_date(now)
    return ts if ts is not None else pd.Timestamp.now()


def median(values: Iterable[float]) -> float:
    """Median of the values; 0.0 for an empty sample (no signal)."""
    series = pd.Series(list(values), dtype="float64")
    if series.empty:
        return 0.0
    return float(series.median())


def median_absolute_deviation(values: Iterable[float]) -> float:
    """MAD = median(|x - median(x)|); 0.0 for an empty sample.

    For [10, 12, 14, 100] the median is 13 and the MAD is 2, where the
    standard deviation would be about 44.
    """
    series = pd.Series(list(values), dtype="float64")
    if series.empty:
        return 0.0
    return float((series - series.median()).abs().median())


def days_between(start: Any, end: Any) -> float | None:
    """Days from start to end, clamped to >= 0; None if either is missing."""
    start_ts = normalise_date(start)
    end_ts = normalise_date(end)
    if start_ts is None or end_ts is None:
        return None
    return max(0.0, (end_ts - start_ts).total_seconds() / _SECONDS_PER_DAY)


def days_since(date: Any, now: pd.Timestamp) -> float | None:
    """Days elapsed from `date` until `now`, clamped to >= 0."""
    return days_between(date, now)


def turnaround_days(order: RepairOrderRecord) -> float | None:
    """Drop-off to current-status date, in days.

    Clamped to >= 0 to guard against clock skew between data-entry systems.
    Orders missing either date return None and are left out of samples.
    """
    return days_between(order.date_dropped_off, order.current_status_date)


def robust_summary(values: Iterable[float]) -> dict[str, float]:
    """Return {"median": ..., "mad": ...} for a sample."""
    sample = list(values)
    return {
        "median": median(sample),
        "mad": median_absolute_deviation(sample),
    }
