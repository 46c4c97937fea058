"""
Shipping-time estimation from a shop's state to headquarters.

Distances are great-circle (haversine) between state centroids, bucketed
into the tiers in config.SHIPPING_TIERS.
"""

import math
from dataclasses import dataclass

from .config import (
    DEFAULT_SHIPPING,
    EARTH_RADIUS_MILES,
    HQ_COORDS,
    SHIPPING_TIERS,
    STATE_COORDS,
)


@dataclass(frozen=True)
class ShippingEstimate:
    """One-way shipping time in days."""

    avg: float
    min: float
    max: float


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_to_hq(state_code: str | None) -> float | None:
    """Miles from HQ to a state's centroid, or None for unknown states."""
    coords = STATE_COORDS.get((state_code or "").strip().upper())
    if coords is None:
        return None
    return haversine_miles(HQ_COORDS[0], HQ_COORDS[1], coords[0], coords[1])


def estimate_shipping(state_code: str | None) -> ShippingEstimate:
    """Return the shipping estimate for a two-letter state code.

    Unknown or missing codes get the conservative DEFAULT_SHIPPING.
    """
    distance = distance_to_hq(state_code)
    if distance is None:
        return ShippingEstimate(**DEFAULT_SHIPPING)

    for upper_bound, tier in SHIPPING_TIERS:
        if distance < upper_bound:
            return ShippingEstimate(**tier)
    return ShippingEstimate(**SHIPPING_TIERS[-1][1])
