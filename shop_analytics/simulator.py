"""
Simulated repair-order generator for the shop analytics pipeline.

Generates realistic repair orders across a set of repair shops, including
inconsistent spellings of the same shop name, so the grouping, statistics
and cache layers can be exercised without a live repository.
All values are synthetic.
"""

import numpy as np
import pandas as pd

from .config import RECORD_COLUMN_MAP
from .records import RepairOrderRecord

# ---------------------------------------------------------------------------
# Typical shop parameters
# ---------------------------------------------------------------------------
# name -> (typical turnaround days, lognormal sigma, relative order volume)
_SHOP_PARAMS = {
    "Acme Repair, TX": (12, 0.25, 5),
    "Precision Avionics, FL": (8, 0.20, 4),
    "Northwind Hydraulics, WA": (21, 0.35, 3),
    "Delta Component Services, GA": (10, 0.30, 3),
    "Great Lakes Overhaul, MI": (16, 0.40, 2),
    "Mesa Instruments, AZ": (14, 0.25, 2),
    "Hudson Aero, NY": (18, 0.30, 2),
    "Bayou Turbine, LA": (9, 0.20, 1),
    "Rocky Mountain Gear, CO": (25, 0.45, 1),
    "Pacific Landing Systems, CA": (20, 0.30, 1),
    "Island Props, HI": (30, 0.50, 1),
    "Keystone Brakes, PA": (11, 0.25, 1),
}

# Ways data-entry staff mangle a shop name
_SPELLING_VARIANTS = [
    lambda s: s,
    lambda s: s.upper(),
    lambda s: s.replace(", ", ","),
    lambda s: s.replace(" ", "  ", 1),
    lambda s: s + ".",
]
_VARIANT_WEIGHTS = [0.7, 0.1, 0.1, 0.05, 0.05]

_ACTIVE_STATUSES = ["TO SEND", "WAITING QUOTE", "APPROVED", "BEING REPAIRED", "SHIPPING"]
_COMPLETED_STATUSES = ["COMPLETED", "RECEIVED"]


def generate_repair_orders(
    n_orders: int = 300,
    now: pd.Timestamp | None = None,
    history_days: int = 180,
    completed_share: float = 0.65,
    seed: int = 42,
) -> list[RepairOrderRecord]:
    """Generate simulated repair orders.

    Orders are dropped off uniformly over the last `history_days`. Completed
    orders get a lognormal turnaround around the shop's typical value; the
    rest carry an active status dated a few days after drop-off.
    """
    rng = np.random.default_rng(seed)
    now = pd.Timestamp("2026-10-17") if now is None else pd.Timestamp(now)

    shops = list(_SHOP_PARAMS)
    volume = np.array([_SHOP_PARAMS[s][2] for s in shops], dtype=float)
    volume /= volume.sum()

    orders = []
    for i in range(n_orders):
        shop = shops[rng.choice(len(shops), p=volume)]
        typical, sigma, _ = _SHOP_PARAMS[shop]
        variant = _SPELLING_VARIANTS[rng.choice(len(_SPELLING_VARIANTS), p=_VARIANT_WEIGHTS)]

        dropped_off = now - pd.Timedelta(days=float(rng.uniform(1, history_days)))
        date_made = dropped_off - pd.Timedelta(days=float(rng.integers(0, 4)))
        turnaround = float(rng.lognormal(np.log(typical), sigma))
        finished = dropped_off + pd.Timedelta(days=turnaround)

        if finished < now and rng.random() < completed_share:
            status = str(rng.choice(_COMPLETED_STATUSES))
            status_date = finished
        else:
            status = str(rng.choice(_ACTIVE_STATUSES))
            elapsed = (now - dropped_off).days
            status_date = dropped_off + pd.Timedelta(days=float(rng.uniform(0, max(elapsed, 1))))

        estimated = round(float(rng.uniform(800, 12_000)), 2)
        final = round(estimated * float(rng.uniform(0.9, 1.2)), 2) if status in _COMPLETED_STATUSES else None

        orders.append(RepairOrderRecord(
            ro_number=f"RO-{38000 + i}",
            shop_name=variant(shop),
            date_made=date_made.normalize(),
            date_dropped_off=dropped_off.normalize(),
            current_status=status,
            current_status_date=status_date.normalize(),
            estimated_cost=estimated,
            final_cost=final,
        ))

    return orders


def generate_repair_order_frame(**kwargs) -> pd.DataFrame:
    """Simulated orders shaped like a repository export (header row names)."""
    orders = generate_repair_orders(**kwargs)
    field_to_header = {field: header for header, field in RECORD_COLUMN_MAP.items()}
    rows = [
        {field_to_header[name]: getattr(order, name) for name in field_to_header}
        for order in orders
    ]
    return pd.DataFrame(rows, columns=list(RECORD_COLUMN_MAP))
