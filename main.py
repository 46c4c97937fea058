"""
Shop Turnaround Analytics — End-to-end pipeline.

Runs the full pipeline on simulated repair orders, from repository-shaped
rows to cached dashboard outputs, and prints smoke-test summaries.

Usage:
    python main.py
"""

import logging

import pandas as pd

from shop_analytics.cache import AnalyticsCache
from shop_analytics.dashboard import (
    get_cache_summary,
    get_prediction_table,
    get_profile_table,
    get_shop_analytics,
    get_shop_profile,
    invalidate_for_orders,
    warm_analytics_cache,
)
from shop_analytics.records import records_from_frame
from shop_analytics.simulator import generate_repair_order_frame

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  SHOP TURNAROUND ANALYTICS")
    print("  Pipeline Smoke Test")
    print("=" * 70)
    print()

    now = pd.Timestamp("2026-10-17")

    # ------------------------------------------------------------------
    # 1. Load repair orders
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING REPAIR ORDERS")
    print("-" * 40)

    frame = generate_repair_order_frame(n_orders=400, now=now)
    orders = records_from_frame(frame)
    print(f"\nRepository rows: {len(frame)}  ->  records: {len(orders)}")
    print(frame.head().to_string(index=False))

    # ------------------------------------------------------------------
    # 2. Warm the cache and build profiles
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] WARMING CACHE & BUILDING PROFILES")
    print("-" * 40)

    cache = AnalyticsCache()
    warmed = warm_analytics_cache(orders, cache, now=now)
    print(f"\nWarmed entries: {warmed}")

    profiles = get_shop_analytics(orders, cache, now=now)
    print(f"\nShop profiles: {len(profiles)}")
    print(get_profile_table(profiles).to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Predictions
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] OPEN-ORDER PREDICTIONS")
    print("-" * 40)

    predictions = get_prediction_table(orders, profiles, now=now)
    print(f"\nPredicted open orders: {len(predictions)}")
    if not predictions.empty:
        print(predictions.head(15).to_string(index=False))
        print("\nBy status:")
        print(predictions["status"].value_counts().to_string())

    # ------------------------------------------------------------------
    # 4. Acceptance checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    # Check 1: spelling variants consolidate into one profile per shop
    check1 = len(profiles) <= 12
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] {len(profiles)} profiles (12 distinct shops simulated)")

    # Check 2: totals reconcile with the input
    total = sum(p.total_ros for p in profiles.values())
    check2 = total == len(orders)
    print(f"  [{'PASS' if check2 else 'FAIL'}] Profile totals {total} == orders {len(orders)}")

    # Check 3: repeat query is a cache hit
    hits_before = cache.get_stats().hits
    get_shop_analytics(orders, cache, now=now)
    check3 = cache.get_stats().hits == hits_before + 1
    print(f"  [{'PASS' if check3 else 'FAIL'}] Second global query served from cache")

    # Check 4: invalidation drops the shop entry and the global entry
    acme = next(o for o in orders if o.shop_name.upper().startswith("ACME"))
    removed = invalidate_for_orders(cache, [acme], reason="update")
    check4 = removed >= 2 and get_shop_profile(acme.shop_name, orders, cache, now=now) is not None
    print(f"  [{'PASS' if check4 else 'FAIL'}] Update to {acme.ro_number} invalidated {removed} entries")

    print("\nCache summary:")
    for name, value in get_cache_summary(cache).items():
        print(f"  {name:20s} | {value}")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
