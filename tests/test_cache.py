"""
Unit tests for shop_analytics/cache.py
"""

import json
import logging
import threading

import pandas as pd
import pytest

from shop_analytics.cache import (
    AnalyticsCache,
    DateRangeKey,
    GlobalKey,
    InvalidationEvent,
    ShopKey,
    ShopListKey,
    StatusKey,
    create_invalidation_event,
    estimate_size,
    generate_key,
    key_tags,
)


@pytest.mark.unit
class TestCacheKeys:
    """Test deterministic key strings and tag derivation."""

    def test_key_formats(self):
        assert generate_key(GlobalKey()) == "global"
        assert generate_key(ShopKey("Acme Repair, TX")) == "shop:ACME REPAIR,TX"
        assert generate_key(StatusKey("APPROVED")) == "status:APPROVED"
        assert generate_key(DateRangeKey("2026-01-01", "2026-03-31")) == "dateRange:2026-01-01:2026-03-31"

    def test_equivalent_shop_names_collide(self):
        assert generate_key(ShopKey("acme repair , tx")) == generate_key(ShopKey("ACME REPAIR,TX"))

    def test_shop_list_order_independent(self):
        a = generate_key(ShopListKey(["Beta Shop", "acme"]))
        b = generate_key(ShopListKey(("ACME", "beta shop")))
        assert a == b == "shopList:ACME:BETA SHOP"

    def test_date_range_accepts_timestamps(self):
        key = DateRangeKey(pd.Timestamp("2026-01-01 08:30"), "2026-03-31")
        assert key.start_date == "2026-01-01"

    def test_tags(self):
        assert key_tags(GlobalKey()) == {"type:global"}
        assert key_tags(ShopKey("Acme")) == {"type:shop", "shop:ACME"}
        assert key_tags(ShopListKey(["Acme", "Beta"])) == {"type:shopList", "shop:ACME", "shop:BETA"}
        assert key_tags(StatusKey("APPROVED")) == {"type:status", "status:APPROVED"}
        assert key_tags(DateRangeKey("2026-01-01", "")) == {"type:dateRange", "hasDateRange"}

    def test_missing_status_becomes_empty(self):
        assert StatusKey(None) == StatusKey("")
        assert generate_key(StatusKey(None)) == "status:"
        assert key_tags(StatusKey(None)) == {"type:status", "status:"}

    def test_missing_status_key_is_usable(self, cache):
        assert cache.get(StatusKey(None)) is None
        cache.set(StatusKey(None), "no status")
        assert cache.get(StatusKey("")) == "no status"

    def test_unsupported_key_type(self):
        with pytest.raises(TypeError):
            generate_key("global")


@pytest.mark.unit
class TestCacheReadWrite:
    """Test get/set round trip and TTL expiry."""

    def test_round_trip(self, cache):
        cache.set(ShopKey("Acme"), {"median": 12})
        assert cache.get(ShopKey("acme")) == {"median": 12}
        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 0

    def test_miss_counts(self, cache):
        assert cache.get(GlobalKey()) is None
        assert cache.get_stats().misses == 1

    def test_ttl_expiry(self, cache, clock):
        cache.set(GlobalKey(), "profiles")
        clock.advance(60_001)
        assert cache.get(GlobalKey()) is None
        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.entry_count == 0

    def test_served_at_exactly_ttl(self, cache, clock):
        cache.set(GlobalKey(), "profiles")
        clock.advance(60_000)
        assert cache.get(GlobalKey()) == "profiles"

    def test_set_replaces_and_resets_age(self, cache, clock):
        cache.set(GlobalKey(), "old")
        clock.advance(50_000)
        cache.set(GlobalKey(), "new")
        clock.advance(50_000)
        assert cache.get(GlobalKey()) == "new"
        assert len(cache) == 1


@pytest.mark.unit
class TestEviction:
    """Test LRU and memory-bounded eviction."""

    def test_max_size_plus_one_keeps_max_size(self, clock):
        cache = AnalyticsCache(max_size=10, clock=clock)
        for i in range(11):
            cache.set(StatusKey(f"S{i}"), i)
            clock.advance(1)
        assert len(cache) == 10
        assert cache.get(StatusKey("S0")) is None
        assert cache.get_stats().total_evictions == 1

    def test_evicts_least_recently_accessed(self, clock):
        cache = AnalyticsCache(max_size=3, clock=clock)
        for name in ("a", "b", "c"):
            cache.set(ShopKey(name), name)
            clock.advance(10)
        cache.get(ShopKey("a"))
        clock.advance(10)

        cache.set(ShopKey("d"), "d")

        keys = {entry["key"] for entry in cache.get_entries()}
        assert keys == {"shop:A", "shop:C", "shop:D"}

    def test_replacing_existing_key_does_not_evict(self, clock):
        cache = AnalyticsCache(max_size=2, clock=clock)
        cache.set(ShopKey("a"), 1)
        cache.set(ShopKey("b"), 2)
        cache.set(ShopKey("a"), 3)
        assert len(cache) == 2
        assert cache.get_stats().total_evictions == 0

    def test_memory_ceiling_is_soft(self, clock):
        """One eviction per set; an oversized value is still stored."""
        cache = AnalyticsCache(max_memory=100, clock=clock)
        big = "x" * 200
        cache.set(ShopKey("a"), big)
        assert cache.get(ShopKey("a")) == big

        cache.set(ShopKey("b"), big)
        assert len(cache) == 1
        assert cache.get(ShopKey("b")) == big
        stats = cache.get_stats()
        assert stats.total_evictions == 1
        assert stats.memory_usage > 100

    def test_memory_pressure_evicts_one(self, clock):
        cache = AnalyticsCache(max_memory=1000, clock=clock)
        for name in ("a", "b", "c"):
            cache.set(ShopKey(name), "x" * 100)
            clock.advance(1)
        cache.set(ShopKey("d"), "x" * 400)
        assert {e["key"] for e in cache.get_entries()} == {"shop:B", "shop:C", "shop:D"}


@pytest.mark.unit
class TestInvalidation:
    """Test tag-based invalidation."""

    @pytest.fixture
    def populated(self, cache):
        cache.set(GlobalKey(), "all")
        cache.set(ShopKey("Acme"), "acme")
        cache.set(ShopKey("Other Shop"), "other")
        cache.set(ShopListKey(["Acme", "Beta"]), "list")
        cache.set(StatusKey("APPROVED"), "approved")
        cache.set(DateRangeKey("2026-01-01", "2026-03-31"), "q1")
        return cache

    def test_update_removes_shop_global_and_ranges(self, populated):
        removed = populated.invalidate(InvalidationEvent(reason="update", affected_shops=["Acme"]))
        assert removed == 4
        remaining = {e["key"] for e in populated.get_entries()}
        assert remaining == {"shop:OTHER SHOP", "status:APPROVED"}

    def test_manual_only_removes_named_tags(self, populated):
        removed = populated.invalidate(InvalidationEvent(reason="manual", affected_shops=["acme"]))
        assert removed == 2
        remaining = {e["key"] for e in populated.get_entries()}
        assert "global" in remaining
        assert "shop:ACME" not in remaining

    def test_status_invalidation(self, populated):
        removed = populated.invalidate(InvalidationEvent(reason="manual", affected_statuses=["APPROVED"]))
        assert removed == 1

    def test_update_with_no_entities_still_drops_aggregates(self, populated):
        assert populated.invalidate(InvalidationEvent(reason="delete")) == 2

    def test_invalidate_all(self, populated):
        assert populated.invalidate_all() == 6
        assert len(populated) == 0
        assert populated.get_stats().total_invalidations == 6

    def test_invalid_reason_rejected(self):
        with pytest.raises(ValueError):
            InvalidationEvent(reason="refresh")

    def test_create_invalidation_event(self, make_order):
        orders = [
            make_order(shop_name="Acme", status="APPROVED"),
            make_order(shop_name="Acme", status="SHIPPING"),
            make_order(shop_name="", status="APPROVED"),
        ]
        event = create_invalidation_event("update", orders, timestamp=1.0)
        assert event.affected_shops == ("Acme",)
        assert event.affected_statuses == ("APPROVED", "SHIPPING")
        assert event.timestamp == 1.0


@pytest.mark.unit
class TestWarm:
    """Test cache warming."""

    def test_warms_global_and_top_ten_shops(self, cache, make_order):
        orders = []
        for i in range(12):
            orders += [make_order(shop_name=f"Shop {i:02d}") for _ in range(i + 1)]

        cache.max_size = 50
        warmed = cache.warm(orders, lambda key: f"value for {generate_key(key)}")

        assert warmed == 11
        keys = {e["key"] for e in cache.get_entries()}
        assert "global" in keys
        assert "shop:SHOP 11" in keys
        assert "shop:SHOP 00" not in keys
        assert "shop:SHOP 01" not in keys

    def test_shop_failure_is_logged_and_skipped(self, cache, make_order, caplog):
        orders = [make_order(shop_name="Good"), make_order(shop_name="Bad")]

        def compute(key):
            if isinstance(key, ShopKey) and key.shop_name == "Bad":
                raise RuntimeError("boom")
            return "ok"

        with caplog.at_level(logging.ERROR, logger="shop_analytics.cache"):
            warmed = cache.warm(orders, compute)

        assert warmed == 2
        assert cache.get(ShopKey("Good")) == "ok"
        assert cache.get(ShopKey("Bad")) is None
        assert any("boom" in record.getMessage() for record in caplog.records)

    def test_global_failure_does_not_stop_shops(self, cache, make_order):
        def compute(key):
            if isinstance(key, GlobalKey):
                raise ValueError("no global")
            return "ok"

        assert cache.warm([make_order(shop_name="Acme")], compute) == 1
        assert cache.get(ShopKey("Acme")) == "ok"

    def test_top_shops_by_raw_count(self, make_order):
        orders = [make_order(shop_name="A")] * 3 + [make_order(shop_name="B")] * 5 + [make_order(shop_name="")]
        assert AnalyticsCache.top_shops(orders, limit=1) == ["B"]


@pytest.mark.unit
class TestStatsAndConfig:
    """Test statistics, size estimation and construction checks."""

    def test_stats(self, cache, clock):
        cache.set(GlobalKey(), [1, 2, 3])
        clock.advance(1000)
        cache.set(ShopKey("Acme"), "abc")
        clock.advance(1000)
        cache.get(GlobalKey())
        cache.get(StatusKey("X"))

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(50.0)
        assert stats.entry_count == 2
        assert stats.oldest_entry == pytest.approx(2000)
        assert stats.newest_entry == pytest.approx(1000)
        assert stats.average_entry_age == pytest.approx(1500)
        assert stats.memory_usage == 2 * (len(json.dumps([1, 2, 3])) + len(json.dumps("abc")))

    def test_empty_stats(self, cache):
        stats = cache.get_stats()
        assert stats.hit_rate == 0.0
        assert stats.oldest_entry is None
        assert stats.newest_entry is None

    def test_reset_stats(self, cache):
        cache.get(GlobalKey())
        cache.reset_stats()
        assert cache.get_stats().misses == 0

    def test_clear_keeps_counters(self, cache):
        cache.set(GlobalKey(), 1)
        cache.get(GlobalKey())
        cache.clear()
        assert len(cache) == 0
        assert cache.get_stats().hits == 1

    def test_estimate_size_handles_unserializable(self):
        circular = []
        circular.append(circular)
        assert estimate_size(circular) > 0
        assert estimate_size(object()) > 0
        assert estimate_size({"when": pd.Timestamp("2026-10-17")}) > 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_size": 0}, {"max_memory": -1}, {"ttl_ms": 0}, {"ttl_ms": -5}, {"warm_workers": 0}],
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            AnalyticsCache(**kwargs)

    def test_defaults(self):
        cache = AnalyticsCache()
        assert cache.max_size == 100
        assert cache.max_memory == 50 * 1024 * 1024
        assert cache.ttl_ms == 10 * 60 * 1000


@pytest.mark.unit
class TestConcurrency:
    """Test the cache under concurrent writers and readers."""

    def test_size_bound_holds_under_contention(self):
        cache = AnalyticsCache(max_size=10)
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    cache.set(StatusKey(f"{n}-{i}"), i)
                    cache.get(StatusKey(f"{n}-{i // 2}"))
                    if i % 50 == 0:
                        cache.invalidate(InvalidationEvent(reason="manual", affected_statuses=[f"{n}-{i}"]))
            except Exception as exc:  # pragma: no cover - surfaced by the assert below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) <= 10
        stats = cache.get_stats()
        assert stats.hits + stats.misses == 8 * 200
