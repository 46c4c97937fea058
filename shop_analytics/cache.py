"""
Tag-addressable, memory-bounded cache for computed analytics.

Entries are addressed by typed cache keys (GlobalKey, ShopKey, ShopListKey,
StatusKey, DateRangeKey). Each key also yields a set of tags, and tags are
the unit of invalidation: a change to one shop's orders removes every entry
tagged with that shop plus the aggregate and date-ranged views.

Bounds
------
- Entry count is capped at `max_size`.
- Estimated memory is capped at `max_memory` bytes, softly: each `set`
  evicts at most one least-recently-accessed entry and then stores the new
  value regardless (one-shot eviction, soft ceiling). New data is never
  silently dropped.
- Entries older than `ttl_ms` are expired lazily on `get`.

All structural operations run under a single re-entrant lock, so an
instance can be shared between request threads and the warming pool.
"""

import dataclasses
import json
import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .config import (
    DEFAULT_MAX_MEMORY_BYTES,
    DEFAULT_MAX_SIZE,
    DEFAULT_TTL_MS,
    DEFAULT_WARM_WORKERS,
    WARM_TOP_SHOPS,
)
from .normalize import normalize_shop_name
from .records import RepairOrderRecord, normalise_date

logger = logging.getLogger(__name__)

INVALIDATION_REASONS = ("create", "update", "delete", "manual")

# Reasons that change underlying data and so stale every aggregate view
_DATA_CHANGE_REASONS = ("create", "update", "delete")


# ---------------------------------------------------------------------------
# Cache keys
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GlobalKey:
    """All shops, all orders."""

    kind: ClassVar[str] = "global"


@dataclass(frozen=True)
class ShopKey:
    kind: ClassVar[str] = "shop"
    shop_name: str


@dataclass(frozen=True)
class ShopListKey:
    kind: ClassVar[str] = "shopList"
    shop_names: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "shop_names", tuple(self.shop_names))


@dataclass(frozen=True)
class StatusKey:
    kind: ClassVar[str] = "status"
    status: str

    def __post_init__(self):
        object.__setattr__(self, "status", self.status or "")


def _date_text(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, str):
        return val.strip()
    ts = normalise_date(val)
    return ts.date().isoformat() if ts is not None else ""


@dataclass(frozen=True)
class DateRangeKey:
    """Orders created between start_date and end_date, inclusive."""

    kind: ClassVar[str] = "dateRange"
    start_date: str
    end_date: str

    def __post_init__(self):
        object.__setattr__(self, "start_date", _date_text(self.start_date))
        object.__setattr__(self, "end_date", _date_text(self.end_date))


CacheKey = GlobalKey | ShopKey | ShopListKey | StatusKey | DateRangeKey


def generate_key(key: CacheKey) -> str:
    """Deterministic string for a cache key.

    Shop names are normalized and shop lists sorted, so equivalent queries
    ("acme, tx" vs "ACME,TX"; [B, A] vs [A, B]) collide on purpose.
    """
    if isinstance(key, GlobalKey):
        parts = [key.kind]
    elif isinstance(key, ShopKey):
        parts = [key.kind, normalize_shop_name(key.shop_name)]
    elif isinstance(key, ShopListKey):
        parts = [key.kind, *sorted(normalize_shop_name(n) for n in key.shop_names)]
    elif isinstance(key, StatusKey):
        parts = [key.kind, key.status or ""]
    elif isinstance(key, DateRangeKey):
        parts = [key.kind, key.start_date, key.end_date]
    else:
        raise TypeError(f"Unsupported cache key: {key!r}")
    return ":".join(parts)


def key_tags(key: CacheKey) -> frozenset[str]:
    """Tags used to invalidate the entry stored under `key`."""
    if isinstance(key, ShopKey):
        specific = {f"shop:{normalize_shop_name(key.shop_name)}"}
    elif isinstance(key, ShopListKey):
        specific = {f"shop:{normalize_shop_name(n)}" for n in key.shop_names}
    elif isinstance(key, StatusKey):
        specific = {f"status:{key.status}"}
    elif isinstance(key, DateRangeKey):
        specific = {"hasDateRange"} if (key.start_date or key.end_date) else set()
    elif isinstance(key, GlobalKey):
        specific = set()
    else:
        raise TypeError(f"Unsupported cache key: {key!r}")
    return frozenset({f"type:{key.kind}", *specific})


# ---------------------------------------------------------------------------
# Entries, events, stats
# ---------------------------------------------------------------------------
@dataclass
class CacheEntry:
    data: Any
    timestamp: float  # ms
    last_accessed: float  # ms
    size: int  # estimated bytes
    tags: frozenset[str]
    hits: int = 0


@dataclass(frozen=True)
class InvalidationEvent:
    """A repository change that may stale cached analytics."""

    reason: str
    affected_shops: tuple[str, ...] = ()
    affected_statuses: tuple[str, ...] = ()
    timestamp: float = field(default_factory=lambda: time.time() * 1000)

    def __post_init__(self):
        if self.reason not in INVALIDATION_REASONS:
            raise ValueError(
                f"Invalid invalidation reason '{self.reason}'; "
                f"expected one of {INVALIDATION_REASONS}"
            )
        object.__setattr__(self, "affected_shops", tuple(self.affected_shops))
        object.__setattr__(self, "affected_statuses", tuple(self.affected_statuses))


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    hit_rate: float  # percent
    entry_count: int
    oldest_entry: float | None  # age in ms
    newest_entry: float | None  # age in ms
    average_entry_age: float  # ms
    total_evictions: int
    total_invalidations: int
    memory_usage: int  # estimated bytes


def create_invalidation_event(
    reason: str,
    orders: Iterable[RepairOrderRecord],
    timestamp: float | None = None,
) -> InvalidationEvent:
    """Build an InvalidationEvent from the orders a repository change touched."""
    orders = list(orders)
    shops = dict.fromkeys(o.shop_name for o in orders if o.shop_name)
    statuses = dict.fromkeys(o.current_status for o in orders if o.current_status)
    kwargs = {} if timestamp is None else {"timestamp": timestamp}
    return InvalidationEvent(
        reason=reason,
        affected_shops=tuple(shops),
        affected_statuses=tuple(statuses),
        **kwargs,
    )


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "item"):
        # numpy / pandas scalars
        return obj.item()
    return str(obj)


def estimate_size(data: Any) -> int:
    """Approximate in-memory cost: two bytes per serialized character."""
    try:
        text = json.dumps(data, default=_json_default)
    except (TypeError, ValueError, RecursionError):
        text = repr(data)
    return len(text) * 2


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------
class AnalyticsCache:
    """In-process analytics cache with tag invalidation, LRU eviction and TTL.

    Construct one instance per process and pass it to whatever needs it.

    Parameters
    ----------
    max_size : Entry-count ceiling.
    max_memory : Estimated-memory ceiling in bytes.
    ttl_ms : Time-to-live in milliseconds.
    warm_workers : Thread-pool size for per-shop warming.
    clock : Returns the current time in seconds (injectable for tests).
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        max_memory: int = DEFAULT_MAX_MEMORY_BYTES,
        ttl_ms: float = DEFAULT_TTL_MS,
        warm_workers: int = DEFAULT_WARM_WORKERS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if max_memory <= 0:
            raise ValueError(f"max_memory must be positive, got {max_memory}")
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        if warm_workers <= 0:
            raise ValueError(f"warm_workers must be positive, got {warm_workers}")

        self.max_size = max_size
        self.max_memory = max_memory
        self.ttl_ms = ttl_ms
        self.warm_workers = warm_workers
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._invalidations = 0

        logger.info(
            "AnalyticsCache initialized (max_size=%d, max_memory=%.1fMB, ttl=%.1fmin)",
            max_size, max_memory / (1024 * 1024), ttl_ms / 60_000,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _now_ms(self) -> float:
        return self._clock() * 1000

    @staticmethod
    def generate_key(key: CacheKey) -> str:
        return generate_key(key)

    # -- reads / writes ----------------------------------------------------

    def get(self, key: CacheKey) -> Any | None:
        """Return the cached value, or None on a miss or expired entry."""
        key_str = generate_key(key)
        with self._lock:
            now = self._now_ms()
            entry = self._entries.get(key_str)

            if entry is None:
                self._misses += 1
                logger.debug("Cache miss: %s", key_str)
                return None

            age = now - entry.timestamp
            if age > self.ttl_ms:
                del self._entries[key_str]
                self._misses += 1
                logger.debug("Cache expired: %s (age %.0fms)", key_str, age)
                return None

            entry.hits += 1
            entry.last_accessed = now
            self._hits += 1
            logger.debug("Cache hit: %s (hits=%d)", key_str, entry.hits)
            return entry.data

    def set(self, key: CacheKey, value: Any) -> None:
        """Store `value` under `key`, replacing any existing entry.

        Before storing, if the cache is at `max_size` or the new entry
        would push estimated memory past `max_memory`, the single
        least-recently-accessed entry is evicted. The value is stored even
        if the cache is still over budget afterwards.
        """
        key_str = generate_key(key)
        tags = key_tags(key)
        size = estimate_size(value)

        with self._lock:
            now = self._now_ms()
            self._entries.pop(key_str, None)

            if self._should_evict(size):
                self._evict_lru(now)

            self._entries[key_str] = CacheEntry(
                data=value,
                timestamp=now,
                last_accessed=now,
                size=size,
                tags=tags,
            )
            logger.debug(
                "Cache set: %s (size=%d, tags=%s, entries=%d)",
                key_str, size, sorted(tags), len(self._entries),
            )

    def _memory_usage(self) -> int:
        return sum(entry.size for entry in self._entries.values())

    def _should_evict(self, new_entry_size: int) -> bool:
        if len(self._entries) >= self.max_size:
            return True
        return self._memory_usage() + new_entry_size > self.max_memory

    def _evict_lru(self, now: float) -> None:
        if not self._entries:
            return
        # Linear scan; fine at the configured scale of ~100 entries
        lru_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        evicted = self._entries.pop(lru_key)
        self._evictions += 1
        logger.debug(
            "Evicted LRU entry: %s (idle %.0fms)", lru_key, now - evicted.last_accessed
        )

    # -- invalidation ------------------------------------------------------

    def invalidate(self, event: InvalidationEvent) -> int:
        """Remove every entry whose tags intersect the event's tags.

        Returns the number of entries removed.
        """
        tags = {f"shop:{normalize_shop_name(shop)}" for shop in event.affected_shops}
        tags.update(f"status:{status}" for status in event.affected_statuses)
        if event.reason in _DATA_CHANGE_REASONS:
            tags.update(("type:global", "hasDateRange"))

        with self._lock:
            doomed = [k for k, entry in self._entries.items() if entry.tags & tags]
            for key_str in doomed:
                del self._entries[key_str]
            self._invalidations += len(doomed)

        logger.info(
            "Cache invalidated (reason=%s, shops=%s, entries=%d, tags=%s)",
            event.reason, list(event.affected_shops), len(doomed), sorted(tags),
        )
        return len(doomed)

    def invalidate_all(self) -> int:
        """Remove every entry, counting them as invalidations."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._invalidations += count
        logger.info("All cache entries invalidated (%d cleared)", count)
        return count

    def clear(self) -> None:
        """Drop every entry without touching statistics."""
        with self._lock:
            self._entries.clear()
        logger.info("Cache cleared manually")

    # -- warming -----------------------------------------------------------

    @staticmethod
    def top_shops(
        orders: Iterable[RepairOrderRecord],
        limit: int = WARM_TOP_SHOPS,
    ) -> list[str]:
        """Raw shop names with the most orders, most first."""
        counts = Counter(o.shop_name for o in orders if o.shop_name)
        return [shop for shop, _ in counts.most_common(limit)]

    def _warm_one(self, key: CacheKey, compute_fn: Callable[[CacheKey], Any]) -> bool:
        try:
            value = compute_fn(key)
        except Exception as exc:
            logger.error("Failed to warm cache for %s: %s", generate_key(key), exc)
            return False
        if value is None:
            logger.debug("Nothing to warm for %s", generate_key(key))
            return False
        self.set(key, value)
        return True

    def warm(
        self,
        orders: Iterable[RepairOrderRecord],
        compute_fn: Callable[[CacheKey], Any],
    ) -> int:
        """Eagerly populate the global entry and the busiest shops.

        `compute_fn` receives a GlobalKey, then a ShopKey for each of the
        top shops by raw order count. Shop computations run concurrently;
        their writes go through `set`. Failures are logged and skipped.

        Returns the number of entries written.
        """
        orders = list(orders)
        logger.info("Starting cache warming for %d orders", len(orders))

        global_warmed = self._warm_one(GlobalKey(), compute_fn)

        shops = self.top_shops(orders)
        shops_warmed = 0
        if shops:
            with ThreadPoolExecutor(max_workers=self.warm_workers) as pool:
                futures = [
                    pool.submit(self._warm_one, ShopKey(shop), compute_fn) for shop in shops
                ]
                shops_warmed = sum(1 for f in as_completed(futures) if f.result())

        logger.info(
            "Cache warming completed (global=%s, shops=%d/%d)",
            global_warmed, shops_warmed, len(shops),
        )
        return shops_warmed + (1 if global_warmed else 0)

    # -- introspection -----------------------------------------------------

    def get_stats(self) -> CacheStats:
        with self._lock:
            now = self._now_ms()
            ages = [now - entry.timestamp for entry in self._entries.values()]
            requests = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                hit_rate=(self._hits / requests * 100) if requests else 0.0,
                entry_count=len(self._entries),
                oldest_entry=max(ages) if ages else None,
                newest_entry=min(ages) if ages else None,
                average_entry_age=(sum(ages) / len(ages)) if ages else 0.0,
                total_evictions=self._evictions,
                total_invalidations=self._invalidations,
                memory_usage=self._memory_usage(),
            )

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._invalidations = 0
        logger.info("Cache statistics reset")

    def get_entries(self) -> list[dict]:
        """Per-entry summary for debugging and admin views."""
        with self._lock:
            now = self._now_ms()
            return [
                {
                    "key": key_str,
                    "hits": entry.hits,
                    "age": now - entry.timestamp,
                    "size": entry.size,
                    "tags": sorted(entry.tags),
                }
                for key_str, entry in self._entries.items()
            ]
