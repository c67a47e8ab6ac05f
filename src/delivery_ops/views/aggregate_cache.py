"""
Aggregate view cache.

Derived dashboard state (role delivery lists, agent "today" lists, totals)
is computed from the record store on demand and cached per query key. An
entry is recomputed when it is read for the first time, after any table it
read has changed, or once it is older than its poll interval. Entries are
never patched in place.
"""

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any

from delivery_ops.shared.metrics import metrics_collector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateKey:
    """Identifies one aggregate: a query shape plus its parameters."""

    shape: str
    params: tuple[Hashable, ...] = ()


@dataclass
class AggregateEntry:
    value: Any
    computed_at: float
    tables: frozenset[str]
    poll_interval: float | None = None
    stale: bool = False


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    by_shape: dict[str, int] = field(default_factory=dict)


class AggregateViewCache:
    """
    Per-key cache of derived aggregates.

    Concurrent readers of a missing or stale entry share one recomputation
    through a per-key asyncio lock. A computation that overlaps an
    invalidation of its key stores its result already stale.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[AggregateKey, AggregateEntry] = {}
        self._locks: dict[AggregateKey, asyncio.Lock] = {}
        self._versions: dict[AggregateKey, int] = defaultdict(int)
        self._registry: dict[str, set[AggregateKey]] = defaultdict(set)
        self._stats = CacheStats()

    def _miss_reason(self, entry: AggregateEntry | None) -> str | None:
        """Return why ``entry`` must be recomputed, or None if it is fresh."""
        if entry is None:
            return "cold"
        if entry.stale:
            return "invalidated"
        if (
            entry.poll_interval is not None
            and self._clock() - entry.computed_at >= entry.poll_interval
        ):
            return "expired"
        return None

    async def get_or_compute(
        self,
        key: AggregateKey,
        compute: Callable[[], Awaitable[Any]],
        tables: Iterable[str],
        poll_interval: float | None = None,
    ) -> Any:
        """
        Return the cached value for ``key`` or recompute it.

        Args:
            key: Aggregate identity
            compute: Coroutine function producing the value from the store
            tables: Tables the computation reads
            poll_interval: Maximum age in seconds before recomputing
        """
        entry = self._entries.get(key)
        if self._miss_reason(entry) is None:
            self._record_hit(key)
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._entries.get(key)
            reason = self._miss_reason(entry)
            if reason is None:
                self._record_hit(key)
                return entry.value

            read_tables = frozenset(tables)
            for table in read_tables:
                self._registry[table].add(key)

            self._stats.misses += 1
            metrics_collector.record_cache_miss(key.shape, reason)

            version = self._versions[key]
            value = await compute()

            self._entries[key] = AggregateEntry(
                value=value,
                computed_at=self._clock(),
                tables=read_tables,
                poll_interval=poll_interval,
                stale=self._versions[key] != version,
            )
            logger.debug(f"Recomputed aggregate {key.shape}{key.params} ({reason})")
            return value

    def _record_hit(self, key: AggregateKey) -> None:
        self._stats.hits += 1
        self._stats.by_shape[key.shape] = self._stats.by_shape.get(key.shape, 0) + 1
        metrics_collector.record_cache_hit(key.shape)

    def invalidate(self, key: AggregateKey) -> bool:
        """Mark one aggregate stale. Returns True if an entry existed."""
        self._versions[key] += 1
        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.stale = True
        self._stats.invalidations += 1
        return True

    def invalidate_table(self, table: str) -> int:
        """
        Mark every aggregate that read ``table`` stale.

        Returns:
            Number of cached entries invalidated
        """
        count = 0
        for key in list(self._registry.get(table, ())):
            if self.invalidate(key):
                count += 1

        if count:
            metrics_collector.record_invalidation(table, count)
            logger.debug(f"Invalidated {count} aggregates reading '{table}'")
        return count

    def clear(self) -> None:
        """
        Drop all cached entries together with their locks and versions.

        Keys with a computation in flight keep their lock and a bumped
        version, so the in-flight result is stored already stale.
        """
        in_flight = {key: lock for key, lock in self._locks.items() if lock.locked()}
        self._versions = defaultdict(
            int, {key: self._versions[key] + 1 for key in in_flight}
        )
        self._locks = in_flight
        self._entries.clear()
        self._registry.clear()

    def peek(self, key: AggregateKey) -> AggregateEntry | None:
        return self._entries.get(key)

    def stats(self) -> dict[str, Any]:
        return {
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "invalidations": self._stats.invalidations,
            "entries": len(self._entries),
            "hits_by_shape": dict(self._stats.by_shape),
        }
