"""
In-memory caching for aggregate results.

This module handles:
- Time-windowed entries with a per-entry TTL
- LRU eviction to bound the number of keys
- Coalescing of concurrent fetches for the same key
- Cache metrics
"""

import time
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .monitor.metrics import MetricsCollector

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload with its capture time and time-to-live."""
    payload: Any
    captured_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.captured_at < self.ttl


class TTLCache:
    """
    Time-windowed cache with LRU eviction.

    Entries are never mutated after being written; a refresh overwrites the
    slot. Empty results are cached like any other payload.
    """

    def __init__(
        self,
        max_entries: int = 128,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.max_entries = max_entries
        self.clock = clock
        self.metrics = metrics or MetricsCollector()

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._pending: "Dict[str, asyncio.Task[Any]]" = {}
        self._generation = 0

        # Performance tracking
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.coalesced = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _evict_if_needed(self):
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted cache entry {key}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a fresh item from the cache.

        Args:
            key: Cache key
            default: Returned when the key is missing or expired

        Returns:
            Cached payload or ``default``
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self.clock()):
            self._entries.move_to_end(key)
            self.hits += 1
            self.metrics.record_cache_hit()
            return entry.payload

        self.misses += 1
        self.metrics.record_cache_miss()
        return default

    def set(self, key: str, value: Any, ttl: float):
        """
        Set item in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds
        """
        self._entries[key] = CacheEntry(payload=value, captured_at=self.clock(), ttl=ttl)
        self._entries.move_to_end(key)
        self._evict_if_needed()

    def delete(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        """Drop every entry and forget in-flight fetches; those never write back."""
        self._entries.clear()
        self._pending.clear()
        self._generation += 1
        logger.info("Cleared cache")

    def _start_fetch(
        self,
        key: str,
        ttl: float,
        factory: Callable[[], Awaitable[Any]],
    ) -> "asyncio.Task[Any]":
        generation = self._generation
        task = asyncio.ensure_future(factory())
        self._pending[key] = task

        def settle(done: "asyncio.Task[Any]"):
            if self._pending.get(key) is done:
                del self._pending[key]
            if done.cancelled():
                return
            # Retrieving the exception also silences the unawaited-task warning
            if done.exception() is None and generation == self._generation:
                self.set(key, done.result(), ttl)

        task.add_done_callback(settle)
        return task

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for ``key`` or compute it with ``factory``.

        Concurrent callers that miss on the same key await a single in-flight
        ``factory`` task instead of issuing their own. The task is owned by the
        cache, so cancelling one caller leaves the others and the fetch alone.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        task = self._pending.get(key)
        if task is None:
            task = self._start_fetch(key, ttl, factory)
        else:
            self.coalesced += 1
            logger.debug(f"Joining in-flight fetch for {key}")

        return await asyncio.shield(task)

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache performance metrics."""
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "entries": len(self._entries),
            "capacity": self.max_entries,
            "in_flight": len(self._pending),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": hit_rate,
            "evictions": self.evictions,
            "coalesced": self.coalesced
        }
