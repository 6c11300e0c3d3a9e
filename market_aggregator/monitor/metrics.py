"""
Performance metrics collection for the aggregator.

This module handles:
- Counters for provider calls, errors and cache lookups
- Timing summaries for provider calls, overall and per provider
- Metrics export as a plain dict
"""

import threading
import logging
from typing import Dict, Any, Iterable, Optional
from dataclasses import dataclass
from collections import defaultdict, deque

logger = logging.getLogger(__name__)


@dataclass
class MetricSummary:
    """Running summary of a timing series."""
    count: int = 0
    total: float = 0.0
    min: float = float('inf')
    max: float = float('-inf')

    @property
    def avg(self) -> float:
        return self.total / self.count if self.count else 0.0

    def update(self, value: float):
        self.count += 1
        self.total += value
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "total": self.total,
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
        }


def percentile(values: Iterable[float], p: float) -> float:
    """Linear-interpolated percentile, ``p`` in [0, 1]."""
    ordered = sorted(values)
    if not ordered:
        return 0.0

    position = (len(ordered) - 1) * p
    lower = int(position)
    upper = min(lower + 1, len(ordered) - 1)
    return ordered[lower] + (position - lower) * (ordered[upper] - ordered[lower])


class MetricsCollector:
    """
    Collects and aggregates aggregator metrics.

    Counters are keyed by metric name plus a sorted tag suffix, so
    ``api_calls_total{provider=CoinGecko}`` and the untagged total are both
    available. Raw timings are kept for the untagged series only (bounded
    by ``max_timings``); tagged series keep a running summary.
    """

    def __init__(self, max_timings: int = 1000):
        self.max_timings = max_timings
        self.counters: Dict[str, int] = defaultdict(int)
        self.timings: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_timings))
        self.summaries: Dict[str, MetricSummary] = defaultdict(MetricSummary)

        self.lock = threading.Lock()

        logger.debug("Initialized MetricsCollector")

    @staticmethod
    def _tagged(name: str, tags: Optional[Dict[str, str]]) -> Optional[str]:
        if not tags:
            return None
        suffix = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}{{{suffix}}}"

    def increment(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter, both untagged and per tag set."""
        with self.lock:
            self.counters[name] += value
            tagged = self._tagged(name, tags)
            if tagged:
                self.counters[tagged] += value

    def record_timing(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Record a timing value in seconds."""
        with self.lock:
            self.timings[name].append(value)
            self.summaries[name].update(value)
            tagged = self._tagged(name, tags)
            if tagged:
                self.summaries[tagged].update(value)

    def record_api_call(self, provider: str, duration: float, success: bool):
        """Record a provider HTTP call."""
        tags = {"provider": provider}
        self.increment("api_calls_total", tags=tags)
        self.record_timing("api_duration_seconds", duration, tags=tags)
        if not success:
            self.increment("api_failures_total", tags=tags)

    def record_cache_hit(self, tags: Optional[Dict[str, str]] = None):
        self.increment("cache_hits", tags=tags)

    def record_cache_miss(self, tags: Optional[Dict[str, str]] = None):
        self.increment("cache_misses", tags=tags)

    def record_error(self, component: str, error_type: str):
        """Record a provider that contributed nothing."""
        self.increment(
            "errors_total",
            tags={"component": component, "error_type": error_type}
        )

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> int:
        """Get counter value."""
        with self.lock:
            return self.counters.get(self._tagged(name, tags) or name, 0)

    def _timing_stats(self, name: str) -> Dict[str, float]:
        series = self.timings.get(name)
        if not series:
            return {}

        stats = self.summaries[name].to_dict()
        stats.update(
            p50=percentile(series, 0.5),
            p95=percentile(series, 0.95),
            p99=percentile(series, 0.99),
        )
        return stats

    def get_timing_stats(self, name: str) -> Dict[str, float]:
        """Summary plus percentiles over the retained timings."""
        with self.lock:
            return self._timing_stats(name)

    def get_all_metrics(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "counters": dict(self.counters),
                "timings": {name: self._timing_stats(name) for name in self.timings},
                "summaries": {
                    name: summary.to_dict()
                    for name, summary in self.summaries.items()
                },
            }

    def reset(self):
        """Reset all metrics."""
        with self.lock:
            self.counters.clear()
            self.timings.clear()
            self.summaries.clear()

        logger.info("Reset all metrics")
