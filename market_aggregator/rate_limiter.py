"""
Advisory rate budgets and per-provider usage statistics.

This module handles:
- Sliding one-minute request windows per provider
- Budget overrun warnings (requests are never delayed or dropped)
- Call statistics: totals, failures, average response time
"""

import time
import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class ProviderUsage:
    """Usage statistics for a single provider."""
    provider: str
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    avg_response_time: float = 0.0
    budget_overruns: int = 0
    last_called: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "avg_response_time": self.avg_response_time,
            "budget_overruns": self.budget_overruns,
            "last_called": self.last_called.isoformat() if self.last_called else None,
        }


class UsageTracker:
    """
    Tracks provider calls against their advisory per-minute budgets.

    Budgets are informational: exceeding one logs a warning and bumps
    ``budget_overruns`` but the request still goes out.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._windows: Dict[str, Deque[float]] = defaultdict(deque)
        self._usage: Dict[str, ProviderUsage] = {}

    def _prune(self, provider: str, now: float) -> Deque[float]:
        window = self._windows[provider]
        while window and now - window[0] >= WINDOW_SECONDS:
            window.popleft()
        return window

    def record_request(self, provider: str, budget: int) -> bool:
        """
        Note an outgoing request.

        Returns:
            True if the request fits the budget, False if it overruns it
        """
        now = self.clock()
        window = self._prune(provider, now)
        window.append(now)

        if budget > 0 and len(window) > budget:
            usage = self._usage.setdefault(provider, ProviderUsage(provider))
            usage.budget_overruns += 1
            logger.warning(
                f"{provider} over advisory budget: {len(window)} requests "
                f"in the last minute (budget {budget})"
            )
            return False
        return True

    def record_result(self, provider: str, success: bool, response_time: float):
        """Fold a completed call into the provider's statistics."""
        usage = self._usage.setdefault(provider, ProviderUsage(provider))
        usage.total_calls += 1
        if success:
            usage.successful_calls += 1
        else:
            usage.failed_calls += 1

        usage.avg_response_time = (
            (usage.avg_response_time * (usage.total_calls - 1)) + response_time
        ) / usage.total_calls
        usage.last_called = datetime.now(timezone.utc)

    def requests_in_window(self, provider: str) -> int:
        return len(self._prune(provider, self.clock()))

    def get_usage(self, provider: str) -> Optional[ProviderUsage]:
        return self._usage.get(provider)

    def get_usage_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: usage.to_dict() for name, usage in self._usage.items()}

    def get_metrics(self) -> Dict[str, Any]:
        total = sum(u.total_calls for u in self._usage.values())
        failed = sum(u.failed_calls for u in self._usage.values())
        return {
            "providers": len(self._usage),
            "total_calls": total,
            "failed_calls": failed,
            "error_rate": failed / max(1, total) * 100,
            "budget_overruns": sum(u.budget_overruns for u in self._usage.values()),
        }
