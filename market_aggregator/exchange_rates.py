"""
Currency exchange rates relative to USD.

The table is refreshed wholesale from a public endpoint; the refresh loop is
an owned asyncio task that the host stops on shutdown.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from .config import DEFAULT_EXCHANGE_RATES
from .http_client import HttpClient
from .normalizers import normalize_exchange_rates

logger = logging.getLogger(__name__)


class ExchangeRateTable:
    """Currency code -> multiplier relative to USD."""

    def __init__(self, defaults: Optional[Dict[str, float]] = None):
        self.defaults = {k.upper(): v for k, v in (defaults or DEFAULT_EXCHANGE_RATES).items()}
        self._rates = dict(self.defaults, USD=1.0)
        self.updated_at: Optional[datetime] = None

    def rate(self, code: str) -> float:
        """Rate for ``code``; unknown codes behave as USD."""
        return self._rates.get(code.upper(), 1.0)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        return amount / self.rate(from_currency) * self.rate(to_currency)

    def replace(self, rates: Dict[str, float]):
        self._rates = dict(rates)
        self.updated_at = datetime.now(timezone.utc)

    def as_dict(self) -> Dict[str, float]:
        return dict(self._rates)

    async def refresh(self, http: HttpClient, url: str) -> bool:
        """
        Fetch and install a new table.

        Returns:
            True on success; on failure the previous table stays in place
        """
        try:
            payload = await http.get_json(url)
            self.replace(normalize_exchange_rates(payload, self.defaults))
        except Exception as e:
            logger.error(f"Failed to update exchange rates: {e}")
            return False

        logger.debug(f"Exchange rates updated ({len(self._rates)} currencies)")
        return True


class ExchangeRateRefresher:
    """Periodically refreshes an ``ExchangeRateTable`` until stopped."""

    def __init__(
        self,
        table: ExchangeRateTable,
        http: HttpClient,
        url: str,
        interval: float = 3600.0,
    ):
        self.table = table
        self.http = http
        self.url = url
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.table.refresh(self.http, self.url)

    def start(self) -> asyncio.Task:
        """Schedule the refresh loop; calling it again returns the running task."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Exchange rate refresh scheduled every {self.interval:.0f}s")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Exchange rate refresh stopped")
