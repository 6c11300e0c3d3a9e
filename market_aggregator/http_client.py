"""
HTTP transport shared by every provider.

This module handles:
- aiohttp session lifecycle and connection pooling
- JSON GET requests with a uniform error taxonomy
- Usage and metrics bookkeeping per provider
"""

import asyncio
import time
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp

from .config import HttpConfig
from .exceptions import ProviderFetchError, ProviderParseError
from .monitor.metrics import MetricsCollector
from .providers import ProviderDescriptor
from .rate_limiter import UsageTracker

logger = logging.getLogger(__name__)

# Providers that expect their key in a header rather than the query string
API_KEY_HEADERS = {
    "CoinMarketCap": "X-CMC_PRO_API_KEY",
}


class HttpClient:
    """
    Thin wrapper around an aiohttp session.

    No retries or backoff: a call either yields parsed JSON or raises a
    ``ProviderError`` subclass.
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        usage: Optional[UsageTracker] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or HttpConfig()
        self.usage = usage or UsageTracker()
        self.metrics = metrics or MetricsCollector()

        # Session management
        self.session: Optional[aiohttp.ClientSession] = None
        self.session_lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session with proper configuration."""
        async with self.session_lock:
            if self.session is None or self.session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.config.connection_pool_size,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )

                timeout = aiohttp.ClientTimeout(
                    total=self.config.timeout,
                    connect=self.config.connect_timeout
                )

                self.session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=timeout,
                    headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
                    trust_env=self.config.trust_env
                )

                logger.debug("Created new aiohttp session")

            return self.session

    async def close(self):
        """Close the aiohttp session and cleanup resources."""
        async with self.session_lock:
            if self.session and not self.session.closed:
                await self.session.close()
                logger.debug("Closed aiohttp session")
            self.session = None

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        provider: Optional[ProviderDescriptor] = None,
    ) -> Any:
        """
        GET ``url`` and decode the JSON body.

        Args:
            url: Absolute URL
            params: Query parameters
            provider: Descriptor used for budgets, credentials and metrics

        Returns:
            Decoded JSON payload

        Raises:
            ProviderFetchError: network failure, timeout or non-2xx status
            ProviderParseError: body is not valid JSON
        """
        name = provider.name if provider else urlparse(url).netloc
        headers = {}
        if provider is not None:
            self.usage.record_request(name, provider.rate_limit)
            header = API_KEY_HEADERS.get(name)
            if header and provider.api_key:
                headers[header] = provider.api_key

        session = await self.get_session()
        start_time = time.monotonic()
        success = False

        try:
            async with session.get(url, params=params, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise ProviderFetchError(
                        f"HTTP {response.status} from {url}",
                        provider=name,
                        status=response.status
                    )

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderParseError(f"Malformed JSON from {url}: {e}", provider=name) from e

            success = True
            return data

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderFetchError(f"Request to {url} failed: {e!r}", provider=name) from e

        finally:
            elapsed = time.monotonic() - start_time
            self.usage.record_result(name, success, elapsed)
            self.metrics.record_api_call(name, elapsed, success)
