"""
Multi-provider market data aggregation.

This module handles:
- Concurrent fan-out to independent market, news and social providers
- Merging results by identity with a fixed conflict rule
- Time-windowed caching of aggregate results
- Graceful degradation when individual providers fail
"""

import asyncio
import random
import time
import logging
from dataclasses import fields, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .cache_manager import TTLCache
from .config import Config
from .exceptions import ProviderDisabledError
from .exchange_rates import ExchangeRateRefresher, ExchangeRateTable
from .http_client import HttpClient
from .models import (
    NormalizedAsset,
    NormalizedNewsItem,
    OnChainMetrics,
    SocialSentimentSample,
    WhaleMovement,
)
from .monitor.metrics import MetricsCollector
from .normalizers import (
    NEUTRAL_FEAR_GREED,
    normalize_coincap_assets,
    normalize_coingecko_markets,
    normalize_cryptocompare_news,
    normalize_cryptocompare_social,
    normalize_cryptocompare_toplist,
    normalize_cryptopanic_posts,
    normalize_fear_greed,
    normalize_messari_news,
    normalize_reddit_posts,
    normalize_reddit_sentiment,
)
from .providers import ProviderRegistry
from .rate_limiter import UsageTracker

logger = logging.getLogger(__name__)

ASSET_COLUMNS = [f.name for f in fields(NormalizedAsset)] + ["value", "label"]

Source = Tuple[str, Callable[[], Awaitable[Any]]]


def merge_market_data(
    existing: Sequence[NormalizedAsset],
    incoming: Sequence[NormalizedAsset],
) -> List[NormalizedAsset]:
    """
    Merge ``incoming`` into ``existing`` by identity.

    Two assets are the same when their symbol or id matches; the first match
    in ``existing`` wins. On a match the incoming record's populated fields
    overwrite the existing ones, except price, which is averaged when both
    sides carry one. Neither input is mutated.
    """
    merged = list(existing)

    for asset in incoming:
        index = next(
            (i for i, current in enumerate(merged)
             if current.symbol == asset.symbol or current.id == asset.id),
            None
        )
        if index is None:
            merged.append(asset)
            continue

        current = merged[index]
        updates = {
            f.name: getattr(asset, f.name)
            for f in fields(asset)
            if getattr(asset, f.name) is not None
        }
        if current.price and asset.price:
            updates["price"] = (current.price + asset.price) / 2
        elif not asset.price:
            updates["price"] = current.price
        merged[index] = replace(current, **updates)

    return merged


def dedupe_news(items: Sequence[NormalizedNewsItem]) -> List[NormalizedNewsItem]:
    """Drop items whose title exactly matches an earlier item's."""
    seen = set()
    unique = []
    for item in items:
        if item.title in seen:
            continue
        seen.add(item.title)
        unique.append(item)
    return unique


class MarketDataAggregator:
    """
    Provider-agnostic access to crypto market data.

    Responsibilities:
    - Own the provider registry, result cache and exchange-rate table
    - Fan out to every provider of an operation and merge what succeeds
    - Never raise from a public fetch operation because a provider failed

    Usage::

        async with MarketDataAggregator(Config.from_env()) as aggregator:
            assets = await aggregator.get_comprehensive_market_data(100)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        http: Optional[HttpClient] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or Config()
        self.metrics = MetricsCollector()
        self.http = http or HttpClient(
            self.config.http,
            usage=UsageTracker(clock=clock),
            metrics=self.metrics
        )
        self.providers = ProviderRegistry(api_keys=self.config.provider_api_keys)
        self.cache = TTLCache(
            max_entries=self.config.cache.max_entries,
            clock=clock,
            metrics=self.metrics
        )
        self.exchange_rates = ExchangeRateTable(self.config.exchange_rates.default_rates)
        self.refresher = ExchangeRateRefresher(
            self.exchange_rates,
            self.http,
            self.config.exchange_rates.url,
            self.config.exchange_rates.refresh_interval
        )
        self.default_currency = self.config.default_currency.lower()
        self.rng = rng or random.Random()

        logger.info(f"Initialized MarketDataAggregator with {len(self.providers)} providers")

    # Lifecycle

    async def start(self) -> ExchangeRateRefresher:
        """Load exchange rates once and schedule the periodic refresh."""
        await self.exchange_rates.refresh(self.http, self.config.exchange_rates.url)
        self.refresher.start()
        return self.refresher

    async def close(self):
        """Stop the exchange-rate refresh and release the HTTP session."""
        await self.refresher.stop()
        await self.http.close()

    async def __aenter__(self) -> "MarketDataAggregator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # Plumbing

    async def _request(self, provider_name: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        provider = self.providers.get(provider_name)
        if not provider.is_active:
            raise ProviderDisabledError(f"{provider_name} is disabled", provider=provider_name)
        return await self.http.get_json(provider.url(endpoint), params=params, provider=provider)

    async def _gather_sources(self, operation: str, sources: Sequence[Source]) -> List[Tuple[str, Any]]:
        """
        Run every source concurrently and keep the ones that succeeded.

        Results come back in ``sources`` order regardless of completion order.
        """
        results = await asyncio.gather(*(fetch() for _, fetch in sources), return_exceptions=True)

        succeeded = []
        for (name, _), result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning(f"{operation}: {name} failed, skipping: {result}")
                self.metrics.record_error(name, type(result).__name__)
            else:
                succeeded.append((name, result))
        return succeeded

    # Market data

    async def get_comprehensive_market_data(self, limit: int = 250) -> List[NormalizedAsset]:
        """
        Merged asset list from every market provider.

        Args:
            limit: Maximum number of assets to return

        Returns:
            Assets sorted by market cap, descending; empty if every provider failed
        """
        return await self.cache.get_or_fetch(
            f"comprehensive-market-data-{self.default_currency}-{limit}",
            self.config.cache.market_data_ttl,
            lambda: self._fetch_market_data(limit)
        )

    async def _fetch_market_data(self, limit: int) -> List[NormalizedAsset]:
        sources = [
            ("CoinGecko", lambda: self._fetch_coingecko(limit)),
            ("CryptoCompare", lambda: self._fetch_cryptocompare(limit)),
            ("CoinCap", lambda: self._fetch_coincap(limit)),
        ]

        combined: List[NormalizedAsset] = []
        for name, assets in await self._gather_sources("market data", sources):
            if assets:
                combined = merge_market_data(combined, assets)
                logger.debug(f"Merged {len(assets)} assets from {name}")

        result = sorted(combined, key=lambda a: a.market_cap or 0, reverse=True)[:limit]
        logger.info(f"Aggregated {len(result)} assets from {len(sources)} market providers")
        return result

    async def _fetch_coingecko(self, limit: int) -> List[NormalizedAsset]:
        payload = await self._request("CoinGecko", "coins", {
            "vs_currency": self.default_currency,
            "order": "market_cap_desc",
            "per_page": limit,
            "page": 1,
            "sparkline": "false",
            "price_change_percentage": "1h,24h,7d,30d",
        })
        return normalize_coingecko_markets(payload)

    async def _fetch_cryptocompare(self, limit: int) -> List[NormalizedAsset]:
        payload = await self._request("CryptoCompare", "toplist", {
            "limit": limit,
            "tsym": self.default_currency.upper(),
        })
        return normalize_cryptocompare_toplist(payload, self.default_currency)

    async def _fetch_coincap(self, limit: int) -> List[NormalizedAsset]:
        payload = await self._request("CoinCap", "assets", {"limit": limit})
        return normalize_coincap_assets(payload, self.exchange_rates.rate(self.default_currency))

    async def market_data_frame(self, limit: int = 250) -> pd.DataFrame:
        """The merged market list as a DataFrame, one row per asset."""
        assets = await self.get_comprehensive_market_data(limit)
        if not assets:
            return pd.DataFrame(columns=ASSET_COLUMNS)
        return pd.DataFrame([asset.to_dict() for asset in assets], columns=ASSET_COLUMNS)

    # News

    async def get_crypto_news(self, limit: int = 50) -> List[NormalizedNewsItem]:
        """
        Deduplicated headlines from every news source, newest first.

        Args:
            limit: Maximum number of items to return
        """
        return await self.cache.get_or_fetch(
            f"comprehensive-news-{limit}",
            self.config.cache.news_ttl,
            lambda: self._fetch_news(limit)
        )

    async def _fetch_news(self, limit: int) -> List[NormalizedNewsItem]:
        sources = [
            ("CryptoPanic", lambda: self._fetch_cryptopanic_news(limit)),
            ("CryptoCompare", lambda: self._fetch_cryptocompare_news(limit)),
            ("Reddit", lambda: self._fetch_reddit_news(limit)),
            ("Messari", lambda: self._fetch_messari_news(limit)),
        ]

        all_news: List[NormalizedNewsItem] = []
        for _, items in await self._gather_sources("news", sources):
            all_news.extend(items)

        unique = sorted(dedupe_news(all_news), key=lambda n: n.timestamp, reverse=True)[:limit]
        logger.info(f"Aggregated {len(unique)} news items ({len(all_news)} before dedupe)")
        return unique

    async def _fetch_cryptopanic_news(self, limit: int) -> List[NormalizedNewsItem]:
        payload = await self._request("CryptoPanic", "posts", {
            "auth_token": self.config.cryptopanic_auth_token,
            "filter": "hot",
            "limit": limit,
        })
        return normalize_cryptopanic_posts(payload)

    async def _fetch_cryptocompare_news(self, limit: int) -> List[NormalizedNewsItem]:
        payload = await self._request("CryptoCompare", "news", {
            "lang": "EN",
            "sortOrder": "latest",
            "limit": limit,
        })
        return normalize_cryptocompare_news(payload)

    async def _fetch_reddit_news(self, limit: int) -> List[NormalizedNewsItem]:
        payload = await self._request("Reddit", "cryptocurrency", {"limit": min(limit, 25)})
        return normalize_reddit_posts(payload)

    async def _fetch_messari_news(self, limit: int) -> List[NormalizedNewsItem]:
        payload = await self._request("Messari", "news", {"limit": limit})
        return normalize_messari_news(payload)

    # Social sentiment

    async def get_social_sentiment(self, symbols: Sequence[str]) -> Dict[str, List[SocialSentimentSample]]:
        """
        Sentiment samples per symbol, one per platform that answered.

        Not cached: every call queries the platforms again.
        """
        results = await asyncio.gather(*(self._sentiment_for_symbol(s) for s in symbols))
        return dict(zip(symbols, results))

    async def _sentiment_for_symbol(self, symbol: str) -> List[SocialSentimentSample]:
        sources = [
            ("Reddit", lambda: self._fetch_reddit_sentiment(symbol)),
            ("CryptoCompare", lambda: self._fetch_cryptocompare_social(symbol)),
        ]
        collected = await self._gather_sources(f"sentiment {symbol}", sources)
        return [sample for _, sample in collected if sample is not None]

    async def _fetch_reddit_sentiment(self, symbol: str) -> SocialSentimentSample:
        payload = await self._request("Reddit", "search", {"q": symbol, "sort": "hot", "limit": 25})
        return normalize_reddit_sentiment(payload)

    async def _fetch_cryptocompare_social(self, symbol: str) -> Optional[SocialSentimentSample]:
        payload = await self._request("CryptoCompare", "social", {"fsym": symbol})
        return normalize_cryptocompare_social(payload)

    # Indices and on-chain

    async def get_fear_greed_index(self) -> int:
        """Fear & Greed index (0-100); 50 when the provider is unavailable."""
        try:
            payload = await self._request("Alternative.me", "feargreed")
            return normalize_fear_greed(payload)
        except Exception as e:
            logger.error(f"Failed to fetch Fear & Greed Index: {e}")
            self.metrics.record_error("Alternative.me", type(e).__name__)
            return NEUTRAL_FEAR_GREED

    async def get_on_chain_metrics(self, symbol: str) -> Optional[OnChainMetrics]:
        """
        Placeholder on-chain summary.

        No explorer is queried; values are random within plausible ranges and
        the result is flagged ``is_placeholder``.
        """
        try:
            code = symbol.upper()
            now = datetime.now(timezone.utc)
            return OnChainMetrics(
                symbol=code,
                active_addresses=self.rng.randint(100_000, 1_099_999),
                transaction_count=self.rng.randint(50_000, 549_999),
                hash_rate=self.rng.randint(150, 349) if code == "BTC" else None,
                network_value=self.rng.randint(1_000_000_000, 10_999_999_999),
                whale_movements=[
                    WhaleMovement(
                        amount=self.rng.randint(100, 1099),
                        timestamp=now - timedelta(seconds=self.rng.random() * 86400),
                        direction=self.rng.choice(("in", "out")),
                    )
                ],
            )
        except Exception as e:
            logger.error(f"Failed to build on-chain metrics for {symbol}: {e}")
            return None

    # Currency

    def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> float:
        """``amount`` in ``from_currency`` expressed in ``to_currency``; unknown codes count as USD."""
        return self.exchange_rates.convert(amount, from_currency, to_currency)

    def set_default_currency(self, currency: str):
        """Change the quote currency; cached results in the old currency are dropped."""
        currency = currency.lower()
        if currency != self.default_currency:
            self.default_currency = currency
            self.cache.clear()
            logger.info(f"Default currency set to {currency}")

    def get_default_currency(self) -> str:
        return self.default_currency

    def get_exchange_rates(self) -> Dict[str, float]:
        return self.exchange_rates.as_dict()

    # Housekeeping

    def clear_cache(self):
        self.cache.clear()

    def get_provider_status(self) -> Dict[str, bool]:
        return self.providers.status()

    def set_provider_active(self, name: str, active: bool):
        self.providers.set_active(name, active)

    def get_usage_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.http.usage.get_usage_stats()

    def get_metrics(self) -> Dict[str, Any]:
        """Get current performance metrics."""
        return {
            "cache": self.cache.get_metrics(),
            "usage": self.http.usage.get_metrics(),
            "collector": self.metrics.get_all_metrics(),
            "exchange_rates_updated_at": (
                self.exchange_rates.updated_at.isoformat()
                if self.exchange_rates.updated_at else None
            ),
        }
