"""
Market data aggregation across public crypto APIs.

This package is responsible for:
- Fetching market listings, news and social sentiment from several providers
- Normalizing provider payloads into one shape
- Merging and deduplicating results across providers
- Caching aggregate results with a TTL
- Keeping currency exchange rates fresh
"""

from .aggregator import MarketDataAggregator, merge_market_data, dedupe_news
from .cache_manager import TTLCache
from .config import Config
from .exceptions import (
    ProviderError,
    ProviderFetchError,
    ProviderParseError,
    ProviderDisabledError,
)
from .exchange_rates import ExchangeRateTable, ExchangeRateRefresher
from .http_client import HttpClient
from .models import (
    NormalizedAsset,
    NormalizedNewsItem,
    SocialSentimentSample,
    OnChainMetrics,
    SentimentLabel,
)
from .providers import ProviderDescriptor, ProviderRegistry
from .rate_limiter import UsageTracker
from .monitor.metrics import MetricsCollector

__version__ = "1.0.0"
__all__ = [
    "MarketDataAggregator",
    "merge_market_data",
    "dedupe_news",
    "TTLCache",
    "Config",
    "ProviderError",
    "ProviderFetchError",
    "ProviderParseError",
    "ProviderDisabledError",
    "ExchangeRateTable",
    "ExchangeRateRefresher",
    "HttpClient",
    "NormalizedAsset",
    "NormalizedNewsItem",
    "SocialSentimentSample",
    "OnChainMetrics",
    "SentimentLabel",
    "ProviderDescriptor",
    "ProviderRegistry",
    "UsageTracker",
    "MetricsCollector",
]
