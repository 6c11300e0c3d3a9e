"""
Provider descriptors and the registry that owns them.

Descriptors are static apart from the active flag. ``rate_limit`` is the
documented requests-per-minute budget of the upstream API; it is tracked by
``UsageTracker`` but never enforced.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ProviderCategory(str, Enum):
    MARKET_DATA = "market_data"
    NEWS = "news"
    BLOCKCHAIN = "blockchain"
    DEFI = "defi"
    SOCIAL = "social"


@dataclass
class ProviderDescriptor:
    """Static description of an upstream HTTP API."""
    name: str
    base_url: str
    endpoints: Dict[str, str]
    rate_limit: int
    is_active: bool
    priority: int
    category: ProviderCategory
    api_key: Optional[str] = field(default=None, repr=False)

    def url(self, endpoint: str, **path_params: str) -> str:
        """Build the full URL for a named endpoint, filling ``{id}`` style placeholders."""
        path = self.endpoints[endpoint]
        if path_params:
            path = path.format(**path_params)
        return f"{self.base_url}{path}"


DEFAULT_PROVIDERS: List[ProviderDescriptor] = [
    # Market data
    ProviderDescriptor(
        name="CoinGecko",
        base_url="https://api.coingecko.com/api/v3",
        endpoints={
            "coins": "/coins/markets",
            "trending": "/search/trending",
            "global": "/global",
            "exchanges": "/exchanges",
            "categories": "/coins/categories",
            "onchain": "/coins/{id}/onchain_market_data",
        },
        rate_limit=50, is_active=True, priority=1,
        category=ProviderCategory.MARKET_DATA,
    ),
    ProviderDescriptor(
        name="CoinMarketCap",
        base_url="https://pro-api.coinmarketcap.com/v1",
        endpoints={
            "listings": "/cryptocurrency/listings/latest",
            "quotes": "/cryptocurrency/quotes/latest",
            "global": "/global-metrics/quotes/latest",
            "categories": "/cryptocurrency/categories",
        },
        rate_limit=30, is_active=False, priority=2,
        category=ProviderCategory.MARKET_DATA,
    ),
    ProviderDescriptor(
        name="CryptoCompare",
        base_url="https://min-api.cryptocompare.com/data",
        endpoints={
            "price": "/pricemultifull",
            "toplist": "/top/mktcapfull",
            "historical": "/histoday",
            "news": "/v2/news/",
            "social": "/social/coin/general",
            "mining": "/mining/pools/general",
        },
        rate_limit=100, is_active=True, priority=1,
        category=ProviderCategory.MARKET_DATA,
    ),
    ProviderDescriptor(
        name="Messari",
        base_url="https://data.messari.io/api/v1",
        endpoints={
            "assets": "/assets",
            "metrics": "/assets/{id}/metrics",
            "news": "/news",
            "onchain": "/assets/{id}/metrics/on-chain",
        },
        rate_limit=20, is_active=True, priority=2,
        category=ProviderCategory.MARKET_DATA,
    ),
    ProviderDescriptor(
        name="CoinCap",
        base_url="https://api.coincap.io/v2",
        endpoints={
            "assets": "/assets",
            "markets": "/markets",
            "exchanges": "/exchanges",
            "candles": "/assets/{id}/candles",
        },
        rate_limit=200, is_active=True, priority=2,
        category=ProviderCategory.MARKET_DATA,
    ),
    # News and sentiment
    ProviderDescriptor(
        name="CryptoPanic",
        base_url="https://cryptopanic.com/api/v1",
        endpoints={"posts": "/posts/", "currencies": "/currencies"},
        rate_limit=60, is_active=True, priority=1,
        category=ProviderCategory.NEWS,
    ),
    ProviderDescriptor(
        name="Alternative.me",
        base_url="https://api.alternative.me",
        endpoints={"feargreed": "/fng/", "global": "/global"},
        rate_limit=60, is_active=True, priority=1,
        category=ProviderCategory.NEWS,
    ),
    # Blockchain explorers
    ProviderDescriptor(
        name="Blockchain.info",
        base_url="https://blockchain.info",
        endpoints={
            "stats": "/stats",
            "pools": "/pools",
            "charts": "/charts",
            "unconfirmed": "/unconfirmed-transactions",
            "mempool": "/mempool",
        },
        rate_limit=300, is_active=True, priority=1,
        category=ProviderCategory.BLOCKCHAIN,
    ),
    ProviderDescriptor(
        name="Etherscan",
        base_url="https://api.etherscan.io/api",
        endpoints={
            "balance": "?module=account&action=balance",
            "transactions": "?module=account&action=txlist",
            "gasprice": "?module=gastracker&action=gasoracle",
            "supply": "?module=stats&action=ethsupply",
        },
        rate_limit=5, is_active=False, priority=3,
        category=ProviderCategory.BLOCKCHAIN,
    ),
    # DeFi
    ProviderDescriptor(
        name="DeFiPulse",
        base_url="https://data-api.defipulse.com/api/v1",
        endpoints={"protocols": "/projects", "tvl": "/projects/{id}/tvl"},
        rate_limit=60, is_active=True, priority=2,
        category=ProviderCategory.DEFI,
    ),
    ProviderDescriptor(
        name="Uniswap",
        base_url="https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3",
        endpoints={"pools": "", "tokens": "", "positions": ""},
        rate_limit=100, is_active=True, priority=2,
        category=ProviderCategory.DEFI,
    ),
    # Social
    ProviderDescriptor(
        name="Reddit",
        base_url="https://www.reddit.com",
        endpoints={
            "cryptocurrency": "/r/CryptoCurrency/hot.json",
            "search": "/r/CryptoCurrency/search.json",
            "bitcoin": "/r/Bitcoin/hot.json",
            "ethereum": "/r/ethereum/hot.json",
        },
        rate_limit=60, is_active=True, priority=2,
        category=ProviderCategory.SOCIAL,
    ),
]


class ProviderRegistry:
    """Named lookup over provider descriptors."""

    def __init__(
        self,
        providers: Optional[List[ProviderDescriptor]] = None,
        api_keys: Optional[Dict[str, str]] = None,
    ):
        self._providers: Dict[str, ProviderDescriptor] = {}
        # Copies so toggling one registry never leaks into the module defaults
        for provider in providers if providers is not None else DEFAULT_PROVIDERS:
            self._providers[provider.name] = replace(provider, endpoints=dict(provider.endpoints))

        for name, key in (api_keys or {}).items():
            provider = self._providers.get(name)
            if provider is None:
                logger.warning(f"API key supplied for unknown provider {name}")
                continue
            provider.api_key = key
            provider.is_active = True
            logger.info(f"Activated {name} with configured API key")

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, name: str) -> ProviderDescriptor:
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"Unknown provider: {name}") from None

    def set_active(self, name: str, active: bool):
        provider = self.get(name)
        if provider.is_active != active:
            provider.is_active = active
            logger.info(f"Provider {name} {'activated' if active else 'deactivated'}")

    def by_category(self, category: ProviderCategory) -> List[ProviderDescriptor]:
        """Providers of a category ordered by priority rank."""
        matching = [p for p in self._providers.values() if p.category == category]
        return sorted(matching, key=lambda p: p.priority)

    def status(self) -> Dict[str, bool]:
        return {name: provider.is_active for name, provider in self._providers.items()}
