"""
Shared fixtures: a controllable clock, canned provider payloads and a
URL-routed stand-in for ``HttpClient.get_json``.
"""

from typing import Any, Dict, Union
from unittest.mock import AsyncMock

import pytest

from market_aggregator import Config, MarketDataAggregator
from market_aggregator.exceptions import ProviderFetchError


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


# URL fragments identifying each upstream call
COINGECKO = "api.coingecko.com/api/v3/coins/markets"
CRYPTOCOMPARE_TOPLIST = "min-api.cryptocompare.com/data/top/mktcapfull"
COINCAP = "api.coincap.io/v2/assets"
CRYPTOPANIC = "cryptopanic.com/api/v1/posts/"
CRYPTOCOMPARE_NEWS = "min-api.cryptocompare.com/data/v2/news/"
REDDIT_HOT = "reddit.com/r/CryptoCurrency/hot.json"
REDDIT_SEARCH = "reddit.com/r/CryptoCurrency/search.json"
MESSARI_NEWS = "data.messari.io/api/v1/news"
CRYPTOCOMPARE_SOCIAL = "min-api.cryptocompare.com/data/social/coin/general"
FEAR_GREED = "api.alternative.me/fng/"
EXCHANGE_RATES = "api.exchangerate-api.com"


def route(routes: Dict[str, Union[Any, Exception]]) -> AsyncMock:
    """
    Build an ``AsyncMock`` for ``get_json`` answering by URL fragment.

    A route whose value is an exception raises it; unrouted URLs fail like
    an unreachable host.
    """
    def get_json(url, params=None, provider=None):
        for fragment, response in routes.items():
            if fragment in url:
                if isinstance(response, Exception):
                    raise response
                return response
        raise ProviderFetchError(f"unrouted {url}", provider=provider.name if provider else None)

    return AsyncMock(side_effect=get_json)


def calls_to(mock: AsyncMock, fragment: str) -> int:
    return sum(1 for call in mock.call_args_list if fragment in call.args[0])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def aggregator(clock):
    return MarketDataAggregator(Config(), clock=clock)


@pytest.fixture
def coingecko_payload():
    return [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "image": "https://example.com/btc.png",
            "current_price": 100.0,
            "price_change_24h": 2.0,
            "price_change_percentage_24h": 2.0,
            "total_volume": 50.0,
            "market_cap": 1000.0,
            "market_cap_rank": 1,
            "price_change_percentage_1h_in_currency": 0.1,
            "price_change_percentage_7d_in_currency": 5.0,
            "price_change_percentage_30d_in_currency": 12.0,
            "circulating_supply": 19_000_000,
            "total_supply": 21_000_000,
            "max_supply": 21_000_000,
        },
        {
            "id": "ethereum",
            "symbol": "eth",
            "name": "Ethereum",
            "current_price": 10.0,
            "market_cap": 500.0,
            "market_cap_rank": 2,
        },
    ]


@pytest.fixture
def cryptocompare_toplist_payload():
    return {
        "Data": [
            {
                "CoinInfo": {"Name": "BTC", "FullName": "Bitcoin", "ImageUrl": "/media/btc.png"},
                "RAW": {"AUD": {"PRICE": 110.0, "CHANGE24HOUR": 1.0, "CHANGEPCT24HOUR": 0.9,
                                "VOLUME24HOUR": 60.0, "MKTCAP": 1100.0}},
            },
            {
                "CoinInfo": {"Name": "SOL", "FullName": "Solana", "ImageUrl": "/media/sol.png"},
                "RAW": {"AUD": {"PRICE": 5.0, "MKTCAP": 50.0}},
            },
            {
                # No quote in the requested currency: skipped
                "CoinInfo": {"Name": "DOGE", "FullName": "Dogecoin"},
                "RAW": {"USD": {"PRICE": 0.1, "MKTCAP": 10.0}},
            },
        ]
    }


@pytest.fixture
def coincap_payload():
    return {
        "data": [
            {
                "id": "cardano",
                "rank": "8",
                "symbol": "ADA",
                "name": "Cardano",
                "priceUsd": "1.0",
                "changePercent24Hr": "10.0",
                "volumeUsd24Hr": "20",
                "marketCapUsd": "100",
            }
        ]
    }


@pytest.fixture
def market_routes(coingecko_payload, cryptocompare_toplist_payload, coincap_payload):
    return {
        COINGECKO: coingecko_payload,
        CRYPTOCOMPARE_TOPLIST: cryptocompare_toplist_payload,
        COINCAP: coincap_payload,
    }


@pytest.fixture
def news_routes():
    return {
        CRYPTOPANIC: {
            "results": [
                {
                    "id": 1,
                    "title": "Bitcoin breaks record",
                    "url": "https://cryptopanic.com/1",
                    "source": {"title": "CoinDesk"},
                    "published_at": "2024-05-01T10:00:00Z",
                    "votes": {"positive": 5, "negative": 1},
                    "currencies": [{"code": "BTC"}],
                }
            ]
        },
        CRYPTOCOMPARE_NEWS: {
            "Data": [
                {
                    "id": "cc-7",
                    "title": "Bitcoin breaks record",
                    "body": "Duplicate headline from another outlet",
                    "url": "https://cryptocompare.com/7",
                    "source_info": {"name": "Decrypt"},
                    "published_on": 1714600000,
                    "categories": "BTC|Market",
                },
                {
                    "id": "cc-8",
                    "title": "Ethereum upgrade scheduled",
                    "body": "Details",
                    "url": "https://cryptocompare.com/8",
                    "published_on": 1714500000,
                    "categories": "ETH",
                },
            ]
        },
        REDDIT_HOT: {
            "data": {
                "children": [
                    {
                        "data": {
                            "id": "abc",
                            "title": "Daily discussion",
                            "selftext": "",
                            "permalink": "/r/CryptoCurrency/comments/abc",
                            "created_utc": 1714700000,
                            "score": 250,
                        }
                    }
                ]
            }
        },
        MESSARI_NEWS: {
            "data": [
                {
                    "id": "m-1",
                    "title": "Messari weekly",
                    "content": "Research notes",
                    "url": "https://messari.io/1",
                    "published_at": "2024-04-20T08:00:00Z",
                    "tags": ["research"],
                }
            ]
        },
    }
