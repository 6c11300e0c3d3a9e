"""
Provider payload normalization.

Each function takes a decoded JSON payload from one upstream API and returns
normalized models. A payload whose top-level shape is wrong raises
``ProviderParseError``; individual malformed records are skipped.
"""

import logging
from typing import Any, Dict, List, Optional

from .exceptions import ProviderParseError
from .models import (
    NewsSentiment,
    NormalizedAsset,
    NormalizedNewsItem,
    SentimentLabel,
    SocialSentimentSample,
)
from .utils import clamp, parse_timestamp, safe_float, safe_int, truncate

logger = logging.getLogger(__name__)

NEUTRAL_FEAR_GREED = 50


def _require(payload: Any, key: str, provider: str, kind: type = list) -> Any:
    value = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(value, kind):
        raise ProviderParseError(f"Response has no '{key}' {kind.__name__}", provider=provider)
    return value


# Market data

def normalize_coingecko_markets(payload: Any) -> List[NormalizedAsset]:
    if not isinstance(payload, list):
        raise ProviderParseError("Expected a list of coins", provider="CoinGecko")

    assets = []
    for coin in payload:
        try:
            symbol = coin["symbol"].upper()
            assets.append(NormalizedAsset(
                id=coin["id"],
                symbol=symbol,
                name=coin.get("name") or symbol,
                price=safe_float(coin.get("current_price")),
                price_change=safe_float(coin.get("price_change_24h")),
                change_percent=safe_float(coin.get("price_change_percentage_24h")),
                volume=safe_float(coin.get("total_volume")),
                market_cap=safe_float(coin.get("market_cap")),
                rank=safe_int(coin.get("market_cap_rank")),
                image=coin.get("image"),
                price_change_1h=safe_float(coin.get("price_change_percentage_1h_in_currency")),
                price_change_7d=safe_float(coin.get("price_change_percentage_7d_in_currency")),
                price_change_30d=safe_float(coin.get("price_change_percentage_30d_in_currency")),
                circulating_supply=safe_float(coin.get("circulating_supply")),
                total_supply=safe_float(coin.get("total_supply")),
                max_supply=safe_float(coin.get("max_supply")),
            ))
        except (KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Skipping malformed CoinGecko record: {e!r}")
    return assets


def normalize_cryptocompare_toplist(payload: Any, currency: str) -> List[NormalizedAsset]:
    items = _require(payload, "Data", "CryptoCompare")
    quote = currency.upper()

    assets = []
    for index, item in enumerate(items):
        try:
            info = item["CoinInfo"]
            raw = (item.get("RAW") or {}).get(quote)
            if not raw:
                continue
            symbol = info["Name"]
            assets.append(NormalizedAsset(
                id=symbol.lower(),
                symbol=symbol,
                name=info.get("FullName") or symbol,
                price=safe_float(raw.get("PRICE")),
                price_change=safe_float(raw.get("CHANGE24HOUR")),
                change_percent=safe_float(raw.get("CHANGEPCT24HOUR")),
                volume=safe_float(raw.get("VOLUME24HOUR")),
                market_cap=safe_float(raw.get("MKTCAP")),
                rank=index + 1,
                image=f"https://www.cryptocompare.com{info['ImageUrl']}" if info.get("ImageUrl") else None,
            ))
        except (KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Skipping malformed CryptoCompare record: {e!r}")
    return assets


def normalize_coincap_assets(payload: Any, usd_rate: float) -> List[NormalizedAsset]:
    """CoinCap quotes USD; ``usd_rate`` converts into the quote currency."""
    items = _require(payload, "data", "CoinCap")

    assets = []
    for index, asset in enumerate(items):
        try:
            symbol = asset["symbol"]
            price_usd = safe_float(asset.get("priceUsd"))
            change_pct = safe_float(asset.get("changePercent24Hr"))
            assets.append(NormalizedAsset(
                id=asset["id"],
                symbol=symbol,
                name=asset.get("name") or symbol,
                price=price_usd * usd_rate,
                price_change=change_pct * price_usd * usd_rate / 100,
                change_percent=change_pct,
                volume=safe_float(asset.get("volumeUsd24Hr")) * usd_rate,
                market_cap=safe_float(asset.get("marketCapUsd")) * usd_rate,
                rank=safe_int(asset.get("rank")) or index + 1,
                image=f"https://assets.coincap.io/assets/icons/{symbol.lower()}@2x.png",
                circulating_supply=safe_float(asset.get("supply"), None),
                max_supply=safe_float(asset.get("maxSupply"), None),
            ))
        except (KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Skipping malformed CoinCap record: {e!r}")
    return assets


# News

def _news_item(**fields) -> Optional[NormalizedNewsItem]:
    try:
        published = parse_timestamp(fields.pop("published"))
    except ValueError as e:
        logger.debug(f"Skipping news item without a usable timestamp: {e}")
        return None
    if not fields.get("title"):
        return None
    return NormalizedNewsItem(published_at=published, timestamp=published, **fields)


def normalize_cryptopanic_posts(payload: Any) -> List[NormalizedNewsItem]:
    results = _require(payload, "results", "CryptoPanic")

    items = []
    for post in results:
        if not isinstance(post, dict):
            continue
        votes = post.get("votes") or {}
        positive = safe_int(votes.get("positive"))
        negative = safe_int(votes.get("negative"))
        item = _news_item(
            id=str(post.get("id", "")),
            title=post.get("title"),
            summary=post.get("title") or "",
            url=post.get("url") or "",
            source=(post.get("source") or {}).get("title") or "CryptoPanic",
            published=post.get("published_at"),
            sentiment=NewsSentiment.POSITIVE if positive > negative else NewsSentiment.NEUTRAL,
            relevance=clamp(positive / 10, 0.0, 1.0),
            categories=[c["code"] for c in post.get("currencies") or [] if c.get("code")],
        )
        if item:
            items.append(item)
    return items


def normalize_cryptocompare_news(payload: Any) -> List[NormalizedNewsItem]:
    data = _require(payload, "Data", "CryptoCompare")

    items = []
    for article in data:
        if not isinstance(article, dict):
            continue
        item = _news_item(
            id=str(article.get("id", "")),
            title=article.get("title"),
            summary=truncate(article.get("body")),
            url=article.get("url") or "",
            source=(article.get("source_info") or {}).get("name") or "CryptoCompare",
            published=article.get("published_on"),
            relevance=0.8,
            categories=[c for c in (article.get("categories") or "").split("|") if c],
        )
        if item:
            items.append(item)
    return items


def normalize_reddit_posts(payload: Any) -> List[NormalizedNewsItem]:
    listing = _require(payload, "data", "Reddit", dict)
    children = listing.get("children") or []

    items = []
    for child in children:
        post = child.get("data") if isinstance(child, dict) else None
        if not post:
            continue
        score = safe_float(post.get("score"))
        item = _news_item(
            id=str(post.get("id", "")),
            title=post.get("title"),
            summary=truncate(post.get("selftext")) or post.get("title") or "",
            url=f"https://reddit.com{post.get('permalink', '')}",
            source="Reddit r/CryptoCurrency",
            published=post.get("created_utc"),
            sentiment=NewsSentiment.POSITIVE if score > 100 else NewsSentiment.NEUTRAL,
            relevance=clamp(score / 1000, 0.0, 1.0),
            categories=["reddit", "discussion"],
        )
        if item:
            items.append(item)
    return items


def normalize_messari_news(payload: Any) -> List[NormalizedNewsItem]:
    data = _require(payload, "data", "Messari")

    items = []
    for article in data:
        if not isinstance(article, dict):
            continue
        item = _news_item(
            id=str(article.get("id", "")),
            title=article.get("title"),
            summary=truncate(article.get("content")) or article.get("title") or "",
            url=article.get("url") or "",
            source="Messari",
            published=article.get("published_at"),
            relevance=0.9,
            categories=list(article.get("tags") or []),
        )
        if item:
            items.append(item)
    return items


# Sentiment

def _label(value: float, bullish_above: float, bearish_below: float) -> SentimentLabel:
    if value > bullish_above:
        return SentimentLabel.BULLISH
    if value < bearish_below:
        return SentimentLabel.BEARISH
    return SentimentLabel.NEUTRAL


def normalize_reddit_sentiment(payload: Any) -> SocialSentimentSample:
    listing = _require(payload, "data", "Reddit", dict)
    posts = listing.get("children") or []

    total_score = sum(safe_float((p.get("data") or {}).get("score")) for p in posts)
    avg_score = total_score / len(posts) if posts else 0.0

    return SocialSentimentSample(
        platform="Reddit",
        sentiment=_label(avg_score, 10, -5),
        score=clamp(avg_score / 100),
        mentions=len(posts),
        engagement=total_score,
    )


def normalize_cryptocompare_social(payload: Any) -> Optional[SocialSentimentSample]:
    """Returns None when the response carries no ``Data`` block."""
    data = payload.get("Data") if isinstance(payload, dict) else None
    if not data:
        return None

    points_change = safe_float(((data.get("General") or {}).get("PointsChange") or {}).get("hour"))
    community = data.get("CommunityData") or {}

    return SocialSentimentSample(
        platform="CryptoCompare",
        sentiment=_label(points_change, 5, -5),
        score=clamp(points_change / 100),
        mentions=safe_int(community.get("Posts")),
        engagement=safe_float(community.get("Followers")),
    )


def normalize_fear_greed(payload: Any) -> int:
    """Index value 0-100; zero or missing values fall back to neutral."""
    entries = _require(payload, "data", "Alternative.me")
    if not entries or not isinstance(entries[0], dict):
        return NEUTRAL_FEAR_GREED
    return safe_int(entries[0].get("value")) or NEUTRAL_FEAR_GREED


# Exchange rates

def normalize_exchange_rates(payload: Any, defaults: Dict[str, float]) -> Dict[str, float]:
    """
    Build a complete rate table from a ``{"rates": {...}}`` response.

    Every positive rate in the response is kept, every code in ``defaults``
    is present in the result (missing ones keep their default), and USD is
    pinned to 1.
    """
    rates = _require(payload, "rates", "exchange-rates", dict)

    table = {}
    for code, rate in rates.items():
        value = safe_float(rate, None)
        if value and value > 0:
            table[code.upper()] = value
    for code, default in defaults.items():
        table.setdefault(code.upper(), default)
    table["USD"] = 1.0
    return table
