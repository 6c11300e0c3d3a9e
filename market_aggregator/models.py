"""
Normalized data models shared by every provider.

Provider payloads are converted into these shapes by ``normalizers`` before
any merging happens, so the aggregator never touches raw provider fields.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SentimentLabel(str, Enum):
    """Coarse social sentiment."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class NewsSentiment(str, Enum):
    """Coarse news sentiment."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass
class NormalizedAsset:
    """A single asset quote, expressed in the aggregator's default currency."""
    id: str
    symbol: str
    name: str
    price: float = 0.0
    price_change: float = 0.0
    change_percent: float = 0.0
    volume: float = 0.0
    market_cap: float = 0.0
    rank: int = 0
    image: Optional[str] = None
    price_change_1h: Optional[float] = None
    price_change_7d: Optional[float] = None
    price_change_30d: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None

    @property
    def value(self) -> str:
        return self.id

    @property
    def label(self) -> str:
        return f"{self.name} ({self.symbol})"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["value"] = self.value
        data["label"] = self.label
        return data


@dataclass
class NormalizedNewsItem:
    """A news headline from any source."""
    id: str
    title: str
    summary: str
    url: str
    source: str
    published_at: datetime
    timestamp: datetime
    sentiment: NewsSentiment = NewsSentiment.NEUTRAL
    relevance: float = 0.0
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["sentiment"] = self.sentiment.value
        data["published_at"] = self.published_at.isoformat()
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class SocialSentimentSample:
    """Sentiment reading for one symbol on one platform."""
    platform: str
    sentiment: SentimentLabel
    score: float
    mentions: int
    engagement: float


@dataclass
class WhaleMovement:
    amount: float
    timestamp: datetime
    direction: str  # "in" or "out"


@dataclass
class OnChainMetrics:
    """
    On-chain summary for a symbol.

    Values are placeholders until a chain explorer is wired in; consumers
    should check ``is_placeholder`` before treating them as real.
    """
    symbol: str
    active_addresses: int
    transaction_count: int
    network_value: float
    hash_rate: Optional[float] = None
    whale_movements: List[WhaleMovement] = field(default_factory=list)
    is_placeholder: bool = True
