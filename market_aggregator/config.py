"""
Configuration management for the market data aggregator.

This module handles:
- Centralized configuration
- Environment variable support
- Configuration validation
- Logging setup
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE_RATES = {"USD": 1.0, "AUD": 1.52, "EUR": 0.85, "GBP": 0.75}


@dataclass
class HttpConfig:
    """HTTP client configuration."""
    timeout: float = 30.0
    connect_timeout: float = 10.0
    connection_pool_size: int = 20
    user_agent: str = "market-aggregator/1.0"
    trust_env: bool = True


@dataclass
class CacheConfig:
    """Cache configuration."""
    market_data_ttl: float = 30.0
    news_ttl: float = 300.0
    max_entries: int = 128


@dataclass
class ExchangeRateConfig:
    """Exchange rate refresh configuration."""
    url: str = "https://api.exchangerate-api.com/v4/latest/USD"
    refresh_interval: float = 3600.0
    default_rates: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES))


@dataclass
class Config:
    """Main configuration class."""
    # HTTP settings
    http: HttpConfig = field(default_factory=HttpConfig)

    # Cache settings
    cache: CacheConfig = field(default_factory=CacheConfig)

    # Exchange rates
    exchange_rates: ExchangeRateConfig = field(default_factory=ExchangeRateConfig)

    # Quote currency for provider requests
    default_currency: str = "aud"

    # Credentials
    cryptopanic_auth_token: str = "free"
    provider_api_keys: Dict[str, str] = field(default_factory=dict)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'Config':
        """Create configuration from environment variables."""
        api_keys = {}
        raw_keys = os.getenv("MARKET_AGG_PROVIDER_API_KEYS", "")
        for pair in filter(None, raw_keys.split(",")):
            name, _, key = pair.partition("=")
            if key:
                api_keys[name.strip()] = key.strip()

        return cls(
            http=HttpConfig(
                timeout=float(os.getenv("MARKET_AGG_HTTP_TIMEOUT", "30")),
                connect_timeout=float(os.getenv("MARKET_AGG_CONNECT_TIMEOUT", "10")),
                connection_pool_size=int(os.getenv("MARKET_AGG_POOL_SIZE", "20")),
                user_agent=os.getenv("MARKET_AGG_USER_AGENT", "market-aggregator/1.0")
            ),
            cache=CacheConfig(
                market_data_ttl=float(os.getenv("MARKET_AGG_MARKET_TTL", "30")),
                news_ttl=float(os.getenv("MARKET_AGG_NEWS_TTL", "300")),
                max_entries=int(os.getenv("MARKET_AGG_CACHE_MAX_ENTRIES", "128"))
            ),
            exchange_rates=ExchangeRateConfig(
                url=os.getenv("MARKET_AGG_FX_URL", "https://api.exchangerate-api.com/v4/latest/USD"),
                refresh_interval=float(os.getenv("MARKET_AGG_FX_REFRESH_INTERVAL", "3600"))
            ),
            default_currency=os.getenv("MARKET_AGG_DEFAULT_CURRENCY", "aud").lower(),
            cryptopanic_auth_token=os.getenv("MARKET_AGG_CRYPTOPANIC_TOKEN", "free"),
            provider_api_keys=api_keys,
            log_level=os.getenv("MARKET_AGG_LOG_LEVEL", "INFO"),
            log_file=os.getenv("MARKET_AGG_LOG_FILE")
        )

    @classmethod
    def from_file(cls, file_path: str) -> 'Config':
        """Create configuration from JSON file."""
        with open(file_path, 'r') as f:
            config_data = json.load(f)

        return cls(
            http=HttpConfig(**config_data.get('http', {})),
            cache=CacheConfig(**config_data.get('cache', {})),
            exchange_rates=ExchangeRateConfig(**config_data.get('exchange_rates', {})),
            **{k: v for k, v in config_data.items()
               if k not in ['http', 'cache', 'exchange_rates']}
        )

    def to_file(self, file_path: str):
        """Save configuration to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(asdict(self), f, indent=2)

    def validate(self):
        """Validate configuration values."""
        errors = []

        if self.http.timeout <= 0:
            errors.append("HTTP timeout must be positive")

        if self.http.connect_timeout <= 0:
            errors.append("HTTP connect timeout must be positive")

        if self.http.connection_pool_size <= 0:
            errors.append("Connection pool size must be positive")

        if self.cache.market_data_ttl <= 0:
            errors.append("Market data TTL must be positive")

        if self.cache.news_ttl <= 0:
            errors.append("News TTL must be positive")

        if self.cache.max_entries <= 0:
            errors.append("Max cache entries must be positive")

        if not self.exchange_rates.url.startswith(('http://', 'https://')):
            errors.append("Exchange rate URL must start with http:// or https://")

        if self.exchange_rates.refresh_interval <= 0:
            errors.append("Exchange rate refresh interval must be positive")

        if any(rate <= 0 for rate in self.exchange_rates.default_rates.values()):
            errors.append("Default exchange rates must be positive")

        if not self.default_currency:
            errors.append("Default currency must not be empty")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        logger.info("Configuration validation passed")

    def setup_logging(self):
        """Set up logging based on configuration."""
        level = getattr(logging, self.log_level.upper())
        logging.basicConfig(level=level)

        # Add file handler if specified
        if self.log_file:
            handler = logging.FileHandler(self.log_file)
            handler.setLevel(level)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logging.getLogger().addHandler(handler)

        logger.info(f"Logging configured with level {self.log_level}")
