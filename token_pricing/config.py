"""
Token Pricing - Configuration.

============================================================
CONFIGURABLE PRICE RESOLUTION
============================================================

All connection and freshness parameters are configurable:
- Redis connection (primary cache tier)
- Cache TTLs
- Provider base URLs, keys and timeouts

Configuration can be loaded from:
- Default values
- Environment variables (.env files honoured)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


DEFAULT_API_URLS = {
    "production": "https://api.aiw3.ai",
    "test": "https://api-test1.aiw3.ai",
    "development": "https://api-test1.aiw3.ai",
}

DEFAULT_HYPERLIQUID_URLS = {
    "production": "https://api.hyperliquid.xyz",
    "test": "https://api-ui.hyperliquid-testnet.xyz",
    "development": "https://api-ui.hyperliquid-testnet.xyz",
}


def _environment() -> str:
    """APP_ENV wins over NODE_ENV; defaults to development."""
    return os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"


def _ms_to_seconds(value: str) -> float:
    return int(value) / 1000.0


# =============================================================
# REDIS
# =============================================================


@dataclass
class RedisConfig:
    """
    Primary cache tier connection.

    Redis is enabled only when a host and port are explicitly configured.
    """
    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    connect_timeout: float = 10.0
    command_timeout: float = 5.0

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError("Invalid REDIS_PORT: must be between 1 and 65535")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
            "password": "***" if self.password else None,
            "db": self.db,
            "connect_timeout": self.connect_timeout,
            "command_timeout": self.command_timeout,
        }


# =============================================================
# CACHE
# =============================================================


@dataclass
class CacheConfig:
    """Freshness windows."""
    token_price_ttl: int = 300   # 5 minutes, shared by all providers
    default_ttl: int = 600
    key_prefix: str = "token_price_"

    def __post_init__(self) -> None:
        if self.token_price_ttl <= 0:
            raise ValueError("token_price_ttl must be > 0")
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be > 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_price_ttl": self.token_price_ttl,
            "default_ttl": self.default_ttl,
            "key_prefix": self.key_prefix,
        }


# =============================================================
# PROVIDERS
# =============================================================


@dataclass
class ProviderConfig:
    """Upstream endpoints, in chain order."""
    api_base_url: str = DEFAULT_API_URLS["development"]
    api_key: Optional[str] = None
    api_timeout: float = 10.0

    hyperliquid_url: str = DEFAULT_HYPERLIQUID_URLS["development"]
    hyperliquid_timeout: float = 10.0

    binance_url: str = "https://api.binance.com"
    binance_timeout: float = 10.0
    quote_asset: str = "USDT"

    coingecko_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: Optional[str] = None
    coingecko_timeout: float = 10.0

    def __post_init__(self) -> None:
        for name in ("api_base_url", "hyperliquid_url", "binance_url", "coingecko_url"):
            if not getattr(self, name).startswith("http"):
                raise ValueError(f"{name} must start with http:// or https://")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_base_url": self.api_base_url,
            "api_key": "***" if self.api_key else None,
            "api_timeout": self.api_timeout,
            "hyperliquid_url": self.hyperliquid_url,
            "hyperliquid_timeout": self.hyperliquid_timeout,
            "binance_url": self.binance_url,
            "binance_timeout": self.binance_timeout,
            "quote_asset": self.quote_asset,
            "coingecko_url": self.coingecko_url,
            "coingecko_api_key": "***" if self.coingecko_api_key else None,
            "coingecko_timeout": self.coingecko_timeout,
        }


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class PricingConfig:
    """
    Main configuration for price resolution.

    Combines all sub-configurations.
    """
    environment: str = "development"
    redis: RedisConfig = field(default_factory=RedisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "PricingConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - APP_ENV / NODE_ENV
        - REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB
        - REDIS_CONNECT_TIMEOUT, REDIS_COMMAND_TIMEOUT (ms)
        - CACHE_TOKEN_PRICE_TTL, CACHE_DEFAULT_TTL (s)
        - API_BASE_URL, API_KEY, API_TIMEOUT (ms)
        - HYPERLIQUID_API_URL, HYPERLIQUID_TIMEOUT (ms)
        - BINANCE_API_URL, BINANCE_TIMEOUT (ms), QUOTE_ASSET
        - COINGECKO_API_URL, COINGECKO_API_KEY, COINGECKO_TIMEOUT (ms)
        """
        load_dotenv(env_file)

        env = _environment()

        redis = RedisConfig(
            enabled=bool(os.getenv("REDIS_HOST") and os.getenv("REDIS_PORT")),
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD") or None,
            db=int(os.getenv("REDIS_DB", "0")),
            connect_timeout=_ms_to_seconds(os.getenv("REDIS_CONNECT_TIMEOUT", "10000")),
            command_timeout=_ms_to_seconds(os.getenv("REDIS_COMMAND_TIMEOUT", "5000")),
        )

        cache = CacheConfig(
            token_price_ttl=int(os.getenv("CACHE_TOKEN_PRICE_TTL", "300")),
            default_ttl=int(os.getenv("CACHE_DEFAULT_TTL", "600")),
        )

        providers = ProviderConfig(
            api_base_url=os.getenv("API_BASE_URL", DEFAULT_API_URLS.get(env, DEFAULT_API_URLS["development"])),
            api_key=os.getenv("API_KEY") or None,
            api_timeout=_ms_to_seconds(os.getenv("API_TIMEOUT", "10000")),
            hyperliquid_url=os.getenv(
                "HYPERLIQUID_API_URL",
                DEFAULT_HYPERLIQUID_URLS.get(env, DEFAULT_HYPERLIQUID_URLS["development"]),
            ),
            hyperliquid_timeout=_ms_to_seconds(os.getenv("HYPERLIQUID_TIMEOUT", "10000")),
            binance_url=os.getenv("BINANCE_API_URL", "https://api.binance.com"),
            binance_timeout=_ms_to_seconds(os.getenv("BINANCE_TIMEOUT", "10000")),
            quote_asset=os.getenv("QUOTE_ASSET", "USDT").upper(),
            coingecko_url=os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3"),
            coingecko_api_key=os.getenv("COINGECKO_API_KEY") or None,
            coingecko_timeout=_ms_to_seconds(os.getenv("COINGECKO_TIMEOUT", "10000")),
        )

        return cls(environment=env, redis=redis, cache=cache, providers=providers)

    @classmethod
    def from_yaml(cls, path: Path) -> "PricingConfig":
        """Load configuration from YAML file."""
        try:
            import yaml
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}

            config = cls()

            if "environment" in data:
                config.environment = data["environment"]
            if "redis" in data:
                r = data["redis"]
                config.redis = RedisConfig(
                    enabled=r.get("enabled", True),
                    host=r.get("host", "localhost"),
                    port=r.get("port", 6379),
                    password=r.get("password"),
                    db=r.get("db", 0),
                    connect_timeout=r.get("connect_timeout", 10.0),
                    command_timeout=r.get("command_timeout", 5.0),
                )
            if "cache" in data:
                c = data["cache"]
                config.cache = CacheConfig(
                    token_price_ttl=c.get("token_price_ttl", 300),
                    default_ttl=c.get("default_ttl", 600),
                    key_prefix=c.get("key_prefix", "token_price_"),
                )
            if "providers" in data:
                config.providers = ProviderConfig(**data["providers"])

            return config

        except Exception as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (secrets masked)."""
        return {
            "environment": self.environment,
            "redis": self.redis.to_dict(),
            "cache": self.cache.to_dict(),
            "providers": self.providers.to_dict(),
        }
