"""
Token Pricing Package - Resilient token price resolution and caching.

Provides validated, up-to-date token prices for the trading bot's command
handlers and margin engine.

Features:
- Two-tier cache (Redis primary, in-process fallback)
- Four structurally different upstream providers in a fixed fallback chain
- Layered ticker matching across inconsistent provider naming
- Typed, retryable-aware errors for UI layers
- Coalescing of concurrent identical lookups

Quick Start:
    from token_pricing import PricingConfig, TokenPriceError, create_price_resolver

    async def show_price():
        resolver = await create_price_resolver(PricingConfig.from_env())
        try:
            data = await resolver.get_token_price("BTC")
            print(f"{data.symbol}: {data.price} ({data.source.value}, cached={data.is_cached})")
        except TokenPriceError as e:
            print(e.message, "retry" if e.retryable else "")
        finally:
            await resolver.close()

Adding New Providers:
    1. Create class extending BasePriceProvider with its own response variant
    2. Implement: source, fetch_raw(), to_token_data()
    3. Add it to build_providers() at the desired chain position
"""

from token_pricing.cache import CacheStore
from token_pricing.config import CacheConfig, PricingConfig, ProviderConfig, RedisConfig
from token_pricing.exceptions import (
    CacheError,
    ErrorCode,
    FetchError,
    NormalizationError,
    PricingError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    SymbolNotFoundError,
    TokenPriceError,
    UnsupportedSymbolError,
)
from token_pricing.matching import SymbolMatcher
from token_pricing.models import (
    CachedTokenData,
    CacheEntry,
    CacheMetadata,
    PriceChangeType,
    PriceSource,
    PriceTrend,
    ProviderHealth,
    ProviderStatus,
    SupplyInfo,
    SymbolValidation,
    TokenData,
)
from token_pricing.normalizer import DataNormalizer, parse_numeric
from token_pricing.providers import (
    BasePriceProvider,
    ExchangeTickerProvider,
    MidPriceProvider,
    ReferencePriceProvider,
    TrendingAggregatorProvider,
)
from token_pricing.resolver import PriceResolver, build_providers, create_price_resolver
from token_pricing.symbols import validate_token_symbol


__version__ = "1.0.0"

__all__ = [
    # Resolver
    "PriceResolver",
    "create_price_resolver",
    "build_providers",

    # Leaves
    "CacheStore",
    "SymbolMatcher",
    "DataNormalizer",
    "parse_numeric",
    "validate_token_symbol",

    # Providers
    "BasePriceProvider",
    "TrendingAggregatorProvider",
    "MidPriceProvider",
    "ExchangeTickerProvider",
    "ReferencePriceProvider",

    # Models
    "TokenData",
    "CachedTokenData",
    "CacheMetadata",
    "CacheEntry",
    "SupplyInfo",
    "PriceSource",
    "PriceChangeType",
    "PriceTrend",
    "ProviderHealth",
    "ProviderStatus",
    "SymbolValidation",

    # Exceptions
    "ErrorCode",
    "PricingError",
    "CacheError",
    "ProviderError",
    "FetchError",
    "RateLimitError",
    "ProviderTimeoutError",
    "SymbolNotFoundError",
    "UnsupportedSymbolError",
    "NormalizationError",
    "TokenPriceError",

    # Config
    "PricingConfig",
    "RedisConfig",
    "CacheConfig",
    "ProviderConfig",
]
