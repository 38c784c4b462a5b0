"""
Price Resolver - Cache-first token price resolution over a provider chain.

Provides:
- Cache lookup before any upstream call
- Fixed-order provider fallback (never reordered, never parallel)
- Typed terminal errors derived from per-provider outcome codes
- Coalescing of concurrent identical cache misses
- Fire-and-forget cache write-back
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

import aiohttp

from token_pricing.cache import CacheStore
from token_pricing.config import PricingConfig
from token_pricing.exceptions import (
    ERROR_CODE_PRIORITY,
    ErrorCode,
    NormalizationError,
    ProviderError,
    TokenPriceError,
    UnsupportedSymbolError,
)
from token_pricing.matching import SymbolMatcher
from token_pricing.models import (
    CachedTokenData,
    CacheMetadata,
    PriceChangeType,
    PriceTrend,
    ProviderHealth,
    TokenData,
)
from token_pricing.normalizer import DataNormalizer
from token_pricing.providers import (
    BasePriceProvider,
    ExchangeTickerProvider,
    MidPriceProvider,
    ReferencePriceProvider,
    TrendingAggregatorProvider,
)


logger = logging.getLogger(__name__)

TREND_THRESHOLD = 0.1       # percent; smaller moves are STABLE
SIGNIFICANT_CHANGE = 5.0    # percent


def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


class PriceResolver:
    """
    Resolves token prices for command handlers and the margin engine.

    Public surface:
    - get_token_price(symbol)
    - get_multiple_token_prices(symbols)
    - clear_token_cache(symbol) / clear_all_token_cache()

    Usage:
        resolver = await create_price_resolver(PricingConfig.from_env())
        data = await resolver.get_token_price("BTC")
        print(data.price, data.source.value, data.is_cached)
    """

    def __init__(
        self,
        cache: CacheStore,
        providers: Sequence[BasePriceProvider],
        cache_ttl: int = 300,
        key_prefix: str = "token_price_",
        owns_cache: bool = False,
    ) -> None:
        self._cache = cache
        self._providers = list(providers)
        self._cache_ttl = cache_ttl
        self._key_prefix = key_prefix
        self._owns_cache = owns_cache

        # symbol -> shared upstream resolution
        self._in_flight: dict[str, asyncio.Task] = {}

        # Bumped on invalidation; a resolution started under an older
        # generation does not write back.
        self._epoch = 0
        self._generations: dict[str, int] = {}

    @property
    def providers(self) -> list[BasePriceProvider]:
        return list(self._providers)

    def cache_key(self, symbol: str) -> str:
        return f"{self._key_prefix}{normalize_symbol(symbol)}"

    # ─────────────────────────────────────────────────────────────
    # Public Surface
    # ─────────────────────────────────────────────────────────────

    async def get_token_price(self, symbol: str) -> CachedTokenData:
        """
        Resolve the current price of a ticker.

        Raises:
            TokenPriceError: no provider could resolve the ticker
        """
        normalized = normalize_symbol(symbol)
        if not normalized:
            raise TokenPriceError(ErrorCode.TOKEN_NOT_FOUND, symbol=str(symbol), message="Token symbol is required")

        key = self.cache_key(normalized)
        logger.info(f"Getting token price for {normalized}")

        cached = await self._read_cache(key)
        if cached is not None:
            logger.info(f"Token price for {normalized} served from cache (price={cached.price})")
            return CachedTokenData.from_token(
                cached,
                is_cached=True,
                cache=CacheMetadata(key=key, ttl=self._cache_ttl, created_at=cached.updated_at),
            )

        try:
            token = await self._resolve_shared(normalized)
        except TokenPriceError as e:
            logger.error(
                f"Failed to get token price for {normalized}: "
                f"code={e.code.value} retryable={e.retryable}"
            )
            raise

        logger.info(
            f"Token price retrieved for {normalized} "
            f"(source={token.source.value}, price={token.price}, change24h={token.change_24h})"
        )
        return CachedTokenData.from_token(token, is_cached=False)

    async def get_multiple_token_prices(self, symbols: Sequence[str]) -> list[CachedTokenData]:
        """
        Resolve several tickers concurrently.

        Never raises; failing tickers are omitted from the result.
        """
        logger.info(f"Getting prices for multiple tokens: {', '.join(symbols)}")

        results = await asyncio.gather(
            *(self.get_token_price(symbol) for symbol in symbols),
            return_exceptions=True,
        )

        prices: list[CachedTokenData] = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, CachedTokenData):
                prices.append(result)
            elif isinstance(result, Exception):
                logger.warning(f"Failed to get price for {symbol}: {result}")
            else:
                # CancelledError and other BaseExceptions keep their meaning
                raise result

        logger.info(f"Successfully retrieved prices for {len(prices)}/{len(symbols)} tokens")
        return prices

    async def clear_token_cache(self, symbol: str) -> bool:
        """Invalidate one ticker. True when an entry was removed."""
        normalized = normalize_symbol(symbol)
        key = self.cache_key(normalized)

        # Neither an in-flight resolution nor a queued write-back may
        # resurrect the entry afterwards.
        self._generations[normalized] = self._generations.get(normalized, 0) + 1
        self._in_flight.pop(normalized, None)
        await self._cache.wait_for_pending_writes()

        removed = await self._cache.delete(key)
        if removed:
            logger.info(f"Cache cleared for token: {normalize_symbol(symbol)}")
        else:
            logger.debug(f"No cache entry to clear for token: {normalize_symbol(symbol)}")
        return removed

    async def clear_all_token_cache(self) -> bool:
        """Invalidate every token_price_* entry. True when all were removed."""
        self._epoch += 1
        self._in_flight.clear()
        await self._cache.wait_for_pending_writes()

        keys = await self._cache.keys(f"{self._key_prefix}*")
        cleared = 0
        for key in keys:
            if await self._cache.delete(key):
                cleared += 1

        logger.info(f"Cleared {cleared}/{len(keys)} token cache entries")
        return cleared == len(keys)

    @staticmethod
    def calculate_price_trend(token: TokenData) -> PriceTrend:
        """Classify the 24h move."""
        change = token.change_24h

        if change > TREND_THRESHOLD:
            change_type = PriceChangeType.UP
        elif change < -TREND_THRESHOLD:
            change_type = PriceChangeType.DOWN
        else:
            change_type = PriceChangeType.STABLE

        return PriceTrend(
            type=change_type,
            percentage=change,
            is_significant=abs(change) >= SIGNIFICANT_CHANGE,
        )

    async def health_check(self) -> bool:
        """Resolve BTC through the provider chain, bypassing the cache."""
        try:
            await self._resolve_from_providers("BTC")
            return True
        except TokenPriceError as e:
            logger.warning(f"Price resolver health check failed: {e}")
            return False

    def get_provider_health(self) -> dict[str, ProviderHealth]:
        return {provider.name: provider.get_health() for provider in self._providers}

    # ─────────────────────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────────────────────

    async def _read_cache(self, key: str) -> Optional[TokenData]:
        cached = await self._cache.get(key)
        if cached is None:
            return None
        try:
            return TokenData.from_dict(cached)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry {key}: {e}")
            return None

    async def _resolve_shared(self, symbol: str) -> TokenData:
        """Join an in-flight resolution for this ticker or start one."""
        task = self._in_flight.get(symbol)
        if task is not None:
            logger.debug(f"Joining in-flight resolution for {symbol}")
        else:
            task = asyncio.create_task(self._resolve_and_store(symbol))
            self._in_flight[symbol] = task
            task.add_done_callback(lambda t, s=symbol: self._forget_in_flight(s, t))

        return await asyncio.shield(task)

    def _forget_in_flight(self, symbol: str, task: asyncio.Task) -> None:
        if self._in_flight.get(symbol) is task:
            del self._in_flight[symbol]
        # Mark the outcome as retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    def _generation(self, symbol: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(symbol, 0)

    async def _resolve_and_store(self, symbol: str) -> TokenData:
        generation = self._generation(symbol)
        token = await self._resolve_from_providers(symbol)
        if self._generation(symbol) == generation:
            self._cache.schedule_set(self.cache_key(symbol), token.to_dict(), self._cache_ttl)
        else:
            logger.debug(f"Cache for {symbol} invalidated during resolution, skipping write-back")
        return token

    async def _resolve_from_providers(self, symbol: str) -> TokenData:
        """Walk the provider chain in declared order."""
        attempts: list[dict[str, Any]] = []

        for index, provider in enumerate(self._providers):
            try:
                token = await provider.fetch(symbol)
            except UnsupportedSymbolError as e:
                logger.debug(f"[{provider.name}] Skipped {symbol}: {e.message}")
                attempts.append(self._attempt(provider, ErrorCode.TOKEN_NOT_FOUND, e, skipped=True))
                continue
            except ProviderError as e:
                logger.warning(f"[{provider.name}] Failed for {symbol}: {e}")
                attempts.append(self._attempt(provider, e.code, e))
                continue
            except NormalizationError as e:
                logger.warning(f"[{provider.name}] Rejected record for {symbol}: {e}")
                attempts.append(self._attempt(provider, ErrorCode.TOKEN_NOT_FOUND, e))
                continue
            except Exception as e:
                logger.warning(f"[{provider.name}] Unexpected failure for {symbol}: {e}")
                attempts.append(self._attempt(provider, ErrorCode.UNKNOWN_ERROR, e))
                continue

            if index > 0:
                logger.info(f"Fallback: resolved {symbol} via {provider.name} after {len(attempts)} failed provider(s)")
            return token

        code = self._terminal_code(attempts)
        logger.error(
            f"All providers failed for {symbol}: "
            f"{[(a['provider'], a['code']) for a in attempts]}"
        )
        raise TokenPriceError(code, symbol=symbol, attempts=attempts)

    @staticmethod
    def _attempt(
        provider: BasePriceProvider,
        code: ErrorCode,
        error: Exception,
        skipped: bool = False,
    ) -> dict[str, Any]:
        return {
            "provider": provider.name,
            "code": code.value,
            "error": str(error),
            "skipped": skipped,
        }

    @staticmethod
    def _terminal_code(attempts: list[dict[str, Any]]) -> ErrorCode:
        """
        Not-found, skipped or invalid data everywhere means TOKEN_NOT_FOUND;
        otherwise the most severe transport failure observed wins.
        """
        codes = [ErrorCode(a["code"]) for a in attempts]
        failures = [c for c in codes if c is not ErrorCode.TOKEN_NOT_FOUND]
        if not failures:
            return ErrorCode.TOKEN_NOT_FOUND
        return max(failures, key=lambda c: ERROR_CODE_PRIORITY[c])

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Flush pending writes, close provider sessions and an owned cache."""
        await self._cache.wait_for_pending_writes()
        for provider in self._providers:
            try:
                await provider.close()
            except Exception as e:
                logger.error(f"Error closing provider {provider.name}: {e}")
        if self._owns_cache:
            await self._cache.disconnect()

    async def __aenter__(self) -> "PriceResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_providers(
    config: PricingConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> list[BasePriceProvider]:
    """The fixed provider chain: aggregator, mid price, exchange ticker, reference."""
    p = config.providers
    normalizer = DataNormalizer()
    matcher = SymbolMatcher(quote_asset=p.quote_asset)

    return [
        TrendingAggregatorProvider(
            base_url=p.api_base_url,
            api_key=p.api_key,
            matcher=matcher,
            normalizer=normalizer,
            timeout=p.api_timeout,
            session=session,
        ),
        MidPriceProvider(
            base_url=p.hyperliquid_url,
            normalizer=normalizer,
            timeout=p.hyperliquid_timeout,
            session=session,
        ),
        ExchangeTickerProvider(
            base_url=p.binance_url,
            quote_asset=p.quote_asset,
            normalizer=normalizer,
            timeout=p.binance_timeout,
            session=session,
        ),
        ReferencePriceProvider(
            base_url=p.coingecko_url,
            api_key=p.coingecko_api_key,
            normalizer=normalizer,
            timeout=p.coingecko_timeout,
            session=session,
        ),
    ]


async def create_price_resolver(
    config: Optional[PricingConfig] = None,
    cache: Optional[CacheStore] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> PriceResolver:
    """
    Build a connected PriceResolver.

    The caller owns the returned object and injects it into handlers;
    nothing is stored globally.
    """
    config = config or PricingConfig.from_env()

    owns_cache = cache is None
    if cache is None:
        cache = CacheStore(config.redis)
    await cache.connect()

    return PriceResolver(
        cache=cache,
        providers=build_providers(config, session),
        cache_ttl=config.cache.token_price_ttl,
        key_prefix=config.cache.key_prefix,
        owns_cache=owns_cache,
    )
