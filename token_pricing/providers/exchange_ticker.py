"""
Exchange Ticker Provider - Binance spot public ticker.

Third provider in the chain. Binance lists quote-paired tickers, so the
requested symbol is suffixed with the quote asset (BTC -> BTCUSDT).
Price and 24h statistics come from two separate endpoints.
"""

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from token_pricing.exceptions import FetchError, SymbolNotFoundError
from token_pricing.models import ExchangeTickerResponse, PriceSource, TokenData
from token_pricing.normalizer import DataNormalizer
from token_pricing.providers.base import BasePriceProvider


logger = logging.getLogger(__name__)


class ExchangeTickerProvider(BasePriceProvider[ExchangeTickerResponse]):
    """
    Binance spot public API.

    Endpoints used:
    - /api/v3/ticker/price - Last price
    - /api/v3/ticker/24hr - 24h statistics

    Rate limits:
    - 6000 request weight/minute, IP-based
    """

    PRICE_PATH = "/api/v3/ticker/price"
    STATS_PATH = "/api/v3/ticker/24hr"
    INVALID_SYMBOL_CODE = -1121

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        quote_asset: str = "USDT",
        normalizer: Optional[DataNormalizer] = None,
        timeout: float = BasePriceProvider.DEFAULT_TIMEOUT,
        max_retries: int = BasePriceProvider.MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, timeout, max_retries, session)
        self._quote_asset = quote_asset.upper()
        self._normalizer = normalizer or DataNormalizer()

    @property
    def source(self) -> PriceSource:
        return PriceSource.EXCHANGE_TICKER

    def pair_for(self, symbol: str) -> str:
        """BTC -> BTCUSDT"""
        return f"{symbol.strip().upper()}{self._quote_asset}"

    def _is_invalid_symbol(self, error: FetchError) -> bool:
        """Binance answers unknown pairs with HTTP 400 and code -1121."""
        if error.status_code != 400 or not error.response_body:
            return False
        try:
            body = json.loads(error.response_body)
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("code") == self.INVALID_SYMBOL_CODE

    async def fetch_raw(self, symbol: str) -> ExchangeTickerResponse:
        pair = self.pair_for(symbol)
        params = {"symbol": pair}

        try:
            price, stats = await asyncio.gather(
                self._make_request("GET", self.PRICE_PATH, params=params),
                self._make_request("GET", self.STATS_PATH, params=params),
            )
        except FetchError as e:
            if self._is_invalid_symbol(e):
                raise SymbolNotFoundError(
                    message=f"Pair {pair} not listed",
                    provider=self.name,
                    symbol=symbol,
                )
            raise

        if not isinstance(price, dict) or not isinstance(stats, dict):
            raise SymbolNotFoundError(
                message=f"Unexpected ticker payload for {pair}",
                provider=self.name,
                symbol=symbol,
            )

        return ExchangeTickerResponse(pair=pair, price=price, stats=stats)

    def to_token_data(self, response: ExchangeTickerResponse, symbol: str) -> TokenData:
        if response.price.get("price") is None:
            raise SymbolNotFoundError(
                message=f"No price for {response.pair}",
                provider=self.name,
                symbol=symbol,
            )

        record = {
            "name": symbol,
            "price": response.price.get("price"),
            "change24h": response.stats.get("priceChangePercent"),
            "volume24h": response.stats.get("quoteVolume"),
            "high24h": response.stats.get("highPrice"),
            "low24h": response.stats.get("lowPrice"),
        }
        return self._normalizer.normalize(record, symbol, self.source)
