"""
Reference Price Provider - CoinGecko simple price API.

Last resort in the chain. CoinGecko is keyed by internal coin id, so only
tickers present in the maintained id map can be asked for; any other
ticker is skipped without an HTTP call.
"""

import logging
from typing import Mapping, Optional

import aiohttp

from token_pricing.exceptions import SymbolNotFoundError, UnsupportedSymbolError
from token_pricing.models import PriceSource, ReferencePriceResponse, TokenData
from token_pricing.normalizer import DataNormalizer
from token_pricing.providers.base import BasePriceProvider


logger = logging.getLogger(__name__)


COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "NEAR": "near",
    "APT": "aptos",
    "SUI": "sui",
    "ARB": "arbitrum",
    "OP": "optimism",
    "SHIB": "shiba-inu",
    "PEPE": "pepe",
    "HYPE": "hyperliquid",
    "LTC": "litecoin",
    "TRX": "tron",
}


class ReferencePriceProvider(BasePriceProvider[ReferencePriceResponse]):
    """
    CoinGecko public API.

    Endpoint used:
    - /simple/price

    Rate limits:
    - ~30 requests/minute on the free tier
    """

    SIMPLE_PRICE_PATH = "/simple/price"

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: Optional[str] = None,
        coin_ids: Optional[Mapping[str, str]] = None,
        normalizer: Optional[DataNormalizer] = None,
        timeout: float = BasePriceProvider.DEFAULT_TIMEOUT,
        max_retries: int = BasePriceProvider.MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, timeout, max_retries, session)
        self._api_key = api_key
        self._coin_ids = {k.upper(): v for k, v in (coin_ids or COINGECKO_IDS).items()}
        self._normalizer = normalizer or DataNormalizer()

    @property
    def source(self) -> PriceSource:
        return PriceSource.REFERENCE

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    def coin_id_for(self, symbol: str) -> Optional[str]:
        return self._coin_ids.get(symbol.strip().upper())

    async def fetch_raw(self, symbol: str) -> ReferencePriceResponse:
        coin_id = self.coin_id_for(symbol)
        if coin_id is None:
            raise UnsupportedSymbolError(
                message=f"No coin id mapped for {symbol}",
                provider=self.name,
                symbol=symbol,
            )

        data = await self._make_request(
            "GET",
            self.SIMPLE_PRICE_PATH,
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_market_cap": "true",
                "include_24hr_vol": "true",
                "include_24hr_change": "true",
            },
        )

        quote = data.get(coin_id) if isinstance(data, dict) else None
        if not isinstance(quote, dict) or "usd" not in quote:
            raise SymbolNotFoundError(
                message=f"No reference price for {coin_id}",
                provider=self.name,
                symbol=symbol,
            )

        return ReferencePriceResponse(coin_id=coin_id, quote=quote)

    def to_token_data(self, response: ReferencePriceResponse, symbol: str) -> TokenData:
        quote = response.quote
        record = {
            "name": response.coin_id.replace("-", " ").title(),
            "price": quote.get("usd"),
            "change24h": quote.get("usd_24h_change"),
            "volume24h": quote.get("usd_24h_vol"),
            "market_cap": quote.get("usd_market_cap"),
        }
        return self._normalizer.normalize(record, symbol, self.source)
