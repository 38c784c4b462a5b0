"""
Mid Price Provider - Hyperliquid all-mids lookup.

Second provider in the chain. Keyed by exact ticker; only a price is
available, 24h statistics are reported as zero.
"""

import logging
from typing import Any, Optional

import aiohttp

from token_pricing.exceptions import ErrorCode, FetchError, SymbolNotFoundError
from token_pricing.models import MidPrice, MidPriceResponse, PriceSource, TokenData
from token_pricing.normalizer import DataNormalizer
from token_pricing.providers.base import BasePriceProvider


logger = logging.getLogger(__name__)


class MidPriceProvider(BasePriceProvider[MidPriceResponse]):
    """
    Hyperliquid info endpoint.

    Endpoint used:
    - POST /info {"type": "allMids"}

    Accepts both the wrapped {data: [{coin, px}]} shape and the bare
    {coin: px} mapping.
    """

    INFO_PATH = "/info"

    def __init__(
        self,
        base_url: str,
        normalizer: Optional[DataNormalizer] = None,
        timeout: float = BasePriceProvider.DEFAULT_TIMEOUT,
        max_retries: int = BasePriceProvider.MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, timeout, max_retries, session)
        self._normalizer = normalizer or DataNormalizer()

    @property
    def source(self) -> PriceSource:
        return PriceSource.MID_PRICE

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        headers["Content-Type"] = "application/json"
        return headers

    async def fetch_raw(self, symbol: str) -> MidPriceResponse:
        data = await self._make_request("POST", self.INFO_PATH, json_body={"type": "allMids"})
        return self._parse(data)

    def _parse(self, data: Any) -> MidPriceResponse:
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            mids = [
                MidPrice(coin=str(item["coin"]), px=str(item["px"]))
                for item in data["data"]
                if isinstance(item, dict) and "coin" in item and "px" in item
            ]
            return MidPriceResponse(mids=mids)

        if isinstance(data, dict):
            return MidPriceResponse(
                mids=[MidPrice(coin=str(coin), px=str(px)) for coin, px in data.items()]
            )

        raise FetchError(
            message=f"Invalid mid price response: {str(data)[:200]}",
            provider=self.name,
            code=ErrorCode.UNKNOWN_ERROR,
        )

    def to_token_data(self, response: MidPriceResponse, symbol: str) -> TokenData:
        mid = response.find(symbol)
        if mid is None:
            raise SymbolNotFoundError(
                message=f"No mid price for {symbol}",
                provider=self.name,
                symbol=symbol,
            )
        record = {"name": symbol, "price": mid.px}
        return self._normalizer.normalize(record, symbol, self.source)
