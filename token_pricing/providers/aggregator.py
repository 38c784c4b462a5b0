"""
Trending Aggregator Provider - Trading backend's trending token list.

First provider in the chain. The backend proxies an aggregator trending
list shaped {data: [record, ...]}; records use heterogeneous tickers, so
the requested symbol is located with the SymbolMatcher.
"""

import logging
from typing import Optional

import aiohttp

from token_pricing.exceptions import ErrorCode, FetchError, SymbolNotFoundError
from token_pricing.matching import SymbolMatcher
from token_pricing.models import AggregatorResponse, PriceSource, TokenData
from token_pricing.normalizer import DataNormalizer
from token_pricing.providers.base import BasePriceProvider


logger = logging.getLogger(__name__)


class TrendingAggregatorProvider(BasePriceProvider[AggregatorResponse]):
    """
    Backend trending-list price source.

    Endpoint used:
    - GET /api/birdeye/token_trending
    """

    TRENDING_PATH = "/api/birdeye/token_trending"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        matcher: Optional[SymbolMatcher] = None,
        normalizer: Optional[DataNormalizer] = None,
        timeout: float = BasePriceProvider.DEFAULT_TIMEOUT,
        max_retries: int = BasePriceProvider.MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, timeout, max_retries, session)
        self._api_key = api_key
        self._matcher = matcher or SymbolMatcher()
        self._normalizer = normalizer or DataNormalizer()

    @property
    def source(self) -> PriceSource:
        return PriceSource.AGGREGATOR

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    async def fetch_raw(self, symbol: str) -> AggregatorResponse:
        data = await self._make_request("GET", self.TRENDING_PATH)

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise FetchError(
                message=f"Invalid API response format: {str(data)[:200]}",
                provider=self.name,
                request_url=f"{self._base_url}{self.TRENDING_PATH}",
                code=ErrorCode.UNKNOWN_ERROR,
            )

        tokens = [item for item in data["data"] if isinstance(item, dict)]
        return AggregatorResponse(tokens=tokens)

    def to_token_data(self, response: AggregatorResponse, symbol: str) -> TokenData:
        record = self._matcher.find(response.tokens, symbol)
        if record is None:
            raise SymbolNotFoundError(
                message=f"Token {symbol} not found in trending list",
                provider=self.name,
                symbol=symbol,
            )
        return self._normalizer.normalize(record, symbol, self.source)
