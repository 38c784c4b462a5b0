"""
Providers package - Upstream price source implementations, in chain order.
"""

from token_pricing.providers.aggregator import TrendingAggregatorProvider
from token_pricing.providers.base import BasePriceProvider
from token_pricing.providers.exchange_ticker import ExchangeTickerProvider
from token_pricing.providers.mid_price import MidPriceProvider
from token_pricing.providers.reference import COINGECKO_IDS, ReferencePriceProvider


__all__ = [
    "BasePriceProvider",
    "TrendingAggregatorProvider",
    "MidPriceProvider",
    "ExchangeTickerProvider",
    "ReferencePriceProvider",
    "COINGECKO_IDS",
]
