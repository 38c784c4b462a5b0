"""
Data Normalizer Tests.

============================================================
PURPOSE
============================================================
Numeric coercion, field aliasing and record validation.

============================================================
"""

import math

import pytest

from token_pricing.exceptions import NormalizationError
from token_pricing.models import PriceSource
from token_pricing.normalizer import DataNormalizer, parse_numeric


# ============================================================
# PARSE NUMERIC
# ============================================================

class TestParseNumeric:
    """Tests for lenient numeric coercion."""

    @pytest.mark.parametrize("value", [None, "", True, False, [], {}])
    def test_non_numbers_are_zero(self, value):
        assert parse_numeric(value) == 0.0

    def test_numbers_pass_through(self):
        assert parse_numeric(42) == 42.0
        assert parse_numeric(-1.25) == -1.25

    def test_nan_is_zero(self):
        assert parse_numeric(math.nan) == 0.0
        assert parse_numeric("nan") == 0.0

    def test_strings_are_cleaned(self):
        assert parse_numeric("$1,234.50") == 1234.5
        assert parse_numeric(" -3.2% ") == -3.2

    def test_garbage_string_is_zero(self):
        assert parse_numeric("abc") == 0.0
        assert parse_numeric("-") == 0.0
        assert parse_numeric(".") == 0.0

    def test_leading_number_is_kept(self):
        assert parse_numeric("1.2.3") == 1.2
        assert parse_numeric("5-3") == 5.0
        assert parse_numeric(".5") == 0.5
        assert parse_numeric("-7.") == -7.0


# ============================================================
# NORMALIZE
# ============================================================

class TestNormalize:
    """Tests for record mapping."""

    @pytest.fixture
    def normalizer(self):
        return DataNormalizer()

    def test_aggregator_style_record(self, normalizer):
        record = {
            "symbol": "WBTC",
            "name": "Wrapped BTC",
            "price": "64000.5",
            "price_change_24h_percent": 1.2,
            "volume_24h_usd": 5_000_000,
            "market_cap": 1e9,
            "circulating_supply": 150_000,
        }

        token = normalizer.normalize(record, " btc ", PriceSource.AGGREGATOR)

        assert token.symbol == "BTC"
        assert token.name == "Wrapped BTC"
        assert token.price == 64000.5
        assert token.change_24h == 1.2
        assert token.volume_24h == 5_000_000
        assert token.market_cap == 1e9
        assert token.supply.circulating == 150_000
        assert token.source == PriceSource.AGGREGATOR
        assert token.updated_at.tzinfo is not None

    def test_first_non_null_alias_wins(self, normalizer):
        record = {"price": None, "current_price": 7, "priceUsd": 9}

        assert normalizer.normalize(record, "X", PriceSource.REFERENCE).price == 7

    def test_name_falls_back_to_symbol(self, normalizer):
        token = normalizer.normalize({"price": 1}, "sol", PriceSource.MID_PRICE)

        assert token.name == "SOL"
        assert token.change_24h == 0.0
        assert token.volume_24h == 0.0

    def test_high_low(self, normalizer):
        token = normalizer.normalize(
            {"price": 2, "high24h": "3", "low_24h": "1"},
            "ETH",
            PriceSource.EXCHANGE_TICKER,
        )

        assert (token.high_24h, token.low_24h) == (3.0, 1.0)

    def test_custom_field_aliases(self):
        normalizer = DataNormalizer(field_aliases={"price": ["last"]})

        token = normalizer.normalize({"last": "5"}, "ETH", PriceSource.EXCHANGE_TICKER)

        assert token.price == 5.0

    def test_negative_price_rejected(self, normalizer):
        with pytest.raises(NormalizationError) as exc_info:
            normalizer.normalize({"price": -5}, "BTC", PriceSource.AGGREGATOR)

        assert exc_info.value.field_name == "price"
        assert exc_info.value.provider == "aggregator"

    @pytest.mark.parametrize("field", ["volume24h", "market_cap"])
    def test_negative_amounts_rejected(self, normalizer, field):
        with pytest.raises(NormalizationError):
            normalizer.normalize({"price": 1, field: -1}, "BTC", PriceSource.AGGREGATOR)

    def test_negative_change_allowed(self, normalizer):
        token = normalizer.normalize({"price": 1, "change24h": -12}, "BTC", PriceSource.AGGREGATOR)

        assert token.change_24h == -12

    def test_non_mapping_rejected(self, normalizer):
        with pytest.raises(NormalizationError):
            normalizer.normalize(["price", 1], "BTC", PriceSource.AGGREGATOR)
