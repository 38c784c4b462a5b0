"""
CLI Tests.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from token_pricing import cli
from token_pricing.exceptions import ErrorCode, TokenPriceError
from token_pricing.models import CachedTokenData, PriceSource


def _price(symbol, price, is_cached=False):
    return CachedTokenData(
        symbol=symbol,
        name=symbol.title(),
        price=price,
        change_24h=6.0,
        volume_24h=1.0,
        market_cap=2.0,
        source=PriceSource.MID_PRICE,
        is_cached=is_cached,
    )


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.get_token_price = AsyncMock(return_value=_price("BTC", 64000.0))
    resolver.get_multiple_token_prices = AsyncMock(return_value=[_price("BTC", 1.0), _price("ETH", 2.0, True)])
    resolver.clear_token_cache = AsyncMock(return_value=True)
    resolver.clear_all_token_cache = AsyncMock(return_value=True)
    resolver.health_check = AsyncMock(return_value=True)
    resolver.close = AsyncMock()

    with patch.object(cli, "create_price_resolver", AsyncMock(return_value=resolver)):
        yield resolver


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = cli.create_parser().parse_args(["BTC"])

        assert args.symbols == ["BTC"]
        assert args.json is False
        assert args.clear is False
        assert args.log_level == "WARNING"

    def test_requires_symbol(self, capsys):
        assert cli.main([]) == 1
        assert "SYMBOL" in capsys.readouterr().err

    def test_rejects_malformed_symbol(self, capsys):
        assert cli.main(["BTC-USD"]) == 1
        assert "BTC-USD" in capsys.readouterr().err


class TestMain:
    """Tests for the async entry point."""

    def test_single_symbol(self, resolver, capsys):
        assert cli.main(["btc"]) == 0

        resolver.get_token_price.assert_awaited_once_with("BTC")
        resolver.close.assert_awaited_once()
        out = capsys.readouterr().out
        assert "BTC" in out
        assert "[mid_price]" in out

    def test_multiple_symbols_json(self, resolver, capsys):
        assert cli.main(["BTC", "ethereum", "--json"]) == 0

        resolver.get_multiple_token_prices.assert_awaited_once_with(["BTC", "ETH"])
        payload = json.loads(capsys.readouterr().out)
        assert [p["symbol"] for p in payload] == ["BTC", "ETH"]
        assert payload[1]["is_cached"] is True

    def test_clear_before_lookup(self, resolver):
        assert cli.main(["BTC", "--clear"]) == 0

        resolver.clear_token_cache.assert_awaited_once_with("BTC")

    def test_clear_all_without_symbols(self, resolver):
        assert cli.main(["--clear-all"]) == 0

        resolver.clear_all_token_cache.assert_awaited_once()
        resolver.get_token_price.assert_not_awaited()

    def test_lookup_failure(self, resolver, capsys):
        resolver.get_token_price.side_effect = TokenPriceError(ErrorCode.TOKEN_NOT_FOUND, symbol="NOPE")

        assert cli.main(["NOPE"]) == 1
        assert "TOKEN_NOT_FOUND" in capsys.readouterr().err
        resolver.close.assert_awaited_once()

    def test_health(self, resolver, capsys):
        resolver.health_check.return_value = False

        assert cli.main(["--health"]) == 1
        assert "unhealthy" in capsys.readouterr().out
