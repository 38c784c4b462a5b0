"""
Ticker Validation Tests.
"""

import pytest

from token_pricing.symbols import (
    check_common_errors,
    find_similar_tokens,
    get_supported_tokens,
    levenshtein,
    similarity,
    validate_token_symbol,
    validate_token_symbols,
)


class TestValidateTokenSymbol:
    """Tests for validate_token_symbol."""

    @pytest.mark.parametrize("raw", [None, "", 42, ["BTC"]])
    def test_empty_or_non_string(self, raw):
        result = validate_token_symbol(raw)

        assert result.is_valid is False
        assert result.normalized == ""
        assert result.error

    def test_whitespace_only(self):
        result = validate_token_symbol("   ")

        assert result.is_valid is False

    def test_supported_symbol(self):
        result = validate_token_symbol(" btc ")

        assert result.is_valid is True
        assert result.normalized == "BTC"
        assert result.suggestions == []

    def test_alias(self):
        assert validate_token_symbol("bitcoin").normalized == "BTC"
        assert validate_token_symbol("Polygon").normalized == "MATIC"

    def test_too_long(self):
        result = validate_token_symbol("ABCDEFGHIJK")

        assert result.is_valid is False
        assert result.normalized == "ABCDEFGHIJK"

    def test_invalid_characters(self):
        result = validate_token_symbol("BTC-USD")

        assert result.is_valid is False
        assert "letters and digits" in result.error

    def test_unknown_symbol_allowed_with_suggestions(self):
        result = validate_token_symbol("SHI")

        assert result.is_valid is True
        assert result.normalized == "SHI"
        assert "SHIB" in result.suggestions


class TestSuggestions:
    """Tests for find_similar_tokens."""

    def test_prefix_matches(self):
        assert find_similar_tokens("DO") == ["DOT", "DOGE"]

    def test_close_spelling(self):
        assert "DOGE" in find_similar_tokens("DOGG")

    def test_alias_hits_added(self):
        assert "BTC" in find_similar_tokens("BITCOINX")

    def test_capped_at_five(self):
        assert len(find_similar_tokens("A")) <= 5

    def test_no_suggestions(self):
        assert find_similar_tokens("ZZZZZZZ") == []


class TestHelpers:
    """Tests for the remaining helpers."""

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_similarity(self):
        assert similarity("", "") == 1.0
        assert similarity("ABCD", "ABCE") == 0.75

    def test_common_errors(self):
        assert check_common_errors(" binance ") == "Please use BNB instead of BINANCE"
        assert check_common_errors("BTC") is None

    def test_validate_many(self):
        valid, invalid = validate_token_symbols(["btc", "ETHEREUM", "BAD-ONE", ""])

        assert valid == ["BTC", "ETH"]
        assert [entry["symbol"] for entry in invalid] == ["BAD-ONE", ""]

    def test_supported_tokens_copy(self):
        tokens = get_supported_tokens()
        tokens.append("NEW")

        assert "NEW" not in get_supported_tokens()
