"""
Exception Hierarchy Tests.
"""

from datetime import timedelta

import pytest

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


class TestErrorCode:
    """Tests for ErrorCode."""

    def test_only_not_found_is_final(self):
        assert ErrorCode.TOKEN_NOT_FOUND.retryable is False
        for code in ErrorCode:
            if code is not ErrorCode.TOKEN_NOT_FOUND:
                assert code.retryable is True

    @pytest.mark.parametrize("status,code", [
        (None, ErrorCode.NETWORK_ERROR),
        (404, ErrorCode.TOKEN_NOT_FOUND),
        (408, ErrorCode.TIMEOUT_ERROR),
        (429, ErrorCode.RATE_LIMIT_EXCEEDED),
        (502, ErrorCode.SERVER_ERROR),
        (418, ErrorCode.UNKNOWN_ERROR),
    ])
    def test_code_for_status(self, status, code):
        assert FetchError.code_for_status(status) == code


class TestHierarchy:
    """Tests for inheritance and payloads."""

    def test_provider_errors_share_base(self):
        for cls in (FetchError, RateLimitError, ProviderTimeoutError, SymbolNotFoundError, UnsupportedSymbolError):
            assert issubclass(cls, ProviderError)
        for cls in (CacheError, ProviderError, NormalizationError, TokenPriceError):
            assert issubclass(cls, PricingError)

    def test_provider_error_str(self):
        error = FetchError("HTTP 503", provider="mid_price", status_code=503)

        assert str(error) == "FetchError: HTTP 503 [provider=mid_price] [code=SERVER_ERROR]"
        assert error.is_server_error() is True
        assert error.is_client_error() is False

    def test_explicit_code_wins(self):
        error = FetchError("bad json", status_code=200, code=ErrorCode.UNKNOWN_ERROR)

        assert error.code == ErrorCode.UNKNOWN_ERROR

    def test_rate_limit_to_dict(self):
        data = RateLimitError("slow down", provider="exchange_ticker", retry_after_seconds=30).to_dict()

        assert data["error_type"] == "RateLimitError"
        assert data["code"] == "RATE_LIMIT_EXCEEDED"
        assert data["status_code"] == 429
        assert data["retry_after_seconds"] == 30

    def test_normalization_error_to_dict(self):
        data = NormalizationError("negative", provider="aggregator", raw_data={"price": -5}, field_name="price").to_dict()

        assert data["field_name"] == "price"
        assert "-5" in data["raw_data"]

    def test_cause_in_str(self):
        error = CacheError("write failed", key="k", original_error=OSError("disk"))

        assert "(caused by: disk)" in str(error)
        assert error.to_dict()["key"] == "k"


class TestTokenPriceError:
    """Tests for the caller-visible error."""

    def test_not_found_message(self):
        error = TokenPriceError(ErrorCode.TOKEN_NOT_FOUND, symbol="NOPE")

        assert error.message == "Token NOPE not found, please check the symbol"
        assert error.retryable is False
        assert error.message_key == "price.errors.token_not_found"

    def test_to_dict(self):
        attempts = [{"provider": "aggregator", "code": "TIMEOUT_ERROR", "error": "slow", "skipped": False}]
        error = TokenPriceError(ErrorCode.TIMEOUT_ERROR, symbol="BTC", attempts=attempts)

        data = error.to_dict()

        assert data["code"] == "TIMEOUT_ERROR"
        assert data["retryable"] is True
        assert data["symbol"] == "BTC"
        assert data["attempts"] == attempts

    def test_custom_message(self):
        error = TokenPriceError(ErrorCode.UNKNOWN_ERROR, symbol="", message="Token symbol is required")

        assert str(error) == "TokenPriceError: Token symbol is required"

    def test_timestamp_is_utc_aware(self):
        error = TokenPriceError(ErrorCode.SERVER_ERROR, symbol="BTC")

        assert error.timestamp.utcoffset() == timedelta(0)
        assert error.to_dict()["timestamp"].endswith("+00:00")
