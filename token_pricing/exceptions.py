"""
Token Pricing Exceptions - Exception hierarchy for price resolution.

Provider and cache errors are recovered locally by the resolver.
Only TokenPriceError is ever raised to callers of the public surface.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Outcome codes reported by provider adapters and surfaced to callers."""
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @property
    def retryable(self) -> bool:
        return self is not ErrorCode.TOKEN_NOT_FOUND


# Severity used to pick the terminal code when providers disagree.
ERROR_CODE_PRIORITY = {
    ErrorCode.SERVER_ERROR: 5,
    ErrorCode.RATE_LIMIT_EXCEEDED: 4,
    ErrorCode.TIMEOUT_ERROR: 3,
    ErrorCode.NETWORK_ERROR: 2,
    ErrorCode.UNKNOWN_ERROR: 1,
    ErrorCode.TOKEN_NOT_FOUND: 0,
}

USER_MESSAGES = {
    ErrorCode.TOKEN_NOT_FOUND: "Token {symbol} not found, please check the symbol",
    ErrorCode.TIMEOUT_ERROR: "Price query timed out, please try again later",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests, please try again later",
    ErrorCode.NETWORK_ERROR: "Network connection failed, please try again later",
    ErrorCode.SERVER_ERROR: "Price service error, please try again later",
    ErrorCode.UNKNOWN_ERROR: "Failed to query the price of {symbol}",
}


class PricingError(Exception):
    """Base exception for all price resolution errors."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class CacheError(PricingError):
    """Cache backend failure. Never surfaced as a business error."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.key = key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["key"] = self.key
        return data


class ProviderError(PricingError):
    """A single provider attempt failed with a known outcome code."""

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.provider = provider
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "provider": self.provider,
            "code": self.code.value,
        })
        return data

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        parts.append(f"[code={self.code.value}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(ProviderError):
    """HTTP or connection failure while calling a provider."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        if code is None:
            code = self.code_for_status(status_code)
        super().__init__(message, provider, code, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    @staticmethod
    def code_for_status(status_code: Optional[int]) -> ErrorCode:
        """Map an HTTP status to an outcome code."""
        if status_code is None:
            return ErrorCode.NETWORK_ERROR
        if status_code == 404:
            return ErrorCode.TOKEN_NOT_FOUND
        if status_code == 408:
            return ErrorCode.TIMEOUT_ERROR
        if status_code == 429:
            return ErrorCode.RATE_LIMIT_EXCEEDED
        if 500 <= status_code < 600:
            return ErrorCode.SERVER_ERROR
        return ErrorCode.UNKNOWN_ERROR

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return self.status_code is not None and 400 <= self.status_code < 500


class RateLimitError(FetchError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            provider,
            status_code=429,
            request_url=request_url,
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            original_error=original_error,
            context=context,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within its HTTP timeout."""

    default_code = ErrorCode.TIMEOUT_ERROR

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, ErrorCode.TIMEOUT_ERROR, original_error, context)
        self.timeout_seconds = timeout_seconds


class SymbolNotFoundError(ProviderError):
    """Provider answered but has no record for the requested ticker."""

    default_code = ErrorCode.TOKEN_NOT_FOUND

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        symbol: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, ErrorCode.TOKEN_NOT_FOUND, None, context)
        self.symbol = symbol


class UnsupportedSymbolError(SymbolNotFoundError):
    """Provider cannot be asked about this ticker at all (e.g. unmapped id)."""


class NormalizationError(PricingError):
    """Provider record could not be mapped into a valid TokenData."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.provider = provider
        self.raw_data = raw_data
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "provider": self.provider,
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,
            "field_name": self.field_name,
        })
        return data


class TokenPriceError(PricingError):
    """
    Caller-visible failure of a price resolution.

    Carries a user-facing message, an i18n key for the localization layer
    and the retryable flag UI layers use to decide on a retry affordance.
    """

    def __init__(
        self,
        code: ErrorCode,
        symbol: str,
        attempts: Optional[list[dict[str, Any]]] = None,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        if message is None:
            message = USER_MESSAGES[code].format(symbol=symbol)
        super().__init__(
            message,
            original_error,
            context={"symbol": symbol},
        )
        self.code = code
        self.symbol = symbol
        self.attempts = attempts or []

    @property
    def retryable(self) -> bool:
        return self.code.retryable

    @property
    def message_key(self) -> str:
        return f"price.errors.{self.code.value.lower()}"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "code": self.code.value,
            "retryable": self.retryable,
            "symbol": self.symbol,
            "message_key": self.message_key,
            "attempts": self.attempts,
        })
        return data
