"""
Base Price Provider - Abstract interface for all upstream price sources.

All providers MUST implement this interface to ensure:
- Isolation
- Replaceability
- Typed failure outcomes (ErrorCode), never message sniffing
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

import aiohttp

from token_pricing.exceptions import (
    ErrorCode,
    FetchError,
    NormalizationError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    SymbolNotFoundError,
)
from token_pricing.models import PriceSource, ProviderHealth, ProviderStatus, TokenData


logger = logging.getLogger(__name__)

R = TypeVar("R")


class BasePriceProvider(ABC, Generic[R]):
    """
    Abstract base class for all price providers.

    Each provider must:
    1. Implement fetch_raw() - Get the provider's tagged response variant
    2. Implement to_token_data() - Adapt that variant into TokenData
    3. Expose source - the PriceSource identifier stamped on results

    Features:
    - HTTP status / transport errors mapped to ErrorCode
    - Per-provider timeout
    - Health tracking (informational, never reorders the chain)
    """

    DEFAULT_TIMEOUT = 10.0
    MAX_RETRIES = 1
    RETRY_BACKOFF_BASE = 2.0
    DEGRADED_THRESHOLD = 3  # consecutive failures before degraded
    UNAVAILABLE_THRESHOLD = 5  # consecutive failures before unavailable

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._session = session
        self._owns_session = session is None

        self._health = ProviderHealth(
            status=ProviderStatus.UNKNOWN,
            last_check=datetime.now(timezone.utc),
        )
        self._request_count = 0
        self._success_count = 0

    @property
    @abstractmethod
    def source(self) -> PriceSource:
        """Identifier stamped on every TokenData this provider produces."""
        pass

    @property
    def name(self) -> str:
        return self.source.value

    @abstractmethod
    async def fetch_raw(self, symbol: str) -> R:
        """
        Fetch the provider's response variant for a ticker.

        Raises:
            ProviderError: typed fetch failure
        """
        pass

    @abstractmethod
    def to_token_data(self, response: R, symbol: str) -> TokenData:
        """
        Adapt the response variant into a validated TokenData.

        Raises:
            SymbolNotFoundError: response holds no record for the ticker
            NormalizationError: record failed validation
        """
        pass

    async def fetch(self, symbol: str) -> TokenData:
        """
        Fetch and adapt a price (main entry point).

        Raises:
            ProviderError: fetch failed or ticker not found
            NormalizationError: record failed validation
        """
        try:
            response = await self._fetch_with_retry(symbol)
            token = self.to_token_data(response, symbol)
        except (ProviderError, NormalizationError) as e:
            self._on_error(e)
            raise
        except Exception as e:
            error = ProviderError(
                message=f"Unexpected error: {e}",
                provider=self.name,
                code=ErrorCode.UNKNOWN_ERROR,
                original_error=e,
            )
            self._on_error(error)
            raise error from e

        self._on_success()
        return token

    async def _fetch_with_retry(self, symbol: str) -> R:
        """Retry server and network errors with exponential backoff."""
        last_error: Optional[ProviderError] = None

        for attempt in range(self._max_retries):
            try:
                return await self.fetch_raw(symbol)
            except (RateLimitError, SymbolNotFoundError):
                raise
            except ProviderError as e:
                retryable = e.code in (ErrorCode.SERVER_ERROR, ErrorCode.NETWORK_ERROR)
                if not retryable or attempt + 1 >= self._max_retries:
                    raise
                wait_time = self.RETRY_BACKOFF_BASE ** attempt
                logger.warning(
                    f"[{self.name}] {e.code.value}, retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )
                await asyncio.sleep(wait_time)
                last_error = e

        raise last_error or ProviderError("No attempt made", provider=self.name)

    # ─────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "User-Agent": "TradeBot-Pricing/1.0",
        }

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request, translating failures to typed provider errors."""
        url = f"{self._base_url}{path}"
        session = await self._get_session()

        # An injected session is shared across providers, so per-provider
        # headers and timeout travel with each request.
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=request_headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                latency_ms = (time.time() - start_time) * 1000
                self._health.latency_ms = latency_ms

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        provider=self.name,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                        request_url=url,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        provider=self.name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise FetchError(
                        message=f"Invalid JSON response: {e}",
                        provider=self.name,
                        status_code=response.status,
                        request_url=url,
                        code=ErrorCode.UNKNOWN_ERROR,
                        original_error=e,
                    )

                logger.debug(f"[{self.name}] {method} {path} completed in {latency_ms:.1f}ms")
                return data

        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                message=f"Request timed out after {self._timeout}s",
                provider=self.name,
                timeout_seconds=self._timeout,
                original_error=e,
                context={"url": url},
            )
        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                provider=self.name,
                request_url=url,
                code=ErrorCode.NETWORK_ERROR,
                original_error=e,
            )

    # ─────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────

    def _on_success(self) -> None:
        """Handle successful request."""
        self._request_count += 1
        self._success_count += 1
        self._health.consecutive_failures = 0
        self._health.last_check = datetime.now(timezone.utc)

        if self._health.status != ProviderStatus.HEALTHY:
            if self._health.status != ProviderStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = ProviderStatus.HEALTHY

    def _on_error(self, error: Exception) -> None:
        """Handle request error. Not-found answers still prove liveness."""
        self._request_count += 1
        self._health.last_check = datetime.now(timezone.utc)

        if isinstance(error, (SymbolNotFoundError, NormalizationError)):
            self._success_count += 1
            return

        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = datetime.now(timezone.utc)

        if self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != ProviderStatus.UNAVAILABLE:
                self._health.status = ProviderStatus.UNAVAILABLE
                logger.error(f"[{self.name}] Marked UNAVAILABLE after {self._health.consecutive_failures} failures")
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != ProviderStatus.DEGRADED:
                self._health.status = ProviderStatus.DEGRADED
                logger.warning(f"[{self.name}] Marked DEGRADED after {self._health.consecutive_failures} failures")

    def get_health(self) -> ProviderHealth:
        """Get current health status."""
        if self._request_count > 0:
            self._health.uptime_percentage = self._success_count / self._request_count * 100
        return self._health

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BasePriceProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
