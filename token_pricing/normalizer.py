"""
Data Normalizer - Map an upstream record into a validated TokenData.

Numeric coercion is lenient (bad values become 0), validation is not:
a record missing required fields or carrying negative price, volume or
market cap raises NormalizationError and aborts that provider's attempt.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from token_pricing.exceptions import NormalizationError
from token_pricing.models import PriceSource, SupplyInfo, TokenData


logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")

# Canonical field -> candidate source fields, first non-null wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "price": ("price", "current_price", "priceUsd", "price_usd"),
    "change_24h": (
        "price_change_24h_percent",
        "change24h",
        "price_change_percentage_24h",
        "priceChange24h",
    ),
    "volume_24h": ("volume_24h_usd", "volume24h", "total_volume", "volume"),
    "market_cap": ("market_cap_usd", "market_cap", "marketCap", "marketCapUsd"),
    "high_24h": ("high24h", "high_24h"),
    "low_24h": ("low24h", "low_24h"),
    "circulating_supply": ("circulating_supply",),
    "total_supply": ("total_supply",),
    "max_supply": ("max_supply",),
}

NON_NEGATIVE_FIELDS = ("price", "volume_24h", "market_cap")


def parse_numeric(value: Any) -> float:
    """Coerce an upstream value to float; anything unparseable is 0."""
    if value is None or value == "" or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)

    if isinstance(value, str):
        # Leading number only, so "1.2.3" reads as 1.2 and "5-3" as 5
        match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
        if match is None:
            return 0.0
        return float(match.group())

    return 0.0


def pick(record: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """First non-null candidate field."""
    for name in candidates:
        value = record.get(name)
        if value is not None:
            return value
    return None


class DataNormalizer:
    """Maps ProviderRecords into TokenData and validates them."""

    def __init__(self, field_aliases: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self._aliases = dict(FIELD_ALIASES)
        if field_aliases:
            self._aliases.update({k: tuple(v) for k, v in field_aliases.items()})

    def _number(self, record: Mapping[str, Any], canonical: str) -> float:
        return parse_numeric(pick(record, self._aliases[canonical]))

    def normalize(
        self,
        record: Mapping[str, Any],
        symbol: str,
        source: PriceSource,
    ) -> TokenData:
        """
        Build and validate a TokenData.

        Raises:
            NormalizationError: record is unusable for this symbol
        """
        if not isinstance(record, Mapping):
            raise NormalizationError(
                message=f"Expected a mapping, got {type(record).__name__}",
                provider=source.value,
                raw_data=record,
            )

        canonical_symbol = symbol.strip().upper()

        try:
            token = TokenData(
                symbol=canonical_symbol,
                name=record.get("name") or canonical_symbol,
                price=self._number(record, "price"),
                change_24h=self._number(record, "change_24h"),
                volume_24h=self._number(record, "volume_24h"),
                market_cap=self._number(record, "market_cap"),
                high_24h=self._number(record, "high_24h"),
                low_24h=self._number(record, "low_24h"),
                supply=SupplyInfo(
                    circulating=self._number(record, "circulating_supply"),
                    total=self._number(record, "total_supply"),
                    max=self._number(record, "max_supply"),
                ),
                updated_at=datetime.now(timezone.utc),
                source=source,
            )
        except (TypeError, ValueError) as e:
            raise NormalizationError(
                message=f"Data processing failed for {canonical_symbol}: {e}",
                provider=source.value,
                raw_data=record,
                original_error=e,
            )

        self.validate(token, raw_data=record)
        return token

    def validate(self, token: TokenData, raw_data: Optional[Any] = None) -> None:
        """Reject records missing required fields or carrying negative amounts."""
        for name in TokenData.REQUIRED_FIELDS:
            value = getattr(token, name, None)
            if value is None or value == "":
                raise NormalizationError(
                    message=f"Missing required field: {name}",
                    provider=token.source.value,
                    raw_data=raw_data,
                    field_name=name,
                )

        for name in NON_NEGATIVE_FIELDS:
            if getattr(token, name) < 0:
                logger.debug(f"Rejecting {token.symbol} from {token.source.value}: negative {name}")
                raise NormalizationError(
                    message=f"Invalid {name}: cannot be negative",
                    provider=token.source.value,
                    raw_data=raw_data,
                    field_name=name,
                )
