"""
Token Pricing Models - Canonical price records and provider response variants.

Provides strict typing for price normalization across all providers.
"""

import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class PriceSource(Enum):
    """Identifiers of the upstream price providers."""
    AGGREGATOR = "aggregator"
    MID_PRICE = "mid_price"
    EXCHANGE_TICKER = "exchange_ticker"
    REFERENCE = "reference"


class CacheTier(Enum):
    """Storage tier holding a cache entry."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class PriceChangeType(Enum):
    """Direction of a 24h price move."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class ProviderStatus(Enum):
    """Health status of a price provider."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass
class ProviderHealth:
    """Observed health of a price provider. Informational only."""
    status: ProviderStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    uptime_percentage: float = 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
            "uptime_percentage": self.uptime_percentage,
        }


@dataclass
class CacheEntry:
    """Serialized value held by one cache tier."""
    key: str
    serialized_value: str
    expires_at: Optional[float] = None  # epoch seconds, None = no expiry
    tier: CacheTier = CacheTier.FALLBACK

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the entry is past its expiry."""
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at

    def remaining_ttl(self, now: Optional[float] = None) -> Optional[int]:
        """Seconds until expiry, None when the entry never expires."""
        if self.expires_at is None:
            return None
        remaining = self.expires_at - (now if now is not None else time.time())
        return max(int(remaining), 0)


@dataclass(frozen=True)
class SupplyInfo:
    """Token supply figures."""
    circulating: float = 0.0
    total: float = 0.0
    max: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "circulating": self.circulating,
            "total": self.total,
            "max": self.max,
        }


@dataclass(frozen=True)
class TokenData:
    """
    Normalized token price record - STRICT schema.

    All providers MUST normalize their data to this format.
    No downstream module depends on provider-specific fields.
    """
    symbol: str
    name: str
    price: float
    change_24h: float
    volume_24h: float
    market_cap: float
    source: PriceSource
    high_24h: float = 0.0
    low_24h: float = 0.0
    supply: SupplyInfo = field(default_factory=SupplyInfo)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    REQUIRED_FIELDS = ("symbol", "name", "price", "change_24h", "volume_24h")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change_24h": self.change_24h,
            "volume_24h": self.volume_24h,
            "market_cap": self.market_cap,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "supply": self.supply.to_dict(),
            "updated_at": self.updated_at.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenData":
        """Create from dictionary."""
        supply = data.get("supply") or {}
        return cls(
            symbol=data["symbol"],
            name=data["name"],
            price=float(data["price"]),
            change_24h=float(data["change_24h"]),
            volume_24h=float(data["volume_24h"]),
            market_cap=float(data.get("market_cap", 0.0)),
            high_24h=float(data.get("high_24h", 0.0)),
            low_24h=float(data.get("low_24h", 0.0)),
            supply=SupplyInfo(
                circulating=float(supply.get("circulating", 0.0)),
                total=float(supply.get("total", 0.0)),
                max=float(supply.get("max", 0.0)),
            ),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            source=PriceSource(data["source"]),
        )


@dataclass(frozen=True)
class CacheMetadata:
    """Where a cached price came from."""
    key: str
    ttl: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "ttl": self.ttl,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CachedTokenData(TokenData):
    """TokenData annotated with its cache provenance."""
    is_cached: bool = False
    cache: Optional[CacheMetadata] = None

    @classmethod
    def from_token(
        cls,
        token: TokenData,
        is_cached: bool,
        cache: Optional[CacheMetadata] = None,
    ) -> "CachedTokenData":
        values = {f.name: getattr(token, f.name) for f in fields(TokenData)}
        return cls(**values, is_cached=is_cached, cache=cache)

    def as_token(self) -> TokenData:
        """Strip cache provenance."""
        return TokenData(**{f.name: getattr(self, f.name) for f in fields(TokenData)})

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["is_cached"] = self.is_cached
        data["cache"] = self.cache.to_dict() if self.cache else None
        return data


@dataclass(frozen=True)
class PriceTrend:
    """Classified 24h price move."""
    type: PriceChangeType
    percentage: float
    is_significant: bool


@dataclass
class SymbolValidation:
    """Result of validating user-supplied ticker input."""
    is_valid: bool
    normalized: str
    error: Optional[str] = None
    suggestions: list[str] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Provider response variants (never persisted)
# ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AggregatorResponse:
    """Trending-list payload: {data: [record, ...]}."""
    tokens: list[dict[str, Any]]


@dataclass(frozen=True)
class MidPrice:
    """One coin's mid price."""
    coin: str
    px: str


@dataclass(frozen=True)
class MidPriceResponse:
    """Mid-price payload: {data: [{coin, px}, ...]}."""
    mids: list[MidPrice]

    def find(self, symbol: str) -> Optional[MidPrice]:
        """Exact ticker lookup."""
        wanted = symbol.strip().upper()
        for mid in self.mids:
            if mid.coin.upper() == wanted:
                return mid
        return None


@dataclass(frozen=True)
class ExchangeTickerResponse:
    """Exchange ticker payload: separate price and 24h stats documents."""
    pair: str
    price: dict[str, Any]
    stats: dict[str, Any]


@dataclass(frozen=True)
class ReferencePriceResponse:
    """Reference payload: {coin_id: {usd, usd_24h_change, ...}}."""
    coin_id: str
    quote: dict[str, Any]
