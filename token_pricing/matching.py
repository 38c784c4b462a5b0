"""
Symbol Matcher - Resolve a ticker against a provider's token listing.

Upstream listings mix wrapped-asset tickers (WBTC) and quote-paired
tickers (BTCUSDT). Matching is layered, first match wins, no scoring:

1. Alias substitution
2. Exact case-insensitive symbol equality
3. Substring of the display name
4. Expanded probing of the symbol field (ticker, alias, both + quote asset)
"""

import logging
from typing import Any, Mapping, Optional, Sequence


logger = logging.getLogger(__name__)


DEFAULT_SYMBOL_ALIASES = {
    "BTC": "WBTC",
    "BITCOIN": "WBTC",
    "ETHEREUM": "ETH",
    "SOLANA": "SOL",
}


class SymbolMatcher:
    """Layered ticker matching over heterogeneous provider records."""

    def __init__(
        self,
        aliases: Optional[Mapping[str, str]] = None,
        quote_asset: str = "USDT",
        symbol_field: str = "symbol",
        name_field: str = "name",
    ) -> None:
        self._aliases = {k.upper(): v.upper() for k, v in (aliases or DEFAULT_SYMBOL_ALIASES).items()}
        self._quote_asset = quote_asset.upper()
        self._symbol_field = symbol_field
        self._name_field = name_field

    def resolve_alias(self, symbol: str) -> str:
        """Map a ticker to the representation used by the provider."""
        normalized = symbol.strip().upper()
        return self._aliases.get(normalized, normalized)

    def _field(self, record: Mapping[str, Any], name: str) -> Optional[str]:
        value = record.get(name)
        if not value or not isinstance(value, str):
            return None
        return value.upper()

    def find(
        self,
        records: Sequence[Mapping[str, Any]],
        symbol: str,
    ) -> Optional[Mapping[str, Any]]:
        """Return the first record matching the ticker, or None."""
        normalized = symbol.strip().upper()
        search = self.resolve_alias(normalized)

        for record in records:
            if self._field(record, self._symbol_field) == search:
                logger.debug(f"Found direct symbol match for {normalized} -> {search}")
                return record

        for record in records:
            name = self._field(record, self._name_field)
            if name and (normalized in name or search in name):
                logger.debug(f"Found name match for {normalized} -> {record.get(self._name_field)}")
                return record

        probes = [
            normalized,
            search,
            f"{normalized}{self._quote_asset}",
            f"{search}{self._quote_asset}",
        ]
        for probe in probes:
            for record in records:
                record_symbol = self._field(record, self._symbol_field)
                if record_symbol and probe in record_symbol:
                    logger.debug(f"Found extended match for {normalized} -> {record.get(self._symbol_field)}")
                    return record

        logger.debug(f"No match found for {normalized} in {len(records)} tokens")
        return None
