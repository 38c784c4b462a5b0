"""
Ticker input validation for command handlers.

Well-formed but unlisted tickers are still accepted (they may be newly
listed tokens) and come back with suggestions from the supported list.
"""

import re
from typing import Any, Optional

from token_pricing.models import SymbolValidation


MAX_SYMBOL_LENGTH = 10
MAX_SUGGESTIONS = 5
SIMILARITY_THRESHOLD = 0.6

_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]+$")

SUPPORTED_TOKENS = (
    # Majors
    "BTC", "ETH", "SOL", "USDT", "USDC", "BNB", "XRP", "ADA",
    # DeFi
    "UNI", "LINK", "AAVE", "COMP", "SUSHI", "CRV", "YFI",
    # Layer 1
    "DOT", "AVAX", "MATIC", "ATOM", "NEAR", "ALGO", "EGLD",
    # Layer 2
    "OP", "ARB", "IMX", "LRC",
    # Meme
    "DOGE", "SHIB", "PEPE", "FLOKI", "HYPE",
    # Other
    "APT", "SUI", "FTM", "SAND", "MANA", "AXS",
)

# Project name -> ticker
TOKEN_ALIASES = {
    "BITCOIN": "BTC",
    "ETHEREUM": "ETH",
    "SOLANA": "SOL",
    "TETHER": "USDT",
    "USD-COIN": "USDC",
    "BINANCE-COIN": "BNB",
    "CARDANO": "ADA",
    "POLKADOT": "DOT",
    "CHAINLINK": "LINK",
    "POLYGON": "MATIC",
    "AVALANCHE": "AVAX",
    "UNISWAP": "UNI",
    "DOGECOIN": "DOGE",
    "SHIBA-INU": "SHIB",
}

COMMON_ERRORS = {
    "BITCOIN": "Please use BTC instead of BITCOIN",
    "ETHEREUM": "Please use ETH instead of ETHEREUM",
    "SOLANA": "Please use SOL instead of SOLANA",
    "BINANCE": "Please use BNB instead of BINANCE",
    "TETHER": "Please use USDT instead of TETHER",
}


def validate_token_symbol(raw: Any) -> SymbolValidation:
    """Validate and normalize a user-supplied ticker."""
    if not raw or not isinstance(raw, str):
        return SymbolValidation(
            is_valid=False,
            normalized="",
            error="Token symbol is required and must be a string",
        )

    symbol = raw.strip().upper()

    if not symbol:
        return SymbolValidation(is_valid=False, normalized="", error="Token symbol is required")

    if len(symbol) > MAX_SYMBOL_LENGTH:
        return SymbolValidation(
            is_valid=False,
            normalized=symbol,
            error="Token symbol is too long, please use a standard ticker",
        )

    if not _SYMBOL_PATTERN.match(symbol):
        return SymbolValidation(
            is_valid=False,
            normalized=symbol,
            error="Token symbol may only contain letters and digits",
        )

    normalized = TOKEN_ALIASES.get(symbol, symbol)
    if normalized in SUPPORTED_TOKENS:
        return SymbolValidation(is_valid=True, normalized=normalized)

    return SymbolValidation(
        is_valid=True,
        normalized=normalized,
        suggestions=find_similar_tokens(symbol),
    )


def validate_token_symbols(symbols: list[str]) -> tuple[list[str], list[dict[str, Any]]]:
    """Split inputs into normalized valid tickers and rejected entries."""
    valid: list[str] = []
    invalid: list[dict[str, Any]] = []

    for raw in symbols:
        result = validate_token_symbol(raw)
        if result.is_valid:
            valid.append(result.normalized)
        else:
            invalid.append({
                "symbol": raw,
                "error": result.error or "Invalid token symbol",
                "suggestions": result.suggestions,
            })

    return valid, invalid


def check_common_errors(symbol: str) -> Optional[str]:
    """Hint for full project names typed instead of tickers."""
    return COMMON_ERRORS.get(symbol.strip().upper())


def get_supported_tokens() -> list[str]:
    return list(SUPPORTED_TOKENS)


def find_similar_tokens(symbol: str) -> list[str]:
    """Prefix matches, else close spellings; alias hits are always added."""
    needle = symbol.upper()

    suggestions = [token for token in SUPPORTED_TOKENS if token.startswith(needle)]

    if not suggestions:
        suggestions = [
            token for token in SUPPORTED_TOKENS
            if similarity(needle, token) > SIMILARITY_THRESHOLD
        ]

    for alias, token in TOKEN_ALIASES.items():
        if (alias in needle or needle in alias) and token not in suggestions:
            suggestions.append(token)

    return suggestions[:MAX_SUGGESTIONS]


def similarity(a: str, b: str) -> float:
    """1.0 for identical strings, scaled down by edit distance."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]
