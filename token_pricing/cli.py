"""
Token Pricing - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for ad-hoc price lookups.

- Resolves one or more tickers through the full provider chain
- Optionally invalidates cached entries first
- Loads configuration from YAML or environment

============================================================
USAGE
============================================================
python -m token_pricing BTC ETH
python -m token_pricing SOL --json
python -m token_pricing BTC --clear --log-level DEBUG
python -m token_pricing --health

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from token_pricing.config import PricingConfig
from token_pricing.exceptions import TokenPriceError
from token_pricing.models import CachedTokenData
from token_pricing.resolver import PriceResolver, create_price_resolver
from token_pricing.symbols import check_common_errors, validate_token_symbols


LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s"


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="token-pricing",
        description="Resolve token prices through the cache and provider chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Providers (in order):
  aggregator       - Backend trending list
  mid_price        - Hyperliquid all mids
  exchange_ticker  - Binance spot ticker
  reference        - CoinGecko simple price

Examples:
  %(prog)s BTC ETH                 # Resolve two tickers
  %(prog)s SOL --json              # Machine-readable output
  %(prog)s BTC --clear             # Invalidate, then resolve fresh
  %(prog)s --clear-all             # Drop every cached price
        """
    )

    parser.add_argument(
        "symbols",
        nargs="*",
        metavar="SYMBOL",
        help="Tickers to resolve (e.g. BTC ETH SOL)",
    )

    # --------------------------------------------------------
    # Cache Options
    # --------------------------------------------------------
    cache_group = parser.add_argument_group("Cache Options")

    cache_group.add_argument(
        "--clear",
        action="store_true",
        help="Invalidate cached entries for the given tickers before resolving",
    )

    cache_group.add_argument(
        "--clear-all",
        action="store_true",
        help="Invalidate every cached token price",
    )

    # --------------------------------------------------------
    # Output Options
    # --------------------------------------------------------
    output_group = parser.add_argument_group("Output Options")

    output_group.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )

    output_group.add_argument(
        "--health",
        action="store_true",
        help="Run the provider chain health check and exit",
    )

    # --------------------------------------------------------
    # Configuration
    # --------------------------------------------------------
    config_group = parser.add_argument_group("Configuration")

    config_group.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="YAML configuration file (default: environment variables)",
    )

    config_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help=".env file to load before reading the environment",
    )

    config_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


def load_config(args: argparse.Namespace) -> PricingConfig:
    if args.config:
        return PricingConfig.from_yaml(Path(args.config))
    return PricingConfig.from_env(Path(args.env_file) if args.env_file else None)


# ============================================================
# OUTPUT
# ============================================================

def format_price(data: CachedTokenData) -> str:
    trend = PriceResolver.calculate_price_trend(data)
    marker = " *" if trend.is_significant else ""
    cached = " (cached)" if data.is_cached else ""
    return (
        f"{data.symbol:<8} {data.price:>16,.6f} USD  "
        f"{data.change_24h:+7.2f}% {trend.type.value:<6}{marker}  "
        f"[{data.source.value}]{cached}"
    )


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, symbols: List[str]) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    config = load_config(args)
    resolver = await create_price_resolver(config)

    try:
        if args.health:
            healthy = await resolver.health_check()
            print("healthy" if healthy else "unhealthy")
            return 0 if healthy else 1

        if args.clear_all:
            cleared = await resolver.clear_all_token_cache()
            print(f"Cleared all token prices: {cleared}")

        if args.clear:
            for symbol in symbols:
                await resolver.clear_token_cache(symbol)

        if not symbols:
            return 0

        if len(symbols) == 1:
            try:
                results = [await resolver.get_token_price(symbols[0])]
            except TokenPriceError as e:
                print(f"Error [{e.code.value}]: {e.message}", file=sys.stderr)
                return 1
        else:
            results = await resolver.get_multiple_token_prices(symbols)

        if args.json:
            print(json.dumps([r.to_dict() for r in results], indent=2))
        else:
            for result in results:
                print(format_price(result))

        return 0 if len(results) == len(symbols) else 1

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    finally:
        await resolver.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    if not args.symbols and not (args.health or args.clear_all):
        parser.print_usage(sys.stderr)
        print("Error: at least one SYMBOL is required", file=sys.stderr)
        return 1

    symbols, invalid = validate_token_symbols(args.symbols)
    for entry in invalid:
        hint = check_common_errors(str(entry["symbol"]))
        print(f"Error: {entry['symbol']}: {hint or entry['error']}", file=sys.stderr)
    if invalid:
        return 1

    return asyncio.run(async_main(args, symbols))


if __name__ == "__main__":
    sys.exit(main())
