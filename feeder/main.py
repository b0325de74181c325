#!/usr/bin/env python3
"""Oracle Vote Feeder.

Fetches exchange rates from price servers and submits aggregate
exchange rate prevotes and votes for one or more validators, every
oracle vote period.

Configure via CLI arguments or environment variables.
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys

from .src import __version__
from .src.LcdClient import LcdClient
from .src.PriceAggregator import PriceAggregator
from .src.TxSubmitter import TxSubmitter, parse_gas_prices
from .src.VoteFeeder import MIN_TICK_INTERVAL, VoteFeeder
from .src.VotePeriodTracker import DEFAULT_PERIOD_MARGIN, VotePeriodTracker
from .src.Wallet import KeyLoadError, Wallet, load_key

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_list(value: str | None, lower: bool = False) -> list[str]:
    """Split a comma-separated string into trimmed, non-empty items.

    :param value: Comma-separated string.
    :param lower: Lower-case every item.
    :returns: List of items.
    """
    if not value:
        return []
    items = [item.strip() for item in value.split(",") if item.strip()]
    if lower:
        items = [item.lower() for item in items]
    return items


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser with environment variable defaults."""
    parser = argparse.ArgumentParser(
        description="Oracle Vote Feeder: commit-reveal exchange rate voting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Vote for the key's own validator with a local price server
  python -m feeder.main --lcd https://lcd.terra.dev --chain-id columbus-4 \\
      --sources http://127.0.0.1:8532/latest --denoms krw,usd,sdr,mnt

  # Vote for several validators with redundant price servers
  python -m feeder.main --validators terravaloper1...,terravaloper1... \\
      --sources http://a:8532/latest,http://b:8532/latest

Environment variables (CLI args take precedence):
  LCD_ADDRESS, CHAIN_ID, GAS_PRICES, VALIDATORS, PRICE_SOURCES, DENOMS,
  KEY_PATH, PASSPHRASE, FETCH_TIMEOUT, PERIOD_MARGIN, TICK_INTERVAL
""",
    )

    parser.add_argument(
        "--lcd",
        type=str,
        help="LCD node address (default: https://lcd.terra.dev)",
        default=os.environ.get("LCD_ADDRESS") or "https://lcd.terra.dev",
    )

    parser.add_argument(
        "--chain-id",
        dest="chain_id",
        type=str,
        help="Chain ID (default: columbus-4)",
        default=os.environ.get("CHAIN_ID") or "columbus-4",
    )

    parser.add_argument(
        "--gas-prices",
        dest="gas_prices",
        type=str,
        help="Gas prices (e.g., 0.15uluna,0.2ukrw)",
        default=os.environ.get("GAS_PRICES") or "0.15uluna",
    )

    parser.add_argument(
        "--validators",
        type=str,
        help="Comma-separated validator addresses (default: the key's own)",
        default=os.environ.get("VALIDATORS"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help="Comma-separated price server URLs",
        default=os.environ.get("PRICE_SOURCES") or "http://127.0.0.1:8532/latest",
    )

    parser.add_argument(
        "--denoms",
        type=str,
        help="Comma-separated currencies to vote on; others abstain (e.g., krw,usd)",
        default=os.environ.get("DENOMS") or "krw,usd,sdr,mnt,eur",
    )

    parser.add_argument(
        "--key-path",
        dest="key_path",
        type=str,
        help="Path to the encrypted voter key file (default: voter.json)",
        default=os.environ.get("KEY_PATH") or "voter.json",
    )

    parser.add_argument(
        "--password",
        type=str,
        help="Key file passphrase (prompted if not given)",
        default=os.environ.get("PASSPHRASE"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for each price fetch in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--period-margin",
        dest="period_margin",
        type=int,
        help=f"Blocks to hold off before a period ends (default: {DEFAULT_PERIOD_MARGIN})",
        default=int(os.environ.get("PERIOD_MARGIN") or str(DEFAULT_PERIOD_MARGIN)),
    )

    parser.add_argument(
        "--interval",
        type=float,
        help=f"Seconds between tick starts (minimum: {MIN_TICK_INTERVAL})",
        default=float(os.environ.get("TICK_INTERVAL") or str(MIN_TICK_INTERVAL)),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def validate_args(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> tuple[list[str], list[str]]:
    """Check parsed arguments, exiting through parser.error on bad input.

    :returns: Tuple of (price source URLs, denoms).
    """
    sources = parse_list(args.sources)
    denoms = parse_list(args.denoms, lower=True)

    if not sources:
        parser.error("At least one price source must be specified")

    if not denoms:
        parser.error("At least one denom must be specified")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.period_margin < 0:
        parser.error("--period-margin must not be negative")

    if args.interval < MIN_TICK_INTERVAL:
        parser.error(f"--interval must be at least {MIN_TICK_INTERVAL} seconds")

    try:
        parse_gas_prices(args.gas_prices)
    except ValueError as e:
        parser.error(str(e))

    return sources, denoms


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Oracle Vote Feeder CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sources, denoms = validate_args(parser, args)

    password = args.password
    if password is None:
        password = getpass.getpass("Enter a passphrase: ")

    try:
        key = load_key(args.key_path, password)
    except KeyLoadError as e:
        logger.error(f"Failed to load key: {e}")
        sys.exit(1)

    validators = parse_list(args.validators) or [key.val_address]

    # Log configuration
    logger.info("=" * 60)
    logger.info(f"Oracle Vote Feeder v{__version__}")
    logger.info("=" * 60)
    logger.info(f"LCD:               {args.lcd}")
    logger.info(f"Chain ID:          {args.chain_id}")
    logger.info(f"Gas Prices:        {args.gas_prices}")
    logger.info(f"Feeder:            {key.acc_address}")
    logger.info(f"Validators:        {', '.join(validators)}")
    logger.info(f"Price Sources:     {', '.join(sources)}")
    logger.info(f"Denoms:            {', '.join(denoms)}")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    logger.info(f"Period Margin:     {args.period_margin} blocks")
    logger.info("=" * 60)

    try:
        client = LcdClient(args.lcd)
        wallet = Wallet(client, key, args.chain_id)
        feeder = VoteFeeder(
            client=client,
            aggregator=PriceAggregator(sources, fetch_timeout=args.fetch_timeout),
            submitter=TxSubmitter(
                client,
                wallet,
                gas_prices=args.gas_prices,
                memo=f"oracle-feeder@{__version__}",
            ),
            validators=validators,
            feeder_address=key.acc_address,
            denoms=denoms,
            tracker=VotePeriodTracker(period_margin=args.period_margin),
            interval=args.interval,
        )
        asyncio.run(feeder.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
