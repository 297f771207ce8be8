"""Command-line interface parsing and validation."""

import argparse
import os
from decimal import Decimal, InvalidOperation
from uuid import UUID

from onestonks.config import LOG_LEVELS, Settings


def normalize_symbol(symbol: str) -> str:
    """Normalize an asset symbol (e.g., ' lol ' -> LOL)."""
    return symbol.strip().upper()


def decimal_arg(value: str) -> Decimal:
    """Parse a decimal command line value."""
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid decimal value: {value!r}") from None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="onestonks",
        description="OneStonks comedian market administration and trading",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="PostgreSQL connection string",
    )

    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO").upper(),
        choices=list(LOG_LEVELS),
        help="Logging level",
    )

    parser.add_argument(
        "--step-size",
        type=int,
        default=os.environ.get("PRICE_STEP_SIZE", "5"),
        help="Net volume units per price step",
    )

    parser.add_argument(
        "--change-per-step",
        type=decimal_arg,
        default=os.environ.get("PRICE_CHANGE_PER_STEP", "0.005"),
        help="Fractional price change per step (e.g., 0.005 = 0.5%%)",
    )

    parser.add_argument(
        "--min-price",
        type=decimal_arg,
        default=os.environ.get("MIN_PRICE", "0.01"),
        help="Price floor applied when a trade pushes the price down",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database schema")

    add_asset = commands.add_parser(
        "add-asset",
        help="List a new asset",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_asset.add_argument("--symbol", required=True, help="Ticker symbol")
    add_asset.add_argument("--name", required=True, help="Display name")
    add_asset.add_argument(
        "--price", type=decimal_arg, required=True, help="Initial price in coins"
    )
    add_asset.add_argument("--image-url", default=None, help="Image reference")

    add_user = commands.add_parser(
        "add-user",
        help="Create a user profile",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_user.add_argument("--user-id", type=UUID, required=True, help="Auth user ID")
    add_user.add_argument("--username", default=None, help="Display name")
    add_user.add_argument(
        "--coins",
        type=decimal_arg,
        default=os.environ.get("STARTING_COINS", "1000"),
        help="Starting balance",
    )

    for side in ("buy", "sell"):
        trade = commands.add_parser(
            side,
            help=f"Settle a {side} trade",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        trade.add_argument("--user-id", type=UUID, required=True, help="Trader ID")
        trade.add_argument("--asset-id", type=UUID, required=True, help="Asset ID")
        trade.add_argument("--quantity", type=int, required=True, help="Units to trade")

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> None:
    """Validate command line arguments. Raises ValueError on invalid input."""
    if not args.database_url:
        raise ValueError("--database-url or DATABASE_URL is required")

    if args.command == "add-asset" and args.price < args.min_price:
        raise ValueError(
            f"--price must be at least --min-price ({args.min_price}), got {args.price}"
        )

    if args.command == "add-user" and args.coins < 0:
        raise ValueError(f"--coins must not be negative, got {args.coins}")

    if args.command in ("buy", "sell") and args.quantity <= 0:
        raise ValueError(f"--quantity must be positive, got {args.quantity}")

    settings_from_args(args).pricing()


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        database_url=args.database_url,
        log_level=args.log_level,
        step_size=args.step_size,
        change_per_step=args.change_per_step,
        min_price=args.min_price,
    )
