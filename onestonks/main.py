"""OneStonks - command line entry point."""

import argparse
import logging
import sys

from psycopg import Connection
from psycopg.rows import TupleRow
from psycopg_pool import ConnectionPool

from onestonks.cli import normalize_symbol, parse_args, settings_from_args, validate_args
from onestonks.domain.models import Asset, TradeType, User
from onestonks.errors import TradeError
from onestonks.infrastructure.repositories import PostgresRepository, Repository
from onestonks.settlement import TradeSettler
from onestonks.utils import create_logger, format_coins


def run_command(
    args: argparse.Namespace, repo: Repository, logger: logging.Logger
) -> int:
    """Run a parsed subcommand against a repository. Returns the exit code."""
    if args.command == "add-asset":
        asset_id = repo.add_asset(
            Asset(
                symbol=normalize_symbol(args.symbol),
                name=args.name,
                current_price=args.price,
                image_url=args.image_url,
            )
        )
        logger.info(f"Asset listed: {asset_id}")
        print(asset_id)
        return 0

    if args.command == "add-user":
        username = args.username or f"user-{str(args.user_id)[:8]}"
        repo.add_user(User(id=args.user_id, username=username, coins=args.coins))
        logger.info(f"User profile ready: {args.user_id}")
        return 0

    if args.command in ("buy", "sell"):
        settler = TradeSettler(repo, logger, settings_from_args(args).pricing())
        try:
            result = settler.settle(
                args.user_id, args.asset_id, args.quantity, TradeType(args.command)
            )
        except TradeError as e:
            logger.error(f"FAILED: {e.message}")
            return 1

        logger.info(
            f"SUCCESS: {result.message} {result.quantity} @ {format_coins(result.price)} "
            f"= {format_coins(result.total)} | new price {format_coins(result.new_price)} "
            f"| balance {format_coins(result.balance)}"
        )
        if not result.history_recorded:
            logger.warning("Price history entry was not recorded")
        return 0

    logger.error(f"Unknown command: {args.command}")
    return 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger = create_logger("onestonks", args.log_level)

    try:
        validate_args(args)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    pool: ConnectionPool[Connection[TupleRow]] = ConnectionPool(args.database_url)
    repo = PostgresRepository(pool)

    try:
        if args.command == "init-db":
            repo.create_schema()
            logger.info("Schema created")
            return 0

        return run_command(args, repo, logger)

    except TradeError as e:
        logger.error(f"Store error: {e.message}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        pool.close()


if __name__ == "__main__":
    sys.exit(main())
