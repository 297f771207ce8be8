import logging
from decimal import ROUND_HALF_UP, Decimal

from onestonks.config import Settings

CENT = Decimal("0.01")


def format_coins(amount: Decimal) -> Decimal:
    """
    Round a coin amount for display.

    Examples:
        Decimal("100.5")    -> Decimal("100.50")
        Decimal("99.9975")  -> Decimal("100.00")
        Decimal("502.5")    -> Decimal("502.50")
    """
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def create_logger(name: str, level: str) -> logging.Logger:
    """Create and configure a logger instance."""
    logger = logging.Logger(name)
    logger.setLevel(getattr(logging, level))

    handler = logging.StreamHandler()
    handler.setLevel(getattr(logging, level))
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def log_settings(logger: logging.Logger, settings: Settings) -> None:
    """Log configuration (safe subset only)."""
    logger.info("=" * 60)
    logger.info("OneStonks Configuration")
    logger.info("=" * 60)
    logger.info(f"Database: {'configured' if settings.database_url else 'missing'}")
    logger.info(f"Auth URL: {settings.supabase_url}")
    logger.info(f"Step size: {settings.step_size}")
    logger.info(f"Change per step: {settings.change_per_step}")
    logger.info(f"Min price: {settings.min_price}")
    logger.info(f"Starting coins: {settings.starting_coins}")
    logger.info("=" * 60)
