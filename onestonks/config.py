"""Configuration loaded from environment variables."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from onestonks.pricing import PricingConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class Settings:
    """Runtime settings for the API and CLI."""

    database_url: str | None = None
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    log_level: str = "INFO"
    step_size: int = 5
    change_per_step: Decimal = Decimal("0.005")
    min_price: Decimal = Decimal("0.01")
    starting_coins: Decimal = Decimal("1000")
    auth_timeout: int = 10
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)

    def pricing(self) -> PricingConfig:
        return PricingConfig(
            step_size=self.step_size,
            change_per_step=self.change_per_step,
            min_price=self.min_price,
        )


def _decimal(env: Mapping[str, str], key: str, default: str) -> Decimal:
    raw = env.get(key, default)
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


def _int(env: Mapping[str, str], key: str, default: str) -> int:
    raw = env.get(key, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def settings_from_env(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from the environment. Raises ValueError on bad numbers."""
    env = os.environ if environ is None else environ
    return Settings(
        database_url=env.get("DATABASE_URL"),
        supabase_url=env.get("SUPABASE_URL"),
        supabase_anon_key=env.get("SUPABASE_ANON_KEY"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        step_size=_int(env, "PRICE_STEP_SIZE", "5"),
        change_per_step=_decimal(env, "PRICE_CHANGE_PER_STEP", "0.005"),
        min_price=_decimal(env, "MIN_PRICE", "0.01"),
        starting_coins=_decimal(env, "STARTING_COINS", "1000"),
        auth_timeout=_int(env, "AUTH_TIMEOUT", "10"),
        allowed_origins=tuple(
            origin.strip()
            for origin in env.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ),
    )


def validate_settings(settings: Settings, require_auth: bool = False) -> None:
    """Validate settings. Raises ValueError on invalid input."""
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(
            f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {settings.log_level}"
        )

    if not settings.database_url:
        raise ValueError("DATABASE_URL is required")

    if require_auth and (not settings.supabase_url or not settings.supabase_anon_key):
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")

    if settings.starting_coins < 0:
        raise ValueError(
            f"STARTING_COINS must not be negative, got {settings.starting_coins}"
        )

    if settings.auth_timeout <= 0:
        raise ValueError(f"AUTH_TIMEOUT must be positive, got {settings.auth_timeout}")

    # PricingConfig validates step size, change per step and min price.
    settings.pricing()
