"""Tests for settings and command-line handling."""

from decimal import Decimal
from uuid import uuid4

import pytest

from onestonks.cli import normalize_symbol, parse_args, settings_from_args, validate_args
from onestonks.config import Settings, settings_from_env, validate_settings
from onestonks.domain.models import TradeType
from onestonks.main import run_command
from onestonks.utils import format_coins

ENV_KEYS = (
    "DATABASE_URL",
    "LOG_LEVEL",
    "PRICE_STEP_SIZE",
    "PRICE_CHANGE_PER_STEP",
    "MIN_PRICE",
    "STARTING_COINS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestSettings:
    def test_defaults(self):
        settings = settings_from_env({})
        assert settings.database_url is None
        assert settings.step_size == 5
        assert settings.change_per_step == Decimal("0.005")
        assert settings.min_price == Decimal("0.01")
        assert settings.starting_coins == Decimal("1000")
        assert settings.allowed_origins == ("http://localhost:3000",)

    def test_reads_environment(self):
        settings = settings_from_env(
            {
                "DATABASE_URL": "postgresql://localhost/onestonks",
                "LOG_LEVEL": "debug",
                "PRICE_STEP_SIZE": "10",
                "PRICE_CHANGE_PER_STEP": "0.01",
                "ALLOWED_ORIGINS": "https://a.test, https://b.test,",
            }
        )
        assert settings.log_level == "DEBUG"
        assert settings.step_size == 10
        assert settings.pricing().change_per_step == Decimal("0.01")
        assert settings.allowed_origins == ("https://a.test", "https://b.test")

    @pytest.mark.parametrize(
        "key, value",
        [("PRICE_STEP_SIZE", "five"), ("MIN_PRICE", "cheap"), ("AUTH_TIMEOUT", "1.5")],
    )
    def test_bad_numbers(self, key, value):
        with pytest.raises(ValueError, match=key):
            settings_from_env({key: value})

    def test_valid_settings_pass(self):
        validate_settings(Settings(database_url="postgresql://db"))

    @pytest.mark.parametrize(
        "settings",
        [
            Settings(database_url=None),
            Settings(database_url="postgresql://db", log_level="LOUD"),
            Settings(database_url="postgresql://db", step_size=0),
            Settings(database_url="postgresql://db", min_price=Decimal("0")),
            Settings(database_url="postgresql://db", starting_coins=Decimal("-1")),
            Settings(database_url="postgresql://db", auth_timeout=0),
        ],
    )
    def test_invalid_settings(self, settings):
        with pytest.raises(ValueError):
            validate_settings(settings)

    def test_auth_required_for_api(self):
        with pytest.raises(ValueError, match="SUPABASE"):
            validate_settings(Settings(database_url="postgresql://db"), require_auth=True)


class TestCli:
    def test_parse_trade(self):
        user_id, asset_id = uuid4(), uuid4()
        args = parse_args(
            [
                "--database-url", "postgresql://db",
                "buy",
                "--user-id", str(user_id),
                "--asset-id", str(asset_id),
                "--quantity", "5",
            ]
        )
        assert args.command == "buy"
        assert args.user_id == user_id
        assert args.quantity == 5
        validate_args(args)

    def test_missing_database_url(self):
        args = parse_args(["init-db"])
        with pytest.raises(ValueError, match="database-url"):
            validate_args(args)

    def test_non_positive_quantity(self):
        args = parse_args(
            [
                "--database-url", "postgresql://db",
                "sell",
                "--user-id", str(uuid4()),
                "--asset-id", str(uuid4()),
                "--quantity", "0",
            ]
        )
        with pytest.raises(ValueError, match="quantity"):
            validate_args(args)

    def test_bad_pricing_flags(self):
        args = parse_args(["--database-url", "postgresql://db", "--step-size", "0", "init-db"])
        with pytest.raises(ValueError):
            validate_args(args)

    @pytest.mark.parametrize("price", ["0.005", "0"])
    def test_asset_price_below_floor_is_rejected(self, price):
        args = parse_args(
            ["--database-url", "postgresql://db", "add-asset", "--symbol", "lol", "--name", "Laughs", "--price", price]
        )
        with pytest.raises(ValueError, match="min-price"):
            validate_args(args)

    def test_asset_price_at_floor_is_accepted(self):
        args = parse_args(
            ["--database-url", "postgresql://db", "add-asset", "--symbol", "lol", "--name", "Laughs", "--price", "0.01"]
        )
        validate_args(args)

    @pytest.mark.parametrize(
        "key, value",
        [("PRICE_STEP_SIZE", "five"), ("MIN_PRICE", "cheap"), ("STARTING_COINS", "lots")],
    )
    def test_malformed_environment_is_a_usage_error(self, monkeypatch, capsys, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--database-url", "postgresql://db", "add-user", "--user-id", str(uuid4())])
        assert exc_info.value.code == 2
        assert "invalid" in capsys.readouterr().err

    def test_environment_defaults_are_parsed(self, monkeypatch):
        monkeypatch.setenv("PRICE_STEP_SIZE", "10")
        monkeypatch.setenv("MIN_PRICE", "0.5")
        args = parse_args(["--database-url", "postgresql://db", "init-db"])
        assert args.step_size == 10
        assert args.min_price == Decimal("0.5")

    def test_pricing_flags_reach_settings(self):
        args = parse_args(
            ["--database-url", "postgresql://db", "--change-per-step", "0.02", "init-db"]
        )
        assert settings_from_args(args).pricing().change_per_step == Decimal("0.02")

    def test_normalize_symbol(self):
        assert normalize_symbol(" lol ") == "LOL"


class TestRunCommand:
    def test_add_asset_user_and_trade(self, repo, logger, capsys):
        args = parse_args(
            ["--database-url", "x", "add-asset", "--symbol", "lol", "--name", "Laughs", "--price", "100"]
        )
        assert run_command(args, repo, logger) == 0
        [asset] = repo.list_assets()
        assert asset.symbol == "LOL"
        assert str(asset.id) in capsys.readouterr().out

        user_id = uuid4()
        args = parse_args(["--database-url", "x", "add-user", "--user-id", str(user_id)])
        assert run_command(args, repo, logger) == 0
        assert repo.get_user(user_id).coins == Decimal("1000")

        trade = ["--user-id", str(user_id), "--asset-id", str(asset.id), "--quantity", "5"]
        assert run_command(parse_args(["--database-url", "x", "buy", *trade]), repo, logger) == 0
        assert repo.get_user(user_id).coins == Decimal("500")
        assert run_command(parse_args(["--database-url", "x", "sell", *trade]), repo, logger) == 0
        [last, first] = repo.get_user_transactions(user_id)
        assert (first.type, last.type) == (TradeType.BUY, TradeType.SELL)

    def test_failed_trade_exits_nonzero(self, repo, logger, user, asset):
        trade = ["--user-id", str(user.id), "--asset-id", str(asset.id), "--quantity", "1"]
        args = parse_args(["--database-url", "x", "sell", *trade])
        assert run_command(args, repo, logger) == 1


@pytest.mark.parametrize(
    "amount, shown",
    [("100.5", "100.50"), ("99.9975", "100.00"), ("502.5", "502.50"), ("0.004", "0.00")],
)
def test_format_coins(amount, shown):
    assert str(format_coins(Decimal(amount))) == shown
