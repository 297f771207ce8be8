"""Tests for holdings derived from the transaction log."""

from datetime import UTC, datetime
from decimal import Decimal
from itertools import permutations
from uuid import uuid4

from onestonks.domain.models import Asset, TradeType, Transaction
from onestonks.holdings import held_quantity, summarize_portfolio

USER = uuid4()


def trade(asset_id, trade_type, quantity, price="100"):
    price = Decimal(price)
    return Transaction(
        user_id=USER,
        asset_id=asset_id,
        quantity=quantity,
        price_at_transaction=price,
        total=price * quantity,
        type=trade_type,
        created_at=datetime.now(UTC),
    )


class TestHeldQuantity:
    def test_empty_log_is_zero(self):
        assert held_quantity([]) == 0

    def test_buys_minus_sells(self):
        asset_id = uuid4()
        log = [
            trade(asset_id, TradeType.BUY, 10),
            trade(asset_id, TradeType.SELL, 3),
            trade(asset_id, TradeType.BUY, 2),
        ]
        assert held_quantity(log) == 9

    def test_independent_of_replay_order(self):
        asset_id = uuid4()
        log = [
            trade(asset_id, TradeType.BUY, 10),
            trade(asset_id, TradeType.SELL, 3),
            trade(asset_id, TradeType.BUY, 2),
        ]
        assert {held_quantity(order) for order in permutations(log)} == {9}

    def test_accepts_any_iterable(self):
        asset_id = uuid4()
        log = (trade(asset_id, TradeType.BUY, q) for q in (1, 2, 3))
        assert held_quantity(log) == 6


class TestSummarizePortfolio:
    def setup_method(self):
        self.lol = Asset(
            id=uuid4(), symbol="LOL", name="Laugh Out Loud", current_price=Decimal("110")
        )
        self.hah = Asset(
            id=uuid4(), symbol="HAH", name="Ha Ha", current_price=Decimal("50")
        )

    def test_groups_and_values_positions(self):
        log = [
            trade(self.lol.id, TradeType.BUY, 10, "100"),
            trade(self.lol.id, TradeType.SELL, 4, "105"),
            trade(self.hah.id, TradeType.BUY, 2, "40"),
        ]

        positions = summarize_portfolio(log, [self.lol, self.hah])

        assert [p.asset.symbol for p in positions] == ["HAH", "LOL"]
        hah, lol = positions
        assert lol.quantity == 6
        assert lol.invested == Decimal("580")  # 1000 - 420
        assert lol.current_value == Decimal("660")
        assert lol.profit == Decimal("80")
        assert hah.quantity == 2
        assert hah.invested == Decimal("80")
        assert hah.profit == Decimal("20")

    def test_closed_positions_are_dropped(self):
        log = [
            trade(self.lol.id, TradeType.BUY, 5),
            trade(self.lol.id, TradeType.SELL, 5),
        ]
        assert summarize_portfolio(log, [self.lol]) == []

    def test_unknown_assets_are_ignored(self):
        log = [trade(uuid4(), TradeType.BUY, 5)]
        assert summarize_portfolio(log, [self.lol]) == []
