"""Trade settlement: validation, recording, balance update and repricing."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from onestonks.domain.models import Asset, PricePoint, TradeType, Transaction, User
from onestonks.errors import (
    AssetNotFound,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidInput,
    PersistenceError,
    UserNotFound,
)
from onestonks.holdings import held_quantity
from onestonks.infrastructure.repositories import LedgerSession, Repository
from onestonks.pricing import DEFAULT_PRICING, PricingConfig, net_volume_after, next_price
from onestonks.utils import format_coins


class SettlementStage(str, Enum):
    """Stages of a trade settlement, in execution order."""

    VALIDATING = "validating"
    RECORDING = "recording"
    SETTLING = "settling"
    REPRICING = "repricing"
    HISTORY_APPEND = "history_append"
    DONE = "done"


@dataclass
class TradeResult:
    """Confirmation of a settled trade."""

    trade_type: TradeType
    user_id: UUID
    asset_id: UUID
    quantity: int
    price: Decimal
    total: Decimal
    new_price: Decimal
    net_volume_before: int
    net_volume_after: int
    balance: Decimal
    history_recorded: bool = True
    message: str = ""


_MESSAGES = {
    TradeType.BUY: "Purchase complete!",
    TradeType.SELL: "Sale complete!",
}


class TradeSettler:
    """Settles buy and sell trades against a ledger repository."""

    def __init__(
        self,
        repository: Repository,
        logger: logging.Logger,
        pricing: PricingConfig = DEFAULT_PRICING,
    ):
        self._repository = repository
        self._logger = logger
        self._pricing = pricing

    def settle(
        self,
        user_id: UUID,
        asset_id: UUID,
        quantity: int,
        trade_type: TradeType | str,
    ) -> TradeResult:
        """
        Settle one trade.

        Validates funds or holdings, then records the trade at the current
        price, applies the balance change, reprices the asset and appends
        the new price to its history. Everything runs inside one trade
        session: an error raised before history is appended leaves no trace
        in the store.

        Raises:
            InvalidInput, UserNotFound, AssetNotFound, InsufficientFunds,
            InsufficientHoldings: before any mutation.
            PersistenceError: a store write failed; `stage` tells which one.
        """
        trade_type = self._validate_request(quantity, trade_type)

        with self._repository.trade_session(user_id, asset_id) as session:
            user, asset = self._validate_trade(
                session, user_id, asset_id, quantity, trade_type
            )
            price = asset.current_price
            total = price * quantity

            transaction = Transaction(
                user_id=user_id,
                asset_id=asset_id,
                quantity=quantity,
                price_at_transaction=price,
                total=total,
                type=trade_type,
                created_at=datetime.now(UTC),
            )
            self._enter(SettlementStage.RECORDING, transaction)
            tx_id = self._run(
                SettlementStage.RECORDING, session.add_transaction, transaction
            )
            self._logger.debug(f"Trade recorded: {tx_id}")

            balance = user.coins - total if trade_type == TradeType.BUY else user.coins + total
            self._enter(SettlementStage.SETTLING, transaction)
            self._run(
                SettlementStage.SETTLING, session.update_user_coins, user_id, balance
            )

            self._enter(SettlementStage.REPRICING, transaction)
            volume_before = self._read_net_volume(session, transaction)
            volume_after = net_volume_after(volume_before, quantity, trade_type)
            new_price = next_price(
                price, volume_before, quantity, trade_type, self._pricing
            )
            self._log_price_move(asset, volume_before, volume_after, new_price)
            self._run(
                SettlementStage.REPRICING, session.update_asset_price, asset_id, new_price
            )

            self._enter(SettlementStage.HISTORY_APPEND, transaction)
            history_recorded = self._append_history(session, asset_id, new_price)

        self._enter(SettlementStage.DONE, transaction)
        self._logger.info(
            f"{trade_type.value.upper()} {quantity} {asset.symbol} @ {format_coins(price)} "
            f"= {format_coins(total)} | user {user_id} balance {format_coins(balance)}"
        )

        return TradeResult(
            trade_type=trade_type,
            user_id=user_id,
            asset_id=asset_id,
            quantity=quantity,
            price=price,
            total=total,
            new_price=new_price,
            net_volume_before=volume_before,
            net_volume_after=volume_after,
            balance=balance,
            history_recorded=history_recorded,
            message=_MESSAGES[trade_type],
        )

    def _validate_request(self, quantity: int, trade_type: TradeType | str) -> TradeType:
        """Check request shape before touching the store."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidInput()

        try:
            return TradeType(trade_type)
        except ValueError:
            raise InvalidInput(f"unknown trade type: {trade_type}") from None

    def _validate_trade(
        self,
        session: LedgerSession,
        user_id: UUID,
        asset_id: UUID,
        quantity: int,
        trade_type: TradeType,
    ) -> tuple[User, Asset]:
        """Check the trade against the locked user and asset state."""
        user = session.get_user(user_id)
        if user is None:
            raise UserNotFound()

        asset = session.get_asset(asset_id)
        if asset is None:
            raise AssetNotFound()

        if trade_type == TradeType.BUY:
            cost = asset.current_price * quantity
            if user.coins < cost:
                self._logger.info(
                    f"Rejected BUY {quantity} {asset.symbol}: cost {format_coins(cost)} "
                    f"> balance {format_coins(user.coins)}"
                )
                raise InsufficientFunds()
        else:
            held = held_quantity(session.get_holding_transactions(user_id, asset_id))
            if held < quantity:
                self._logger.info(
                    f"Rejected SELL {quantity} {asset.symbol}: holding {held}"
                )
                raise InsufficientHoldings()

        return user, asset

    def _run(self, stage: SettlementStage, operation, *args):
        """Run a store write, tagging failures with the stage they happened in."""
        try:
            return operation(*args)
        except PersistenceError as e:
            e.stage = stage.value
            self._logger.error(f"Settlement failed at {stage.value}: {e}")
            raise

    def _read_net_volume(self, session: LedgerSession, transaction: Transaction) -> int:
        """Net volume before this trade, or 0 if the aggregate cannot be read."""
        try:
            volume = session.get_net_volume(transaction.asset_id)
        except PersistenceError as e:
            self._logger.warning(f"Net volume unavailable, assuming 0: {e}")
            return 0

        # The aggregate already counts the trade recorded in this session.
        if transaction.type == TradeType.BUY:
            return volume - transaction.quantity
        return volume + transaction.quantity

    def _append_history(
        self, session: LedgerSession, asset_id: UUID, price: Decimal
    ) -> bool:
        """Best-effort price history append. Returns False if it failed."""
        try:
            session.add_price_point(
                PricePoint(asset_id=asset_id, price=price, recorded_at=datetime.now(UTC))
            )
        except PersistenceError as e:
            self._logger.warning(f"Price history not recorded: {e}")
            return False
        return True

    def _enter(self, stage: SettlementStage, transaction: Transaction) -> None:
        self._logger.debug(
            f"[{stage.value}] {transaction.type.value} {transaction.quantity} "
            f"of {transaction.asset_id} for {transaction.user_id}"
        )

    def _log_price_move(
        self, asset: Asset, volume_before: int, volume_after: int, new_price: Decimal
    ) -> None:
        """Log the price formation outcome."""
        if new_price > asset.current_price:
            direction = "up"
        elif new_price < asset.current_price:
            direction = "down"
        else:
            direction = "unchanged"

        self._logger.info(
            f"{asset.symbol} net volume {volume_before} -> {volume_after} | "
            f"price {direction} {format_coins(asset.current_price)} -> {format_coins(new_price)}"
        )
