"""Holdings derived from the transaction log."""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from onestonks.domain.models import Asset, TradeType, Transaction


@dataclass
class Position:
    """A user's open position in one asset."""

    asset: Asset
    quantity: int
    invested: Decimal
    current_value: Decimal
    profit: Decimal


def held_quantity(transactions: Iterable[Transaction]) -> int:
    """Sum of bought quantities minus sum of sold quantities."""
    held = 0
    for tx in transactions:
        if tx.type == TradeType.BUY:
            held += tx.quantity
        elif tx.type == TradeType.SELL:
            held -= tx.quantity
    return held


def summarize_portfolio(
    transactions: Iterable[Transaction], assets: Iterable[Asset]
) -> list[Position]:
    """
    Group a user's transactions into positions valued at current prices.

    Invested is the net amount paid: buys add price * quantity, sells subtract
    it. Closed positions (quantity 0) are dropped, as are transactions for
    assets that are not in `assets`.
    """
    assets_by_id: dict[UUID | None, Asset] = {asset.id: asset for asset in assets}
    quantities: dict[UUID, int] = {}
    invested: dict[UUID, Decimal] = {}

    for tx in transactions:
        if tx.asset_id not in assets_by_id:
            continue
        amount = tx.price_at_transaction * tx.quantity
        sign = 1 if tx.type == TradeType.BUY else -1
        quantities[tx.asset_id] = quantities.get(tx.asset_id, 0) + sign * tx.quantity
        invested[tx.asset_id] = invested.get(tx.asset_id, Decimal("0")) + sign * amount

    positions = []
    for asset_id, quantity in quantities.items():
        if quantity <= 0:
            continue
        asset = assets_by_id[asset_id]
        current_value = asset.current_price * quantity
        positions.append(
            Position(
                asset=asset,
                quantity=quantity,
                invested=invested[asset_id],
                current_value=current_value,
                profit=current_value - invested[asset_id],
            )
        )

    return sorted(positions, key=lambda p: p.asset.symbol)
