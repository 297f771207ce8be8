"""Domain models for the OneStonks market."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TradeType(str, Enum):
    """Direction of a trade."""

    BUY = "buy"
    SELL = "sell"


@dataclass
class User:
    """User account. The id is owned by the auth provider."""

    id: UUID
    username: str
    coins: Decimal


@dataclass
class Asset:
    """Tradable asset with a mutable current price."""

    symbol: str
    name: str
    current_price: Decimal
    image_url: str | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class Transaction:
    """Immutable trade record."""

    user_id: UUID
    asset_id: UUID
    quantity: int
    price_at_transaction: Decimal
    total: Decimal
    type: TradeType
    created_at: datetime
    id: UUID | None = None


@dataclass(frozen=True)
class PricePoint:
    """Price history entry, recorded after each settled trade."""

    asset_id: UUID
    price: Decimal
    recorded_at: datetime
    id: UUID | None = None
