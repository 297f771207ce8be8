"""Request and response models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from onestonks.domain.models import TradeType


class TradeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    asset_id: UUID
    quantity: StrictInt = Field(gt=0)


class TradeOut(BaseModel):
    type: TradeType
    asset_id: UUID
    quantity: int
    price: Decimal
    total: Decimal
    new_price: Decimal
    balance: Decimal
    history_recorded: bool


class TradeResponse(BaseModel):
    success: bool
    message: str
    trade: TradeOut


class AssetOut(BaseModel):
    id: UUID
    symbol: str
    name: str
    current_price: Decimal
    image_url: str | None = None


class PricePointOut(BaseModel):
    price: Decimal
    recorded_at: datetime


class ProfileIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(default=None, min_length=1, max_length=64)


class ProfileOut(BaseModel):
    id: UUID
    username: str
    coins: Decimal


class PositionOut(BaseModel):
    asset: AssetOut
    quantity: int
    invested: Decimal
    current_value: Decimal
    profit: Decimal


class PortfolioOut(BaseModel):
    coins: Decimal
    positions: list[PositionOut]


class TransactionOut(BaseModel):
    id: UUID | None
    asset_id: UUID
    type: TradeType
    quantity: int
    price_at_transaction: Decimal
    total: Decimal
    created_at: datetime
