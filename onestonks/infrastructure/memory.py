"""In-memory repository, used for development and tests."""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from onestonks.domain.models import Asset, PricePoint, TradeType, Transaction, User
from onestonks.errors import PersistenceError
from onestonks.infrastructure.repositories import LedgerSession, Repository


class _LockRegistry:
    """One lock per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.Lock] = {}

    def get(self, key: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class InMemoryLedgerSession(LedgerSession):
    """
    Ledger session over an InMemoryRepository.

    Writes are staged in the session and only reach the repository on
    commit(), so readers outside the session never see uncommitted state.
    Reads inside the session see its own staged writes.
    """

    def __init__(self, repo: "InMemoryRepository"):
        self._repo = repo
        self._users: dict[UUID, User] = {}
        self._assets: dict[UUID, Asset] = {}
        self._transactions: list[Transaction] = []
        self._price_history: list[PricePoint] = []

    def commit(self) -> None:
        with self._repo._data_lock:
            self._repo._users.update(self._users)
            self._repo._assets.update(self._assets)
            self._repo._transactions.extend(self._transactions)
            self._repo._price_history.extend(self._price_history)

    def get_user(self, user_id: UUID) -> Optional[User]:
        staged = self._users.get(user_id)
        return replace(staged) if staged else self._repo.get_user(user_id)

    def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        staged = self._assets.get(asset_id)
        return replace(staged) if staged else self._repo.get_asset(asset_id)

    def _visible_transactions(self) -> list[Transaction]:
        with self._repo._data_lock:
            return self._repo._transactions + self._transactions

    def get_holding_transactions(
        self, user_id: UUID, asset_id: UUID
    ) -> list[Transaction]:
        self._repo._pause()
        return [
            tx
            for tx in self._visible_transactions()
            if tx.user_id == user_id and tx.asset_id == asset_id
        ]

    def add_transaction(self, transaction: Transaction) -> UUID:
        record = replace(transaction, id=transaction.id or uuid4())
        self._transactions.append(record)
        return record.id

    def update_user_coins(self, user_id: UUID, coins: Decimal) -> None:
        user = self.get_user(user_id)
        if user is None:
            raise PersistenceError("failed to update balance")
        self._users[user_id] = replace(user, coins=coins)

    def get_net_volume(self, asset_id: UUID) -> int:
        self._repo._pause()
        return sum(
            tx.quantity if tx.type == TradeType.BUY else -tx.quantity
            for tx in self._visible_transactions()
            if tx.asset_id == asset_id
        )

    def update_asset_price(self, asset_id: UUID, price: Decimal) -> None:
        asset = self.get_asset(asset_id)
        if asset is None:
            raise PersistenceError("failed to update price")
        self._assets[asset_id] = replace(asset, current_price=price)

    def add_price_point(self, point: PricePoint) -> UUID:
        record = replace(point, id=point.id or uuid4())
        self._price_history.append(record)
        return record.id


class InMemoryRepository(Repository):
    """
    Thread-safe repository held in process memory.

    Trade sessions lock the asset, then the user, with one lock per id, so
    trades on different assets and users run in parallel. read_delay sleeps
    before aggregate reads, which widens race windows in concurrency tests.
    Reads outside a trade session only see committed sessions.
    """

    def __init__(self, read_delay: float = 0.0):
        self._users: dict[UUID, User] = {}
        self._assets: dict[UUID, Asset] = {}
        self._transactions: list[Transaction] = []
        self._price_history: list[PricePoint] = []
        self._data_lock = threading.RLock()
        self._asset_locks = _LockRegistry()
        self._user_locks = _LockRegistry()
        self._read_delay = read_delay

    def _pause(self) -> None:
        if self._read_delay:
            time.sleep(self._read_delay)

    @contextmanager
    def trade_session(self, user_id: UUID, asset_id: UUID) -> Iterator[LedgerSession]:
        with self._asset_locks.get(asset_id), self._user_locks.get(user_id):
            session = InMemoryLedgerSession(self)
            yield session
            session.commit()

    def add_user(self, user: User) -> UUID:
        with self._data_lock:
            self._users.setdefault(user.id, replace(user))
        return user.id

    def get_user(self, user_id: UUID) -> Optional[User]:
        with self._data_lock:
            user = self._users.get(user_id)
        return replace(user) if user else None

    def add_asset(self, asset: Asset) -> UUID:
        record = replace(asset, id=asset.id or uuid4())
        with self._data_lock:
            self._assets[record.id] = record
        return record.id

    def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        with self._data_lock:
            asset = self._assets.get(asset_id)
        return replace(asset) if asset else None

    def list_assets(self) -> list[Asset]:
        with self._data_lock:
            assets = [replace(asset) for asset in self._assets.values()]
        return sorted(assets, key=lambda a: a.symbol)

    def get_price_history(
        self, asset_id: UUID, limit: int | None = None
    ) -> list[PricePoint]:
        with self._data_lock:
            points = [p for p in self._price_history if p.asset_id == asset_id]
        if limit is not None:
            points = points[-limit:] if limit > 0 else []
        return points

    def get_user_transactions(self, user_id: UUID) -> list[Transaction]:
        with self._data_lock:
            records = [tx for tx in self._transactions if tx.user_id == user_id]
        records.reverse()
        return records
