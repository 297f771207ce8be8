"""Repository interfaces and implementations for persistence."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from decimal import Decimal
from typing import Optional
from uuid import UUID

import psycopg
from psycopg import Connection
from psycopg.rows import TupleRow
from psycopg_pool import ConnectionPool

from onestonks.domain.models import Asset, PricePoint, TradeType, Transaction, User
from onestonks.errors import DegradedReadError, PersistenceError
from onestonks.infrastructure.schema import SCHEMA_SQL


class LedgerSession(ABC):
    """
    Reads and writes for a single trade.

    A session is opened by Repository.trade_session() and holds the asset
    and user locks for its whole lifetime. Its writes become visible together
    when the session exits cleanly, and are all discarded when it exits with
    an exception.
    """

    @abstractmethod
    def get_user(self, user_id: UUID) -> Optional[User]: ...

    @abstractmethod
    def get_asset(self, asset_id: UUID) -> Optional[Asset]: ...

    @abstractmethod
    def get_holding_transactions(
        self, user_id: UUID, asset_id: UUID
    ) -> list[Transaction]:
        """Get every trade record for a user/asset pair."""
        ...

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> UUID:
        """Append a trade record. Returns the generated transaction ID."""
        ...

    @abstractmethod
    def update_user_coins(self, user_id: UUID, coins: Decimal) -> None: ...

    @abstractmethod
    def get_net_volume(self, asset_id: UUID) -> int:
        """Net traded volume of an asset. Raises DegradedReadError on failure."""
        ...

    @abstractmethod
    def update_asset_price(self, asset_id: UUID, price: Decimal) -> None: ...

    @abstractmethod
    def add_price_point(self, point: PricePoint) -> UUID:
        """
        Append a price history entry. Returns the generated ID.

        A failure here must leave the session's other writes intact.
        """
        ...


class Repository(ABC):
    """Abstract repository interface."""

    @abstractmethod
    def trade_session(
        self, user_id: UUID, asset_id: UUID
    ) -> AbstractContextManager[LedgerSession]:
        """
        Open an all-or-nothing session for one trade.

        Locks the asset, then the user, for the lifetime of the session.
        """
        ...

    @abstractmethod
    def add_user(self, user: User) -> UUID:
        """Add a user profile if it does not exist yet. Returns the user ID."""
        ...

    @abstractmethod
    def get_user(self, user_id: UUID) -> Optional[User]: ...

    @abstractmethod
    def add_asset(self, asset: Asset) -> UUID:
        """Add a new asset. Returns the generated asset ID."""
        ...

    @abstractmethod
    def get_asset(self, asset_id: UUID) -> Optional[Asset]: ...

    @abstractmethod
    def list_assets(self) -> list[Asset]:
        """Get all assets ordered by symbol."""
        ...

    @abstractmethod
    def get_price_history(
        self, asset_id: UUID, limit: int | None = None
    ) -> list[PricePoint]:
        """Get the most recent price points of an asset, oldest first."""
        ...

    @abstractmethod
    def get_user_transactions(self, user_id: UUID) -> list[Transaction]:
        """Get every trade record of a user, newest first."""
        ...


@contextmanager
def _store_errors(
    action: str, error: type[PersistenceError] = PersistenceError
) -> Iterator[None]:
    """Translate driver errors into PersistenceError."""
    try:
        yield
    except psycopg.Error as e:
        raise error(f"failed to {action}") from e


def _row_to_user(row: TupleRow) -> User:
    return User(id=row[0], username=row[1], coins=row[2])


def _row_to_asset(row: TupleRow) -> Asset:
    return Asset(
        id=row[0],
        symbol=row[1],
        name=row[2],
        current_price=row[3],
        image_url=row[4],
    )


def _row_to_transaction(row: TupleRow) -> Transaction:
    return Transaction(
        id=row[0],
        user_id=row[1],
        asset_id=row[2],
        quantity=row[3],
        price_at_transaction=row[4],
        total=row[5],
        type=TradeType(row[6]),
        created_at=row[7],
    )


_USER_COLUMNS = "id, username, coins"
_ASSET_COLUMNS = "id, symbol, name, current_price, image_url"
_TRANSACTION_COLUMNS = (
    "id, user_id, asset_id, quantity, price_at_transaction, total, type, created_at"
)


def _fetch_user(conn: Connection[TupleRow], user_id: UUID) -> Optional[User]:
    row = conn.execute(
        f"SELECT {_USER_COLUMNS} FROM onestonks.users WHERE id = %s",
        (user_id,),
    ).fetchone()
    return _row_to_user(row) if row else None


def _fetch_asset(conn: Connection[TupleRow], asset_id: UUID) -> Optional[Asset]:
    row = conn.execute(
        f"SELECT {_ASSET_COLUMNS} FROM onestonks.assets WHERE id = %s",
        (asset_id,),
    ).fetchone()
    return _row_to_asset(row) if row else None


class PostgresLedgerSession(LedgerSession):
    """Ledger session bound to one connection inside an open transaction."""

    def __init__(self, conn: Connection[TupleRow]):
        self._conn = conn

    def lock(self, user_id: UUID, asset_id: UUID) -> None:
        """Take row locks, asset first, so concurrent trades cannot deadlock."""
        with _store_errors("lock trade rows"):
            self._conn.execute(
                "SELECT id FROM onestonks.assets WHERE id = %s FOR UPDATE",
                (asset_id,),
            )
            self._conn.execute(
                "SELECT id FROM onestonks.users WHERE id = %s FOR UPDATE",
                (user_id,),
            )

    def get_user(self, user_id: UUID) -> Optional[User]:
        with _store_errors("read user"):
            return _fetch_user(self._conn, user_id)

    def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        with _store_errors("read asset"):
            return _fetch_asset(self._conn, asset_id)

    def get_holding_transactions(
        self, user_id: UUID, asset_id: UUID
    ) -> list[Transaction]:
        with _store_errors("read holdings"):
            rows = self._conn.execute(
                f"""
                SELECT {_TRANSACTION_COLUMNS}
                FROM onestonks.transactions
                WHERE user_id = %s AND asset_id = %s
                """,
                (user_id, asset_id),
            ).fetchall()
        return [_row_to_transaction(row) for row in rows]

    def add_transaction(self, transaction: Transaction) -> UUID:
        with _store_errors("record trade"):
            row = self._conn.execute(
                """
                INSERT INTO onestonks.transactions
                (user_id, asset_id, quantity, price_at_transaction, total, type, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    transaction.user_id,
                    transaction.asset_id,
                    transaction.quantity,
                    transaction.price_at_transaction,
                    transaction.total,
                    transaction.type.value,
                    transaction.created_at,
                ),
            ).fetchone()
        if row is None:
            raise PersistenceError("failed to record trade")
        return row[0]

    def update_user_coins(self, user_id: UUID, coins: Decimal) -> None:
        with _store_errors("update balance"):
            cur = self._conn.execute(
                "UPDATE onestonks.users SET coins = %s WHERE id = %s",
                (coins, user_id),
            )
        if cur.rowcount != 1:
            raise PersistenceError("failed to update balance")

    def get_net_volume(self, asset_id: UUID) -> int:
        # Savepoint: a failed read must not abort the trade's transaction.
        with _store_errors("read net volume", DegradedReadError):
            with self._conn.transaction():
                row = self._conn.execute(
                    """
                    SELECT net_volume
                    FROM onestonks.v_asset_volume
                    WHERE asset_id = %s
                    """,
                    (asset_id,),
                ).fetchone()
        if row is None or row[0] is None:
            return 0
        return int(row[0])

    def update_asset_price(self, asset_id: UUID, price: Decimal) -> None:
        with _store_errors("update price"):
            cur = self._conn.execute(
                "UPDATE onestonks.assets SET current_price = %s WHERE id = %s",
                (price, asset_id),
            )
        if cur.rowcount != 1:
            raise PersistenceError("failed to update price")

    def add_price_point(self, point: PricePoint) -> UUID:
        with _store_errors("record price history"):
            with self._conn.transaction():
                row = self._conn.execute(
                    """
                    INSERT INTO onestonks.asset_prices (asset_id, price, recorded_at)
                    VALUES (%s, %s, %s)
                    RETURNING id
                    """,
                    (point.asset_id, point.price, point.recorded_at),
                ).fetchone()
        if row is None:
            raise PersistenceError("failed to record price history")
        return row[0]


class PostgresRepository(Repository):
    """PostgreSQL implementation of the repository."""

    def __init__(self, pool: ConnectionPool[Connection[TupleRow]]):
        self._pool = pool

    def create_schema(self) -> None:
        """Create the onestonks schema, tables and views if missing."""
        with _store_errors("create schema"):
            with self._pool.connection() as conn:
                conn.execute(SCHEMA_SQL)

    @contextmanager
    def trade_session(self, user_id: UUID, asset_id: UUID) -> Iterator[LedgerSession]:
        with _store_errors("settle trade"):
            with self._pool.connection() as conn:
                with conn.transaction():
                    session = PostgresLedgerSession(conn)
                    session.lock(user_id, asset_id)
                    yield session

    def add_user(self, user: User) -> UUID:
        """Add a user profile. Existing profiles are left untouched."""
        with _store_errors("add user"):
            with self._pool.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO onestonks.users (id, username, coins)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (user.id, user.username, user.coins),
                )
        return user.id

    def get_user(self, user_id: UUID) -> Optional[User]:
        with _store_errors("read user"):
            with self._pool.connection() as conn:
                return _fetch_user(conn, user_id)

    def add_asset(self, asset: Asset) -> UUID:
        with _store_errors("add asset"):
            with self._pool.connection() as conn:
                row = conn.execute(
                    """
                    INSERT INTO onestonks.assets (symbol, name, current_price, image_url)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id
                    """,
                    (asset.symbol, asset.name, asset.current_price, asset.image_url),
                ).fetchone()
        if row is None:
            raise PersistenceError("failed to add asset")
        return row[0]

    def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        with _store_errors("read asset"):
            with self._pool.connection() as conn:
                return _fetch_asset(conn, asset_id)

    def list_assets(self) -> list[Asset]:
        with _store_errors("list assets"):
            with self._pool.connection() as conn:
                rows = conn.execute(
                    f"SELECT {_ASSET_COLUMNS} FROM onestonks.assets ORDER BY symbol"
                ).fetchall()
        return [_row_to_asset(row) for row in rows]

    def get_price_history(
        self, asset_id: UUID, limit: int | None = None
    ) -> list[PricePoint]:
        with _store_errors("read price history"):
            with self._pool.connection() as conn:
                rows = conn.execute(
                    """
                    SELECT id, asset_id, price, recorded_at
                    FROM onestonks.asset_prices
                    WHERE asset_id = %s
                    ORDER BY recorded_at DESC, id DESC
                    LIMIT %s
                    """,
                    (asset_id, limit),
                ).fetchall()
        points = [
            PricePoint(id=row[0], asset_id=row[1], price=row[2], recorded_at=row[3])
            for row in rows
        ]
        points.reverse()
        return points

    def get_user_transactions(self, user_id: UUID) -> list[Transaction]:
        with _store_errors("read transactions"):
            with self._pool.connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_TRANSACTION_COLUMNS}
                    FROM onestonks.transactions
                    WHERE user_id = %s
                    ORDER BY created_at DESC
                    """,
                    (user_id,),
                ).fetchall()
        return [_row_to_transaction(row) for row in rows]
