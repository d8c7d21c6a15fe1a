"""SQLite ledger store for transactions, wishlist items and investment settings.

Every query is scoped to an owner.  Committed mutations are published on the
store's :class:`~finance_tracker.realtime.ChangeFeed` so open views can
reconcile without refetching.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from .config import DB_PATH, ensure_data_directories
from .errors import StoreError, ValidationError
from .models import (
    WISHLIST_EDITABLE_FIELDS,
    InvestmentSettings,
    Transaction,
    TransactionType,
    WishlistItem,
    apply_patch,
    validate_investment_settings,
    validate_transaction,
    validate_wishlist_item,
)
from .realtime import ChangeEvent, ChangeFeed, ChangeKind, Subscription, feed_for

logger = logging.getLogger(__name__)

TRANSACTIONS_TABLE = "transactions"
WISHLIST_TABLE = "wishlist"
INVESTMENTS_TABLE = "investments"

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
    amount REAL NOT NULL CHECK (amount > 0),
    date TEXT NOT NULL,
    category TEXT,
    source TEXT,
    payment_method TEXT,
    description TEXT,
    is_recurring INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_txn_user_date ON transactions (user_id, date);

CREATE TABLE IF NOT EXISTS wishlist (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    item_name TEXT NOT NULL,
    cost REAL NOT NULL CHECK (cost > 0),
    priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 3),
    necessity INTEGER NOT NULL CHECK (necessity BETWEEN 1 AND 5),
    is_purchased INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_wishlist_user ON wishlist (user_id);

CREATE TABLE IF NOT EXISTS investments (
    user_id TEXT PRIMARY KEY,
    yearly_amount REAL NOT NULL DEFAULT 0,
    return_rate REAL NOT NULL DEFAULT 12,
    invested_duration INTEGER NOT NULL DEFAULT 10,
    total_duration INTEGER NOT NULL DEFAULT 10,
    created_at TEXT,
    updated_at TEXT
);
"""

TRANSACTION_COLUMNS = (
    "id, user_id, type, amount, date, category, source, payment_method, "
    "description, is_recurring, created_at, updated_at"
)
WISHLIST_COLUMNS = (
    "id, user_id, item_name, cost, priority, necessity, is_purchased, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _require_owner(user_id: Optional[str]) -> None:
    if not user_id:
        raise ValidationError("An owner is required for this operation", field="user_id")


def _to_iso_date(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value)[:10]).isoformat()


class LedgerStore:
    """Owner-scoped CRUD over the SQLite database at ``db_path``."""

    def __init__(self, db_path: Optional[Path | str] = None, feed: Optional[ChangeFeed] = None):
        self.db_path = Path(db_path) if db_path is not None else DB_PATH
        self.feed = feed if feed is not None else feed_for(str(self.db_path.resolve()))

    def _ensure_dirs(self) -> None:
        if self.db_path == DB_PATH:
            ensure_data_directories()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; sqlite failures surface as :class:`StoreError`."""
        self._ensure_dirs()
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            self._migrate_database(conn)

    def _migrate_database(self, conn: sqlite3.Connection) -> None:
        """Add columns introduced after a database was first created."""
        existing_columns = [row[1] for row in conn.execute("PRAGMA table_info(transactions)")]

        new_columns = [
            ("source", "TEXT"),
            ("payment_method", "TEXT"),
            ("is_recurring", "INTEGER NOT NULL DEFAULT 0"),
            ("updated_at", "TEXT"),
        ]

        for column_name, column_type in new_columns:
            if column_name not in existing_columns:
                conn.execute(f"ALTER TABLE transactions ADD COLUMN {column_name} {column_type}")
                logger.info("Added column %s to transactions table", column_name)
        conn.execute("CREATE INDEX IF NOT EXISTS ix_txn_recurring ON transactions (user_id, is_recurring)")
        conn.commit()

    def subscribe(self, user_id: str, tables: Optional[Sequence[str]] = None) -> Subscription:
        return self.feed.subscribe(user_id, tables)

    def _publish(self, kind: ChangeKind, table: str, record: Any) -> None:
        self.feed.publish(ChangeEvent(kind=kind, table=table, user_id=record.user_id, record=record))

    # Transactions

    def list_transactions(
        self,
        user_id: str,
        *,
        start_date: Any = None,
        end_date: Any = None,
        is_recurring: Optional[bool] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> List[Transaction]:
        """Transactions owned by ``user_id``, newest first.

        ``start_date`` and ``end_date`` are inclusive calendar dates.
        """
        where: List[str] = ["user_id = ?"]
        params: List[Any] = [user_id]

        if start_date:
            where.append("date >= ?")
            params.append(_to_iso_date(start_date))
        if end_date:
            where.append("date <= ?")
            params.append(_to_iso_date(end_date))
        if is_recurring is not None:
            where.append("is_recurring = ?")
            params.append(int(is_recurring))
        if transaction_type is not None:
            where.append("type = ?")
            params.append(TransactionType(transaction_type).value)

        sql = f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE " + " AND ".join(where)
        sql += " ORDER BY date DESC, id DESC"

        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Transaction.from_row(row) for row in rows]

    def get_transaction(self, transaction_id: int, user_id: str) -> Optional[Transaction]:
        _require_owner(user_id)
        with self.connect() as conn:
            row = self._fetch_row(conn, TRANSACTIONS_TABLE, TRANSACTION_COLUMNS, transaction_id, user_id)
        return Transaction.from_row(row) if row else None

    def insert_transactions(self, rows: Iterable[Transaction]) -> List[Transaction]:
        """Insert ``rows`` in a single database transaction.

        Either every row is stored or none is.
        """
        pending = list(rows)
        if not pending:
            return []
        for txn in pending:
            if not txn.user_id:
                raise ValidationError("Transaction has no owner", field="user_id")
            validate_transaction(txn)

        stamp = _now()
        inserted_ids: List[int] = []
        with self.connect() as conn:
            for txn in pending:
                record = txn.to_record()
                record["created_at"] = stamp
                record["updated_at"] = stamp
                columns = ", ".join(record)
                placeholders = ", ".join("?" for _ in record)
                cursor = conn.execute(
                    f"INSERT INTO transactions ({columns}) VALUES ({placeholders})",
                    list(record.values()),
                )
                inserted_ids.append(cursor.lastrowid)
            conn.commit()
            stored = [
                Transaction.from_row(self._fetch_row(conn, TRANSACTIONS_TABLE, TRANSACTION_COLUMNS, row_id))
                for row_id in inserted_ids
            ]

        for txn in stored:
            self._publish(ChangeKind.INSERT, TRANSACTIONS_TABLE, txn)
        return stored

    def update_transaction(
        self,
        transaction_id: int,
        patch: Mapping[str, Any],
        user_id: str,
    ) -> Transaction:
        """Replace the editable fields named in ``patch`` and return the stored row."""
        _require_owner(user_id)
        with self.connect() as conn:
            row = self._fetch_row(conn, TRANSACTIONS_TABLE, TRANSACTION_COLUMNS, transaction_id, user_id)
            if row is None:
                raise StoreError(f"Transaction {transaction_id} not found")
            updated = apply_patch(Transaction.from_row(row), patch)
            record = updated.to_record()
            record.pop("user_id")
            record["updated_at"] = _now()
            assignments = ", ".join(f"{column} = ?" for column in record)
            conn.execute(
                f"UPDATE transactions SET {assignments} WHERE id = ? AND user_id = ?",
                [*record.values(), transaction_id, user_id],
            )
            conn.commit()
            stored = Transaction.from_row(
                self._fetch_row(conn, TRANSACTIONS_TABLE, TRANSACTION_COLUMNS, transaction_id)
            )

        self._publish(ChangeKind.UPDATE, TRANSACTIONS_TABLE, stored)
        return stored

    def delete_transaction(self, transaction_id: int, user_id: str) -> Transaction:
        """Delete a transaction and return the row that was removed."""
        _require_owner(user_id)
        with self.connect() as conn:
            row = self._fetch_row(conn, TRANSACTIONS_TABLE, TRANSACTION_COLUMNS, transaction_id, user_id)
            if row is None:
                raise StoreError(f"Transaction {transaction_id} not found")
            conn.execute("DELETE FROM transactions WHERE id = ? AND user_id = ?", (transaction_id, user_id))
            conn.commit()

        removed = Transaction.from_row(row)
        self._publish(ChangeKind.DELETE, TRANSACTIONS_TABLE, removed)
        return removed

    # Wishlist

    def list_wishlist(self, user_id: str, *, include_purchased: bool = True) -> List[WishlistItem]:
        """Wishlist items ordered by priority, then necessity, then newest."""
        sql = f"SELECT {WISHLIST_COLUMNS} FROM wishlist WHERE user_id = ?"
        if not include_purchased:
            sql += " AND is_purchased = 0"
        sql += " ORDER BY priority DESC, necessity DESC, created_at DESC, id DESC"
        with self.connect() as conn:
            rows = conn.execute(sql, (user_id,)).fetchall()
        return [WishlistItem.from_row(row) for row in rows]

    def insert_wishlist_item(self, item: WishlistItem) -> WishlistItem:
        if not item.user_id:
            raise ValidationError("Wishlist item has no owner", field="user_id")
        validate_wishlist_item(item)
        record = item.to_record()
        record["created_at"] = record["updated_at"] = _now()
        columns = ", ".join(record)
        placeholders = ", ".join("?" for _ in record)
        with self.connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO wishlist ({columns}) VALUES ({placeholders})",
                list(record.values()),
            )
            conn.commit()
            stored = WishlistItem.from_row(
                self._fetch_row(conn, WISHLIST_TABLE, WISHLIST_COLUMNS, cursor.lastrowid)
            )
        self._publish(ChangeKind.INSERT, WISHLIST_TABLE, stored)
        return stored

    def update_wishlist_item(
        self,
        item_id: int,
        patch: Mapping[str, Any],
        user_id: str,
    ) -> WishlistItem:
        _require_owner(user_id)
        unknown = set(patch) - set(WISHLIST_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self.connect() as conn:
            row = self._fetch_row(conn, WISHLIST_TABLE, WISHLIST_COLUMNS, item_id, user_id)
            if row is None:
                raise StoreError(f"Wishlist item {item_id} not found")
            current: Dict[str, Any] = dict(row)
            current.update(patch)
            try:
                updated = WishlistItem.from_row(current)
            except (TypeError, ValueError) as exc:
                raise ValidationError(str(exc)) from exc
            validate_wishlist_item(updated)
            record = updated.to_record()
            record.pop("user_id")
            record["updated_at"] = _now()
            assignments = ", ".join(f"{column} = ?" for column in record)
            conn.execute(
                f"UPDATE wishlist SET {assignments} WHERE id = ? AND user_id = ?",
                [*record.values(), item_id, user_id],
            )
            conn.commit()
            stored = WishlistItem.from_row(self._fetch_row(conn, WISHLIST_TABLE, WISHLIST_COLUMNS, item_id))
        self._publish(ChangeKind.UPDATE, WISHLIST_TABLE, stored)
        return stored

    def delete_wishlist_item(self, item_id: int, user_id: str) -> WishlistItem:
        _require_owner(user_id)
        with self.connect() as conn:
            row = self._fetch_row(conn, WISHLIST_TABLE, WISHLIST_COLUMNS, item_id, user_id)
            if row is None:
                raise StoreError(f"Wishlist item {item_id} not found")
            conn.execute("DELETE FROM wishlist WHERE id = ? AND user_id = ?", (item_id, user_id))
            conn.commit()
        removed = WishlistItem.from_row(row)
        self._publish(ChangeKind.DELETE, WISHLIST_TABLE, removed)
        return removed

    # Investment settings

    def get_investment_settings(self, user_id: str) -> Optional[InvestmentSettings]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM investments WHERE user_id = ?", (user_id,)).fetchone()
        return InvestmentSettings.from_row(row) if row else None

    def upsert_investment_settings(self, settings: InvestmentSettings) -> InvestmentSettings:
        if not settings.user_id:
            raise ValidationError("Investment settings have no owner", field="user_id")
        validate_investment_settings(settings)
        stamp = _now()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO investments (user_id, yearly_amount, return_rate, invested_duration,
                                         total_duration, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    yearly_amount = excluded.yearly_amount,
                    return_rate = excluded.return_rate,
                    invested_duration = excluded.invested_duration,
                    total_duration = excluded.total_duration,
                    updated_at = excluded.updated_at
                """,
                (
                    settings.user_id,
                    settings.yearly_amount,
                    settings.return_rate,
                    settings.invested_duration,
                    settings.total_duration,
                    stamp,
                    stamp,
                ),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM investments WHERE user_id = ?", (settings.user_id,)).fetchone()
        return InvestmentSettings.from_row(row)

    @staticmethod
    def _fetch_row(
        conn: sqlite3.Connection,
        table: str,
        columns: str,
        row_id: int,
        user_id: Optional[str] = None,
    ) -> Optional[sqlite3.Row]:
        sql = f"SELECT {columns} FROM {table} WHERE id = ?"
        params: List[Any] = [row_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        return conn.execute(sql, params).fetchone()
