"""
SQLite expense repository.

One table, timestamps stored as Unix seconds and amounts as integer cents.
A single aiosqlite connection is opened on connect() and shared; aiosqlite
runs its statements one at a time on a worker thread.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite

from models.expense import Expense
from repositories.base import (
    ExpenseRepository,
    InvalidRecordError,
    RecordNotFoundError,
    StorageError,
    from_unix_seconds,
    to_unix_seconds,
)

logger = logging.getLogger(__name__)

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS expenses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at INTEGER NOT NULL,
        occurred_at INTEGER NOT NULL,
        description TEXT NOT NULL,
        amount INTEGER NOT NULL
    )
'''

COLUMNS = "id, created_at, occurred_at, description, amount"


def _row_to_expense(row) -> Expense:
    return Expense(
        id=row[0],
        created_at=from_unix_seconds(row[1]),
        occurred_at=from_unix_seconds(row[2]),
        description=row[3],
        amount=row[4],
    )


class SqliteExpenseRepository(ExpenseRepository):
    """Relational backend over a single `expenses` table."""

    name = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        logger.info(f"Opening SQLite database at {self.db_path}...")
        try:
            self._conn = await aiosqlite.connect(self.db_path)
            await self._conn.execute(SCHEMA)
            await self._conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to open SQLite database {self.db_path}: {e}")
            raise StorageError(f"Database error opening {self.db_path}: {e}") from e
        logger.info("SQLite database ready.")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite connection closed.")

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("SQLite repository is not connected")
        return self._conn

    async def get_by_id(self, expense_id: int) -> Expense:
        try:
            cursor = await self._connection().execute(
                f"SELECT {COLUMNS} FROM expenses WHERE id = ?", (expense_id,)
            )
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database error fetching expense {expense_id}: {e}")
            raise StorageError(f"Database error fetching expense: {e}") from e
        if row is None:
            raise RecordNotFoundError(expense_id)
        return _row_to_expense(row)

    async def get_all(self) -> List[Expense]:
        try:
            cursor = await self._connection().execute(f"SELECT {COLUMNS} FROM expenses ORDER BY id")
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Database error fetching expenses: {e}")
            raise StorageError(f"Database error fetching expenses: {e}") from e
        return [_row_to_expense(row) for row in rows]

    async def create(self, expense: Expense) -> Expense:
        if expense is None:
            raise InvalidRecordError("cannot create an expense from None")
        created_at = to_unix_seconds(datetime.now(timezone.utc))
        conn = self._connection()
        try:
            cursor = await conn.execute(
                "INSERT INTO expenses (created_at, occurred_at, description, amount) VALUES (?, ?, ?, ?)",
                (created_at, to_unix_seconds(expense.occurred_at), expense.description, expense.amount),
            )
            await conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database error inserting expense: {e}")
            raise StorageError(f"Database error inserting expense: {e}") from e
        return expense.model_copy(update={
            "id": cursor.lastrowid,
            "created_at": from_unix_seconds(created_at),
            "occurred_at": from_unix_seconds(to_unix_seconds(expense.occurred_at)),
        })

    async def update(self, expense: Expense) -> None:
        if expense is None:
            raise InvalidRecordError("cannot update an expense from None")
        conn = self._connection()
        try:
            cursor = await conn.execute(
                "UPDATE expenses SET occurred_at = ?, description = ?, amount = ? WHERE id = ?",
                (to_unix_seconds(expense.occurred_at), expense.description, expense.amount, expense.id),
            )
            await conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database error updating expense {expense.id}: {e}")
            raise StorageError(f"Database error updating expense: {e}") from e
        if cursor.rowcount == 0:
            raise RecordNotFoundError(expense.id)

    async def delete(self, expense_id: int) -> None:
        conn = self._connection()
        try:
            cursor = await conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
            await conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database error deleting expense {expense_id}: {e}")
            raise StorageError(f"Database error deleting expense: {e}") from e
        if cursor.rowcount == 0:
            raise RecordNotFoundError(expense_id)
