"""In-memory expense repository, used for tests and local runs."""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List

from models.expense import Expense
from repositories.base import ExpenseRepository, InvalidRecordError, RecordNotFoundError

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Lets many readers in at once, or a single writer."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writing = False

    @asynccontextmanager
    async def reading(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writing)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def writing(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writing and self._readers == 0)
            self._writing = True
        try:
            yield
        finally:
            async with self._cond:
                self._writing = False
                self._cond.notify_all()


class InMemoryExpenseRepository(ExpenseRepository):
    """Keeps expenses in a dict keyed by id. Nothing survives a restart."""

    name = "memory"

    def __init__(self):
        self._records: Dict[int, Expense] = {}
        self._last_id = 0
        self._lock = ReadWriteLock()

    async def get_by_id(self, expense_id: int) -> Expense:
        async with self._lock.reading():
            record = self._records.get(expense_id)
            if record is None:
                raise RecordNotFoundError(expense_id)
            return record.model_copy()

    async def get_all(self) -> List[Expense]:
        async with self._lock.reading():
            return [self._records[key].model_copy() for key in sorted(self._records)]

    async def create(self, expense: Expense) -> Expense:
        if expense is None:
            raise InvalidRecordError("cannot create an expense from None")
        async with self._lock.writing():
            self._last_id += 1
            record = expense.model_copy(update={
                "id": self._last_id,
                "created_at": datetime.now(timezone.utc),
            })
            self._records[record.id] = record
            logger.debug(f"Stored expense {record.id} in memory.")
            return record.model_copy()

    async def update(self, expense: Expense) -> None:
        if expense is None:
            raise InvalidRecordError("cannot update an expense from None")
        async with self._lock.writing():
            current = self._records.get(expense.id)
            if current is None:
                raise RecordNotFoundError(expense.id)
            self._records[expense.id] = current.model_copy(update={
                "amount": expense.amount,
                "occurred_at": expense.occurred_at,
                "description": expense.description,
            })

    async def delete(self, expense_id: int) -> None:
        async with self._lock.writing():
            if self._records.pop(expense_id, None) is None:
                raise RecordNotFoundError(expense_id)
