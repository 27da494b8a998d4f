"""Storage-agnostic repository interface for expenses."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List

from models.expense import Expense


def to_unix_seconds(moment: datetime) -> int:
    """Encode a timestamp as whole Unix seconds. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def from_unix_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class RepositoryError(Exception):
    """Base exception for repository operations."""


class RecordNotFoundError(RepositoryError):
    """No record exists for the requested id."""

    def __init__(self, expense_id: int):
        super().__init__(f"no expense record with id {expense_id}")
        self.expense_id = expense_id


class InvalidRecordError(RepositoryError, ValueError):
    """The repository was handed a missing or unusable record."""


class StorageError(RepositoryError, ConnectionError):
    """The underlying storage medium failed or could not be reached."""


class ExpenseRepository(ABC):
    """
    Persistence contract consumed by the expense service.

    Implementations own id assignment and `created_at` stamping. Every
    method is a coroutine; records handed out are copies, so callers may
    mutate them freely.
    """

    name: str = "abstract"

    async def connect(self) -> None:
        """Open connections and prepare the schema. No-op by default."""

    async def close(self) -> None:
        """Release any held connections. No-op by default."""

    @abstractmethod
    async def get_by_id(self, expense_id: int) -> Expense:
        """
        Fetch one record.

        Raises:
            RecordNotFoundError: no record has this id
            StorageError: the store could not be read
        """

    @abstractmethod
    async def get_all(self) -> List[Expense]:
        """Return every stored record in ascending id order."""

    @abstractmethod
    async def create(self, expense: Expense) -> Expense:
        """
        Persist a new record.

        Any `id` or `created_at` on the input is ignored; the stored record,
        with both assigned, is returned.

        Raises:
            InvalidRecordError: `expense` is None
            StorageError: the store could not be written
        """

    @abstractmethod
    async def update(self, expense: Expense) -> None:
        """
        Replace amount, occurred_at and description of the record with `expense.id`.

        Raises:
            RecordNotFoundError: no record has this id
        """

    @abstractmethod
    async def delete(self, expense_id: int) -> None:
        """
        Remove a record.

        Raises:
            RecordNotFoundError: no record has this id
        """
