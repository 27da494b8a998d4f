"""MongoDB expense repository built on motor."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

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

EXPENSES_COLLECTION = "expenses"
COUNTERS_COLLECTION = "counters"
ID_COUNTER = "expense_id"


def _to_document(expense: Expense) -> Dict[str, Any]:
    return {
        "expense_id": expense.id,
        "created_at": to_unix_seconds(expense.created_at),
        "occurred_at": to_unix_seconds(expense.occurred_at),
        "description": expense.description,
        "amount": expense.amount,
    }


def _from_document(doc: Dict[str, Any]) -> Expense:
    return Expense(
        id=doc["expense_id"],
        created_at=from_unix_seconds(doc["created_at"]),
        occurred_at=from_unix_seconds(doc["occurred_at"]),
        description=doc["description"],
        amount=doc["amount"],
    )


class MongoExpenseRepository(ExpenseRepository):
    """
    Document backend: one flat document per expense.

    Integer ids come from an atomic `$inc` on a counters document, so they
    increase monotonically across every process sharing the database.
    """

    name = "mongodb"

    def __init__(
        self,
        uri: Optional[str] = None,
        db_name: str = "expenses_api",
        client: Optional[AsyncIOMotorClient] = None,
    ):
        if client is None and not uri:
            raise ValueError("MONGODB_URI is empty. Please check the configuration and .env")
        self.uri = uri
        self.db_name = db_name
        self._client = client
        self._owns_client = client is None
        self.expenses: Optional[AsyncIOMotorCollection] = None
        self.counters: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        if self._client is None:
            logger.info(f"Connecting to MongoDB at {self.uri}...")
            self._client = AsyncIOMotorClient(self.uri)
        db = self._client[self.db_name]
        self.expenses = db.get_collection(EXPENSES_COLLECTION)
        self.counters = db.get_collection(COUNTERS_COLLECTION)
        try:
            if self._owns_client:
                await self._client.admin.command("ping")
                logger.info("MongoDB ping successful.")
            await self.expenses.create_index("expense_id", unique=True)
        except PyMongoError as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise StorageError(f"Database error connecting to MongoDB: {e}") from e
        logger.info(f"Using MongoDB database: {self.db_name}")

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            logger.info("Closing MongoDB connection...")
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed.")

    def _collection(self) -> AsyncIOMotorCollection:
        if self.expenses is None:
            raise StorageError("MongoDB repository is not connected")
        return self.expenses

    async def _next_id(self) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": ID_COUNTER},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def get_by_id(self, expense_id: int) -> Expense:
        try:
            doc = await self._collection().find_one({"expense_id": expense_id})
        except PyMongoError as e:
            logger.error(f"Database error fetching expense {expense_id}: {e}")
            raise StorageError(f"Database error fetching expense: {e}") from e
        if doc is None:
            raise RecordNotFoundError(expense_id)
        return _from_document(doc)

    async def get_all(self) -> List[Expense]:
        expenses = []
        try:
            cursor = self._collection().find().sort("expense_id", ASCENDING)
            async for doc in cursor:
                expenses.append(_from_document(doc))
        except PyMongoError as e:
            logger.error(f"Database error fetching expenses: {e}")
            raise StorageError(f"Database error fetching expenses: {e}") from e
        return expenses

    async def create(self, expense: Expense) -> Expense:
        if expense is None:
            raise InvalidRecordError("cannot create an expense from None")
        collection = self._collection()
        try:
            record = expense.model_copy(update={
                "id": await self._next_id(),
                "created_at": datetime.now(timezone.utc),
            })
            doc = _to_document(record)
            await collection.insert_one(dict(doc))
        except PyMongoError as e:
            logger.error(f"Database error inserting expense: {e}")
            raise StorageError(f"Database error inserting expense: {e}") from e
        return _from_document(doc)

    async def update(self, expense: Expense) -> None:
        if expense is None:
            raise InvalidRecordError("cannot update an expense from None")
        try:
            result = await self._collection().update_one(
                {"expense_id": expense.id},
                {"$set": {
                    "occurred_at": to_unix_seconds(expense.occurred_at),
                    "description": expense.description,
                    "amount": expense.amount,
                }},
            )
        except PyMongoError as e:
            logger.error(f"Database error updating expense {expense.id}: {e}")
            raise StorageError(f"Database error updating expense: {e}") from e
        if result.matched_count == 0:
            raise RecordNotFoundError(expense.id)

    async def delete(self, expense_id: int) -> None:
        try:
            result = await self._collection().delete_one({"expense_id": expense_id})
        except PyMongoError as e:
            logger.error(f"Database error deleting expense {expense_id}: {e}")
            raise StorageError(f"Database error deleting expense: {e}") from e
        if result.deleted_count == 0:
            raise RecordNotFoundError(expense_id)
