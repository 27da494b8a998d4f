"""
Shared fixtures.

No test talks to a real MongoDB server: the Mongo repository runs against
FakeMotorClient, which mimics the handful of motor collection calls it uses.
SQLite runs in memory.
"""
import copy
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from pymongo import ReturnDocument

from config import AppConfig
from main import create_app
from repositories.memory import InMemoryExpenseRepository
from repositories.mongodb import MongoExpenseRepository
from repositories.sqlite import SqliteExpenseRepository
from services.expenses_service import ExpenseService

FIXED_NOW = datetime(2025, 10, 20, 12, 0, 0, tzinfo=timezone.utc)


# --- Fake motor client ---

class _Result:
    def __init__(self, matched_count=0, deleted_count=0):
        self.matched_count = matched_count
        self.deleted_count = deleted_count


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, field, direction):
        self._docs = sorted(self._docs, key=lambda doc: doc[field], reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return copy.deepcopy(next(self._iter))
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(key) == value for key, value in query.items())

    async def create_index(self, field, unique=False):
        return f"{field}_1"

    async def find_one(self, query):
        for doc in self.docs:
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        return FakeCursor([doc for doc in self.docs if self._matches(doc, query or {})])

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))

    async def update_one(self, query, update):
        for doc in self.docs:
            if self._matches(doc, query):
                doc.update(update["$set"])
                return _Result(matched_count=1)
        return _Result()

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                del self.docs[i]
                return _Result(deleted_count=1)
        return _Result()

    async def find_one_and_update(self, query, update, upsert=False, return_document=ReturnDocument.BEFORE):
        doc = next((d for d in self.docs if self._matches(d, query)), None)
        if doc is None and upsert:
            doc = dict(query)
            self.docs.append(doc)
        for key, step in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + step
        return copy.deepcopy(doc)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def get_collection(self, name):
        return self.collections.setdefault(name, FakeCollection(name))


class FakeMotorClient:
    def __init__(self):
        self.databases = {}

    def __getitem__(self, name):
        return self.databases.setdefault(name, FakeDatabase())


# --- Repositories ---

@pytest.fixture
async def memory_repo():
    return InMemoryExpenseRepository()


@pytest.fixture
async def sqlite_repo():
    repo = SqliteExpenseRepository(":memory:")
    await repo.connect()
    yield repo
    await repo.close()


@pytest.fixture
async def mongo_repo():
    repo = MongoExpenseRepository(db_name="expenses_test", client=FakeMotorClient())
    await repo.connect()
    yield repo
    await repo.close()


@pytest.fixture(params=["memory", "sqlite", "mongodb"])
async def repository(request, memory_repo, sqlite_repo, mongo_repo):
    """Every storage backend, one at a time."""
    return {"memory": memory_repo, "sqlite": sqlite_repo, "mongodb": mongo_repo}[request.param]


@pytest.fixture
def service(memory_repo):
    return ExpenseService(memory_repo, clock=lambda: FIXED_NOW)


# --- HTTP ---

@pytest.fixture
def test_config():
    return AppConfig(storage_backend="memory", rate_limit_enabled=False, max_body_size=2048)


@pytest.fixture
def client(test_config):
    app = create_app(test_config, repository=InMemoryExpenseRepository())
    with TestClient(app) as test_client:
        yield test_client
