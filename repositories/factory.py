"""Picks the storage backend named in the configuration."""
from config import AppConfig
from repositories.base import ExpenseRepository
from repositories.memory import InMemoryExpenseRepository
from repositories.mongodb import MongoExpenseRepository
from repositories.sqlite import SqliteExpenseRepository


def create_repository(config: AppConfig) -> ExpenseRepository:
    backend = config.storage_backend
    if backend == "memory":
        return InMemoryExpenseRepository()
    if backend == "sqlite":
        return SqliteExpenseRepository(config.sqlite_path)
    if backend == "mongodb":
        return MongoExpenseRepository(uri=config.mongodb_uri, db_name=config.db_name)
    raise ValueError(f"Unknown storage backend: {backend!r}")
