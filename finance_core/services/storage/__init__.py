"""
Storage Services Package

Provides abstract interfaces and two implementations per domain: a live
adapter (SQLAlchemy for users, MongoDB for transactions) and an in-memory
emulator used when the live store cannot be reached.
"""

from finance_core.services.storage.interface import (
    ConflictError,
    InternalStoreError,
    NotFoundError,
    StorageError,
    StoreMode,
    StoreUnavailableError,
    TransactionRepositoryInterface,
    UserRepositoryInterface,
)
from finance_core.services.storage.memory_document import InMemoryTransactionRepository
from finance_core.services.storage.memory_relational import InMemoryUserRepository
from finance_core.services.storage.mongo_transactions import MongoTransactionRepository
from finance_core.services.storage.selector import StoreSelector, connect_with_retry
from finance_core.services.storage.sql_users import SqlUserRepository

__all__ = [
    # Interfaces
    "StoreMode",
    "TransactionRepositoryInterface",
    "UserRepositoryInterface",
    # Implementations
    "InMemoryTransactionRepository",
    "InMemoryUserRepository",
    "MongoTransactionRepository",
    "SqlUserRepository",
    # Selection
    "StoreSelector",
    "connect_with_retry",
    # Exceptions
    "ConflictError",
    "InternalStoreError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
]
