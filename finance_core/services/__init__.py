"""Services package."""

from finance_core.services.storage import (
    ConflictError,
    InMemoryTransactionRepository,
    InMemoryUserRepository,
    InternalStoreError,
    MongoTransactionRepository,
    NotFoundError,
    SqlUserRepository,
    StorageError,
    StoreMode,
    StoreSelector,
    StoreUnavailableError,
    TransactionRepositoryInterface,
    UserRepositoryInterface,
)

__all__ = [
    # Storage services
    "ConflictError",
    "InMemoryTransactionRepository",
    "InMemoryUserRepository",
    "InternalStoreError",
    "MongoTransactionRepository",
    "NotFoundError",
    "SqlUserRepository",
    "StorageError",
    "StoreMode",
    "StoreSelector",
    "StoreUnavailableError",
    "TransactionRepositoryInterface",
    "UserRepositoryInterface",
]
