"""
Finance Core - Persistence and Aggregation Package

Storage and money logic behind a personal-finance API: users with
financial profiles, income/expense transactions, and the summaries built
from them.

DESIGN PRINCIPLES:
1. Storage is swappable: live store or in-memory fallback, chosen once
2. Callers never branch on which store is active
3. Amount signs are derived from the transaction type, never trusted
4. Every write is auditable
"""

__version__ = "1.0.0"
__author__ = "Finance Core Team"

from finance_core.services.storage import (
    ConflictError,
    InternalStoreError,
    NotFoundError,
    StorageError,
    StoreMode,
    StoreUnavailableError,
)
from finance_core.stores import (
    FinanceStores,
    TransactionStore,
    UserStore,
    create_stores,
)
from finance_core.validation import ValidationError

__all__ = [
    # Stores
    "FinanceStores",
    "TransactionStore",
    "UserStore",
    "create_stores",
    # Errors
    "ConflictError",
    "InternalStoreError",
    "NotFoundError",
    "StorageError",
    "StoreMode",
    "StoreUnavailableError",
    "ValidationError",
]
