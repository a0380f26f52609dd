"""
Abstract Storage Interfaces

DESIGN DECISION: Each domain has one typed repository interface with two
implementations: a live adapter over the real backing store and an
in-memory emulator used when the live store cannot be reached. Which one
a process uses is decided once at startup; callers only ever see the
interface.

Operations are keyed by declared intent (find a user by email, group a
user's transactions by type, ...), never by query text. Query languages
are an implementation detail of the live adapters.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from finance_core.models.summary import CategoryTypeTotal, TypeTotals
from finance_core.models.transaction import (
    Transaction,
    TransactionFilter,
    TransactionInput,
    TransactionType,
)
from finance_core.models.user import User, UserProfile, UserWithProfile


class StoreMode(str, Enum):
    """Which backing store a repository runs against."""
    LIVE = "live"
    FALLBACK = "fallback"


class UserRepositoryInterface(ABC):
    """
    Relational access patterns of the user domain.

    Any implementation (SQL database, in-memory tables) must provide
    identical read/write semantics.
    """

    mode: StoreMode

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        """
        Look up a user by lower-cased email.

        Returns:
            The user if found (active or not), None otherwise
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        """Retrieve a user row by id, regardless of the active flag."""
        pass

    @abstractmethod
    async def create_user_with_profile(
        self,
        email: str,
        password_hash: str,
        name: str,
        age: Optional[int] = None,
    ) -> tuple[User, UserProfile]:
        """
        Insert a user and its default profile atomically.

        Raises:
            ConflictError: If the email is already registered
        """
        pass

    @abstractmethod
    async def get_user_with_profile(self, user_id: UUID) -> Optional[UserWithProfile]:
        """
        Left join of an active user with its profile.

        Returns:
            The merged record, None if the user is unknown or inactive
        """
        pass

    @abstractmethod
    async def update_user(self, user_id: UUID, fields: dict[str, Any]) -> int:
        """
        Merge-on-present update of user columns.

        Returns:
            Rows affected (0 for an unknown id, never an error)
        """
        pass

    @abstractmethod
    async def update_profile(self, user_id: UUID, fields: dict[str, Any]) -> int:
        """
        Merge-on-present update of the profile owned by user_id.

        Returns:
            Rows affected (0 when no profile exists)
        """
        pass

    @abstractmethod
    async def delete_user(self, user_id: UUID) -> bool:
        """
        Delete a user and cascade to its profile.

        Returns:
            True if a user was deleted
        """
        pass

    async def close(self) -> None:
        """Release connections held by the implementation."""
        return None


class TransactionRepositoryInterface(ABC):
    """
    Document access patterns of the transaction domain.

    Grouping results must be numerically identical across implementations
    for any dataset.
    """

    mode: StoreMode

    @abstractmethod
    async def insert(self, data: TransactionInput) -> Transaction:
        """
        Persist an already validated and normalized transaction.

        Assigns the id, defaults date to now.
        """
        pass

    @abstractmethod
    async def find(
        self,
        filter: TransactionFilter,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:
        """
        Filtered listing sorted by date, newest first.

        Pagination is offset based: skip = (page - 1) * page_size.

        Returns:
            (items on the page, total matching before pagination)
        """
        pass

    @abstractmethod
    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by id, None if unknown."""
        pass

    @abstractmethod
    async def update_by_id(
        self,
        transaction_id: str,
        data: TransactionInput,
    ) -> Optional[Transaction]:
        """
        Replace the content of a stored transaction.

        An omitted date keeps the stored date; createdAt is preserved and
        updatedAt refreshed.

        Returns:
            The updated record, None if unknown
        """
        pass

    @abstractmethod
    async def delete_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """
        Delete a transaction.

        Returns:
            The deleted record, None if unknown
        """
        pass

    @abstractmethod
    async def group_by_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> dict[TransactionType, TypeTotals]:
        """Signed total, count and mean per type inside [start, end]."""
        pass

    @abstractmethod
    async def group_by_category_and_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CategoryTypeTotal]:
        """Signed total and count per (category, type), total descending."""
        pass

    async def close(self) -> None:
        """Release connections held by the implementation."""
        return None


def order_category_groups(groups: list[CategoryTypeTotal]) -> list[CategoryTypeTotal]:
    """
    Total descending, ties broken by category then type.

    Shared by every implementation so equal totals come out in the same
    order from both stores.
    """
    return sorted(groups, key=lambda g: (-g.total, g.category.value, g.type.value))


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(StorageError):
    """Attempted to insert a duplicate of a unique value."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} already registered: {value}")


class StoreUnavailableError(StorageError):
    """Could not reach the live backing store. Triggers fallback."""
    pass


class InternalStoreError(StorageError):
    """Unexpected driver or emulator fault."""
    pass
