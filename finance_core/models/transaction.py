"""
Transaction Domain Models

Field names and enumeration values are part of the stable contract with
clients: documents are persisted with camelCase keys (userId, isRecurring,
recurringPeriod, createdAt, updatedAt) and the enum values below are the
exact strings stored.
"""

from datetime import datetime
from enum import Enum
from math import ceil
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from finance_core.models.clock import to_storage_precision


# Largest magnitude accepted for a single transaction.
MAX_AMOUNT = 1e12


# =============================================================================
# ENUMS
# =============================================================================

class TransactionCategory(str, Enum):
    """Fixed set of transaction categories."""
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    BILLS = "bills"
    HEALTH = "health"
    EDUCATION = "education"
    SALARY = "salary"
    FREELANCE = "freelance"
    INVESTMENT = "investment"
    GIFT = "gift"
    OTHER = "other"


class TransactionType(str, Enum):
    """Direction of money flow. Determines the sign of the stored amount."""
    INCOME = "income"
    EXPENSE = "expense"


class RecurringPeriod(str, Enum):
    """How often a recurring transaction repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# =============================================================================
# WRITE MODEL
# =============================================================================

class TransactionInput(BaseModel):
    """
    A transaction as submitted for create or update.

    This is only the schema stage. Business rules (non-zero amount,
    recurrence period) and sign normalization are applied by the
    validation package before anything reaches a store.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(..., min_length=1, max_length=64)
    amount: float = Field(..., gt=-MAX_AMOUNT, lt=MAX_AMOUNT, allow_inf_nan=False)
    description: str = Field(..., min_length=1, max_length=200)
    category: TransactionCategory
    type: TransactionType
    date: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Tags are a set of trimmed, lower-case labels."""
        seen = []
        for tag in v:
            tag = tag.strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_storage_precision(v) if v is not None else None


# =============================================================================
# STORED RECORD
# =============================================================================

class Transaction(BaseModel):
    """
    A persisted transaction.

    Invariant: amount > 0 for income, amount < 0 for expense.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    user_id: str
    amount: float
    description: str
    category: TransactionCategory
    type: TransactionType
    date: datetime
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_input(
        cls,
        transaction_id: str,
        data: TransactionInput,
        date: datetime,
        created_at: datetime,
        updated_at: datetime,
    ) -> "Transaction":
        """Build the stored record for validated input."""
        return cls(
            id=transaction_id,
            user_id=data.user_id,
            amount=data.amount,
            description=data.description,
            category=data.category,
            type=data.type,
            date=date,
            tags=list(data.tags),
            is_recurring=data.is_recurring,
            recurring_period=data.recurring_period,
            created_at=created_at,
            updated_at=updated_at,
        )

    @property
    def absolute_amount(self) -> float:
        return abs(self.amount)

    def to_document(self) -> dict:
        """Persisted form: camelCase keys, enum values as strings, no id."""
        return self.model_dump(by_alias=True, mode="python", exclude={"id"}) | {
            "category": self.category.value,
            "type": self.type.value,
            "recurringPeriod": (
                self.recurring_period.value if self.recurring_period else None
            ),
        }


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Conjunctive filter for listing a user's transactions.

    Date bounds are inclusive on both ends.
    """

    user_id: str = Field(..., min_length=1)
    category: Optional[TransactionCategory] = None
    type: Optional[TransactionType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_storage_precision(v) if v is not None else None

    def matches(self, transaction: Transaction) -> bool:
        """Evaluate the filter against a single record."""
        if transaction.user_id != self.user_id:
            return False
        if self.category and transaction.category != self.category:
            return False
        if self.type and transaction.type != self.type:
            return False
        if self.date_from and transaction.date < self.date_from:
            return False
        if self.date_to and transaction.date > self.date_to:
            return False
        return True


class TransactionPage(BaseModel):
    """One page of a filtered, date-descending transaction listing."""

    items: list[Transaction] = Field(default_factory=list)
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)

    @property
    def pages(self) -> int:
        return ceil(self.total / self.page_size)
