"""
Aggregation result models.

Grouping results have the same shape whichever store produced them; the
aggregation engine only ever sees these models. Group totals are rounded
to cents on construction, so the last digits of a float sum never depend
on which store added it up.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from finance_core.models.transaction import TransactionCategory, TransactionType


CENT = Decimal("0.01")

# Wide enough to quantize any float sum to cents.
MONEY_PRECISION = 400


def to_money(value: Union[float, int, Decimal]) -> Decimal:
    """Round a sum to cents, half away from zero."""
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class SummaryPeriod(str, Enum):
    """Look-back windows accepted by the financial summary."""
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    YEAR = "1y"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SummaryPeriod":
        """Resolve a caller-supplied period; anything unknown means 30 days."""
        try:
            return cls(value)
        except ValueError:
            return cls.MONTH


class TypeTotals(BaseModel):
    """Per-type group: signed total, row count, mean signed amount."""

    type: TransactionType
    total: Decimal = Field(decimal_places=2)
    count: int = Field(ge=0)
    avg: Decimal = Field(decimal_places=2)

    @field_validator("total", "avg", mode="before")
    @classmethod
    def round_to_cents(cls, v):
        return to_money(v)


class CategoryTypeTotal(BaseModel):
    """Per-(category, type) group: signed total and row count."""

    category: TransactionCategory
    type: TransactionType
    total: Decimal = Field(decimal_places=2)
    count: int = Field(ge=0)

    @field_validator("total", mode="before")
    @classmethod
    def round_to_cents(cls, v):
        return to_money(v)


class CategoryRanking(BaseModel):
    """A category ranked by usage; total_amount sums absolute amounts."""

    category: TransactionCategory
    count: int = Field(ge=0)
    total_amount: Decimal = Field(ge=0, decimal_places=2)


class FinancialSummary(BaseModel):
    """
    Income/expense summary for a user over a period window.

    Money figures are rounded to cents; balance is exactly
    income - expenses.
    """

    period: SummaryPeriod
    start: datetime
    end: datetime
    income: Decimal = Field(ge=0, decimal_places=2)
    expenses: Decimal = Field(ge=0, decimal_places=2)
    balance: Decimal = Field(decimal_places=2)
    transaction_count: int = Field(ge=0)
    categories: list[CategoryTypeTotal] = Field(default_factory=list)
