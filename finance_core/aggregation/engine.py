"""
Financial Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and store-agnostic.
The engine only ever calls the two grouping operations of the transaction
repository, so a summary computed against MongoDB and one computed against
the in-memory fallback are the same for the same data.

GUARANTEES:
- income >= 0, expenses >= 0, balance == income - expenses
- transaction_count equals the number of transactions in the window
- money figures are cents: group totals arrive rounded and are only
  added or subtracted from there
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Union

from finance_core.models.clock import utcnow
from finance_core.models.summary import (
    CategoryRanking,
    FinancialSummary,
    SummaryPeriod,
    to_money,
)
from finance_core.models.transaction import TransactionCategory, TransactionType
from finance_core.models.user import UserProfile, UserWithProfile
from finance_core.services.storage.interface import TransactionRepositoryInterface


PERIOD_DAYS = {
    SummaryPeriod.WEEK: 7,
    SummaryPeriod.MONTH: 30,
    SummaryPeriod.QUARTER: 90,
}

DEFAULT_TOP_CATEGORY_DAYS = 30
DEFAULT_TOP_CATEGORY_LIMIT = 10

ProfileFigures = Union[UserProfile, UserWithProfile]


def _one_year_before(now: datetime) -> datetime:
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        # 29 February
        return now.replace(year=now.year - 1, day=28)


def resolve_window(period: SummaryPeriod, now: datetime) -> tuple[datetime, datetime]:
    """[start, end] of a summary period ending now, both inclusive."""
    if period == SummaryPeriod.YEAR:
        return _one_year_before(now), now
    return now - timedelta(days=PERIOD_DAYS[period]), now


def profile_completion(profile: ProfileFigures) -> int:
    """
    Completion score of a financial profile snapshot.

    Accepts a UserProfile, a UserWithProfile, or anything else carrying
    monthly_income and spending_limit. 30 for existing, 35 each for a
    positive income and a positive spending limit, never above 100.
    """
    score = 30
    if profile.monthly_income and profile.monthly_income > 0:
        score += 35
    if profile.spending_limit and profile.spending_limit > 0:
        score += 35
    return min(score, 100)


class AggregationEngine:
    """
    Computes summaries and category rankings over a transaction store.

    Args:
        repository: Live or fallback transaction repository
        clock: Source of "now"; replaced in tests
    """

    def __init__(
        self,
        repository: TransactionRepositoryInterface,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repository = repository
        self._clock = clock

    async def get_summary(
        self,
        user_id: str,
        period: Union[SummaryPeriod, str, None] = SummaryPeriod.MONTH,
    ) -> FinancialSummary:
        """
        Income, expenses and balance for a user over a period.

        Unknown period strings fall back to 30 days.
        """
        if not isinstance(period, SummaryPeriod):
            period = SummaryPeriod.parse(period)
        start, end = resolve_window(period, self._clock())

        by_type = await self._repository.group_by_type(user_id, start, end)
        categories = await self._repository.group_by_category_and_type(user_id, start, end)

        income_group = by_type.get(TransactionType.INCOME)
        expense_group = by_type.get(TransactionType.EXPENSE)

        income = to_money(income_group.total) if income_group else Decimal("0.00")
        expenses = to_money(abs(expense_group.total)) if expense_group else Decimal("0.00")

        return FinancialSummary(
            period=period,
            start=start,
            end=end,
            income=income,
            expenses=expenses,
            balance=income - expenses,
            transaction_count=sum(group.count for group in by_type.values()),
            categories=categories,
        )

    async def get_top_categories(
        self,
        user_id: str,
        period_days: int = DEFAULT_TOP_CATEGORY_DAYS,
        limit: int = DEFAULT_TOP_CATEGORY_LIMIT,
    ) -> list[CategoryRanking]:
        """
        Categories ranked by number of transactions in the last period_days.

        Ties on count are broken by total amount, then category name.
        """
        if period_days < 1:
            raise ValueError("period_days must be at least 1")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        end = self._clock()
        start = end - timedelta(days=period_days)
        groups = await self._repository.group_by_category_and_type(user_id, start, end)

        counts: dict[TransactionCategory, int] = {}
        totals: dict[TransactionCategory, Decimal] = {}
        for group in groups:
            counts[group.category] = counts.get(group.category, 0) + group.count
            # Signs agree with type, so |total| is the sum of |amount| per group.
            running = totals.get(group.category, Decimal("0"))
            totals[group.category] = running + abs(group.total)

        rankings = [
            CategoryRanking(
                category=category,
                count=counts[category],
                total_amount=totals[category],
            )
            for category in counts
        ]
        rankings.sort(key=lambda r: (-r.count, -r.total_amount, r.category.value))
        return rankings[:limit]

