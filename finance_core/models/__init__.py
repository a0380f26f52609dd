"""
Data Models Package

All records crossing a store boundary are Pydantic models. Callers get the
same models back whether a live store or the in-memory fallback served them.
"""

from finance_core.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_core.models.clock import to_storage_precision, utcnow
from finance_core.models.summary import (
    CategoryRanking,
    CategoryTypeTotal,
    FinancialSummary,
    SummaryPeriod,
    TypeTotals,
)
from finance_core.models.transaction import (
    RecurringPeriod,
    Transaction,
    TransactionCategory,
    TransactionFilter,
    TransactionInput,
    TransactionPage,
    TransactionType,
)
from finance_core.models.user import (
    ProfileUpdate,
    User,
    UserProfile,
    UserRegistration,
    UserStats,
    UserUpdate,
    UserWithProfile,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Clock
    "to_storage_precision",
    "utcnow",
    # Summary models
    "CategoryRanking",
    "CategoryTypeTotal",
    "FinancialSummary",
    "SummaryPeriod",
    "TypeTotals",
    # Transaction models
    "RecurringPeriod",
    "Transaction",
    "TransactionCategory",
    "TransactionFilter",
    "TransactionInput",
    "TransactionPage",
    "TransactionType",
    # User models
    "ProfileUpdate",
    "User",
    "UserProfile",
    "UserRegistration",
    "UserStats",
    "UserUpdate",
    "UserWithProfile",
]
