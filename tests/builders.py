"""Test data builders."""

from datetime import datetime, timedelta
from typing import Optional

from finance_core.models.transaction import TransactionInput
from finance_core.validation import TransactionValidator


NOW = datetime(2024, 6, 15, 12, 0, 0)


def transaction_input(
    amount: float,
    type: str = "expense",
    category: str = "food",
    days_ago: Optional[float] = 1,
    user_id: str = "u1",
    description: str = "item",
    **extra,
) -> TransactionInput:
    """Validated and sign-normalized input, dated relative to NOW."""
    payload = {
        "userId": user_id,
        "amount": amount,
        "type": type,
        "category": category,
        "description": description,
        **extra,
    }
    if days_ago is not None:
        payload["date"] = NOW - timedelta(days=days_ago)
    return TransactionValidator().prepare(payload)
