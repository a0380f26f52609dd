"""Financial aggregation package."""

from finance_core.aggregation.engine import (
    AggregationEngine,
    profile_completion,
    resolve_window,
    to_money,
)

__all__ = [
    "AggregationEngine",
    "profile_completion",
    "resolve_window",
    "to_money",
]
