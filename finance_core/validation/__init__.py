"""Validation package."""

from finance_core.validation.validator import (
    TransactionValidator,
    ValidationError,
    ValidationIssue,
    issues_from_schema_error,
    normalize_amount,
    parse_model,
    validate_page,
)

__all__ = [
    "TransactionValidator",
    "ValidationError",
    "ValidationIssue",
    "issues_from_schema_error",
    "normalize_amount",
    "parse_model",
    "validate_page",
]
