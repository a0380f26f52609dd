"""
Two-Stage Validation and Amount Normalization

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, enumerations, lengths
- Done by the Pydantic input models; their errors are translated into
  field-level ValidationIssues here so callers never see raw Pydantic errors

STAGE 2 - SEMANTIC VALIDATION:
- Non-zero amount
- Recurrence period present whenever the transaction recurs

Only after both stages pass is the amount sign normalized against the
transaction type. Normalization is the one correction applied silently:
the sign of an amount is derived from its type, never trusted from the
client.
"""

from collections.abc import Mapping
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from finance_core.models.transaction import TransactionInput, TransactionType


ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'zero_amount', 'string_too_long')"
    )
    message: str = Field(..., description="Human-readable description of the issue")
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )


class ValidationError(Exception):
    """
    Request rejected by schema or business rules.

    Carries every issue found, not just the first.
    """

    def __init__(self, entity: str, issues: list[ValidationIssue]):
        self.entity = entity
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Invalid {entity}: {fields}")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]

    def to_details(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


def issues_from_schema_error(exc: SchemaError) -> list[ValidationIssue]:
    """Translate Pydantic errors into field-level issues."""
    issues = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        issues.append(ValidationIssue(
            field=location or "__root__",
            issue_type=error["type"],
            message=error["msg"],
        ))
    return issues


def parse_model(
    model_cls: type[ModelT],
    payload: Union[ModelT, Mapping[str, Any]],
    entity: str,
) -> ModelT:
    """
    Stage 1 for any input model.

    Accepts an already-built model (validated on construction) or a raw
    mapping, and raises ValidationError instead of Pydantic's error type.
    """
    if isinstance(payload, model_cls):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(payload)
    except SchemaError as e:
        raise ValidationError(entity, issues_from_schema_error(e)) from e


def normalize_amount(amount: float, transaction_type: TransactionType) -> float:
    """
    Make the sign of amount agree with the transaction type.

    Expenses are stored negative, income positive, whatever sign the
    client sent.
    """
    if transaction_type == TransactionType.EXPENSE and amount > 0:
        return -amount
    if transaction_type == TransactionType.INCOME and amount < 0:
        return abs(amount)
    return amount


class TransactionValidator:
    """
    Validates and normalizes transactions before persistence.

    Applied on every create and every update.
    """

    def _validate_semantic(self, data: TransactionInput) -> list[ValidationIssue]:
        issues = []

        if data.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="zero_amount",
                message="Amount cannot be zero",
            ))

        if data.is_recurring and data.recurring_period is None:
            issues.append(ValidationIssue(
                field="recurringPeriod",
                issue_type="missing",
                message="recurringPeriod is required when isRecurring is true",
            ))

        return issues

    def validate(
        self,
        payload: Union[TransactionInput, Mapping[str, Any]],
    ) -> TransactionInput:
        """
        Run both validation stages.

        Raises:
            ValidationError: with every issue found
        """
        data = parse_model(TransactionInput, payload, "transaction")
        issues = self._validate_semantic(data)
        if issues:
            raise ValidationError("transaction", issues)
        return data

    def prepare(
        self,
        payload: Union[TransactionInput, Mapping[str, Any]],
    ) -> TransactionInput:
        """Validate, then return a copy with the amount sign normalized."""
        data = self.validate(payload)
        return data.model_copy(
            update={"amount": normalize_amount(data.amount, data.type)}
        )


def validate_page(
    page: int,
    page_size: int,
    max_page_size: int,
) -> Optional[ValidationError]:
    """Check offset pagination arguments; returns the error instead of raising."""
    issues = []
    if page < 1:
        issues.append(ValidationIssue(
            field="page",
            issue_type="greater_than_equal",
            message="page must be at least 1",
        ))
    if page_size < 1 or page_size > max_page_size:
        issues.append(ValidationIssue(
            field="pageSize",
            issue_type="out_of_range",
            message=f"pageSize must be between 1 and {max_page_size}",
        ))
    return ValidationError("pagination", issues) if issues else None
