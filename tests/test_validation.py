"""
Tests for two-stage validation and amount normalization.
"""

import pytest

from finance_core.models.transaction import TransactionInput, TransactionType
from finance_core.models.user import UserRegistration
from finance_core.validation import (
    TransactionValidator,
    ValidationError,
    normalize_amount,
    parse_model,
    validate_page,
)


def payload(**overrides) -> dict:
    values = {
        "userId": "u1",
        "amount": 50,
        "type": "expense",
        "category": "food",
        "description": "lunch",
    }
    values.update(overrides)
    return values


class TestNormalizeAmount:
    """Tests for sign normalization."""

    def test_positive_expense_is_negated(self):
        """Test that expenses are stored negative."""
        assert normalize_amount(50, TransactionType.EXPENSE) == -50

    def test_negative_income_is_made_positive(self):
        """Test that income is stored positive."""
        assert normalize_amount(-1200.5, TransactionType.INCOME) == 1200.5

    def test_correct_signs_are_untouched(self):
        """Test that already-correct amounts pass through."""
        assert normalize_amount(-7.25, TransactionType.EXPENSE) == -7.25
        assert normalize_amount(300, TransactionType.INCOME) == 300

    @pytest.mark.parametrize("amount", [0.01, 5, 99999.99, -0.01, -42])
    def test_sign_agrees_with_type(self, amount):
        """Test the sign invariant for both types."""
        assert normalize_amount(amount, TransactionType.INCOME) > 0
        assert normalize_amount(amount, TransactionType.EXPENSE) < 0


class TestTransactionValidator:
    """Tests for TransactionValidator."""

    @pytest.mark.parametrize("amount", [1e12, -1e12, 1e30, -1e30])
    def test_amount_out_of_range_rejected(self, amount):
        """Test that amounts of a trillion or more are refused."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().prepare(payload(amount=amount))
        assert exc_info.value.fields == ["amount"]

    def test_amount_just_below_bound_accepted(self):
        """Test the largest accepted magnitude."""
        data = TransactionValidator().prepare(payload(amount=999_999_999_999.99))
        assert data.amount == -999_999_999_999.99

    def test_prepare_normalizes_expense(self):
        """Test that a $50 expense is prepared as -50."""
        data = TransactionValidator().prepare(payload())
        assert data.amount == -50
        assert data.type == TransactionType.EXPENSE

    def test_validate_does_not_normalize(self):
        """Test that validate leaves the amount as sent."""
        data = TransactionValidator().validate(payload())
        assert data.amount == 50

    def test_prepare_does_not_mutate_input_model(self):
        """Test that the caller's model is left unchanged."""
        original = TransactionInput.model_validate(payload())
        TransactionValidator().prepare(original)
        assert original.amount == 50

    def test_zero_amount_rejected(self):
        """Test the non-zero amount rule."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().validate(payload(amount=0))
        assert exc_info.value.fields == ["amount"]
        assert exc_info.value.issues[0].issue_type == "zero_amount"

    def test_recurring_without_period_rejected(self):
        """Test that a missing recurrence period is an error, not a default."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().validate(payload(isRecurring=True))
        assert exc_info.value.fields == ["recurringPeriod"]

    def test_recurring_with_period_accepted(self):
        """Test a valid recurring transaction."""
        data = TransactionValidator().validate(
            payload(isRecurring=True, recurringPeriod="weekly")
        )
        assert data.is_recurring is True

    def test_semantic_issues_are_reported_together(self):
        """Test that every semantic issue is reported, not just the first."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().validate(payload(amount=0, isRecurring=True))
        assert sorted(exc_info.value.fields) == ["amount", "recurringPeriod"]

    def test_schema_errors_are_translated(self):
        """Test that callers get field-level issues instead of pydantic errors."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().validate(
                payload(category="housing", description="")
            )
        error = exc_info.value
        assert error.entity == "transaction"
        assert "category" in error.fields
        assert "description" in error.fields
        assert all(detail["severity"] == "error" for detail in error.to_details())

    def test_schema_stage_runs_before_semantic_stage(self):
        """Test that semantic rules are not checked on malformed input."""
        with pytest.raises(ValidationError) as exc_info:
            TransactionValidator().validate(payload(amount=0, type="transfer"))
        assert exc_info.value.fields == ["type"]


class TestParseModel:
    """Tests for parse_model."""

    def test_accepts_model_instance(self):
        """Test that a built model is returned as is."""
        registration = UserRegistration(
            email="carol@example.com", password_hash="hash", name="Carol"
        )
        assert parse_model(UserRegistration, registration, "user") is registration

    def test_rejects_bad_mapping(self):
        """Test that mapping errors become ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            parse_model(UserRegistration, {"email": "carol@example.com"}, "user")
        assert set(exc_info.value.fields) == {"password_hash", "name"}


class TestValidatePage:
    """Tests for pagination argument checks."""

    def test_valid_arguments(self):
        """Test that valid arguments produce no error."""
        assert validate_page(1, 20, 100) is None

    def test_page_below_one(self):
        """Test that page numbering starts at 1."""
        error = validate_page(0, 20, 100)
        assert error is not None
        assert error.fields == ["page"]

    def test_page_size_out_of_range(self):
        """Test both page size bounds."""
        assert validate_page(1, 0, 100).fields == ["pageSize"]
        assert validate_page(1, 101, 100).fields == ["pageSize"]
