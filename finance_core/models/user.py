"""
User Domain Models

A User is created once at registration together with its UserProfile and
then changed through partial updates.

DESIGN DECISION: Partial updates are explicit models whose fields are all
optional. A field counts as "present" when the caller set it to a non-null
value; everything else keeps its stored value. This mirrors the live
store's `SET col = COALESCE(@value, col)` update.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)

from finance_core.models.clock import utcnow


MIN_AGE = 13
MAX_AGE = 120


class User(BaseModel):
    """A registered user as stored in the users table."""

    id: UUID = Field(default_factory=uuid4)
    email: str = Field(..., max_length=255)
    password_hash: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., max_length=255)
    age: Optional[int] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserProfile(BaseModel):
    """
    Financial profile, one-to-one with User.

    Never exists without its owning user: created in the same write and
    deleted along with it.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    monthly_income: Decimal = Field(default=Decimal("0"))
    spending_limit: Decimal = Field(default=Decimal("0"))
    financial_goals: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserRegistration(BaseModel):
    """
    Fields required to register a user.

    The password arrives already hashed; hashing belongs to the auth layer.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password_hash: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=2, max_length=255)
    age: Optional[int] = Field(default=None, ge=MIN_AGE, le=MAX_AGE)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        """Emails are unique case-insensitively, so store them lower-cased."""
        return v.lower()


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    def present_fields(self) -> dict[str, Any]:
        """Fields the caller explicitly supplied with a value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)

    @property
    def is_empty(self) -> bool:
        return not self.present_fields()


class UserUpdate(_PartialUpdate):
    """Partial update of the basic user fields."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    age: Optional[int] = Field(default=None, ge=MIN_AGE, le=MAX_AGE)


class ProfileUpdate(_PartialUpdate):
    """Partial update of the financial profile."""

    monthly_income: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=10,
        decimal_places=2,
    )
    spending_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=10,
        decimal_places=2,
    )
    financial_goals: Optional[str] = Field(default=None, max_length=4000)


class UserWithProfile(BaseModel):
    """
    Result of the user ⋈ profile read.

    Profile fields fall back to zero/null when no profile row exists.
    """

    id: UUID
    email: str
    name: str
    age: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    monthly_income: Decimal = Decimal("0")
    spending_limit: Decimal = Decimal("0")
    financial_goals: Optional[str] = None

    @classmethod
    def join(cls, user: User, profile: Optional[UserProfile]) -> "UserWithProfile":
        """Merge a user row with its (possibly missing) profile row."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            age=user.age,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
            monthly_income=profile.monthly_income if profile else Decimal("0"),
            spending_limit=profile.spending_limit if profile else Decimal("0"),
            financial_goals=profile.financial_goals if profile else None,
        )


class UserStats(BaseModel):
    """Profile statistics shown on the user's dashboard."""

    name: str
    member_since: datetime
    days_active: int = Field(ge=0)
    monthly_income: Decimal
    spending_limit: Decimal
    profile_completion: int = Field(ge=0, le=100)
