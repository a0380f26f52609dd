"""
Caller-facing Stores

This module ties the repositories, validation, aggregation and audit
logging together into the two stores the HTTP layer talks to:

1. UserStore (registration, profile reads and merge updates, stats)
2. TransactionStore (CRUD, filtered listing, summaries, rankings)

DESIGN DECISION: The stores enforce the boundaries:
- Nothing reaches a repository without passing validation
- Transaction amounts are sign-normalized on every create and update
- Every write is audited
- Callers never branch on store mode: live and fallback repositories
  return the same records

Domain errors (ValidationError, NotFoundError, ConflictError) pass through
unchanged. Anything else a repository raises is logged with context and
surfaced as InternalStoreError.
"""

import asyncio
from collections.abc import Mapping
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel

from finance_core.aggregation.engine import AggregationEngine, profile_completion
from finance_core.audit.logger import AuditLogger
from finance_core.config.settings import (
    DocumentStoreSettings,
    RelationalStoreSettings,
    StoreSelectionSettings,
)
from finance_core.models.audit import AuditEventBuilder, AuditEventType
from finance_core.models.clock import utcnow
from finance_core.models.summary import CategoryRanking, FinancialSummary, SummaryPeriod
from finance_core.models.transaction import (
    Transaction,
    TransactionFilter,
    TransactionInput,
    TransactionPage,
)
from finance_core.models.user import (
    ProfileUpdate,
    User,
    UserRegistration,
    UserStats,
    UserUpdate,
    UserWithProfile,
)
from finance_core.services.storage import (
    ConflictError,
    InternalStoreError,
    NotFoundError,
    StorageError,
    StoreMode,
    StoreSelector,
    TransactionRepositoryInterface,
    UserRepositoryInterface,
)
from finance_core.validation import (
    TransactionValidator,
    ValidationError,
    ValidationIssue,
    parse_model,
    validate_page,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
UserId = Union[UUID, str]


def _parse_user_id(user_id: UserId) -> Optional[UUID]:
    if isinstance(user_id, UUID):
        return user_id
    try:
        return UUID(str(user_id))
    except ValueError:
        return None


class _AuditedStore:
    """Validation and fault handling shared by both stores."""

    def __init__(self, audit_logger: Optional[AuditLogger]):
        self._audit_logger = audit_logger or AuditLogger()

    async def _parse(
        self,
        model_cls: type[ModelT],
        payload: Union[ModelT, Mapping[str, Any]],
        entity: str,
    ) -> ModelT:
        try:
            return parse_model(model_cls, payload, entity)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(e.entity, e.to_details())
            raise

    async def _reject(self, error: ValidationError) -> None:
        await self._audit_logger.log_validation_failed(error.entity, error.to_details())
        raise error

    @asynccontextmanager
    async def _guard(self, operation: str, **context):
        """Turn unexpected repository faults into InternalStoreError."""
        try:
            yield
        except (StorageError, ValidationError):
            raise
        except Exception as e:
            details = {key: str(value) for key, value in context.items()}
            logger.error(
                "store_operation_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **details,
            )
            await self._audit_logger.log_internal_error(operation, str(e), details)
            raise InternalStoreError(f"{operation} failed: {e}") from e


class UserStore(_AuditedStore):
    """
    User and profile operations over the selected user repository.

    Args:
        repository: Live SQL or in-memory user repository
        audit_logger: Audit sink; a local-only logger if omitted
        clock: Source of "now" for days-active; replaced in tests
    """

    def __init__(
        self,
        repository: UserRepositoryInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(audit_logger)
        self._repository = repository
        self._clock = clock

    @property
    def mode(self) -> StoreMode:
        return self._repository.mode

    async def find_by_email(self, email: str) -> Optional[User]:
        """Look up a user (with credential hash) by email, case-insensitively."""
        async with self._guard("find_user_by_email"):
            return await self._repository.find_user_by_email(email.strip().lower())

    async def get_user(self, user_id: UserId) -> User:
        """
        Retrieve a user row (with credential hash), active or not.

        Raises:
            NotFoundError: If the id is unknown
        """
        uid = _parse_user_id(user_id)
        user = None
        if uid is not None:
            async with self._guard("get_user", user_id=uid):
                user = await self._repository.get_user(uid)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def create_user_with_profile(
        self,
        registration: Union[UserRegistration, Mapping[str, Any]],
    ) -> UserWithProfile:
        """
        Register a user together with its default profile.

        Raises:
            ValidationError: If the registration is malformed
            ConflictError: If the email is already registered
        """
        data = await self._parse(UserRegistration, registration, "user")

        try:
            async with self._guard("create_user_with_profile"):
                if await self._repository.find_user_by_email(data.email) is not None:
                    raise ConflictError("email", data.email)
                user, profile = await self._repository.create_user_with_profile(
                    email=data.email,
                    password_hash=data.password_hash,
                    name=data.name,
                    age=data.age,
                )
        except ConflictError:
            await self._audit_logger.log(AuditEventBuilder.registration_conflict(data.email))
            raise

        await self._audit_logger.log_user_registered(user.id, self.mode.value)
        return UserWithProfile.join(user, profile)

    async def get_user_with_profile(self, user_id: UserId) -> UserWithProfile:
        """
        Active user merged with its profile.

        Raises:
            NotFoundError: If the id is unknown or the user is inactive
        """
        uid = _parse_user_id(user_id)
        record = None
        if uid is not None:
            async with self._guard("get_user_with_profile", user_id=uid):
                record = await self._repository.get_user_with_profile(uid)
        if record is None:
            raise NotFoundError("user", user_id)
        return record

    async def update_user(
        self,
        user_id: UserId,
        update: Union[UserUpdate, Mapping[str, Any]],
    ) -> int:
        """
        Merge-on-present update of name and age.

        Returns:
            Rows affected; 0 for an unknown id or an update with no values
        """
        data = await self._parse(UserUpdate, update, "user")
        uid = _parse_user_id(user_id)
        fields = data.present_fields()
        if uid is None or not fields:
            return 0

        async with self._guard("update_user", user_id=uid):
            rows = await self._repository.update_user(uid, fields)

        await self._audit_logger.log(
            AuditEventBuilder.user_updated(uid, sorted(fields), rows)
        )
        return rows

    async def update_profile(
        self,
        user_id: UserId,
        update: Union[ProfileUpdate, Mapping[str, Any]],
    ) -> int:
        """
        Merge-on-present update of income, spending limit and goals.

        Returns:
            Rows affected; 0 for an unknown id or an update with no values
        """
        data = await self._parse(ProfileUpdate, update, "profile")
        uid = _parse_user_id(user_id)
        fields = data.present_fields()
        if uid is None or not fields:
            return 0

        async with self._guard("update_profile", user_id=uid):
            rows = await self._repository.update_profile(uid, fields)

        await self._audit_logger.log(
            AuditEventBuilder.profile_updated(uid, sorted(fields), rows)
        )
        return rows

    async def get_stats(self, user_id: UserId) -> UserStats:
        """Dashboard statistics for an active user."""
        record = await self.get_user_with_profile(user_id)
        days_active = (self._clock() - record.created_at).days

        return UserStats(
            name=record.name,
            member_since=record.created_at,
            days_active=max(days_active, 0),
            monthly_income=record.monthly_income,
            spending_limit=record.spending_limit,
            profile_completion=profile_completion(record),
        )

    async def delete_user(self, user_id: UserId) -> None:
        """
        Delete a user and its profile.

        Raises:
            NotFoundError: If the id is unknown
        """
        uid = _parse_user_id(user_id)
        deleted = False
        if uid is not None:
            async with self._guard("delete_user", user_id=uid):
                deleted = await self._repository.delete_user(uid)
        if not deleted:
            raise NotFoundError("user", user_id)

        await self._audit_logger.log(AuditEventBuilder.user_deleted(uid))

    async def close(self) -> None:
        await self._repository.close()


class TransactionStore(_AuditedStore):
    """
    Transaction operations over the selected transaction repository.

    Args:
        repository: Live MongoDB or in-memory transaction repository
        audit_logger: Audit sink; a local-only logger if omitted
        validator: Two-stage validator applied before every write
        default_page_size: Page size when the caller gives none
        max_page_size: Largest page size a caller may request
        clock: Source of "now" for summary windows; replaced in tests
    """

    def __init__(
        self,
        repository: TransactionRepositoryInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(audit_logger)
        self._repository = repository
        self._validator = validator or TransactionValidator()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._engine = AggregationEngine(repository, clock)

    @property
    def mode(self) -> StoreMode:
        return self._repository.mode

    async def _prepare(
        self,
        payload: Union[TransactionInput, Mapping[str, Any]],
    ) -> TransactionInput:
        try:
            return self._validator.prepare(payload)
        except ValidationError as e:
            await self._reject(e)

    async def create(
        self,
        payload: Union[TransactionInput, Mapping[str, Any]],
    ) -> Transaction:
        """
        Validate, normalize and persist a new transaction.

        Raises:
            ValidationError: With every issue found
        """
        data = await self._prepare(payload)

        async with self._guard("create_transaction", user_id=data.user_id):
            transaction = await self._repository.insert(data)

        await self._audit_logger.log(AuditEventBuilder.transaction_written(
            AuditEventType.TRANSACTION_CREATED,
            transaction.id,
            transaction.user_id,
            amount=transaction.amount,
        ))
        return transaction

    async def find_for_user(
        self,
        filter: Union[TransactionFilter, Mapping[str, Any]],
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> TransactionPage:
        """One page of a user's transactions, newest first."""
        criteria = await self._parse(TransactionFilter, filter, "transaction_filter")
        if page_size is None:
            page_size = self._default_page_size

        error = validate_page(page, page_size, self._max_page_size)
        if error is not None:
            await self._reject(error)

        async with self._guard("find_transactions", user_id=criteria.user_id):
            items, total = await self._repository.find(criteria, page, page_size)

        return TransactionPage(items=items, total=total, page=page, page_size=page_size)

    async def get_by_id(self, transaction_id: str) -> Transaction:
        """
        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._guard("get_transaction", transaction_id=transaction_id):
            transaction = await self._repository.find_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)
        return transaction

    async def update(
        self,
        transaction_id: str,
        payload: Union[TransactionInput, Mapping[str, Any]],
    ) -> Transaction:
        """
        Replace a transaction after re-validating and re-normalizing it.

        Raises:
            ValidationError: With every issue found
            NotFoundError: If the id is unknown
        """
        data = await self._prepare(payload)

        async with self._guard("update_transaction", transaction_id=transaction_id):
            transaction = await self._repository.update_by_id(transaction_id, data)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)

        await self._audit_logger.log(AuditEventBuilder.transaction_written(
            AuditEventType.TRANSACTION_UPDATED,
            transaction.id,
            transaction.user_id,
            amount=transaction.amount,
        ))
        return transaction

    async def delete(self, transaction_id: str) -> Transaction:
        """
        Delete a transaction and return what was deleted.

        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._guard("delete_transaction", transaction_id=transaction_id):
            transaction = await self._repository.delete_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)

        await self._audit_logger.log(AuditEventBuilder.transaction_written(
            AuditEventType.TRANSACTION_DELETED,
            transaction.id,
            transaction.user_id,
        ))
        return transaction

    async def get_summary(
        self,
        user_id: str,
        period: Union[SummaryPeriod, str, None] = SummaryPeriod.MONTH,
    ) -> FinancialSummary:
        """Income, expenses and balance; unknown periods mean 30 days."""
        async with self._guard("get_summary", user_id=user_id):
            return await self._engine.get_summary(user_id, period)

    async def get_top_categories(
        self,
        user_id: str,
        period_days: int = 30,
        limit: int = 10,
    ) -> list[CategoryRanking]:
        """Most used categories over the last period_days."""
        issues = []
        if period_days < 1:
            issues.append(ValidationIssue(
                field="periodDays",
                issue_type="greater_than_equal",
                message="periodDays must be at least 1",
            ))
        if limit < 1:
            issues.append(ValidationIssue(
                field="limit",
                issue_type="greater_than_equal",
                message="limit must be at least 1",
            ))
        if issues:
            await self._reject(ValidationError("top_categories", issues))

        async with self._guard("get_top_categories", user_id=user_id):
            return await self._engine.get_top_categories(user_id, period_days, limit)

    async def close(self) -> None:
        await self._repository.close()


class FinanceStores:
    """The two stores of a running process and the audit log they share."""

    def __init__(
        self,
        users: UserStore,
        transactions: TransactionStore,
        audit_logger: AuditLogger,
    ):
        self.users = users
        self.transactions = transactions
        self.audit_logger = audit_logger

    @property
    def modes(self) -> dict[str, StoreMode]:
        return {"user": self.users.mode, "transaction": self.transactions.mode}

    async def close(self) -> None:
        await self.users.close()
        await self.transactions.close()


async def create_stores(
    relational: Optional[RelationalStoreSettings] = None,
    document: Optional[DocumentStoreSettings] = None,
    selection: Optional[StoreSelectionSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
    mongo_client_factory: Optional[Callable] = None,
) -> FinanceStores:
    """
    Factory function to select the stores and build both facades.

    Called once at startup. Unreachable live stores are replaced by the
    in-memory fallback; this only raises if the fallback cannot start.

    Args:
        relational: SQL user store settings; from the environment if None
        document: MongoDB transaction store settings; from the environment if None
        selection: Timeouts, forced fallback and page sizes
        audit_logger: Shared audit sink
        mongo_client_factory: Replacement for AsyncIOMotorClient
    """
    audit_logger = audit_logger or AuditLogger()
    selector = StoreSelector(
        relational=relational,
        document=document,
        selection=selection,
        audit_logger=audit_logger,
        mongo_client_factory=mongo_client_factory,
    )

    user_repository, transaction_repository = await asyncio.gather(
        selector.select_user_repository(),
        selector.select_transaction_repository(),
    )

    return FinanceStores(
        users=UserStore(user_repository, audit_logger),
        transactions=TransactionStore(
            transaction_repository,
            audit_logger,
            default_page_size=selector.selection.default_page_size,
            max_page_size=selector.selection.max_page_size,
        ),
        audit_logger=audit_logger,
    )
