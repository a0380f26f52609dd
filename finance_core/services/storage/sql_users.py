"""
SQL User Store (live relational path)

SQLAlchemy async ORM over two tables:

- users: unique lower-cased email, credential hash, name, optional age,
  active flag, timestamps
- user_profiles: one row per user, FK with ON DELETE CASCADE

TRADEOFFS:
- Partial updates are issued as UPDATE ... WHERE statements so an unknown
  id is a zero-row update rather than an error.
- The cascade is also performed explicitly on delete; SQLite only honours
  ON DELETE CASCADE with foreign keys switched on per connection.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from finance_core.models.clock import utcnow
from finance_core.models.user import User, UserProfile, UserWithProfile
from finance_core.services.storage.interface import (
    ConflictError,
    StoreMode,
    UserRepositoryInterface,
)
from finance_core.services.storage.memory_relational import (
    PROFILE_COLUMNS,
    USER_COLUMNS,
    _check_columns,
)


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class UserProfileRow(Base):
    __tablename__ = "user_profiles"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    monthly_income = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    spending_limit = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    financial_goals = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        age=row.age,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_profile(row: UserProfileRow) -> UserProfile:
    return UserProfile(
        id=row.id,
        user_id=row.user_id,
        monthly_income=row.monthly_income,
        spending_limit=row.spending_limit,
        financial_goals=row.financial_goals,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlUserRepository(UserRepositoryInterface):
    """Live user store over any SQLAlchemy async engine."""

    mode = StoreMode.LIVE

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    async def create_schema(self) -> None:
        """Create missing tables. Doubles as the connectivity probe."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        async with self._sessions() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.email == email.lower())
            )
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def get_user(self, user_id: UUID) -> Optional[User]:
        async with self._sessions() as session:
            row = await session.get(UserRow, user_id)
            return _to_user(row) if row else None

    async def create_user_with_profile(
        self,
        email: str,
        password_hash: str,
        name: str,
        age: Optional[int] = None,
    ) -> tuple[User, UserProfile]:
        now = utcnow()
        user_row = UserRow(
            id=uuid4(),
            email=email.lower(),
            password_hash=password_hash,
            name=name,
            age=age,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        profile_row = UserProfileRow(
            id=uuid4(),
            user_id=user_row.id,
            monthly_income=Decimal("0"),
            spending_limit=Decimal("0"),
            created_at=now,
            updated_at=now,
        )

        try:
            async with self._sessions() as session:
                async with session.begin():
                    session.add(user_row)
                    await session.flush()
                    session.add(profile_row)
        except IntegrityError as e:
            raise ConflictError("email", email.lower()) from e

        return _to_user(user_row), _to_profile(profile_row)

    async def get_user_with_profile(self, user_id: UUID) -> Optional[UserWithProfile]:
        stmt = (
            select(UserRow, UserProfileRow)
            .outerjoin(UserProfileRow, UserProfileRow.user_id == UserRow.id)
            .where(UserRow.id == user_id, UserRow.is_active.is_(True))
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            row = result.first()

        if row is None:
            return None
        user_row, profile_row = row
        return UserWithProfile.join(
            _to_user(user_row),
            _to_profile(profile_row) if profile_row is not None else None,
        )

    async def update_user(self, user_id: UUID, fields: dict[str, Any]) -> int:
        _check_columns(fields, USER_COLUMNS)
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(**fields, updated_at=utcnow())
        )
        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(stmt)
                rows = result.rowcount
        return rows

    async def update_profile(self, user_id: UUID, fields: dict[str, Any]) -> int:
        _check_columns(fields, PROFILE_COLUMNS)
        stmt = (
            update(UserProfileRow)
            .where(UserProfileRow.user_id == user_id)
            .values(**fields, updated_at=utcnow())
        )
        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(stmt)
                rows = result.rowcount
        return rows

    async def delete_user(self, user_id: UUID) -> bool:
        async with self._sessions() as session:
            async with session.begin():
                await session.execute(
                    delete(UserProfileRow).where(UserProfileRow.user_id == user_id)
                )
                result = await session.execute(
                    delete(UserRow).where(UserRow.id == user_id)
                )
                deleted = result.rowcount > 0
        return deleted

    async def close(self) -> None:
        await self._engine.dispose()
