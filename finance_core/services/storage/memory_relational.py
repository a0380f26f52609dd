"""
In-Memory Relational Emulator (user domain)

Fallback for the SQL user store. Two tables (users, user_profiles) held in
dicts owned by one repository instance, plus the join logic needed to
answer the user domain's read patterns the way the SQL store does:

- find a user by email
- insert a user (fresh id, created timestamp, age null, active)
- insert a profile (income 0, limit 0)
- user LEFT JOIN profile, active users only, zero/null profile defaults

All writes, and every read that spans both tables, run under a single
lock. Stored rows are never mutated in place: updates build a new row
and swap it in, and reads hand out copies.
"""

import threading
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from finance_core.models.clock import utcnow
from finance_core.models.user import User, UserProfile, UserWithProfile
from finance_core.services.storage.interface import (
    ConflictError,
    StoreMode,
    UserRepositoryInterface,
)


USER_COLUMNS = frozenset({"name", "age", "is_active"})
PROFILE_COLUMNS = frozenset({"monthly_income", "spending_limit", "financial_goals"})


def _check_columns(fields: dict[str, Any], allowed: frozenset) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Not updatable: {', '.join(sorted(unknown))}")


class InMemoryUserRepository(UserRepositoryInterface):
    """Process-local, non-durable user store."""

    mode = StoreMode.FALLBACK

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._profiles: dict[UUID, UserProfile] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Table-level access patterns
    # -------------------------------------------------------------------------

    def _user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def _profile_for(self, user_id: UUID) -> Optional[UserProfile]:
        for profile in self._profiles.values():
            if profile.user_id == user_id:
                return profile
        return None

    def insert_user(
        self,
        email: str,
        password_hash: str,
        name: str,
        age: Optional[int] = None,
    ) -> User:
        """INSERT INTO users; enforces the unique email index."""
        with self._lock:
            if self._user_by_email(email) is not None:
                raise ConflictError("email", email.lower())
            now = utcnow()
            user = User(
                id=uuid4(),
                email=email.lower(),
                password_hash=password_hash,
                name=name,
                age=age,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return user.model_copy()

    def insert_profile(
        self,
        user_id: UUID,
        monthly_income: Decimal = Decimal("0"),
        spending_limit: Decimal = Decimal("0"),
    ) -> UserProfile:
        """INSERT INTO user_profiles for an existing user."""
        with self._lock:
            if user_id not in self._users:
                raise ValueError(f"Profile owner does not exist: {user_id}")
            now = utcnow()
            profile = UserProfile(
                id=uuid4(),
                user_id=user_id,
                monthly_income=monthly_income,
                spending_limit=spending_limit,
                created_at=now,
                updated_at=now,
            )
            self._profiles[profile.id] = profile
            return profile.model_copy()

    # -------------------------------------------------------------------------
    # Repository interface
    # -------------------------------------------------------------------------

    async def find_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user = self._user_by_email(email)
            return user.model_copy() if user else None

    async def get_user(self, user_id: UUID) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    async def create_user_with_profile(
        self,
        email: str,
        password_hash: str,
        name: str,
        age: Optional[int] = None,
    ) -> tuple[User, UserProfile]:
        # One lock acquisition for both inserts: no reader can see a user
        # without its profile, and no concurrent writer can take the email
        # in between.
        with self._lock:
            user = self.insert_user(email, password_hash, name, age)
            profile = self.insert_profile(user.id)
            return user, profile

    async def get_user_with_profile(self, user_id: UUID) -> Optional[UserWithProfile]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or not user.is_active:
                return None
            return UserWithProfile.join(user, self._profile_for(user_id))

    async def update_user(self, user_id: UUID, fields: dict[str, Any]) -> int:
        _check_columns(fields, USER_COLUMNS)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return 0
            self._users[user_id] = user.model_copy(
                update={**fields, "updated_at": utcnow()}
            )
            return 1

    async def update_profile(self, user_id: UUID, fields: dict[str, Any]) -> int:
        _check_columns(fields, PROFILE_COLUMNS)
        with self._lock:
            profile = self._profile_for(user_id)
            if profile is None:
                return 0
            self._profiles[profile.id] = profile.model_copy(
                update={**fields, "updated_at": utcnow()}
            )
            return 1

    async def delete_user(self, user_id: UUID) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            # ON DELETE CASCADE
            for profile_id in [
                p.id for p in self._profiles.values() if p.user_id == user_id
            ]:
                del self._profiles[profile_id]
            return True

    @property
    def user_count(self) -> int:
        return len(self._users)

    @property
    def profile_count(self) -> int:
        return len(self._profiles)
