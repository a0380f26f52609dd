"""
Tests for the in-memory relational emulator (user domain).
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from finance_core.services.storage import (
    ConflictError,
    InMemoryUserRepository,
    StoreMode,
)


@pytest.fixture
def repository():
    return InMemoryUserRepository()


async def register(repository, email="dana@example.com", name="Dana"):
    user, _ = await repository.create_user_with_profile(email, "hash", name)
    return user


class TestRegistration:
    """Tests for user + profile creation."""

    def test_mode(self, repository):
        """Test that the emulator reports fallback mode."""
        assert repository.mode == StoreMode.FALLBACK

    async def test_creates_user_with_default_profile(self, repository):
        """Test that the profile is created with the user."""
        user, profile = await repository.create_user_with_profile(
            "Dana@Example.com", "hash", "Dana"
        )
        assert user.email == "dana@example.com"
        assert user.age is None
        assert user.is_active is True
        assert profile.user_id == user.id
        assert profile.monthly_income == Decimal("0")
        assert profile.spending_limit == Decimal("0")
        assert repository.user_count == 1
        assert repository.profile_count == 1

    async def test_duplicate_email_conflicts(self, repository):
        """Test the unique email index, case-insensitively."""
        await register(repository)
        with pytest.raises(ConflictError):
            await repository.create_user_with_profile("DANA@example.com", "h2", "Other")
        assert repository.user_count == 1
        assert repository.profile_count == 1

    async def test_concurrent_registrations_with_same_email(self, repository):
        """Test that exactly one of many concurrent registrations wins."""
        results = await asyncio.gather(
            *[register(repository) for _ in range(10)],
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 9
        assert all(isinstance(r, ConflictError) for r in failures)
        assert repository.user_count == 1

    async def test_find_by_email(self, repository):
        """Test lookup including the credential hash."""
        user = await register(repository)
        found = await repository.find_user_by_email("DANA@EXAMPLE.COM")
        assert found.id == user.id
        assert found.password_hash == "hash"
        assert await repository.find_user_by_email("nobody@example.com") is None

    def test_profile_requires_owner(self, repository):
        """Test that a profile cannot exist without its user."""
        with pytest.raises(ValueError):
            repository.insert_profile(uuid4())


class TestJoinRead:
    """Tests for the user-with-profile read."""

    async def test_merges_profile(self, repository):
        """Test that profile values appear on the merged record."""
        user = await register(repository)
        await repository.update_profile(user.id, {"monthly_income": Decimal("2500")})
        record = await repository.get_user_with_profile(user.id)
        assert record.email == user.email
        assert record.monthly_income == Decimal("2500")

    async def test_missing_profile_gives_defaults(self, repository):
        """Test left join semantics for a user without a profile row."""
        user = repository.insert_user("erin@example.com", "hash", "Erin")
        record = await repository.get_user_with_profile(user.id)
        assert record is not None
        assert record.monthly_income == Decimal("0")
        assert record.financial_goals is None

    async def test_inactive_user_is_hidden(self, repository):
        """Test that only active users are returned."""
        user = await register(repository)
        await repository.update_user(user.id, {"is_active": False})
        assert await repository.get_user_with_profile(user.id) is None
        assert (await repository.get_user(user.id)).is_active is False

    async def test_unknown_user(self, repository):
        """Test that an unknown id yields None."""
        assert await repository.get_user_with_profile(uuid4()) is None


class TestMergeUpdates:
    """Tests for merge-on-present updates."""

    async def test_subset_update_leaves_other_fields_identical(self, repository):
        """Test that unspecified fields keep their exact previous values."""
        user = await register(repository)
        await repository.update_profile(
            user.id,
            {"monthly_income": Decimal("4000.00"), "financial_goals": "house"},
        )
        before = await repository.get_user_with_profile(user.id)

        rows = await repository.update_profile(user.id, {"spending_limit": Decimal("900")})
        after = await repository.get_user_with_profile(user.id)

        assert rows == 1
        assert after.spending_limit == Decimal("900")
        assert after.monthly_income == before.monthly_income
        assert after.financial_goals == before.financial_goals
        assert after.name == before.name

    async def test_user_update_refreshes_updated_at_only(self, repository):
        """Test that created_at survives an update."""
        user = await register(repository)
        await repository.update_user(user.id, {"age": 40})
        updated = await repository.get_user(user.id)
        assert updated.age == 40
        assert updated.name == user.name
        assert updated.created_at == user.created_at
        assert updated.updated_at >= user.updated_at

    async def test_unknown_id_affects_no_rows(self, repository):
        """Test that updating a missing user is a no-op, not an error."""
        assert await repository.update_user(uuid4(), {"name": "Ghost"}) == 0
        assert await repository.update_profile(uuid4(), {"spending_limit": Decimal("1")}) == 0

    async def test_unknown_column_rejected(self, repository):
        """Test that only updatable columns are accepted."""
        user = await register(repository)
        with pytest.raises(ValueError):
            await repository.update_user(user.id, {"email": "x@example.com"})

    async def test_returned_records_are_copies(self, repository):
        """Test that callers cannot mutate stored rows."""
        user = await register(repository)
        copy = await repository.get_user(user.id)
        copy.name = "Changed"
        assert (await repository.get_user(user.id)).name == "Dana"


class TestDelete:
    """Tests for user deletion."""

    async def test_delete_cascades_to_profile(self, repository):
        """Test that the profile goes with its user."""
        user = await register(repository)
        assert await repository.delete_user(user.id) is True
        assert repository.user_count == 0
        assert repository.profile_count == 0
        assert await repository.find_user_by_email(user.email) is None

    async def test_delete_unknown(self, repository):
        """Test deleting an unknown id."""
        assert await repository.delete_user(uuid4()) is False

    async def test_email_reusable_after_delete(self, repository):
        """Test that a deleted user's email can register again."""
        user = await register(repository)
        await repository.delete_user(user.id)
        again = await register(repository)
        assert again.id != user.id
