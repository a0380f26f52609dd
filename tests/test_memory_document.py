"""
Tests for the in-memory document emulator (transaction domain).
"""

from datetime import timedelta

import pytest

from finance_core.models.transaction import (
    TransactionCategory,
    TransactionFilter,
    TransactionType,
)
from finance_core.services.storage import InMemoryTransactionRepository, StoreMode

from tests.builders import NOW, transaction_input


@pytest.fixture
def repository():
    return InMemoryTransactionRepository()


class TestWrites:
    """Tests for insert, update and delete."""

    def test_mode(self, repository):
        """Test that the emulator reports fallback mode."""
        assert repository.mode == StoreMode.FALLBACK

    async def test_insert_assigns_id_and_timestamps(self, repository):
        """Test that ids are unique and timestamps set."""
        first = await repository.insert(transaction_input(10))
        second = await repository.insert(transaction_input(10))
        assert first.id != second.id
        assert first.created_at == first.updated_at
        assert repository.document_count == 2

    async def test_insert_defaults_date_to_now(self, repository):
        """Test that an omitted date becomes the insert time."""
        created = await repository.insert(transaction_input(10, days_ago=None))
        assert created.date == created.created_at

    async def test_stored_amount_is_normalized(self, repository):
        """Test that a $50 expense persists as -50."""
        created = await repository.insert(transaction_input(50, type="expense"))
        stored = await repository.find_by_id(created.id)
        assert stored.amount == -50

    async def test_update_replaces_content(self, repository):
        """Test full replacement keeping id and created_at."""
        created = await repository.insert(transaction_input(10, description="old"))
        updated = await repository.update_by_id(
            created.id,
            transaction_input(99, type="income", category="salary", description="new"),
        )
        assert updated.id == created.id
        assert updated.description == "new"
        assert updated.amount == 99
        assert updated.category == TransactionCategory.SALARY
        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at

    async def test_update_without_date_keeps_stored_date(self, repository):
        """Test that an omitted date on update keeps the stored date."""
        created = await repository.insert(transaction_input(10, days_ago=5))
        updated = await repository.update_by_id(
            created.id, transaction_input(20, days_ago=None)
        )
        assert updated.date == created.date

    async def test_update_unknown(self, repository):
        """Test that updating an unknown id returns None."""
        assert await repository.update_by_id("missing", transaction_input(1)) is None

    async def test_delete_returns_record(self, repository):
        """Test delete, then delete again."""
        created = await repository.insert(transaction_input(10))
        deleted = await repository.delete_by_id(created.id)
        assert deleted.id == created.id
        assert await repository.delete_by_id(created.id) is None
        assert await repository.find_by_id(created.id) is None


class TestFind:
    """Tests for filtered, paginated listing."""

    async def test_sorted_newest_first(self, repository):
        """Test date descending order."""
        for days in (3, 1, 2):
            await repository.insert(transaction_input(days, days_ago=days))
        items, total = await repository.find(TransactionFilter(user_id="u1"), 1, 10)
        assert total == 3
        assert [t.date for t in items] == sorted((t.date for t in items), reverse=True)

    async def test_total_counts_before_pagination(self, repository):
        """Test that total covers the whole filtered set."""
        for i in range(7):
            await repository.insert(transaction_input(i + 1, days_ago=i))
        items, total = await repository.find(TransactionFilter(user_id="u1"), 2, 3)
        assert total == 7
        assert len(items) == 3

    async def test_page_past_the_end(self, repository):
        """Test that a page beyond the data is empty, not an error."""
        await repository.insert(transaction_input(1))
        items, total = await repository.find(TransactionFilter(user_id="u1"), 5, 10)
        assert items == []
        assert total == 1

    async def test_filters_are_conjunctive(self, repository):
        """Test category, type, user and date filters together."""
        await repository.insert(transaction_input(10, category="food", days_ago=1))
        await repository.insert(transaction_input(10, category="food", days_ago=40))
        await repository.insert(transaction_input(10, category="bills", days_ago=1))
        await repository.insert(
            transaction_input(10, type="income", category="food", days_ago=1)
        )
        await repository.insert(transaction_input(10, category="food", user_id="u2"))

        criteria = TransactionFilter(
            user_id="u1",
            category=TransactionCategory.FOOD,
            type=TransactionType.EXPENSE,
            date_from=NOW - timedelta(days=30),
            date_to=NOW,
        )
        items, total = await repository.find(criteria, 1, 10)
        assert total == 1
        assert items[0].category == TransactionCategory.FOOD

    async def test_pages_concatenate_to_full_set(self, repository):
        """Test that all pages together reproduce the filtered set exactly once."""
        # Repeated dates exercise the tie order across page boundaries.
        for i in range(23):
            await repository.insert(transaction_input(i + 1, days_ago=i // 3))

        criteria = TransactionFilter(user_id="u1")
        full, total = await repository.find(criteria, 1, 100)

        collected = []
        page = 1
        while True:
            items, _ = await repository.find(criteria, page, 5)
            if not items:
                break
            collected.extend(items)
            page += 1

        assert total == 23
        assert [t.id for t in collected] == [t.id for t in full]
        assert len({t.id for t in collected}) == 23


class TestGrouping:
    """Tests for the two grouping operations."""

    async def test_group_by_type(self, repository):
        """Test signed totals, counts and means per type."""
        await repository.insert(transaction_input(100, type="income", category="salary"))
        await repository.insert(transaction_input(40, type="expense"))
        await repository.insert(transaction_input(20, type="expense"))

        groups = await repository.group_by_type("u1", NOW - timedelta(days=7), NOW)
        income = groups[TransactionType.INCOME]
        expense = groups[TransactionType.EXPENSE]
        assert (income.total, income.count, income.avg) == (100, 1, 100)
        assert (expense.total, expense.count, expense.avg) == (-60, 2, -30)

    async def test_group_by_type_window_and_user(self, repository):
        """Test that rows outside the window or for other users are ignored."""
        await repository.insert(transaction_input(5, days_ago=8))
        await repository.insert(transaction_input(5, user_id="u2"))
        groups = await repository.group_by_type("u1", NOW - timedelta(days=7), NOW)
        assert groups == {}

    async def test_group_by_category_and_type_order(self, repository):
        """Test total descending, ties broken by category."""
        await repository.insert(transaction_input(30, type="income", category="gift"))
        await repository.insert(transaction_input(10, category="food"))
        await repository.insert(transaction_input(10, category="bills"))
        await repository.insert(transaction_input(5, category="food"))

        groups = await repository.group_by_category_and_type(
            "u1", NOW - timedelta(days=7), NOW
        )
        assert [(g.category.value, g.type.value, g.total, g.count) for g in groups] == [
            ("gift", "income", 30, 1),
            ("bills", "expense", -10, 1),
            ("food", "expense", -15, 2),
        ]
