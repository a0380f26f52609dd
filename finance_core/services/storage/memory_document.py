"""
In-Memory Document Emulator (transaction domain)

Fallback for the MongoDB transaction store. Transactions live in an
insertion-ordered dict owned by one repository instance. Filtering,
offset pagination and the two grouping operations reproduce what the
live aggregation pipelines return, so summaries built on top are the
same in either mode.

Writes run under the repository lock. Reads take a snapshot of the
collection under the same lock and do their work on the snapshot, so a
read never sees half of a write.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Optional
from uuid import uuid4

from finance_core.models.clock import to_storage_precision, utcnow
from finance_core.models.summary import CategoryTypeTotal, TypeTotals
from finance_core.models.transaction import (
    Transaction,
    TransactionFilter,
    TransactionInput,
    TransactionType,
)
from finance_core.services.storage.interface import (
    StoreMode,
    TransactionRepositoryInterface,
    order_category_groups,
)


class InMemoryTransactionRepository(TransactionRepositoryInterface):
    """Process-local, non-durable transaction store."""

    mode = StoreMode.FALLBACK

    def __init__(self):
        self._documents: dict[str, Transaction] = {}
        self._lock = threading.RLock()

    def _snapshot(self) -> list[Transaction]:
        with self._lock:
            return list(self._documents.values())

    def _in_window(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        # Bounds at stored precision, as BSON dates are.
        start, end = to_storage_precision(start), to_storage_precision(end)
        return [
            t for t in self._snapshot()
            if t.user_id == user_id and start <= t.date <= end
        ]

    async def insert(self, data: TransactionInput) -> Transaction:
        now = utcnow()
        transaction = Transaction.from_input(
            uuid4().hex,
            data,
            date=data.date or now,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._documents[transaction.id] = transaction
        return transaction.model_copy(deep=True)

    async def find(
        self,
        filter: TransactionFilter,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:
        matching = [t for t in self._snapshot() if filter.matches(t)]
        # Stable sort: equal dates keep insertion order.
        matching.sort(key=lambda t: t.date, reverse=True)

        skip = (page - 1) * page_size
        items = matching[skip:skip + page_size]
        return [t.model_copy(deep=True) for t in items], len(matching)

    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            transaction = self._documents.get(transaction_id)
            return transaction.model_copy(deep=True) if transaction else None

    async def update_by_id(
        self,
        transaction_id: str,
        data: TransactionInput,
    ) -> Optional[Transaction]:
        with self._lock:
            existing = self._documents.get(transaction_id)
            if existing is None:
                return None
            replacement = Transaction.from_input(
                transaction_id,
                data,
                date=data.date or existing.date,
                created_at=existing.created_at,
                updated_at=utcnow(),
            )
            self._documents[transaction_id] = replacement
            return replacement.model_copy(deep=True)

    async def delete_by_id(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            return self._documents.pop(transaction_id, None)

    async def group_by_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> dict[TransactionType, TypeTotals]:
        totals: dict[TransactionType, float] = defaultdict(float)
        counts: dict[TransactionType, int] = defaultdict(int)

        for transaction in self._in_window(user_id, start, end):
            totals[transaction.type] += transaction.amount
            counts[transaction.type] += 1

        return {
            t: TypeTotals(
                type=t,
                total=totals[t],
                count=counts[t],
                avg=totals[t] / counts[t],
            )
            for t in counts
        }

    async def group_by_category_and_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CategoryTypeTotal]:
        totals: dict[tuple, float] = defaultdict(float)
        counts: dict[tuple, int] = defaultdict(int)

        for transaction in self._in_window(user_id, start, end):
            key = (transaction.category, transaction.type)
            totals[key] += transaction.amount
            counts[key] += 1

        groups = [
            CategoryTypeTotal(
                category=category,
                type=txn_type,
                total=totals[(category, txn_type)],
                count=counts[(category, txn_type)],
            )
            for category, txn_type in counts
        ]
        return order_category_groups(groups)

    @property
    def document_count(self) -> int:
        return len(self._documents)
