"""
MongoDB Transaction Store (live document path)

Motor collection of camelCase transaction documents. Summary figures come
from server-side aggregation pipelines; listing is a sorted, skipped and
limited cursor plus a count over the same query.

Indexes:
- (userId, date desc): listing and windowed aggregation
- (userId, category): category filter
- (userId, type): type filter
"""

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING

from finance_core.models.clock import utcnow
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


LISTING_SORT = [("date", DESCENDING), ("_id", ASCENDING)]


def _object_id(transaction_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(transaction_id)
    except (InvalidId, TypeError):
        return None


def _to_transaction(document: dict[str, Any]) -> Transaction:
    return Transaction.model_validate({**document, "id": str(document["_id"])})


def _query(filter: TransactionFilter) -> dict[str, Any]:
    query: dict[str, Any] = {"userId": filter.user_id}
    if filter.category:
        query["category"] = filter.category.value
    if filter.type:
        query["type"] = filter.type.value

    date_range = {}
    if filter.date_from:
        date_range["$gte"] = filter.date_from
    if filter.date_to:
        date_range["$lte"] = filter.date_to
    if date_range:
        query["date"] = date_range
    return query


def _window(user_id: str, start: datetime, end: datetime) -> dict[str, Any]:
    return {"$match": {"userId": user_id, "date": {"$gte": start, "$lte": end}}}


class MongoTransactionRepository(TransactionRepositoryInterface):
    """Live transaction store over a motor collection."""

    mode = StoreMode.LIVE

    def __init__(self, collection, client=None):
        self._collection = collection
        self._client = client

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("userId", ASCENDING), ("date", DESCENDING)])
        await self._collection.create_index([("userId", ASCENDING), ("category", ASCENDING)])
        await self._collection.create_index([("userId", ASCENDING), ("type", ASCENDING)])

    async def insert(self, data: TransactionInput) -> Transaction:
        now = utcnow()
        object_id = ObjectId()
        transaction = Transaction.from_input(
            str(object_id),
            data,
            date=data.date or now,
            created_at=now,
            updated_at=now,
        )
        await self._collection.insert_one({"_id": object_id, **transaction.to_document()})
        return transaction

    async def find(
        self,
        filter: TransactionFilter,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:
        query = _query(filter)
        cursor = self._collection.find(
            query,
            sort=LISTING_SORT,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        items = [_to_transaction(document) async for document in cursor]
        total = await self._collection.count_documents(query)
        return items, total

    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        object_id = _object_id(transaction_id)
        if object_id is None:
            return None
        document = await self._collection.find_one({"_id": object_id})
        return _to_transaction(document) if document else None

    async def update_by_id(
        self,
        transaction_id: str,
        data: TransactionInput,
    ) -> Optional[Transaction]:
        existing = await self.find_by_id(transaction_id)
        if existing is None:
            return None

        replacement = Transaction.from_input(
            existing.id,
            data,
            date=data.date or existing.date,
            created_at=existing.created_at,
            updated_at=utcnow(),
        )
        result = await self._collection.replace_one(
            {"_id": ObjectId(existing.id)},
            replacement.to_document(),
        )
        # Deleted between the read and the replace.
        if result.matched_count == 0:
            return None
        return replacement

    async def delete_by_id(self, transaction_id: str) -> Optional[Transaction]:
        object_id = _object_id(transaction_id)
        if object_id is None:
            return None
        document = await self._collection.find_one_and_delete({"_id": object_id})
        return _to_transaction(document) if document else None

    async def group_by_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> dict[TransactionType, TypeTotals]:
        pipeline = [
            _window(user_id, start, end),
            {
                "$group": {
                    "_id": "$type",
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                    "avg": {"$avg": "$amount"},
                }
            },
        ]
        groups = {}
        async for row in self._collection.aggregate(pipeline):
            txn_type = TransactionType(row["_id"])
            groups[txn_type] = TypeTotals(
                type=txn_type,
                total=row["total"],
                count=row["count"],
                avg=row["avg"],
            )
        return groups

    async def group_by_category_and_type(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CategoryTypeTotal]:
        pipeline = [
            _window(user_id, start, end),
            {
                "$group": {
                    "_id": {"category": "$category", "type": "$type"},
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"total": -1}},
        ]
        groups = [
            CategoryTypeTotal(
                category=row["_id"]["category"],
                type=row["_id"]["type"],
                total=row["total"],
                count=row["count"],
            )
            async for row in self._collection.aggregate(pipeline)
        ]
        return order_category_groups(groups)

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
