"""
Timestamp helpers shared by every store.

All timestamps are naive UTC with millisecond precision: the document
store keeps BSON datetimes (milliseconds, no tzinfo) and the relational
store keeps naive DATETIME columns, so records read back identically
whichever store produced them.
"""

from datetime import datetime, timezone


def to_storage_precision(value: datetime) -> datetime:
    """Convert a datetime to naive UTC truncated to milliseconds."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utcnow() -> datetime:
    """Current time as stored by the finance stores."""
    return to_storage_precision(datetime.now(timezone.utc))
