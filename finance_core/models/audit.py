"""
Audit Models

Every write against a store, every store-mode decision and every rejected
request produces an audit event.

DESIGN DECISION: Audit events are append-only. They describe what happened
to an entity, never the entity's full state (no credential hashes, no
free-text profile goals).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finance_core.models.clock import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Store lifecycle
    STORE_MODE_SELECTED = "store_mode_selected"
    LIVE_STORE_UNAVAILABLE = "live_store_unavailable"

    # User domain
    USER_REGISTERED = "user_registered"
    REGISTRATION_CONFLICT = "registration_conflict"
    USER_UPDATED = "user_updated"
    PROFILE_UPDATED = "profile_updated"
    USER_DELETED = "user_deleted"

    # Transaction domain
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    INTERNAL_ERROR = "internal_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utcnow)

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'transaction', 'store')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.user_registered(user_id, mode)
        event = AuditEventBuilder.transaction_written(
            AuditEventType.TRANSACTION_DELETED, transaction_id, user_id
        )
    """

    @staticmethod
    def store_mode_selected(domain: str, mode: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_MODE_SELECTED,
            entity_type="store",
            entity_id=domain,
            description=f"{domain} store running in {mode} mode",
            details={"domain": domain, "mode": mode},
        )

    @staticmethod
    def live_store_unavailable(domain: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIVE_STORE_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            entity_id=domain,
            description=f"Live {domain} store unreachable, using in-memory fallback",
            error_message=reason,
        )

    @staticmethod
    def user_registered(user_id: UUID, mode: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=str(user_id),
            description="User registered with default profile",
            details={"mode": mode},
        )

    @staticmethod
    def registration_conflict(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Registration rejected: email already in use",
            details={"email_domain": email.rsplit("@", 1)[-1]},
        )

    @staticmethod
    def user_updated(user_id: UUID, fields: list[str], rows: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=str(user_id),
            description=f"User update affected {rows} row(s)",
            details={"fields": fields, "rows_affected": rows},
        )

    @staticmethod
    def profile_updated(user_id: UUID, fields: list[str], rows: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="profile",
            entity_id=str(user_id),
            description=f"Profile update affected {rows} row(s)",
            details={"fields": fields, "rows_affected": rows},
        )

    @staticmethod
    def user_deleted(user_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=str(user_id),
            description="User and profile deleted",
        )

    @staticmethod
    def transaction_written(
        event_type: AuditEventType,
        transaction_id: str,
        user_id: str,
        amount: Optional[float] = None,
    ) -> AuditEvent:
        action = event_type.value.rsplit("_", 1)[-1]
        details: dict[str, Any] = {"user_id": user_id}
        if amount is not None:
            details["amount"] = amount
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {action}",
            details=details,
        )

    @staticmethod
    def validation_failed(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"Validation failed with {len(issues)} issue(s)",
            details={"issues": issues},
        )

    @staticmethod
    def internal_error(
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTERNAL_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Internal error during {operation}",
            error_message=error_message,
            details=details or {},
        )
