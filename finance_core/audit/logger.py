"""
Audit Logger

DESIGN DECISION: Every store-mode decision and every write against a store
is logged as a structured audit event. This provides:
1. Traceability of user and transaction changes
2. A record of which processes ran on the non-durable fallback
3. Context for internal errors

The audit logger:
- Is async so callers await it like any other store call
- Never raises: a failing log write must not fail the request
- Optionally keeps the most recent events in memory for inspection
"""

from collections import deque
from typing import Optional
from uuid import UUID

import structlog

from finance_core.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (always)
    2. A bounded in-memory buffer of recent events (when history > 0)
    """

    def __init__(self, history: int = 100):
        """
        Initialize audit logger.

        Args:
            history: How many recent events to keep in memory.
                    0 keeps none.
        """
        self._recent: Optional[deque] = deque(maxlen=history) if history > 0 else None
        self._logger = structlog.get_logger("finance_core.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written, False if logging failed.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

        if self._recent is not None:
            self._recent.append(event)
        return True

    def recent_events(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events first; empty when no history is kept."""
        if self._recent is None:
            return []
        events = list(reversed(self._recent))
        return events[:limit] if limit is not None else events

    async def log_store_mode(self, domain: str, mode: str) -> None:
        """Log which store a domain ended up on."""
        await self.log(AuditEventBuilder.store_mode_selected(domain, mode))

    async def log_live_store_unavailable(self, domain: str, reason: str) -> None:
        """Log a failed live connection that triggered the fallback."""
        await self.log(AuditEventBuilder.live_store_unavailable(domain, reason))

    async def log_user_registered(self, user_id: UUID, mode: str) -> None:
        await self.log(AuditEventBuilder.user_registered(user_id, mode))

    async def log_validation_failed(self, entity_type: str, issues: list[dict]) -> None:
        """Log a rejected request with every issue found."""
        await self.log(AuditEventBuilder.validation_failed(entity_type, issues))

    async def log_internal_error(
        self,
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an unexpected store fault."""
        await self.log(AuditEventBuilder.internal_error(operation, error_message, details))
