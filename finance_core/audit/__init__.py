"""Audit logging package."""

from finance_core.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
