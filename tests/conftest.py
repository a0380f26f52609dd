"""Shared fixtures."""

import pytest

from finance_core.audit import AuditLogger

from tests.builders import NOW


@pytest.fixture
def audit_logger():
    return AuditLogger(history=50)


@pytest.fixture
def clock():
    return lambda: NOW
