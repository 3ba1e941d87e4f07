# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A pinned clock so time windows are deterministic
- An in-memory database with its unit-of-work factory
- Engine components wired against that database
"""

from datetime import datetime, timezone

import pytest

from programwatch.core.monitoring.audit import AuditTrail
from programwatch.core.monitoring.lifecycle import AlertLifecycleManager
from programwatch.core.monitoring.notifier import NotificationEmitter
from programwatch.core.monitoring.service import MonitoringService
from tests.fakes import FakeDatabase

# Monday 2025-06-16 12:00 UTC
FIXED_NOW = datetime(2025, 6, 16, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    """Provide the pinned reference time."""
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime):
    """Provide a clock that always returns the pinned time."""
    return lambda: now


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def db() -> FakeDatabase:
    """Provide an empty in-memory database."""
    return FakeDatabase()


@pytest.fixture
def uow_factory(db: FakeDatabase):
    """Provide the unit-of-work factory over the in-memory database."""
    return db.unit_of_work


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def emitter(uow_factory) -> NotificationEmitter:
    """Provide a notification emitter with default thresholds."""
    return NotificationEmitter(uow_factory)


@pytest.fixture
def audit(uow_factory) -> AuditTrail:
    """Provide an audit trail."""
    return AuditTrail(uow_factory)


@pytest.fixture
def lifecycle(uow_factory, emitter, audit, clock) -> AlertLifecycleManager:
    """Provide a lifecycle manager wired to the emitter and audit trail."""
    return AlertLifecycleManager(uow_factory, emitter, audit, clock=clock)


@pytest.fixture
def service(uow_factory, lifecycle, emitter, audit, clock) -> MonitoringService:
    """Provide a monitoring service with a short per-partner timeout."""
    return MonitoringService(
        uow_factory,
        lifecycle,
        emitter=emitter,
        audit=audit,
        clock=clock,
        tenant_timeout_seconds=1.0,
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_partner_id() -> str:
    """Provide a sample partner ID for testing."""
    return "P-001"


@pytest.fixture
def other_partner_id() -> str:
    """Provide a second partner ID for isolation tests."""
    return "P-002"
