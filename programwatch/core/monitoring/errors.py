# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the monitoring and alerting engine.

Lifecycle errors (NotFoundError, AccessDeniedError, ConflictError) are
caller contract violations and propagate to whoever called raise_alert(),
resolve_alert() or get_alert(). TransientStoreError marks a store outage
during a scan; the scheduler logs it per tenant and moves on.

NotFoundError and AccessDeniedError share AlertLookupError and the same
public message so a caller cannot use the difference to enumerate alert ids
of other tenants. The distinction is kept for logging and auditing only.
"""

from datetime import datetime


class MonitoringError(Exception):
    """Base exception for monitoring operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class AlertLookupError(MonitoringError):
    """An alert could not be served to the requesting tenant."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class NotFoundError(AlertLookupError):
    """The alert does not exist."""


class AccessDeniedError(AlertLookupError):
    """The alert exists but belongs to a different partner.

    Attributes:
        partner_id: The partner that attempted the access.
    """

    def __init__(self, alert_id: str, partner_id: str) -> None:
        super().__init__(alert_id)
        self.partner_id = partner_id


class ConflictError(MonitoringError):
    """A write conflicts with the current alert state.

    Raised for a second resolve of the same alert (carrying the existing
    resolution metadata) and for a duplicate unresolved alert that reached
    persistence despite the dedup check.

    Attributes:
        alert_id: Alert involved in the conflict, when known.
        resolved_by: Actor of the first resolution, for double-resolve.
        resolved_at: Time of the first resolution, for double-resolve.
    """

    def __init__(
        self,
        message: str,
        alert_id: str | None = None,
        resolved_by: str | None = None,
        resolved_at: datetime | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.alert_id = alert_id
        self.resolved_by = resolved_by
        self.resolved_at = resolved_at


class TransientStoreError(MonitoringError):
    """The data store was unavailable during an operation."""
