# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Store interfaces and records consumed by the monitoring engine.

The engine does not own persistence. It reads program data and writes
alerts, notifications and audit entries through the Protocols below. The
SQLAlchemy adapter in programwatch.infrastructure.database implements them;
tests use an in-memory implementation.

Every method that touches tenant data takes partner_id and must filter on
it in the query itself. Callers never receive another tenant's rows and
never filter after the fact.

A unit of work groups the stores over one transaction. Entering the context
begins it; a clean exit commits; an exception rolls back. Each tenant scan
and each alert write runs in its own unit of work.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
    RelatedEntityType,
)


class CohortStatus(str, Enum):
    """Cohort lifecycle states."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle states."""

    ENROLLED = "ENROLLED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DROPPED_OUT = "DROPPED_OUT"
    WITHDRAWN = "WITHDRAWN"


class SurveyStatus(str, Enum):
    """Survey publication states."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"


class NotificationType(str, Enum):
    """Notification categories."""

    ALERT = "ALERT"
    INFO = "INFO"


class NotificationPriority(str, Enum):
    """Notification priorities."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# =============================================================================
# Read-side records
# =============================================================================


@dataclass(frozen=True)
class CohortRecord:
    """A cohort with its active enrollment count."""

    id: str
    name: str
    status: CohortStatus
    active_enrollment_count: int = 0


@dataclass(frozen=True)
class EnrollmentRecord:
    """An enrollment joined with its participant and cohort state.

    latest_attendance_date is the most recent session date recorded for the
    enrollment, or None when it has no attendance at all.
    """

    id: str
    participant_id: str
    participant_name: str
    cohort_id: str
    cohort_name: str
    cohort_status: CohortStatus
    status: EnrollmentStatus
    latest_attendance_date: date | None = None


@dataclass(frozen=True)
class ScoreRecord:
    """A recorded assessment score."""

    id: str
    enrollment_id: str
    participant_id: str
    module_id: str
    assessment_name: str
    score_value: Decimal
    max_score: Decimal | None = None
    assessment_date: date | None = None


@dataclass(frozen=True)
class SurveyRecord:
    """A survey header."""

    id: str
    title: str
    survey_type: str
    status: SurveyStatus
    created_at: datetime


@dataclass(frozen=True)
class SurveyCompletionStats:
    """Response counts of one published survey."""

    survey_id: str
    title: str
    total_responses: int
    submitted_responses: int

    @property
    def pending_responses(self) -> int:
        """Responses that were started but never submitted."""
        return self.total_responses - self.submitted_responses


@dataclass(frozen=True)
class MonitorActor:
    """The actor designated to receive a partner's monitoring alerts."""

    id: str
    partner_id: str
    email: str
    full_name: str = ""


# =============================================================================
# Write-side records
# =============================================================================


@dataclass(frozen=True)
class AlertRecord:
    """A persisted alert.

    Attributes:
        id: Stable unique alert id.
        partner_id: Owning tenant.
        alert_type: Classification tag.
        severity: Severity level.
        title: Human-readable title.
        description: Rendered description.
        issue_count: Magnitude of the problem.
        call_to_action: Relative action reference.
        related_entity_type: Kind of entity that triggered the alert.
        related_entity_id: Id of that entity.
        details: Detector-specific facts.
        is_resolved: Whether the alert has been resolved.
        resolved_by: Actor who resolved it.
        resolved_at: When it was resolved.
        created_at: When it was raised.
    """

    id: str
    partner_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    issue_count: int
    related_entity_type: RelatedEntityType
    related_entity_id: str
    created_at: datetime
    call_to_action: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    is_resolved: bool = False
    resolved_by: str | None = None
    resolved_at: datetime | None = None


@dataclass(frozen=True)
class NotificationDraft:
    """A notification to be written for one recipient."""

    recipient_id: str
    partner_id: str
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority
    alert_id: str | None = None


@dataclass(frozen=True)
class NotificationRecord:
    """A persisted notification."""

    id: str
    recipient_id: str
    partner_id: str
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority
    created_at: datetime
    is_read: bool = False
    alert_id: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """An audit log line."""

    actor_id: str | None
    actor_role: str
    action: str
    entity_type: str
    description: str
    entity_id: str | None = None
    partner_id: str | None = None


# =============================================================================
# Store protocols
# =============================================================================


class MonitoringDataSource(Protocol):
    """Tenant-scoped, read-only queries over program data."""

    async def get_active_cohorts(self, partner_id: str) -> list[CohortRecord]:
        """Active cohorts of the partner with their active enrollment counts."""
        ...

    async def get_latest_cohort_attendance(
        self, partner_id: str, cohort_id: str
    ) -> date | None:
        """Latest session date over the cohort's active enrollments."""
        ...

    async def get_active_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        """Active enrollments of the partner's participants."""
        ...

    async def get_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        """All enrollments of the partner's participants, any status."""
        ...

    async def get_active_cohort_ids(self, partner_id: str) -> set[str]:
        """Ids of the partner's active cohorts."""
        ...

    async def get_scores(self, partner_id: str) -> list[ScoreRecord]:
        """All scores recorded against the partner's enrollments."""
        ...

    async def has_attendance_on(
        self,
        partner_id: str,
        enrollment_id: str,
        module_id: str,
        session_date: date,
    ) -> bool:
        """Whether an attendance record exists for that enrollment, module and date."""
        ...

    async def get_published_survey_stats(
        self, partner_id: str
    ) -> list[SurveyCompletionStats]:
        """Response counts for each of the partner's published surveys."""
        ...

    async def get_draft_surveys_created_since(
        self, partner_id: str, since: datetime
    ) -> list[SurveyRecord]:
        """Draft surveys of the partner created after the given time."""
        ...


class PartnerDirectory(Protocol):
    """Tenant enumeration and actor resolution."""

    async def list_partner_ids(self) -> list[str]:
        """Ids of every partner to be scanned."""
        ...

    async def find_monitor(self, partner_id: str) -> MonitorActor | None:
        """The partner's designated monitoring actor, if any."""
        ...


class AlertStore(Protocol):
    """Tenant-scoped alert persistence."""

    async def find_unresolved(
        self,
        partner_id: str,
        alert_type: AlertType,
        related_entity_id: str,
    ) -> AlertRecord | None:
        """The unresolved alert for the dedup key, if one exists."""
        ...

    async def add(
        self,
        partner_id: str,
        candidate: CandidateAlert,
        created_at: datetime,
    ) -> AlertRecord:
        """Persist a new open alert.

        Raises:
            ConflictError: If an unresolved alert already exists for the
                same key (unique constraint).
        """
        ...

    async def get(self, partner_id: str, alert_id: str) -> AlertRecord | None:
        """The partner's alert with that id, if any."""
        ...

    async def exists(self, alert_id: str) -> bool:
        """Whether an alert with that id exists for any partner.

        Only used to classify a failed tenant-scoped lookup; never returns
        alert content.
        """
        ...

    async def list_for_partner(
        self,
        partner_id: str,
        resolved: bool | None = None,
    ) -> list[AlertRecord]:
        """The partner's alerts, optionally filtered by resolution state."""
        ...

    async def mark_resolved(
        self,
        partner_id: str,
        alert_id: str,
        actor_id: str,
        resolved_at: datetime,
    ) -> AlertRecord | None:
        """Resolve an open alert.

        Returns:
            The updated alert, or None if it was not open (already resolved
            by a concurrent writer, or missing).
        """
        ...

    async def count_unresolved_by_severity(
        self, partner_id: str
    ) -> dict[AlertSeverity, int]:
        """Unresolved alert counts per severity."""
        ...


class NotificationStore(Protocol):
    """Notification persistence."""

    async def add(self, draft: NotificationDraft) -> NotificationRecord:
        """Persist a notification."""
        ...


class AuditLogStore(Protocol):
    """Audit log persistence."""

    async def add(self, entry: AuditEntry) -> None:
        """Append an audit entry."""
        ...


class UnitOfWork(Protocol):
    """Stores bound to one transaction."""

    source: MonitoringDataSource
    directory: PartnerDirectory
    alerts: AlertStore
    notifications: NotificationStore
    audit: AuditLogStore

    async def commit(self) -> None:
        """Commit the work done so far."""
        ...

    async def rollback(self) -> None:
        """Discard the work done so far."""
        ...


UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
