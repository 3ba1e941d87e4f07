# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory implementation of the monitoring store interfaces.

FakeDatabase holds program data, alerts, notifications and audit entries
for any number of partners. unit_of_work() yields a FakeUnitOfWork whose
writes are staged and only become visible on commit, mirroring the SQL
adapter's transaction behavior closely enough for the engine's contracts:

- every read is filtered by partner id and recorded in ``queries``
- a second unresolved alert for the same key is rejected with ConflictError
  (the partial unique index)
- resolving uses a conditional update on committed state

Failure injection: ``failing_partners`` raise TransientStoreError on any
read, ``slow_partners`` sleep before each read, ``fail_notifications`` and
``fail_audit`` make those writes raise.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from programwatch.core.monitoring.errors import ConflictError, TransientStoreError
from programwatch.core.monitoring.sources import (
    AlertRecord,
    AuditEntry,
    CohortRecord,
    CohortStatus,
    EnrollmentRecord,
    EnrollmentStatus,
    MonitorActor,
    NotificationDraft,
    NotificationRecord,
    ScoreRecord,
    SurveyCompletionStats,
    SurveyRecord,
    SurveyStatus,
)
from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
)
from programwatch.utils.datetime import utc_now


@dataclass
class _Cohort:
    id: str
    partner_id: str
    name: str
    status: CohortStatus


@dataclass
class _Participant:
    id: str
    partner_id: str
    name: str


@dataclass
class _Enrollment:
    id: str
    participant_id: str
    cohort_id: str
    status: EnrollmentStatus


@dataclass
class _Attendance:
    enrollment_id: str
    module_id: str
    session_date: date


@dataclass
class _Survey:
    id: str
    partner_id: str
    title: str
    survey_type: str
    status: SurveyStatus
    created_at: datetime
    total_responses: int
    submitted_responses: int


class FakeDatabase:
    """Committed state shared by every unit of work."""

    def __init__(self) -> None:
        self.partner_ids: list[str] = []
        self.monitors: dict[str, MonitorActor] = {}
        self.cohorts: dict[str, _Cohort] = {}
        self.participants: dict[str, _Participant] = {}
        self.enrollments: dict[str, _Enrollment] = {}
        self.attendance: list[_Attendance] = []
        self.scores: list[tuple[str, ScoreRecord]] = []
        self.surveys: dict[str, _Survey] = {}

        self.alerts: dict[str, AlertRecord] = {}
        self.notifications: list[NotificationRecord] = []
        self.audit_entries: list[AuditEntry] = []

        self.queries: list[str] = []
        self.commits = 0
        self.rollbacks = 0
        self.failing_partners: set[str] = set()
        self.slow_partners: dict[str, float] = {}
        self.fail_notifications = False
        self.fail_audit = False

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def add_partner(self, partner_id: str, with_monitor: bool = True) -> None:
        self.partner_ids.append(partner_id)
        if with_monitor:
            self.monitors[partner_id] = MonitorActor(
                id=f"me-{partner_id}",
                partner_id=partner_id,
                email=f"me@{partner_id.lower()}.example.org",
                full_name="M&E Officer",
            )

    def add_cohort(
        self,
        partner_id: str,
        cohort_id: str,
        name: str | None = None,
        status: CohortStatus = CohortStatus.ACTIVE,
    ) -> None:
        self.cohorts[cohort_id] = _Cohort(
            id=cohort_id,
            partner_id=partner_id,
            name=name or cohort_id,
            status=status,
        )

    def add_participant(
        self, partner_id: str, participant_id: str, name: str | None = None
    ) -> None:
        self.participants[participant_id] = _Participant(
            id=participant_id,
            partner_id=partner_id,
            name=name or participant_id,
        )

    def enroll(
        self,
        enrollment_id: str,
        participant_id: str,
        cohort_id: str,
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
    ) -> None:
        self.enrollments[enrollment_id] = _Enrollment(
            id=enrollment_id,
            participant_id=participant_id,
            cohort_id=cohort_id,
            status=status,
        )

    def record_attendance(
        self, enrollment_id: str, session_date: date, module_id: str = "M1"
    ) -> None:
        self.attendance.append(
            _Attendance(
                enrollment_id=enrollment_id,
                module_id=module_id,
                session_date=session_date,
            )
        )

    def add_score(
        self,
        score_id: str,
        enrollment_id: str,
        value: str,
        max_score: str | None = "100",
        assessment_date: date | None = None,
        module_id: str = "M1",
    ) -> None:
        enrollment = self.enrollments[enrollment_id]
        participant = self.participants[enrollment.participant_id]
        self.scores.append(
            (
                participant.partner_id,
                ScoreRecord(
                    id=score_id,
                    enrollment_id=enrollment_id,
                    participant_id=participant.id,
                    module_id=module_id,
                    assessment_name="Module quiz",
                    score_value=Decimal(value),
                    max_score=Decimal(max_score) if max_score is not None else None,
                    assessment_date=assessment_date,
                ),
            )
        )

    def add_survey(
        self,
        partner_id: str,
        survey_id: str,
        total: int = 0,
        submitted: int = 0,
        status: SurveyStatus = SurveyStatus.PUBLISHED,
        created_at: datetime | None = None,
        title: str | None = None,
    ) -> None:
        self.surveys[survey_id] = _Survey(
            id=survey_id,
            partner_id=partner_id,
            title=title or survey_id,
            survey_type="BASELINE",
            status=status,
            created_at=created_at or utc_now(),
            total_responses=total,
            submitted_responses=submitted,
        )

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    def unresolved(self, partner_id: str | None = None) -> list[AlertRecord]:
        return [
            a
            for a in self.alerts.values()
            if not a.is_resolved and (partner_id is None or a.partner_id == partner_id)
        ]

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator["FakeUnitOfWork"]:
        """Yield a unit of work; commit on clean exit, roll back on error."""
        uow = FakeUnitOfWork(self)
        try:
            yield uow
        except BaseException:
            await uow.rollback()
            raise
        else:
            await uow.commit()

    async def _touch(self, partner_id: str) -> None:
        self.queries.append(partner_id)
        if partner_id in self.slow_partners:
            await asyncio.sleep(self.slow_partners[partner_id])
        if partner_id in self.failing_partners:
            raise TransientStoreError(f"connection refused for {partner_id}")

    def _enrollment_record(self, enrollment: _Enrollment) -> EnrollmentRecord:
        participant = self.participants[enrollment.participant_id]
        cohort = self.cohorts[enrollment.cohort_id]
        dates = [
            a.session_date
            for a in self.attendance
            if a.enrollment_id == enrollment.id
        ]
        return EnrollmentRecord(
            id=enrollment.id,
            participant_id=participant.id,
            participant_name=participant.name,
            cohort_id=cohort.id,
            cohort_name=cohort.name,
            cohort_status=cohort.status,
            status=enrollment.status,
            latest_attendance_date=max(dates) if dates else None,
        )

    def _partner_enrollments(self, partner_id: str) -> list[_Enrollment]:
        return [
            e
            for e in self.enrollments.values()
            if self.participants[e.participant_id].partner_id == partner_id
        ]


class FakeDataSource:
    """MonitoringDataSource over FakeDatabase."""

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def get_active_cohorts(self, partner_id: str) -> list[CohortRecord]:
        await self._db._touch(partner_id)
        records = []
        for cohort in self._db.cohorts.values():
            if cohort.partner_id != partner_id or cohort.status != CohortStatus.ACTIVE:
                continue
            active = sum(
                1
                for e in self._db.enrollments.values()
                if e.cohort_id == cohort.id and e.status == EnrollmentStatus.ACTIVE
            )
            records.append(
                CohortRecord(
                    id=cohort.id,
                    name=cohort.name,
                    status=cohort.status,
                    active_enrollment_count=active,
                )
            )
        return records

    async def get_latest_cohort_attendance(
        self, partner_id: str, cohort_id: str
    ) -> date | None:
        await self._db._touch(partner_id)
        cohort = self._db.cohorts.get(cohort_id)
        if cohort is None or cohort.partner_id != partner_id:
            return None
        active_ids = {
            e.id
            for e in self._db.enrollments.values()
            if e.cohort_id == cohort_id and e.status == EnrollmentStatus.ACTIVE
        }
        dates = [
            a.session_date for a in self._db.attendance if a.enrollment_id in active_ids
        ]
        return max(dates) if dates else None

    async def get_active_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        await self._db._touch(partner_id)
        return [
            self._db._enrollment_record(e)
            for e in self._db._partner_enrollments(partner_id)
            if e.status == EnrollmentStatus.ACTIVE
        ]

    async def get_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        await self._db._touch(partner_id)
        return [
            self._db._enrollment_record(e)
            for e in self._db._partner_enrollments(partner_id)
        ]

    async def get_active_cohort_ids(self, partner_id: str) -> set[str]:
        await self._db._touch(partner_id)
        return {
            c.id
            for c in self._db.cohorts.values()
            if c.partner_id == partner_id and c.status == CohortStatus.ACTIVE
        }

    async def get_scores(self, partner_id: str) -> list[ScoreRecord]:
        await self._db._touch(partner_id)
        return [score for owner, score in self._db.scores if owner == partner_id]

    async def has_attendance_on(
        self,
        partner_id: str,
        enrollment_id: str,
        module_id: str,
        session_date: date,
    ) -> bool:
        await self._db._touch(partner_id)
        enrollment_ids = {e.id for e in self._db._partner_enrollments(partner_id)}
        return any(
            a.enrollment_id == enrollment_id
            and a.enrollment_id in enrollment_ids
            and a.module_id == module_id
            and a.session_date == session_date
            for a in self._db.attendance
        )

    async def get_published_survey_stats(
        self, partner_id: str
    ) -> list[SurveyCompletionStats]:
        await self._db._touch(partner_id)
        return [
            SurveyCompletionStats(
                survey_id=s.id,
                title=s.title,
                total_responses=s.total_responses,
                submitted_responses=s.submitted_responses,
            )
            for s in self._db.surveys.values()
            if s.partner_id == partner_id and s.status == SurveyStatus.PUBLISHED
        ]

    async def get_draft_surveys_created_since(
        self, partner_id: str, since: datetime
    ) -> list[SurveyRecord]:
        await self._db._touch(partner_id)
        return [
            SurveyRecord(
                id=s.id,
                title=s.title,
                survey_type=s.survey_type,
                status=s.status,
                created_at=s.created_at,
            )
            for s in self._db.surveys.values()
            if s.partner_id == partner_id
            and s.status == SurveyStatus.DRAFT
            and s.created_at > since
        ]


class FakePartnerDirectory:
    """PartnerDirectory over FakeDatabase."""

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def list_partner_ids(self) -> list[str]:
        return list(self._db.partner_ids)

    async def find_monitor(self, partner_id: str) -> MonitorActor | None:
        return self._db.monitors.get(partner_id)


class FakeAlertStore:
    """AlertStore with writes staged on the owning unit of work."""

    def __init__(self, db: FakeDatabase, uow: "FakeUnitOfWork") -> None:
        self._db = db
        self._uow = uow

    def _visible(self) -> dict[str, AlertRecord]:
        return {**self._db.alerts, **self._uow.staged_alerts}

    async def find_unresolved(
        self,
        partner_id: str,
        alert_type: AlertType,
        related_entity_id: str,
    ) -> AlertRecord | None:
        return self._unresolved_for(partner_id, alert_type, related_entity_id)

    def _unresolved_for(
        self,
        partner_id: str,
        alert_type: AlertType,
        related_entity_id: str,
    ) -> AlertRecord | None:
        for alert in self._visible().values():
            if (
                alert.partner_id == partner_id
                and alert.alert_type == alert_type
                and alert.related_entity_id == related_entity_id
                and not alert.is_resolved
            ):
                return alert
        return None

    async def add(
        self,
        partner_id: str,
        candidate: CandidateAlert,
        created_at: datetime,
    ) -> AlertRecord:
        # Unique index on unresolved alerts
        if self._unresolved_for(
            partner_id, candidate.alert_type, candidate.related_entity_id
        ):
            raise ConflictError(
                f"Unresolved {candidate.alert_type.value} alert already exists "
                f"for {candidate.related_entity_id}"
            )

        alert = AlertRecord(
            id=str(uuid4()),
            partner_id=partner_id,
            alert_type=candidate.alert_type,
            severity=candidate.severity,
            title=candidate.title,
            description=candidate.description,
            issue_count=candidate.issue_count,
            related_entity_type=candidate.related_entity_type,
            related_entity_id=candidate.related_entity_id,
            created_at=created_at,
            call_to_action=candidate.call_to_action,
            details=dict(candidate.details),
        )
        self._uow.staged_alerts[alert.id] = alert
        return alert

    async def get(self, partner_id: str, alert_id: str) -> AlertRecord | None:
        alert = self._visible().get(alert_id)
        if alert is None or alert.partner_id != partner_id:
            return None
        return alert

    async def exists(self, alert_id: str) -> bool:
        return alert_id in self._visible()

    async def list_for_partner(
        self,
        partner_id: str,
        resolved: bool | None = None,
    ) -> list[AlertRecord]:
        return [
            a
            for a in self._visible().values()
            if a.partner_id == partner_id
            and (resolved is None or a.is_resolved == resolved)
        ]

    async def mark_resolved(
        self,
        partner_id: str,
        alert_id: str,
        actor_id: str,
        resolved_at: datetime,
    ) -> AlertRecord | None:
        alert = await self.get(partner_id, alert_id)
        if alert is None or alert.is_resolved:
            return None
        resolved = replace(
            alert, is_resolved=True, resolved_by=actor_id, resolved_at=resolved_at
        )
        self._uow.staged_alerts[alert_id] = resolved
        return resolved

    async def count_unresolved_by_severity(
        self, partner_id: str
    ) -> dict[AlertSeverity, int]:
        counts: dict[AlertSeverity, int] = {}
        for alert in self._visible().values():
            if alert.partner_id == partner_id and not alert.is_resolved:
                counts[alert.severity] = counts.get(alert.severity, 0) + 1
        return counts


class FakeNotificationStore:
    """NotificationStore with writes staged on the owning unit of work."""

    def __init__(self, db: FakeDatabase, uow: "FakeUnitOfWork") -> None:
        self._db = db
        self._uow = uow

    async def add(self, draft: NotificationDraft) -> NotificationRecord:
        if self._db.fail_notifications:
            raise TransientStoreError("notification store unavailable")
        record = NotificationRecord(
            id=str(uuid4()),
            recipient_id=draft.recipient_id,
            partner_id=draft.partner_id,
            title=draft.title,
            message=draft.message,
            notification_type=draft.notification_type,
            priority=draft.priority,
            created_at=utc_now(),
            alert_id=draft.alert_id,
        )
        self._uow.staged_notifications.append(record)
        return record


class FakeAuditLogStore:
    """AuditLogStore with writes staged on the owning unit of work."""

    def __init__(self, db: FakeDatabase, uow: "FakeUnitOfWork") -> None:
        self._db = db
        self._uow = uow

    async def add(self, entry: AuditEntry) -> None:
        if self._db.fail_audit:
            raise TransientStoreError("audit store unavailable")
        self._uow.staged_audit.append(entry)


class FakeUnitOfWork:
    """Stores bound to one in-memory transaction."""

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self.staged_alerts: dict[str, AlertRecord] = {}
        self.staged_notifications: list[NotificationRecord] = []
        self.staged_audit: list[AuditEntry] = []

        self.source = FakeDataSource(db)
        self.directory = FakePartnerDirectory(db)
        self.alerts = FakeAlertStore(db, self)
        self.notifications = FakeNotificationStore(db, self)
        self.audit = FakeAuditLogStore(db, self)

    async def commit(self) -> None:
        self._db.alerts.update(self.staged_alerts)
        self._db.notifications.extend(self.staged_notifications)
        self._db.audit_entries.extend(self.staged_audit)
        self._clear()
        self._db.commits += 1

    async def rollback(self) -> None:
        self._clear()
        self._db.rollbacks += 1

    def _clear(self) -> None:
        self.staged_alerts = {}
        self.staged_notifications = []
        self.staged_audit = []
