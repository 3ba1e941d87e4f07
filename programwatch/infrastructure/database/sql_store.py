# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the monitoring store interfaces.

Every query is parameterized by partner id and filters in SQL; aggregates
(active enrollment counts, latest attendance dates, survey response counts)
are computed by the database rather than by loading rows into memory.

Example:
    from programwatch.infrastructure.database.sql_store import (
        sql_unit_of_work_factory,
    )

    uow_factory = sql_unit_of_work_factory()
    async with uow_factory() as uow:
        cohorts = await uow.source.get_active_cohorts("P-001")
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from programwatch.core.monitoring.errors import ConflictError
from programwatch.core.monitoring.sources import (
    AlertRecord,
    AuditEntry,
    CohortRecord,
    CohortStatus,
    EnrollmentRecord,
    EnrollmentStatus,
    MonitorActor,
    NotificationDraft,
    NotificationPriority,
    NotificationRecord,
    NotificationType,
    ScoreRecord,
    SurveyCompletionStats,
    SurveyRecord,
    SurveyStatus,
    UnitOfWorkFactory,
)
from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
    RelatedEntityType,
)
from programwatch.infrastructure.database.connection import get_session
from programwatch.infrastructure.database.models import (
    ME_OFFICER_ROLE,
    Alert,
    Attendance,
    AuditLog,
    Cohort,
    Enrollment,
    Notification,
    Participant,
    Partner,
    Program,
    Score,
    Survey,
    SurveyResponse,
    User,
)
from programwatch.utils.datetime import ensure_utc

_SEVERITY_ORDER = case(
    {
        AlertSeverity.CRITICAL.value: 2,
        AlertSeverity.WARNING.value: 1,
        AlertSeverity.INFO.value: 0,
    },
    value=Alert.severity,
    else_=-1,
)


def alert_to_record(alert: Alert) -> AlertRecord:
    """Convert an Alert row to an AlertRecord."""
    return AlertRecord(
        id=alert.id,
        partner_id=alert.partner_id,
        alert_type=AlertType(alert.alert_type),
        severity=AlertSeverity(alert.severity),
        title=alert.title,
        description=alert.description,
        issue_count=alert.issue_count,
        related_entity_type=RelatedEntityType(alert.related_entity_type),
        related_entity_id=alert.related_entity_id,
        created_at=ensure_utc(alert.created_at),
        call_to_action=alert.call_to_action,
        details=dict(alert.details or {}),
        is_resolved=alert.is_resolved,
        resolved_by=alert.resolved_by,
        resolved_at=ensure_utc(alert.resolved_at),
    )


class SqlMonitoringDataSource:
    """Tenant-scoped read queries over program data."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_active_cohorts(self, partner_id: str) -> list[CohortRecord]:
        active_enrollments = (
            select(func.count(Enrollment.id))
            .where(
                Enrollment.cohort_id == Cohort.id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
            .correlate(Cohort)
            .scalar_subquery()
        )
        result = await self._session.execute(
            select(
                Cohort.id,
                Cohort.name,
                Cohort.status,
                active_enrollments.label("active_enrollment_count"),
            )
            .join(Program, Program.id == Cohort.program_id)
            .where(
                Program.partner_id == partner_id,
                Cohort.status == CohortStatus.ACTIVE.value,
            )
            .order_by(Cohort.name)
        )
        return [
            CohortRecord(
                id=row.id,
                name=row.name,
                status=CohortStatus(row.status),
                active_enrollment_count=row.active_enrollment_count or 0,
            )
            for row in result
        ]

    async def get_latest_cohort_attendance(
        self, partner_id: str, cohort_id: str
    ) -> date | None:
        result = await self._session.execute(
            select(func.max(Attendance.session_date))
            .join(Enrollment, Enrollment.id == Attendance.enrollment_id)
            .join(Participant, Participant.id == Enrollment.participant_id)
            .where(
                Participant.partner_id == partner_id,
                Enrollment.cohort_id == cohort_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        return await self._fetch_enrollments(partner_id, only_active=True)

    async def get_enrollments(self, partner_id: str) -> list[EnrollmentRecord]:
        return await self._fetch_enrollments(partner_id, only_active=False)

    async def get_active_cohort_ids(self, partner_id: str) -> set[str]:
        result = await self._session.execute(
            select(Cohort.id)
            .join(Program, Program.id == Cohort.program_id)
            .where(
                Program.partner_id == partner_id,
                Cohort.status == CohortStatus.ACTIVE.value,
            )
        )
        return set(result.scalars().all())

    async def get_scores(self, partner_id: str) -> list[ScoreRecord]:
        result = await self._session.execute(
            select(
                Score.id,
                Score.enrollment_id,
                Enrollment.participant_id,
                Score.module_id,
                Score.assessment_name,
                Score.score_value,
                Score.max_score,
                Score.assessment_date,
            )
            .join(Enrollment, Enrollment.id == Score.enrollment_id)
            .join(Participant, Participant.id == Enrollment.participant_id)
            .where(Participant.partner_id == partner_id)
            .order_by(Score.created_at)
        )
        return [
            ScoreRecord(
                id=row.id,
                enrollment_id=row.enrollment_id,
                participant_id=row.participant_id,
                module_id=row.module_id,
                assessment_name=row.assessment_name,
                score_value=row.score_value,
                max_score=row.max_score,
                assessment_date=row.assessment_date,
            )
            for row in result
        ]

    async def has_attendance_on(
        self,
        partner_id: str,
        enrollment_id: str,
        module_id: str,
        session_date: date,
    ) -> bool:
        result = await self._session.execute(
            select(Attendance.id)
            .join(Enrollment, Enrollment.id == Attendance.enrollment_id)
            .join(Participant, Participant.id == Enrollment.participant_id)
            .where(
                Participant.partner_id == partner_id,
                Attendance.enrollment_id == enrollment_id,
                Attendance.module_id == module_id,
                Attendance.session_date == session_date,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_published_survey_stats(
        self, partner_id: str
    ) -> list[SurveyCompletionStats]:
        # count() over a column skips NULLs, so unsubmitted responses drop out
        result = await self._session.execute(
            select(
                Survey.id,
                Survey.title,
                func.count(SurveyResponse.id).label("total"),
                func.count(SurveyResponse.submitted_at).label("submitted"),
            )
            .outerjoin(SurveyResponse, SurveyResponse.survey_id == Survey.id)
            .where(
                Survey.partner_id == partner_id,
                Survey.status == SurveyStatus.PUBLISHED.value,
            )
            .group_by(Survey.id, Survey.title)
            .order_by(Survey.title)
        )
        return [
            SurveyCompletionStats(
                survey_id=row.id,
                title=row.title,
                total_responses=row.total,
                submitted_responses=row.submitted,
            )
            for row in result
        ]

    async def get_draft_surveys_created_since(
        self, partner_id: str, since: datetime
    ) -> list[SurveyRecord]:
        result = await self._session.execute(
            select(Survey)
            .where(
                Survey.partner_id == partner_id,
                Survey.status == SurveyStatus.DRAFT.value,
                Survey.created_at > since,
            )
            .order_by(Survey.created_at)
        )
        return [
            SurveyRecord(
                id=survey.id,
                title=survey.title,
                survey_type=survey.survey_type,
                status=SurveyStatus(survey.status),
                created_at=ensure_utc(survey.created_at),
            )
            for survey in result.scalars().all()
        ]

    async def _fetch_enrollments(
        self, partner_id: str, only_active: bool
    ) -> list[EnrollmentRecord]:
        latest_attendance = (
            select(func.max(Attendance.session_date))
            .where(Attendance.enrollment_id == Enrollment.id)
            .correlate(Enrollment)
            .scalar_subquery()
        )
        stmt = (
            select(
                Enrollment.id,
                Enrollment.participant_id,
                Participant.first_name,
                Participant.last_name,
                Enrollment.cohort_id,
                Cohort.name.label("cohort_name"),
                Cohort.status.label("cohort_status"),
                Enrollment.status,
                latest_attendance.label("latest_attendance_date"),
            )
            .join(Participant, Participant.id == Enrollment.participant_id)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .where(Participant.partner_id == partner_id)
            .order_by(Enrollment.participant_id, Enrollment.created_at)
        )
        if only_active:
            stmt = stmt.where(Enrollment.status == EnrollmentStatus.ACTIVE.value)

        result = await self._session.execute(stmt)
        return [
            EnrollmentRecord(
                id=row.id,
                participant_id=row.participant_id,
                participant_name=f"{row.first_name} {row.last_name}",
                cohort_id=row.cohort_id,
                cohort_name=row.cohort_name,
                cohort_status=CohortStatus(row.cohort_status),
                status=EnrollmentStatus(row.status),
                latest_attendance_date=row.latest_attendance_date,
            )
            for row in result
        ]


class SqlPartnerDirectory:
    """Partner enumeration and monitoring actor lookup."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_partner_ids(self) -> list[str]:
        result = await self._session.execute(
            select(Partner.id).where(Partner.is_active.is_(True)).order_by(Partner.id)
        )
        return list(result.scalars().all())

    async def find_monitor(self, partner_id: str) -> MonitorActor | None:
        result = await self._session.execute(
            select(User)
            .where(
                User.partner_id == partner_id,
                User.role == ME_OFFICER_ROLE,
                User.is_active.is_(True),
            )
            .order_by(User.created_at)
            .limit(1)
        )
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return MonitorActor(
            id=user.id,
            partner_id=user.partner_id,
            email=user.email,
            full_name=user.full_name,
        )


class SqlAlertStore:
    """Alert persistence backed by the alerts table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_unresolved(
        self,
        partner_id: str,
        alert_type: AlertType,
        related_entity_id: str,
    ) -> AlertRecord | None:
        result = await self._session.execute(
            select(Alert)
            .where(
                Alert.partner_id == partner_id,
                Alert.alert_type == alert_type.value,
                Alert.related_entity_id == related_entity_id,
                Alert.is_resolved.is_(False),
            )
            .limit(1)
        )
        alert = result.scalar_one_or_none()
        return alert_to_record(alert) if alert else None

    async def add(
        self,
        partner_id: str,
        candidate: CandidateAlert,
        created_at: datetime,
    ) -> AlertRecord:
        alert = Alert(
            partner_id=partner_id,
            alert_type=candidate.alert_type.value,
            severity=candidate.severity.value,
            title=candidate.title,
            description=candidate.description,
            issue_count=candidate.issue_count,
            call_to_action=candidate.call_to_action,
            related_entity_type=candidate.related_entity_type.value,
            related_entity_id=candidate.related_entity_id,
            details=dict(candidate.details),
            is_resolved=False,
            created_at=created_at,
        )
        self._session.add(alert)

        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Unresolved {candidate.alert_type.value} alert already exists "
                f"for {candidate.related_entity_id}",
                original_error=e,
            ) from e

        return alert_to_record(alert)

    async def get(self, partner_id: str, alert_id: str) -> AlertRecord | None:
        result = await self._session.execute(
            select(Alert).where(Alert.id == alert_id, Alert.partner_id == partner_id)
        )
        alert = result.scalar_one_or_none()
        return alert_to_record(alert) if alert else None

    async def exists(self, alert_id: str) -> bool:
        result = await self._session.execute(
            select(Alert.id).where(Alert.id == alert_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_partner(
        self,
        partner_id: str,
        resolved: bool | None = None,
    ) -> list[AlertRecord]:
        stmt = select(Alert).where(Alert.partner_id == partner_id)
        if resolved is not None:
            stmt = stmt.where(Alert.is_resolved.is_(resolved))
        stmt = stmt.order_by(_SEVERITY_ORDER.desc(), Alert.created_at.desc())

        result = await self._session.execute(stmt)
        return [alert_to_record(alert) for alert in result.scalars().all()]

    async def mark_resolved(
        self,
        partner_id: str,
        alert_id: str,
        actor_id: str,
        resolved_at: datetime,
    ) -> AlertRecord | None:
        result = await self._session.execute(
            update(Alert)
            .where(
                Alert.id == alert_id,
                Alert.partner_id == partner_id,
                Alert.is_resolved.is_(False),
            )
            .values(is_resolved=True, resolved_by=actor_id, resolved_at=resolved_at)
            .returning(Alert)
            .execution_options(synchronize_session=False)
        )
        alert = result.scalar_one_or_none()
        return alert_to_record(alert) if alert else None

    async def count_unresolved_by_severity(
        self, partner_id: str
    ) -> dict[AlertSeverity, int]:
        result = await self._session.execute(
            select(Alert.severity, func.count(Alert.id))
            .where(Alert.partner_id == partner_id, Alert.is_resolved.is_(False))
            .group_by(Alert.severity)
        )
        return {AlertSeverity(severity): count for severity, count in result.all()}


class SqlNotificationStore:
    """Notification persistence backed by the notifications table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, draft: NotificationDraft) -> NotificationRecord:
        notification = Notification(
            recipient_id=draft.recipient_id,
            partner_id=draft.partner_id,
            alert_id=draft.alert_id,
            title=draft.title,
            message=draft.message,
            notification_type=draft.notification_type.value,
            priority=draft.priority.value,
            is_read=False,
        )
        self._session.add(notification)
        await self._session.flush()

        return NotificationRecord(
            id=notification.id,
            recipient_id=notification.recipient_id,
            partner_id=notification.partner_id,
            title=notification.title,
            message=notification.message,
            notification_type=NotificationType(notification.notification_type),
            priority=NotificationPriority(notification.priority),
            created_at=ensure_utc(notification.created_at),
            is_read=notification.is_read,
            alert_id=notification.alert_id,
        )


class SqlAuditLogStore:
    """Audit log persistence backed by the audit_logs table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, entry: AuditEntry) -> None:
        self._session.add(
            AuditLog(
                partner_id=entry.partner_id,
                actor_id=entry.actor_id,
                actor_role=entry.actor_role,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                description=entry.description,
            )
        )
        await self._session.flush()


class SqlUnitOfWork:
    """The SQL stores bound to one session.

    Attributes:
        session: The underlying session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.source = SqlMonitoringDataSource(session)
        self.directory = SqlPartnerDirectory(session)
        self.alerts = SqlAlertStore(session)
        self.notifications = SqlNotificationStore(session)
        self.audit = SqlAuditLogStore(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


def sql_unit_of_work_factory(
    sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> UnitOfWorkFactory:
    """Build a unit-of-work factory over get_session().

    Args:
        sessionmaker: Sessionmaker to use; defaults to the module one
            configured by init_database().

    Returns:
        Callable returning an async context manager that yields a
        SqlUnitOfWork, committing on clean exit and rolling back on error.
    """

    @asynccontextmanager
    async def factory() -> AsyncIterator[SqlUnitOfWork]:
        async with get_session(sessionmaker) as session:
            yield SqlUnitOfWork(session)

    return factory


__all__ = [
    "SqlAlertStore",
    "SqlAuditLogStore",
    "SqlMonitoringDataSource",
    "SqlNotificationStore",
    "SqlPartnerDirectory",
    "SqlUnitOfWork",
    "alert_to_record",
    "sql_unit_of_work_factory",
]
