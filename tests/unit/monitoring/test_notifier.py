# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the notification emitter."""

from datetime import datetime

import pytest

from programwatch.core.monitoring.detectors import ConsistencyReport
from programwatch.core.monitoring.notifier import (
    ALERT_TO_NOTIFICATION_TYPE,
    CONSISTENCY_SUMMARY_TITLE,
    NOTIFICATION_TITLES,
    SEVERITY_TO_PRIORITY,
    NotificationEmitter,
)
from programwatch.core.monitoring.sources import (
    AlertRecord,
    NotificationPriority,
    NotificationType,
)
from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
    RelatedEntityType,
)
from tests.fakes import FakeDatabase


def make_alert(
    now: datetime,
    alert_type: AlertType = AlertType.ATTENDANCE_CHECK,
    severity: AlertSeverity = AlertSeverity.CRITICAL,
    partner_id: str = "P-001",
) -> AlertRecord:
    return AlertRecord(
        id="A-1",
        partner_id=partner_id,
        alert_type=alert_type,
        severity=severity,
        title="Missing Attendance Records",
        description="Cohort 'C' has not had attendance logs updated.",
        issue_count=3,
        related_entity_type=RelatedEntityType.COHORT,
        related_entity_id="C",
        created_at=now,
    )


def make_report(now: datetime, missing: int = 0, scores: int = 0, gaps: int = 0):
    report = ConsistencyReport(partner_id="P-001", checked_at=now)
    for alert_type, count in (
        (AlertType.MISSING_ATTENDANCE, missing),
        (AlertType.SCORE_MISMATCH, scores),
        (AlertType.ENROLLMENT_GAP, gaps),
    ):
        for i in range(count):
            report.candidates.append(
                CandidateAlert(
                    alert_type=alert_type,
                    severity=AlertSeverity.WARNING,
                    title="Finding",
                    description="Finding",
                    related_entity_type=RelatedEntityType.ENROLLMENT,
                    related_entity_id=f"{alert_type.value}-{i}",
                )
            )
    return report


class TestMappingTables:
    """Tests for the emitter mapping tables."""

    def test_every_severity_has_a_priority(self) -> None:
        assert set(SEVERITY_TO_PRIORITY) == set(AlertSeverity)

    def test_severity_priorities(self) -> None:
        assert SEVERITY_TO_PRIORITY[AlertSeverity.CRITICAL] == NotificationPriority.URGENT
        assert SEVERITY_TO_PRIORITY[AlertSeverity.WARNING] == NotificationPriority.HIGH
        assert SEVERITY_TO_PRIORITY[AlertSeverity.INFO] == NotificationPriority.MEDIUM

    def test_every_alert_type_has_a_notification_type_and_title(self) -> None:
        assert set(ALERT_TO_NOTIFICATION_TYPE) == set(AlertType)
        assert set(NOTIFICATION_TITLES) == set(AlertType)

    def test_status_monitor_is_informational(self) -> None:
        for alert_type, notification_type in ALERT_TO_NOTIFICATION_TYPE.items():
            expected = (
                NotificationType.INFO
                if alert_type == AlertType.STATUS_MONITOR
                else NotificationType.ALERT
            )
            assert notification_type == expected


class TestEmit:
    """Tests for NotificationEmitter.emit."""

    @pytest.mark.asyncio
    async def test_notifies_partner_monitor(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test a notification is stored for the partner's monitor."""
        db.add_partner("P-001")

        result = await emitter.emit(make_alert(now))

        assert result.delivered
        assert result.recipient_id == "me-P-001"
        assert result.errors == []
        assert len(db.notifications) == 1
        notification = db.notifications[0]
        assert notification.id == result.notification_id
        assert notification.recipient_id == "me-P-001"
        assert notification.partner_id == "P-001"
        assert notification.alert_id == "A-1"
        assert notification.title == "Missing Attendance Records Alert"
        assert notification.message == "Cohort 'C' has not had attendance logs updated."
        assert notification.notification_type == NotificationType.ALERT
        assert notification.priority == NotificationPriority.URGENT
        assert notification.is_read is False

    @pytest.mark.asyncio
    async def test_status_alert_is_info_medium(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test a status alert becomes an INFO notification with MEDIUM priority."""
        db.add_partner("P-001")

        await emitter.emit(
            make_alert(now, AlertType.STATUS_MONITOR, AlertSeverity.INFO)
        )

        notification = db.notifications[0]
        assert notification.title == "New Survey Ready"
        assert notification.notification_type == NotificationType.INFO
        assert notification.priority == NotificationPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_recipient_is_resolved_per_partner(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test the recipient belongs to the alert's partner."""
        db.add_partner("P-001")
        db.add_partner("P-002")

        result = await emitter.emit(make_alert(now, partner_id="P-002"))

        assert result.recipient_id == "me-P-002"
        assert db.notifications[0].partner_id == "P-002"

    @pytest.mark.asyncio
    async def test_missing_monitor_is_reported(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test a partner without a monitor gets no notification and no exception."""
        db.add_partner("P-001", with_monitor=False)

        result = await emitter.emit(make_alert(now))

        assert not result.delivered
        assert result.recipient_id is None
        assert result.errors == ["No monitoring actor for partner P-001"]
        assert db.notifications == []

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test a failing store is reported in the result."""
        db.add_partner("P-001")
        db.fail_notifications = True

        result = await emitter.emit(make_alert(now))

        assert not result.delivered
        assert len(result.errors) == 1
        assert "notification store unavailable" in result.errors[0]
        assert db.notifications == []


class TestConsistencySummary:
    """Tests for NotificationEmitter.emit_consistency_summary."""

    @pytest.mark.parametrize(
        "count,expected",
        [
            (1, NotificationPriority.MEDIUM),
            (5, NotificationPriority.MEDIUM),
            (6, NotificationPriority.HIGH),
            (10, NotificationPriority.HIGH),
            (11, NotificationPriority.URGENT),
        ],
    )
    def test_summary_priority(
        self, emitter: NotificationEmitter, count: int, expected: NotificationPriority
    ) -> None:
        """Test priority thresholds are strict."""
        assert emitter.summary_priority(count) == expected

    def test_custom_thresholds(self, uow_factory) -> None:
        """Test thresholds are configurable."""
        emitter = NotificationEmitter(uow_factory, urgent_threshold=3, high_threshold=1)

        assert emitter.summary_priority(2) == NotificationPriority.HIGH
        assert emitter.summary_priority(4) == NotificationPriority.URGENT

    @pytest.mark.asyncio
    async def test_summary_message(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test the summary lists per-type counts."""
        db.add_partner("P-001")

        result = await emitter.emit_consistency_summary(
            "P-001", make_report(now, missing=4, scores=2, gaps=1)
        )

        assert result.delivered
        assert result.alert_id is None
        notification = db.notifications[0]
        assert notification.title == CONSISTENCY_SUMMARY_TITLE
        assert notification.notification_type == NotificationType.ALERT
        assert notification.priority == NotificationPriority.HIGH
        assert notification.message.startswith(
            "Data consistency check detected 7 issue(s):\n"
        )
        assert "- Missing Attendance: 4\n" in notification.message
        assert "- Score Mismatches: 2\n" in notification.message
        assert "- Enrollment Gaps: 1\n" in notification.message

    @pytest.mark.asyncio
    async def test_empty_report_sends_nothing(
        self, db: FakeDatabase, emitter: NotificationEmitter, now: datetime
    ) -> None:
        """Test a clean scan produces no notification."""
        db.add_partner("P-001")

        result = await emitter.emit_consistency_summary("P-001", make_report(now))

        assert not result.delivered
        assert result.errors == []
        assert db.notifications == []
