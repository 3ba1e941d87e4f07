# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification emitter for raised alerts.

Notifications are written strictly after the alert's transaction has
committed, in a unit of work of their own. A missing recipient or a failed
write is logged and reported in NotificationResult; it never propagates to
the caller and never affects the alert.

Mapping tables:
- AlertSeverity -> NotificationPriority (CRITICAL -> URGENT, WARNING -> HIGH,
  INFO -> MEDIUM)
- AlertType -> NotificationType (STATUS_MONITOR -> INFO, everything else
  -> ALERT)
- AlertType -> notification title

Usage:
    emitter = NotificationEmitter(uow_factory)
    result = await emitter.emit(alert)
    if not result.delivered:
        ...
"""

import logging
from dataclasses import dataclass, field

from programwatch.core.monitoring.detectors.consistency import ConsistencyReport
from programwatch.core.monitoring.sources import (
    AlertRecord,
    NotificationDraft,
    NotificationPriority,
    NotificationType,
    UnitOfWorkFactory,
)
from programwatch.core.monitoring.types import AlertSeverity, AlertType

logger = logging.getLogger(__name__)


SEVERITY_TO_PRIORITY: dict[AlertSeverity, NotificationPriority] = {
    AlertSeverity.CRITICAL: NotificationPriority.URGENT,
    AlertSeverity.WARNING: NotificationPriority.HIGH,
    AlertSeverity.INFO: NotificationPriority.MEDIUM,
}

ALERT_TO_NOTIFICATION_TYPE: dict[AlertType, NotificationType] = {
    AlertType.ATTENDANCE_CHECK: NotificationType.ALERT,
    AlertType.COMPLETION_CHECK: NotificationType.ALERT,
    AlertType.STATUS_MONITOR: NotificationType.INFO,
    AlertType.MISSING_ATTENDANCE: NotificationType.ALERT,
    AlertType.SCORE_MISMATCH: NotificationType.ALERT,
    AlertType.ENROLLMENT_GAP: NotificationType.ALERT,
}

NOTIFICATION_TITLES: dict[AlertType, str] = {
    AlertType.ATTENDANCE_CHECK: "Missing Attendance Records Alert",
    AlertType.COMPLETION_CHECK: "Low Survey Completion Rate Alert",
    AlertType.STATUS_MONITOR: "New Survey Ready",
    AlertType.MISSING_ATTENDANCE: "Missing Attendance Data Alert",
    AlertType.SCORE_MISMATCH: "Score Mismatch Alert",
    AlertType.ENROLLMENT_GAP: "Enrollment Gap Alert",
}

CONSISTENCY_SUMMARY_TITLE = "Data Consistency Alerts Detected"


@dataclass
class NotificationResult:
    """Result of emitting one notification.

    Attributes:
        partner_id: Partner the notification belongs to.
        alert_id: Related alert ID, if any.
        recipient_id: Actor who received it, if one was found.
        notification_id: ID of the stored notification, if written.
        errors: List of error messages.
    """

    partner_id: str
    alert_id: str | None = None
    recipient_id: str | None = None
    notification_id: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """Whether a notification was stored."""
        return self.notification_id is not None


class NotificationEmitter:
    """Writes notifications for the partner's designated monitor.

    Each partner has zero or one designated monitoring actor, resolved
    through PartnerDirectory.find_monitor().
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        urgent_threshold: int = 10,
        high_threshold: int = 5,
    ) -> None:
        """Initialize the emitter.

        Args:
            uow_factory: Factory for units of work.
            urgent_threshold: Finding count above which a consistency
                summary is URGENT.
            high_threshold: Finding count above which it is HIGH.
        """
        self._uow_factory = uow_factory
        self._urgent_threshold = urgent_threshold
        self._high_threshold = high_threshold

    async def emit(self, alert: AlertRecord) -> NotificationResult:
        """Notify the partner's monitor about a newly raised alert.

        Args:
            alert: The committed alert.

        Returns:
            NotificationResult with delivery details. Never raises.
        """
        return await self._send(
            partner_id=alert.partner_id,
            alert_id=alert.id,
            title=NOTIFICATION_TITLES[alert.alert_type],
            message=alert.description,
            notification_type=ALERT_TO_NOTIFICATION_TYPE[alert.alert_type],
            priority=SEVERITY_TO_PRIORITY[alert.severity],
        )

    async def emit_consistency_summary(
        self,
        partner_id: str,
        report: ConsistencyReport,
    ) -> NotificationResult:
        """Send one summary notification for an on-demand consistency check.

        Nothing is sent when the report has no findings.

        Args:
            partner_id: Partner that was scanned.
            report: Scan report.

        Returns:
            NotificationResult with delivery details. Never raises.
        """
        if report.total == 0:
            return NotificationResult(partner_id=partner_id)

        message = (
            f"Data consistency check detected {report.total} issue(s):\n"
            f"- Missing Attendance: {report.missing_attendance_count}\n"
            f"- Score Mismatches: {report.score_mismatch_count}\n"
            f"- Enrollment Gaps: {report.enrollment_gap_count}\n\n"
            "Please review the detailed report."
        )
        return await self._send(
            partner_id=partner_id,
            alert_id=None,
            title=CONSISTENCY_SUMMARY_TITLE,
            message=message,
            notification_type=NotificationType.ALERT,
            priority=self.summary_priority(report.total),
        )

    def summary_priority(self, finding_count: int) -> NotificationPriority:
        """Priority of a consistency summary for a given finding count."""
        if finding_count > self._urgent_threshold:
            return NotificationPriority.URGENT
        if finding_count > self._high_threshold:
            return NotificationPriority.HIGH
        return NotificationPriority.MEDIUM

    async def _send(
        self,
        partner_id: str,
        alert_id: str | None,
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority,
    ) -> NotificationResult:
        result = NotificationResult(partner_id=partner_id, alert_id=alert_id)

        try:
            async with self._uow_factory() as uow:
                recipient = await uow.directory.find_monitor(partner_id)
                if recipient is None:
                    logger.warning(
                        "No monitoring actor for partner %s, skipping notification "
                        "for alert %s",
                        partner_id,
                        alert_id,
                    )
                    result.errors.append(f"No monitoring actor for partner {partner_id}")
                    return result

                result.recipient_id = recipient.id
                notification = await uow.notifications.add(
                    NotificationDraft(
                        recipient_id=recipient.id,
                        partner_id=partner_id,
                        title=title,
                        message=message,
                        notification_type=notification_type,
                        priority=priority,
                        alert_id=alert_id,
                    )
                )
                await uow.commit()

            result.notification_id = notification.id
            logger.info(
                "Notified %s of partner %s (%s, %s) for alert %s",
                recipient.id,
                partner_id,
                notification_type.value,
                priority.value,
                alert_id,
            )

        except Exception as e:
            # Log but don't fail - notifications are best-effort
            logger.error(
                "Failed to send notification for alert %s of partner %s: %s",
                alert_id,
                partner_id,
                str(e),
                exc_info=True,
            )
            result.errors.append(f"Failed to notify partner {partner_id}: {str(e)}")

        return result
