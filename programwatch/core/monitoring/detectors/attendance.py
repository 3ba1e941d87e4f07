# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance-gap detector for cohorts that stopped logging attendance.

A cohort is considered silent when none of its active enrollments has an
attendance record whose session date (taken at the start of the day, UTC)
falls inside the look-back window. Silent cohorts are always CRITICAL:
attendance is the base signal every other program metric depends on.

The latest session date per cohort is aggregated by the data source, so
only one row per cohort is read.
"""

import logging
from datetime import timedelta

from programwatch.core.monitoring.detectors.base import (
    AlertSeverity,
    AlertType,
    BaseDetector,
    CandidateAlert,
    DetectionContext,
    RelatedEntityType,
)
from programwatch.utils.datetime import format_iso, start_of_day_utc

logger = logging.getLogger(__name__)


class AttendanceGapDetector(BaseDetector):
    """Detector that flags active cohorts without recent attendance.

    Configuration:
        gap_hours: Hours of silence before a cohort is flagged (default: 48)
    """

    DEFAULT_GAP_HOURS = 48

    def __init__(self, gap_hours: int = DEFAULT_GAP_HOURS) -> None:
        """Initialize the detector.

        Args:
            gap_hours: Look-back window in hours.
        """
        super().__init__()
        self.gap_hours = gap_hours

    @property
    def name(self) -> str:
        """Return the detector name."""
        return "attendance_check"

    @property
    def alert_types(self) -> tuple[AlertType, ...]:
        """Return the alert types this detector generates."""
        return (AlertType.ATTENDANCE_CHECK,)

    async def detect(self, context: DetectionContext) -> list[CandidateAlert]:
        """Flag every active cohort with no attendance inside the window.

        Cohorts without active enrollments are skipped; nobody is expected
        to attend them.

        Args:
            context: Partner, reference time and data source.

        Returns:
            One CRITICAL candidate per silent cohort.
        """
        threshold = context.now - timedelta(hours=self.gap_hours)
        cohorts = await context.source.get_active_cohorts(context.partner_id)

        candidates: list[CandidateAlert] = []
        for cohort in cohorts:
            if cohort.active_enrollment_count <= 0:
                continue

            latest = await context.source.get_latest_cohort_attendance(
                context.partner_id, cohort.id
            )
            if latest is not None and start_of_day_utc(latest) > threshold:
                continue

            logger.debug(
                "Cohort %s of partner %s has no attendance since %s",
                cohort.id,
                context.partner_id,
                latest,
            )
            candidates.append(
                self.create_candidate(
                    alert_type=AlertType.ATTENDANCE_CHECK,
                    severity=AlertSeverity.CRITICAL,
                    title="Missing Attendance Records",
                    description=(
                        f"Cohort '{cohort.name}' has not had attendance logs "
                        f"updated for more than {self.gap_hours} hours. "
                        f"{cohort.active_enrollment_count} active enrollments affected."
                    ),
                    related_entity_type=RelatedEntityType.COHORT,
                    related_entity_id=cohort.id,
                    issue_count=cohort.active_enrollment_count,
                    details={
                        "cohort_name": cohort.name,
                        "gap_hours": self.gap_hours,
                        "latest_session_date": latest.isoformat() if latest else None,
                        "threshold": format_iso(threshold),
                    },
                )
            )

        return candidates
