# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data-consistency scanner for attendance, score and enrollment records.

Three independent checks run against one partner:

1. Missing attendance: an ACTIVE enrollment with no attendance at all (HIGH)
   or whose latest session is more than ``stale_days`` old (MEDIUM).
2. Score mismatch: a score above its declared maximum (HIGH), or a score
   dated on a day without attendance for that enrollment and module
   (MEDIUM).
3. Enrollment gap: a participant with enrollments, none ACTIVE, while an
   active cohort they are not enrolled in exists (MEDIUM); an ACTIVE
   enrollment in a cohort that is not ACTIVE (HIGH).

Findings are returned as a flat list with no internal dedup. HIGH findings
become CRITICAL alerts and MEDIUM findings become WARNING alerts; the
finding level is kept in ``details["finding_level"]``.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from programwatch.core.monitoring.detectors.base import (
    AlertSeverity,
    AlertType,
    BaseDetector,
    CandidateAlert,
    DetectionContext,
    RelatedEntityType,
)
from programwatch.core.monitoring.sources import (
    CohortStatus,
    EnrollmentRecord,
    EnrollmentStatus,
)

logger = logging.getLogger(__name__)


class FindingLevel(str, Enum):
    """Consistency finding levels."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"

    @property
    def severity(self) -> AlertSeverity:
        """Alert severity the finding is raised with."""
        return _LEVEL_SEVERITY[self]


_LEVEL_SEVERITY: dict[FindingLevel, AlertSeverity] = {
    FindingLevel.HIGH: AlertSeverity.CRITICAL,
    FindingLevel.MEDIUM: AlertSeverity.WARNING,
}


@dataclass
class ConsistencyReport:
    """Outcome of one consistency scan.

    Attributes:
        partner_id: Partner that was scanned.
        checked_at: Reference time of the scan.
        candidates: Every finding, in check order.
    """

    partner_id: str
    checked_at: datetime
    candidates: list[CandidateAlert] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of findings."""
        return len(self.candidates)

    def count(self, alert_type: AlertType) -> int:
        """Number of findings of one alert type."""
        return sum(1 for c in self.candidates if c.alert_type == alert_type)

    @property
    def missing_attendance_count(self) -> int:
        return self.count(AlertType.MISSING_ATTENDANCE)

    @property
    def score_mismatch_count(self) -> int:
        return self.count(AlertType.SCORE_MISMATCH)

    @property
    def enrollment_gap_count(self) -> int:
        return self.count(AlertType.ENROLLMENT_GAP)

    def to_dict(self) -> dict[str, int | str]:
        """Summary counts for logging and audit."""
        return {
            "partner_id": self.partner_id,
            "checked_at": self.checked_at.isoformat(),
            "total": self.total,
            "missing_attendance": self.missing_attendance_count,
            "score_mismatch": self.score_mismatch_count,
            "enrollment_gap": self.enrollment_gap_count,
        }


class DataConsistencyScanner(BaseDetector):
    """Detector that reports referential and temporal inconsistencies.

    Configuration:
        stale_days: Days since the last session before an active
            enrollment is reported as gapped (default: 7)
    """

    DEFAULT_STALE_DAYS = 7

    def __init__(self, stale_days: int = DEFAULT_STALE_DAYS) -> None:
        """Initialize the scanner.

        Args:
            stale_days: Attendance gap threshold in days.
        """
        super().__init__()
        self.stale_days = stale_days

    @property
    def name(self) -> str:
        """Return the detector name."""
        return "data_consistency"

    @property
    def alert_types(self) -> tuple[AlertType, ...]:
        """Return the alert types this detector generates."""
        return (
            AlertType.MISSING_ATTENDANCE,
            AlertType.SCORE_MISMATCH,
            AlertType.ENROLLMENT_GAP,
        )

    async def detect(self, context: DetectionContext) -> list[CandidateAlert]:
        """Run the three checks and return every finding."""
        report = await self.scan(context)
        return report.candidates

    async def scan(self, context: DetectionContext) -> ConsistencyReport:
        """Run the three checks and return a report with per-type counts.

        Args:
            context: Partner, reference time and data source.

        Returns:
            ConsistencyReport with the findings in check order.
        """
        report = ConsistencyReport(
            partner_id=context.partner_id,
            checked_at=context.now,
        )
        report.candidates.extend(await self._check_missing_attendance(context))
        report.candidates.extend(await self._check_score_mismatches(context))
        report.candidates.extend(await self._check_enrollment_gaps(context))

        logger.info(
            "Consistency scan for partner %s found %d issues "
            "(%d missing attendance, %d score mismatches, %d enrollment gaps)",
            context.partner_id,
            report.total,
            report.missing_attendance_count,
            report.score_mismatch_count,
            report.enrollment_gap_count,
        )
        return report

    def _finding(
        self,
        alert_type: AlertType,
        level: FindingLevel,
        title: str,
        description: str,
        related_entity_type: RelatedEntityType,
        related_entity_id: str,
        **details: object,
    ) -> CandidateAlert:
        return self.create_candidate(
            alert_type=alert_type,
            severity=level.severity,
            title=title,
            description=description,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            details={"finding_level": level.value, **details},
        )

    async def _check_missing_attendance(
        self, context: DetectionContext
    ) -> list[CandidateAlert]:
        """Active enrollments without attendance or with a stale last session."""
        today = context.now.date()
        enrollments = await context.source.get_active_enrollments(context.partner_id)

        findings: list[CandidateAlert] = []
        for enrollment in enrollments:
            latest = enrollment.latest_attendance_date
            if latest is None:
                findings.append(
                    self._finding(
                        AlertType.MISSING_ATTENDANCE,
                        FindingLevel.HIGH,
                        "Missing Attendance Records",
                        f"Participant {enrollment.participant_name} (Enrollment ID: "
                        f"{enrollment.id}) has no attendance records but enrollment "
                        "is ACTIVE.",
                        RelatedEntityType.ENROLLMENT,
                        enrollment.id,
                        participant_id=enrollment.participant_id,
                        cohort_id=enrollment.cohort_id,
                    )
                )
                continue

            days_since = (today - latest).days
            if days_since > self.stale_days:
                findings.append(
                    self._finding(
                        AlertType.MISSING_ATTENDANCE,
                        FindingLevel.MEDIUM,
                        "Attendance Gap Detected",
                        f"Participant {enrollment.participant_name} (Enrollment ID: "
                        f"{enrollment.id}) has not attended for {days_since} days. "
                        f"Last attendance: {latest.isoformat()}",
                        RelatedEntityType.ENROLLMENT,
                        enrollment.id,
                        participant_id=enrollment.participant_id,
                        cohort_id=enrollment.cohort_id,
                        days_since_last_attendance=days_since,
                    )
                )

        return findings

    async def _check_score_mismatches(
        self, context: DetectionContext
    ) -> list[CandidateAlert]:
        """Scores above their maximum or dated without attendance."""
        scores = await context.source.get_scores(context.partner_id)

        findings: list[CandidateAlert] = []
        for score in scores:
            if score.max_score is not None and score.score_value > score.max_score:
                findings.append(
                    self._finding(
                        AlertType.SCORE_MISMATCH,
                        FindingLevel.HIGH,
                        "Invalid Score Value",
                        f"Score ID: {score.id} has value {score.score_value:.2f} "
                        f"which exceeds max score {score.max_score:.2f} for "
                        f"assessment: {score.assessment_name}",
                        RelatedEntityType.SCORE,
                        score.id,
                        enrollment_id=score.enrollment_id,
                        participant_id=score.participant_id,
                        module_id=score.module_id,
                    )
                )

            if score.assessment_date is None:
                continue

            attended = await context.source.has_attendance_on(
                context.partner_id,
                score.enrollment_id,
                score.module_id,
                score.assessment_date,
            )
            if not attended:
                findings.append(
                    self._finding(
                        AlertType.SCORE_MISMATCH,
                        FindingLevel.MEDIUM,
                        "Score Without Attendance",
                        f"Score ID: {score.id} for assessment "
                        f"'{score.assessment_name}' on "
                        f"{score.assessment_date.isoformat()} has no corresponding "
                        "attendance record",
                        RelatedEntityType.SCORE,
                        score.id,
                        enrollment_id=score.enrollment_id,
                        participant_id=score.participant_id,
                        module_id=score.module_id,
                    )
                )

        return findings

    async def _check_enrollment_gaps(
        self, context: DetectionContext
    ) -> list[CandidateAlert]:
        """Participants without an active enrollment and misplaced enrollments."""
        enrollments = await context.source.get_enrollments(context.partner_id)
        active_cohort_ids = await context.source.get_active_cohort_ids(
            context.partner_id
        )

        by_participant: dict[str, list[EnrollmentRecord]] = defaultdict(list)
        for enrollment in enrollments:
            by_participant[enrollment.participant_id].append(enrollment)

        findings: list[CandidateAlert] = []
        for participant_id, participant_enrollments in by_participant.items():
            has_active = any(
                e.status == EnrollmentStatus.ACTIVE for e in participant_enrollments
            )
            enrolled_cohorts = {e.cohort_id for e in participant_enrollments}

            if not has_active and active_cohort_ids - enrolled_cohorts:
                findings.append(
                    self._finding(
                        AlertType.ENROLLMENT_GAP,
                        FindingLevel.MEDIUM,
                        "No Active Enrollment",
                        f"Participant {participant_enrollments[0].participant_name} "
                        "has enrollments but none are ACTIVE. Active cohorts are "
                        "available.",
                        RelatedEntityType.PARTICIPANT,
                        participant_id,
                    )
                )

            for enrollment in participant_enrollments:
                if (
                    enrollment.status == EnrollmentStatus.ACTIVE
                    and enrollment.cohort_status != CohortStatus.ACTIVE
                ):
                    findings.append(
                        self._finding(
                            AlertType.ENROLLMENT_GAP,
                            FindingLevel.HIGH,
                            "Active Enrollment in Inactive Cohort",
                            f"Enrollment ID: {enrollment.id} is ACTIVE but cohort "
                            f"'{enrollment.cohort_name}' is not ACTIVE",
                            RelatedEntityType.ENROLLMENT,
                            enrollment.id,
                            participant_id=participant_id,
                            cohort_id=enrollment.cohort_id,
                        )
                    )

        return findings
