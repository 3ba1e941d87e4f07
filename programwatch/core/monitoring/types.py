# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alert classification types shared by detectors, stores and services.

Severity ordering is INFO < WARNING < CRITICAL (AlertSeverity.rank).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AlertType(str, Enum):
    """Types of monitoring alerts."""

    ATTENDANCE_CHECK = "ATTENDANCE_CHECK"
    COMPLETION_CHECK = "COMPLETION_CHECK"
    STATUS_MONITOR = "STATUS_MONITOR"
    MISSING_ATTENDANCE = "MISSING_ATTENDANCE"
    SCORE_MISMATCH = "SCORE_MISMATCH"
    ENROLLMENT_GAP = "ENROLLMENT_GAP"


class AlertSeverity(str, Enum):
    """Alert severity levels, ordered for triage."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more urgent."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
}


class RelatedEntityType(str, Enum):
    """Kinds of entity an alert can point back to (lookup only)."""

    COHORT = "COHORT"
    SURVEY = "SURVEY"
    ENROLLMENT = "ENROLLMENT"
    SCORE = "SCORE"
    PARTICIPANT = "PARTICIPANT"


# Relative action references rendered by triage UIs.
CALL_TO_ACTION: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "/alerts/review-now",
    AlertSeverity.WARNING: "/alerts/investigate",
    AlertSeverity.INFO: "/alerts/acknowledge",
}


def call_to_action_for(severity: AlertSeverity) -> str:
    """Get the default call-to-action reference for a severity."""
    return CALL_TO_ACTION[severity]


@dataclass
class CandidateAlert:
    """An unpersisted alert payload produced by a detector.

    Attributes:
        alert_type: Type of alert.
        severity: Severity level.
        title: Alert title (human-readable).
        description: Rendered description with the counts/entities involved.
        related_entity_type: Kind of entity that triggered the alert.
        related_entity_id: Id of that entity; part of the dedup key.
        issue_count: Magnitude of the problem.
        call_to_action: Relative action reference (optional).
        details: Detector-specific facts, stored alongside the alert.
    """

    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    related_entity_type: RelatedEntityType
    related_entity_id: str
    issue_count: int = 1
    call_to_action: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def dedup_key(self, partner_id: str) -> tuple[str, str, str]:
        """Key under which at most one unresolved alert may exist."""
        return (partner_id, self.alert_type.value, self.related_entity_id)

