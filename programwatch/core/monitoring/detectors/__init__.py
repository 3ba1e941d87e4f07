# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Detectors that inspect one partner's program data for anomalies.

Detectors:
- AttendanceGapDetector: Cohorts without recent attendance
- CompletionLagDetector: Surveys trailing the program completion average
- SurveyStatusMonitor: Fresh draft surveys awaiting publication
- DataConsistencyScanner: Attendance, score and enrollment inconsistencies

Usage:
    from programwatch.core.monitoring.detectors import (
        AttendanceGapDetector,
        DetectionContext,
    )

    detector = AttendanceGapDetector(gap_hours=48)
    candidates = await detector.detect(
        DetectionContext(partner_id="P-001", now=utc_now(), source=source)
    )
"""

from programwatch.core.monitoring.detectors.attendance import AttendanceGapDetector
from programwatch.core.monitoring.detectors.base import (
    BaseDetector,
    DetectionContext,
)
from programwatch.core.monitoring.detectors.completion import (
    CompletionLagDetector,
    completion_rate,
    program_average,
)
from programwatch.core.monitoring.detectors.consistency import (
    ConsistencyReport,
    DataConsistencyScanner,
    FindingLevel,
)
from programwatch.core.monitoring.detectors.status import SurveyStatusMonitor

__all__ = [
    # Base types
    "BaseDetector",
    "DetectionContext",
    # Detectors
    "AttendanceGapDetector",
    "CompletionLagDetector",
    "DataConsistencyScanner",
    "SurveyStatusMonitor",
    # Consistency reporting
    "ConsistencyReport",
    "FindingLevel",
    # Rate helpers
    "completion_rate",
    "program_average",
]
