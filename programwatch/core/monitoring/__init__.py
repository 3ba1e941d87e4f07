# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Partner-scoped monitoring and alerting engine.

Detectors inspect one partner's program data and return candidate alerts.
The lifecycle manager deduplicates candidates against unresolved alerts,
persists the novel ones and hands them to the notification emitter after
commit. The monitoring service runs detectors across every partner with
per-partner failure isolation; the scheduler triggers it periodically.

Key Components:
- MonitoringService: Per-partner detector passes and on-demand checks
- AlertLifecycleManager: raise, list, get, resolve and summarize alerts
- NotificationEmitter: After-commit notifications for the partner's monitor
- AuditTrail: Fire-and-forget audit entries
- Detectors: attendance gap, completion lag, survey status, consistency

Usage:
    from programwatch.core.monitoring import build_monitoring_service

    service = build_monitoring_service(settings, uow_factory)
    result = await service.run_pass(detector)
    alerts = await service.lifecycle.list_alerts("P-001", resolved=False)
"""

from programwatch.core.monitoring.audit import AuditTrail
from programwatch.core.monitoring.detectors import (
    AttendanceGapDetector,
    BaseDetector,
    CompletionLagDetector,
    ConsistencyReport,
    DataConsistencyScanner,
    DetectionContext,
    FindingLevel,
    SurveyStatusMonitor,
)
from programwatch.core.monitoring.errors import (
    AccessDeniedError,
    AlertLookupError,
    ConflictError,
    MonitoringError,
    NotFoundError,
    TransientStoreError,
)
from programwatch.core.monitoring.lifecycle import (
    AlertLifecycleManager,
    AlertSummary,
    RaiseOutcome,
)
from programwatch.core.monitoring.notifier import (
    NotificationEmitter,
    NotificationResult,
)
from programwatch.core.monitoring.service import (
    MonitoringService,
    PassResult,
    TenantScanResult,
    build_detectors,
    build_monitoring_service,
)
from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
    RelatedEntityType,
)

__all__ = [
    # Service
    "MonitoringService",
    "PassResult",
    "TenantScanResult",
    "build_detectors",
    "build_monitoring_service",
    # Lifecycle
    "AlertLifecycleManager",
    "AlertSummary",
    "RaiseOutcome",
    # Side effects
    "AuditTrail",
    "NotificationEmitter",
    "NotificationResult",
    # Types
    "AlertSeverity",
    "AlertType",
    "CandidateAlert",
    "RelatedEntityType",
    # Detectors
    "AttendanceGapDetector",
    "BaseDetector",
    "CompletionLagDetector",
    "ConsistencyReport",
    "DataConsistencyScanner",
    "DetectionContext",
    "FindingLevel",
    "SurveyStatusMonitor",
    # Errors
    "AccessDeniedError",
    "AlertLookupError",
    "ConflictError",
    "MonitoringError",
    "NotFoundError",
    "TransientStoreError",
]
