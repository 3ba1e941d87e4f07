# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Monitoring service for running detectors across partners.

A pass runs one detector against every partner, one partner at a time.
Each partner scan is isolated:

- it reads through its own unit of work and writes each alert through
  AlertLifecycleManager.raise_alert() in a unit of work of its own
- any exception is caught, logged with the partner id and recorded in the
  pass result; the remaining partners are still scanned
- it is bounded by a timeout; a partner that exceeds it is logged and
  skipped

Usage:
    service = build_monitoring_service(get_settings(), uow_factory)
    result = await service.run_pass(AttendanceGapDetector())
    report = await service.check_data_consistency("P-001", actor_id="U-7")
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from programwatch.core.config.settings import MonitoringSettings, Settings
from programwatch.core.monitoring.audit import DATA_CONSISTENCY_CHECK, AuditTrail
from programwatch.core.monitoring.detectors import (
    AttendanceGapDetector,
    BaseDetector,
    CompletionLagDetector,
    ConsistencyReport,
    DataConsistencyScanner,
    DetectionContext,
    SurveyStatusMonitor,
)
from programwatch.core.monitoring.errors import ConflictError
from programwatch.core.monitoring.lifecycle import AlertLifecycleManager
from programwatch.core.monitoring.notifier import NotificationEmitter
from programwatch.core.monitoring.sources import AuditEntry, UnitOfWorkFactory
from programwatch.utils.datetime import Clock, utc_now
from programwatch.utils.logging import tenant_log_context

logger = logging.getLogger(__name__)


@dataclass
class TenantScanResult:
    """Outcome of one detector run against one partner.

    Attributes:
        partner_id: Partner that was scanned.
        detector: Detector name.
        candidates: Candidates the detector returned.
        created: New alerts persisted.
        deduplicated: Candidates already covered by an unresolved alert.
        conflicts: Candidates lost to a concurrent writer.
        error: Error message if the scan failed.
        timed_out: Whether the scan exceeded the per-partner timeout.
        duration_ms: Wall time of the scan.
    """

    partner_id: str
    detector: str
    candidates: int = 0
    created: int = 0
    deduplicated: int = 0
    conflicts: int = 0
    error: str | None = None
    timed_out: bool = False
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the scan completed."""
        return self.error is None and not self.timed_out


@dataclass
class PassResult:
    """Outcome of running one detector against every partner."""

    detector: str
    started_at: datetime
    tenants: list[TenantScanResult] = field(default_factory=list)

    @property
    def failed(self) -> list[TenantScanResult]:
        """Partner scans that errored or timed out."""
        return [t for t in self.tenants if not t.ok]

    @property
    def created(self) -> int:
        """Total new alerts across partners."""
        return sum(t.created for t in self.tenants)

    @property
    def succeeded(self) -> bool:
        """Whether every partner scan completed."""
        return not self.failed


class MonitoringService:
    """Orchestrates detector passes and on-demand consistency checks.

    Attributes:
        lifecycle: Alert lifecycle manager.
        audit: Audit trail shared with the lifecycle manager; drain it
            before closing the store.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        lifecycle: AlertLifecycleManager,
        emitter: NotificationEmitter | None = None,
        audit: AuditTrail | None = None,
        consistency_scanner: DataConsistencyScanner | None = None,
        clock: Clock = utc_now,
        tenant_timeout_seconds: float = 300.0,
    ) -> None:
        """Initialize the monitoring service.

        Args:
            uow_factory: Factory for units of work.
            lifecycle: Alert lifecycle manager used for every alert write.
            emitter: Emitter for consistency summary notifications.
            audit: Audit trail for consistency checks.
            consistency_scanner: Scanner for on-demand checks.
            clock: Source of the current time.
            tenant_timeout_seconds: Upper bound for one partner's scan.
        """
        self._uow_factory = uow_factory
        self.lifecycle = lifecycle
        self._emitter = emitter
        self.audit = audit
        self._consistency_scanner = consistency_scanner or DataConsistencyScanner()
        self._clock = clock
        self._tenant_timeout = tenant_timeout_seconds

    async def run_pass(self, detector: BaseDetector) -> PassResult:
        """Run a detector against every partner.

        Per-partner failures and timeouts are recorded in the result and
        never abort the pass.

        Args:
            detector: Detector to run.

        Returns:
            PassResult with one TenantScanResult per partner.
        """
        now = self._clock()
        async with self._uow_factory() as uow:
            partner_ids = await uow.directory.list_partner_ids()

        logger.info(
            "Starting %s pass over %d partners",
            detector.name,
            len(partner_ids),
        )

        result = PassResult(detector=detector.name, started_at=now)
        for partner_id in partner_ids:
            result.tenants.append(
                await self._scan_tenant_isolated(detector, partner_id, now)
            )

        logger.info(
            "Finished %s pass: %d partners, %d new alerts, %d failed",
            detector.name,
            len(result.tenants),
            result.created,
            len(result.failed),
        )
        return result

    async def scan_tenant(
        self,
        detector: BaseDetector,
        partner_id: str,
        now: datetime | None = None,
        result: TenantScanResult | None = None,
    ) -> TenantScanResult:
        """Run a detector against one partner and raise its candidates.

        Errors propagate; run_pass() is the isolation boundary.

        Args:
            detector: Detector to run.
            partner_id: Partner to scan.
            now: Reference time; defaults to the service clock.
            result: Result to fill in, so partial counts survive a timeout.

        Returns:
            TenantScanResult with candidate and alert counts.
        """
        if result is None:
            result = TenantScanResult(partner_id=partner_id, detector=detector.name)
        if now is None:
            now = self._clock()

        async with self._uow_factory() as uow:
            candidates = await detector.detect(
                DetectionContext(partner_id=partner_id, now=now, source=uow.source)
            )
        result.candidates = len(candidates)

        for candidate in candidates:
            try:
                outcome = await self.lifecycle.raise_alert(partner_id, candidate)
            except ConflictError as e:
                logger.info(
                    "Skipping %s candidate for %s of partner %s: %s",
                    candidate.alert_type.value,
                    candidate.related_entity_id,
                    partner_id,
                    e.message,
                )
                result.conflicts += 1
                continue

            if outcome.created:
                result.created += 1
            else:
                result.deduplicated += 1

        return result

    async def check_data_consistency(
        self,
        partner_id: str,
        actor_id: str | None = None,
        actor_role: str = "ME_OFFICER",
    ) -> ConsistencyReport:
        """Run the consistency scanner on demand and report the findings.

        Findings are returned, summarized in one notification for the
        partner's monitor and audited. They are not persisted as alerts;
        the scheduled consistency pass does that.

        Args:
            partner_id: Partner to check.
            actor_id: Actor requesting the check, if any.
            actor_role: Role recorded in the audit entry.

        Returns:
            ConsistencyReport with per-type counts.
        """
        now = self._clock()
        with tenant_log_context(
            partner_id=partner_id, detector=self._consistency_scanner.name
        ):
            async with self._uow_factory() as uow:
                report = await self._consistency_scanner.scan(
                    DetectionContext(partner_id=partner_id, now=now, source=uow.source)
                )

            if self._emitter is not None:
                await self._emitter.emit_consistency_summary(partner_id, report)

            if self.audit is not None:
                self.audit.record(
                    AuditEntry(
                        actor_id=actor_id,
                        actor_role=actor_role,
                        action=DATA_CONSISTENCY_CHECK,
                        entity_type="DATA_CONSISTENCY",
                        description=(
                            f"Data consistency check performed. Detected "
                            f"{report.total} inconsistencies: "
                            f"{report.missing_attendance_count} missing attendance, "
                            f"{report.score_mismatch_count} score mismatches, "
                            f"{report.enrollment_gap_count} enrollment gaps"
                        ),
                        partner_id=partner_id,
                    )
                )

        return report

    async def _scan_tenant_isolated(
        self,
        detector: BaseDetector,
        partner_id: str,
        now: datetime,
    ) -> TenantScanResult:
        result = TenantScanResult(partner_id=partner_id, detector=detector.name)
        started = time.monotonic()

        with tenant_log_context(partner_id=partner_id, detector=detector.name):
            try:
                await asyncio.wait_for(
                    self.scan_tenant(detector, partner_id, now, result),
                    timeout=self._tenant_timeout,
                )
            except asyncio.TimeoutError:
                result.timed_out = True
                logger.warning(
                    "%s scan of partner %s timed out after %.1fs, skipping",
                    detector.name,
                    partner_id,
                    self._tenant_timeout,
                )
            except Exception as e:
                result.error = str(e) or e.__class__.__name__
                logger.error(
                    "%s scan of partner %s failed: %s",
                    detector.name,
                    partner_id,
                    str(e),
                    exc_info=True,
                )

        result.duration_ms = (time.monotonic() - started) * 1000
        return result


def build_detectors(settings: MonitoringSettings) -> list[BaseDetector]:
    """Create the standard detector set from monitoring settings."""
    return [
        AttendanceGapDetector(gap_hours=settings.attendance_gap_hours),
        CompletionLagDetector(
            lag_ratio=settings.completion_lag_ratio,
            critical_ratio=settings.completion_critical_ratio,
        ),
        SurveyStatusMonitor(window_minutes=settings.status_window_minutes),
        DataConsistencyScanner(stale_days=settings.attendance_stale_days),
    ]


def build_monitoring_service(
    settings: Settings,
    uow_factory: UnitOfWorkFactory,
    clock: Clock = utc_now,
) -> MonitoringService:
    """Wire a MonitoringService with its emitter, audit trail and lifecycle.

    Args:
        settings: Application settings.
        uow_factory: Factory for units of work.
        clock: Source of the current time.

    Returns:
        Ready-to-use MonitoringService.
    """
    monitoring = settings.monitoring
    emitter = NotificationEmitter(
        uow_factory,
        urgent_threshold=monitoring.consistency_urgent_threshold,
        high_threshold=monitoring.consistency_high_threshold,
    )
    audit = AuditTrail(uow_factory)
    lifecycle = AlertLifecycleManager(uow_factory, emitter, audit, clock=clock)

    return MonitoringService(
        uow_factory,
        lifecycle,
        emitter=emitter,
        audit=audit,
        consistency_scanner=DataConsistencyScanner(
            stale_days=monitoring.attendance_stale_days
        ),
        clock=clock,
        tenant_timeout_seconds=monitoring.tenant_scan_timeout_seconds,
    )
