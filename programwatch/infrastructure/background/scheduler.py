# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic detector passes.

Uses APScheduler for cron-style job scheduling. Each job runs one detector
across every partner through MonitoringService.run_pass(). Jobs can be
triggered by name without waiting for their schedule, which is how manual
runs and tests drive the engine.

Example:
    from programwatch.infrastructure.background.scheduler import MonitoringScheduler

    scheduler = MonitoringScheduler(service)

    # Add cron job (runs every 6 hours)
    scheduler.add_cron_detector(AttendanceGapDetector(), "0 */6 * * *")

    # Add interval job (runs every hour)
    scheduler.add_interval_detector(SurveyStatusMonitor(), hours=1)

    # Run a pass now
    result = await scheduler.trigger("attendance_check")

    # Start scheduler
    await scheduler.start()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from programwatch.core.config.settings import Settings
from programwatch.core.monitoring.detectors import BaseDetector
from programwatch.core.monitoring.service import (
    MonitoringService,
    PassResult,
    build_detectors,
)
from programwatch.utils.datetime import Clock, format_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ScheduledDetector:
    """A detector registered with the scheduler.

    Attributes:
        name: Job name (the detector name by default).
        detector: Detector run on each pass.
        trigger: APScheduler trigger.
        schedule: Human-readable schedule.
        enabled: Whether the job runs.
        last_run: Time the last pass finished.
        run_count: Completed passes.
        error_count: Passes that raised.
        tenant_failures: Partner scans that failed or timed out, all passes.
        last_result: Result of the last completed pass.
    """

    name: str
    detector: BaseDetector
    trigger: BaseTrigger
    schedule: str
    enabled: bool = True
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    tenant_failures: int = 0
    last_result: PassResult | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        last = self.last_result
        return {
            "name": self.name,
            "detector": self.detector.name,
            "schedule": self.schedule,
            "enabled": self.enabled,
            "last_run": format_iso(self.last_run),
            "run_count": self.run_count,
            "error_count": self.error_count,
            "tenant_failures": self.tenant_failures,
            "last_pass": {
                "tenants": len(last.tenants),
                "created": last.created,
                "failed": [t.partner_id for t in last.failed],
            }
            if last
            else None,
        }


class MonitoringScheduler:
    """Scheduler for periodic detector passes.

    Owns the (name, detector, trigger) registrations and mirrors them into
    an APScheduler AsyncIOScheduler while running. Each job allows a single
    running instance, so a slow pass is never overlapped by itself;
    different detectors may run concurrently.

    Attributes:
        service: Monitoring service that executes passes.
    """

    def __init__(
        self,
        service: MonitoringService,
        clock: Clock = utc_now,
        timezone: str = "UTC",
    ) -> None:
        """Initialize the scheduler.

        Args:
            service: Monitoring service that executes passes.
            clock: Source of the current time.
            timezone: Timezone for cron triggers.
        """
        self.service = service
        self._clock = clock
        self._timezone = timezone
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, ScheduledDetector] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def add_cron_detector(
        self,
        detector: BaseDetector,
        cron_expression: str,
        name: str | None = None,
        enabled: bool = True,
    ) -> ScheduledDetector:
        """Add a cron-scheduled detector.

        Args:
            detector: Detector to run.
            cron_expression: Cron expression (minute hour day month weekday).
            name: Job name; defaults to the detector name.
            enabled: Whether the job is enabled.

        Returns:
            Created ScheduledDetector.

        Raises:
            ValueError: If the cron expression is invalid.
        """
        parts = cron_expression.split()
        if len(parts) != 5:
            raise ValueError(f"Invalid cron expression: {cron_expression}")

        trigger = CronTrigger(
            minute=parts[0],
            hour=parts[1],
            day=parts[2],
            month=parts[3],
            day_of_week=parts[4],
            timezone=self._timezone,
        )
        job = self._register(detector, trigger, cron_expression, name, enabled)

        logger.info("Added cron detector: %s (%s)", job.name, cron_expression)
        return job

    def add_interval_detector(
        self,
        detector: BaseDetector,
        seconds: int = 0,
        minutes: int = 0,
        hours: int = 0,
        name: str | None = None,
        enabled: bool = True,
    ) -> ScheduledDetector:
        """Add an interval-scheduled detector.

        Args:
            detector: Detector to run.
            seconds: Interval seconds.
            minutes: Interval minutes.
            hours: Interval hours.
            name: Job name; defaults to the detector name.
            enabled: Whether the job is enabled.

        Returns:
            Created ScheduledDetector.
        """
        trigger = IntervalTrigger(seconds=seconds, minutes=minutes, hours=hours)
        schedule = f"every {hours}h {minutes}m {seconds}s"
        job = self._register(detector, trigger, schedule, name, enabled)

        logger.info("Added interval detector: %s (%s)", job.name, schedule)
        return job

    def register_default_jobs(self, settings: Settings) -> list[ScheduledDetector]:
        """Register the standard detector set with the configured schedules.

        Args:
            settings: Application settings.

        Returns:
            The registered jobs.
        """
        schedules = {
            "attendance_check": settings.scheduler.attendance_cron,
            "completion_check": settings.scheduler.completion_cron,
            "status_monitor": settings.scheduler.status_cron,
            "data_consistency": settings.scheduler.consistency_cron,
        }

        jobs = [
            self.add_cron_detector(detector, schedules[detector.name])
            for detector in build_detectors(settings.monitoring)
        ]
        logger.info("Registered %d default detector jobs", len(jobs))
        return jobs

    async def trigger(self, name: str) -> PassResult | None:
        """Run a job's pass immediately.

        Args:
            name: Job name.

        Returns:
            PassResult, or None if the job is disabled or the pass raised.

        Raises:
            KeyError: If no job has that name.
        """
        if name not in self._jobs:
            raise KeyError(f"Unknown detector job: {name}")
        return await self._execute(name)

    async def _execute(self, name: str) -> PassResult | None:
        """Execute a job's pass and record its statistics."""
        job = self._jobs.get(name)
        if not job or not job.enabled:
            return None

        logger.debug("Executing detector job: %s", name)

        try:
            result = await self.service.run_pass(job.detector)
        except Exception as e:
            job.error_count += 1
            logger.error("Detector job %s failed: %s", name, str(e), exc_info=True)
            return None

        job.last_run = self._clock()
        job.run_count += 1
        job.tenant_failures += len(result.failed)
        job.last_result = result
        return result

    def remove_job(self, name: str) -> bool:
        """Remove a job.

        Args:
            name: Job name.

        Returns:
            True if removed.
        """
        if name not in self._jobs:
            return False

        if self._scheduler and self._scheduler.get_job(name):
            self._scheduler.remove_job(name)

        del self._jobs[name]
        logger.info("Removed detector job: %s", name)
        return True

    def enable_job(self, name: str) -> bool:
        """Enable a job.

        Args:
            name: Job name.

        Returns:
            True if enabled.
        """
        job = self._jobs.get(name)
        if not job:
            return False

        job.enabled = True
        if self._scheduler:
            if self._scheduler.get_job(name):
                self._scheduler.resume_job(name)
            else:
                self._schedule(job)
        return True

    def disable_job(self, name: str) -> bool:
        """Disable a job.

        Args:
            name: Job name.

        Returns:
            True if disabled.
        """
        job = self._jobs.get(name)
        if not job:
            return False

        job.enabled = False
        if self._scheduler and self._scheduler.get_job(name):
            self._scheduler.pause_job(name)
        return True

    def get_job(self, name: str) -> ScheduledDetector | None:
        """Get a job by name."""
        return self._jobs.get(name)

    def list_jobs(self) -> list[ScheduledDetector]:
        """List all jobs."""
        return list(self._jobs.values())

    async def start(self) -> None:
        """Start the scheduler and schedule every enabled job."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        for job in self._jobs.values():
            if job.enabled:
                self._schedule(job)

        self._scheduler.start()
        self._running = True

        logger.info("Monitoring scheduler started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Monitoring scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics.

        Returns:
            Statistics dictionary.
        """
        return {
            "is_running": self._running,
            "job_count": len(self._jobs),
            "enabled_count": sum(1 for j in self._jobs.values() if j.enabled),
            "total_runs": sum(j.run_count for j in self._jobs.values()),
            "total_errors": sum(j.error_count for j in self._jobs.values()),
            "total_tenant_failures": sum(
                j.tenant_failures for j in self._jobs.values()
            ),
            "jobs": [j.to_dict() for j in self._jobs.values()],
        }

    def _register(
        self,
        detector: BaseDetector,
        trigger: BaseTrigger,
        schedule: str,
        name: str | None,
        enabled: bool,
    ) -> ScheduledDetector:
        job = ScheduledDetector(
            name=name or detector.name,
            detector=detector,
            trigger=trigger,
            schedule=schedule,
            enabled=enabled,
        )
        if job.name in self._jobs:
            self.remove_job(job.name)

        self._jobs[job.name] = job
        if self._scheduler and enabled:
            self._schedule(job)
        return job

    def _schedule(self, job: ScheduledDetector) -> None:
        self._scheduler.add_job(
            self._execute,
            trigger=job.trigger,
            args=[job.name],
            id=job.name,
            name=job.name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )


# Singleton instance
_scheduler: MonitoringScheduler | None = None


def get_scheduler() -> MonitoringScheduler | None:
    """Get the running scheduler instance, if one was started."""
    return _scheduler


async def start_scheduler(
    service: MonitoringService,
    settings: Settings,
) -> MonitoringScheduler:
    """Create the scheduler, register default jobs and start it.

    Args:
        service: Monitoring service that executes passes.
        settings: Application settings.

    Returns:
        Started scheduler instance.
    """
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    scheduler = MonitoringScheduler(service, timezone=settings.scheduler.timezone)
    if settings.scheduler.enabled:
        scheduler.register_default_jobs(settings)
    await scheduler.start()

    _scheduler = scheduler
    return scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
