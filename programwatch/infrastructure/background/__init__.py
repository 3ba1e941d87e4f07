# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background scheduling for periodic detector passes.

Quick Start:
    from programwatch.infrastructure.background import start_scheduler

    scheduler = await start_scheduler(service, settings)
    await scheduler.trigger("attendance_check")
"""

from programwatch.infrastructure.background.scheduler import (
    MonitoringScheduler,
    ScheduledDetector,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "MonitoringScheduler",
    "ScheduledDetector",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
