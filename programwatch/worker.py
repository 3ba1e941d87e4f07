# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Monitoring worker process.

Initializes logging and the database, starts the detector scheduler and
keeps running until interrupted.

Example:
    $ programwatch-worker
    $ python -m programwatch.worker
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from programwatch.core.config import Settings, get_settings
from programwatch.core.monitoring.service import (
    MonitoringService,
    build_monitoring_service,
)
from programwatch.infrastructure.background.scheduler import (
    start_scheduler,
    stop_scheduler,
)
from programwatch.infrastructure.database.connection import (
    check_database_connection,
    close_database,
    create_tables,
    init_database,
)
from programwatch.infrastructure.database.sql_store import sql_unit_of_work_factory
from programwatch.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncIterator[MonitoringService]:
    """Worker lifespan manager.

    Handles startup and shutdown of the database pool and the scheduler.
    Shutdown runs in reverse order: the scheduler stops, pending audit
    writes finish, then the pool closes. The pool is closed even if the
    scheduler fails to stop.

    Args:
        settings: Application settings.

    Yields:
        The wired MonitoringService.
    """
    logger.info(
        "Starting programwatch worker",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    await init_database(settings)
    if not await check_database_connection():
        logger.warning("Database unreachable at startup, passes will fail until it recovers")
    elif settings.database.auto_create_tables:
        await create_tables()
        logger.info("Database tables created")
    logger.info("Database connection initialized")

    service = build_monitoring_service(settings, sql_unit_of_work_factory())
    scheduler = await start_scheduler(service, settings)
    logger.info("Scheduler started with %d job(s)", len(scheduler.list_jobs()))

    try:
        yield service
    finally:
        try:
            await stop_scheduler()
            logger.info("Scheduler stopped")
        except Exception as e:
            logger.warning("Error stopping scheduler: %s", str(e))

        if service.audit is not None:
            await service.audit.drain()

        await close_database()
        logger.info("Database connection closed")


async def run(settings: Optional[Settings] = None) -> None:
    """Run the worker until cancelled.

    Args:
        settings: Application settings; defaults to get_settings().
    """
    settings = settings or get_settings()
    async with lifespan(settings):
        await asyncio.Event().wait()


def main() -> None:
    """Console entry point."""
    settings = get_settings()
    setup_logging(settings)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Worker interrupted, shutting down")


if __name__ == "__main__":
    main()
