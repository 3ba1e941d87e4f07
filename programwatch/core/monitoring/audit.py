# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fire-and-forget audit trail.

Audit entries are written in their own unit of work on a background task so
a slow or failing audit store never delays or fails the operation being
audited. Failures are logged and dropped.
"""

import asyncio
import logging

from programwatch.core.monitoring.sources import AuditEntry, UnitOfWorkFactory

logger = logging.getLogger(__name__)

RESOLVE_ALERT = "RESOLVE_ALERT"
DATA_CONSISTENCY_CHECK = "DATA_CONSISTENCY_CHECK"


class AuditTrail:
    """Schedules audit writes in the background."""

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, entry: AuditEntry) -> None:
        """Schedule an audit entry for writing.

        Must be called from a running event loop.

        Args:
            entry: The entry to write.
        """
        task = asyncio.create_task(self._write(entry))
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.debug("Scheduled audit entry %s for %s", entry.action, entry.entity_id)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_count(self) -> int:
        """Number of writes not yet finished."""
        return len(self._pending)

    async def _write(self, entry: AuditEntry) -> None:
        try:
            async with self._uow_factory() as uow:
                await uow.audit.add(entry)
                await uow.commit()
        except Exception as e:
            logger.error(
                "Failed to write audit entry %s for %s %s: %s",
                entry.action,
                entry.entity_type,
                entry.entity_id,
                str(e),
                exc_info=True,
            )
