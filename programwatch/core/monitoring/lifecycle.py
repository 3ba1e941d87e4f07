# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alert lifecycle manager: dedup, persistence, listing and resolution.

raise_alert() is the only path that creates alerts. It enforces that at most
one unresolved alert exists per (partner, alert type, related entity):

- inside one process, check-then-create for a key is serialized by a keyed
  asyncio lock
- across processes, the store's unique constraint on unresolved alerts turns
  the losing insert into a ConflictError

An alert moves OPEN -> RESOLVED exactly once. resolve_alert() uses a
conditional update, so of two concurrent resolves only one succeeds and the
other receives ConflictError with the winner's metadata.

Lookups are tenant-scoped. An id owned by another partner is reported with
the same message as a missing id.

Usage:
    manager = AlertLifecycleManager(uow_factory, emitter, audit)
    outcome = await manager.raise_alert("P-001", candidate)
    alerts = await manager.list_alerts("P-001", resolved=False)
    await manager.resolve_alert("P-001", outcome.alert.id, actor_id="U-7")
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from programwatch.core.monitoring.audit import RESOLVE_ALERT, AuditTrail
from programwatch.core.monitoring.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
)
from programwatch.core.monitoring.notifier import (
    NotificationEmitter,
    NotificationResult,
)
from programwatch.core.monitoring.sources import (
    AlertRecord,
    AuditEntry,
    UnitOfWork,
    UnitOfWorkFactory,
)
from programwatch.core.monitoring.types import AlertSeverity, CandidateAlert
from programwatch.utils.datetime import Clock, utc_now

logger = logging.getLogger(__name__)


class KeyedLock:
    """A set of asyncio locks addressed by key.

    Locks are created on first use and dropped once nobody holds or waits
    for them.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for key for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class RaiseOutcome:
    """Result of raise_alert().

    Attributes:
        alert: The new alert, or the existing unresolved one.
        created: Whether a new alert was persisted.
        notification: Emission result for a new alert, None otherwise.
    """

    alert: AlertRecord
    created: bool
    notification: NotificationResult | None = None


@dataclass
class AlertSummary:
    """Unresolved alert counts of one partner."""

    partner_id: str
    critical: int = 0
    warning: int = 0
    info: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.warning + self.info

    @property
    def has_critical(self) -> bool:
        return self.critical > 0


def triage_sort(alerts: list[AlertRecord]) -> list[AlertRecord]:
    """Order alerts by severity descending, then newest first."""
    return sorted(
        alerts,
        key=lambda a: (a.severity.rank, a.created_at),
        reverse=True,
    )


class AlertLifecycleManager:
    """Creates, lists and resolves alerts.

    Attributes:
        emitter: Notification emitter invoked after a new alert commits.
        audit: Audit trail for resolutions.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        emitter: NotificationEmitter | None = None,
        audit: AuditTrail | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            uow_factory: Factory for units of work.
            emitter: Notification emitter. Without one, no notifications
                are sent.
            audit: Audit trail. Without one, resolutions are not audited.
            clock: Source of the current time.
        """
        self._uow_factory = uow_factory
        self.emitter = emitter
        self.audit = audit
        self._clock = clock
        self._locks = KeyedLock()

    async def raise_alert(
        self,
        partner_id: str,
        candidate: CandidateAlert,
    ) -> RaiseOutcome:
        """Persist a candidate unless an unresolved alert already covers it.

        The notification for a new alert is emitted after the alert's
        transaction has committed.

        Args:
            partner_id: Partner the candidate belongs to.
            candidate: Detector output.

        Returns:
            RaiseOutcome with created=False and the untouched existing alert
            when the key is already covered.

        Raises:
            ConflictError: If another process created the alert concurrently.
        """
        async with self._locks.acquire(candidate.dedup_key(partner_id)):
            async with self._uow_factory() as uow:
                existing = await uow.alerts.find_unresolved(
                    partner_id,
                    candidate.alert_type,
                    candidate.related_entity_id,
                )
                if existing is not None:
                    logger.debug(
                        "Unresolved %s alert %s exists for %s of partner %s, skipping",
                        candidate.alert_type.value,
                        existing.id,
                        candidate.related_entity_id,
                        partner_id,
                    )
                    return RaiseOutcome(alert=existing, created=False)

                alert = await uow.alerts.add(partner_id, candidate, self._clock())
                await uow.commit()

        logger.info(
            "Created alert %s: %s (%s) for %s of partner %s",
            alert.id,
            alert.alert_type.value,
            alert.severity.value,
            alert.related_entity_id,
            partner_id,
        )

        notification = None
        if self.emitter is not None:
            notification = await self.emitter.emit(alert)

        return RaiseOutcome(alert=alert, created=True, notification=notification)

    async def list_alerts(
        self,
        partner_id: str,
        resolved: bool | None = None,
    ) -> list[AlertRecord]:
        """Get the partner's alerts in triage order.

        Args:
            partner_id: Partner whose alerts are listed.
            resolved: Only resolved (True) or unresolved (False) alerts;
                all when None.

        Returns:
            Alerts ordered by severity descending, then created_at
            descending.
        """
        async with self._uow_factory() as uow:
            alerts = await uow.alerts.list_for_partner(partner_id, resolved=resolved)
        return triage_sort(alerts)

    async def get_alert(self, partner_id: str, alert_id: str) -> AlertRecord:
        """Get one of the partner's alerts.

        Raises:
            NotFoundError: If the alert does not exist.
            AccessDeniedError: If it belongs to another partner.
        """
        async with self._uow_factory() as uow:
            return await self._get_owned(uow, partner_id, alert_id)

    async def resolve_alert(
        self,
        partner_id: str,
        alert_id: str,
        actor_id: str,
        actor_role: str = "ME_OFFICER",
    ) -> AlertRecord:
        """Resolve an open alert.

        Args:
            partner_id: Partner of the caller.
            alert_id: Alert to resolve.
            actor_id: Actor performing the resolution.
            actor_role: Role recorded in the audit entry.

        Returns:
            The resolved alert.

        Raises:
            NotFoundError: If the alert does not exist.
            AccessDeniedError: If it belongs to another partner.
            ConflictError: If it is already resolved; carries the existing
                resolved_by and resolved_at.
        """
        async with self._uow_factory() as uow:
            alert = await self._get_owned(uow, partner_id, alert_id)
            if alert.is_resolved:
                raise self._already_resolved(alert)

            resolved = await uow.alerts.mark_resolved(
                partner_id, alert_id, actor_id, self._clock()
            )
            if resolved is None:
                # Lost the conditional update to a concurrent resolve
                current = await uow.alerts.get(partner_id, alert_id)
                raise self._already_resolved(current or alert)

            await uow.commit()

        logger.info(
            "Alert %s of partner %s resolved by %s",
            alert_id,
            partner_id,
            actor_id,
        )

        if self.audit is not None:
            self.audit.record(
                AuditEntry(
                    actor_id=actor_id,
                    actor_role=actor_role,
                    action=RESOLVE_ALERT,
                    entity_type="ALERT",
                    entity_id=alert_id,
                    description=f"Resolved alert: {resolved.title}",
                    partner_id=partner_id,
                )
            )

        return resolved

    async def summarize(self, partner_id: str) -> AlertSummary:
        """Count the partner's unresolved alerts per severity."""
        async with self._uow_factory() as uow:
            counts = await uow.alerts.count_unresolved_by_severity(partner_id)

        return AlertSummary(
            partner_id=partner_id,
            critical=counts.get(AlertSeverity.CRITICAL, 0),
            warning=counts.get(AlertSeverity.WARNING, 0),
            info=counts.get(AlertSeverity.INFO, 0),
        )

    async def _get_owned(
        self,
        uow: UnitOfWork,
        partner_id: str,
        alert_id: str,
    ) -> AlertRecord:
        alert = await uow.alerts.get(partner_id, alert_id)
        if alert is not None:
            return alert

        if await uow.alerts.exists(alert_id):
            logger.warning(
                "Partner %s requested alert %s owned by another partner",
                partner_id,
                alert_id,
            )
            raise AccessDeniedError(alert_id, partner_id)

        raise NotFoundError(alert_id)

    @staticmethod
    def _already_resolved(alert: AlertRecord) -> ConflictError:
        return ConflictError(
            f"Alert already resolved: {alert.id}",
            alert_id=alert.id,
            resolved_by=alert.resolved_by,
            resolved_at=alert.resolved_at,
        )
