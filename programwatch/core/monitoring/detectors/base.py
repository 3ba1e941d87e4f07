# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base detector classes.

This module provides the abstract base class for all monitoring detectors.
A detector inspects one partner's operational data and returns candidate
alerts; it never writes anything. Candidates only become alerts through
AlertLifecycleManager.raise_alert(), which applies the
one-unresolved-alert-per-entity rule.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from programwatch.core.monitoring.types import (
    AlertSeverity,
    AlertType,
    CandidateAlert,
    RelatedEntityType,
    call_to_action_for,
)

if TYPE_CHECKING:
    from programwatch.core.monitoring.sources import MonitoringDataSource


@dataclass(frozen=True)
class DetectionContext:
    """Inputs for one detector run against one partner.

    Attributes:
        partner_id: Tenant being scanned.
        now: Reference time for every window computed during the run.
        source: Tenant-scoped read interface over program data.
    """

    partner_id: str
    now: datetime
    source: "MonitoringDataSource"


class BaseDetector(ABC):
    """Abstract base class for monitoring detectors.

    Subclasses implement detect() as a read-only evaluation of one partner's
    data. Every query a detector issues must be parameterized by
    context.partner_id; detectors never load another tenant's rows.
    """

    def __init__(self) -> None:
        """Initialize the detector."""
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the detector name (used as the scheduler job key)."""
        ...

    @property
    @abstractmethod
    def alert_types(self) -> tuple[AlertType, ...]:
        """Return the alert types this detector can produce."""
        ...

    @abstractmethod
    async def detect(self, context: DetectionContext) -> list[CandidateAlert]:
        """Evaluate the partner's data and return candidate alerts.

        Args:
            context: Partner, reference time and data source.

        Returns:
            Zero or more candidates. Duplicates are allowed; the lifecycle
            manager deduplicates.
        """
        ...

    def create_candidate(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        description: str,
        related_entity_type: RelatedEntityType,
        related_entity_id: str,
        issue_count: int = 1,
        call_to_action: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> CandidateAlert:
        """Helper method to create a candidate.

        Falls back to the severity's default call to action when none is
        given.
        """
        return CandidateAlert(
            alert_type=alert_type,
            severity=severity,
            title=title,
            description=description,
            related_entity_type=related_entity_type,
            related_entity_id=str(related_entity_id),
            issue_count=issue_count,
            call_to_action=call_to_action or call_to_action_for(severity),
            details=details or {},
        )
