# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alert, notification and audit log models.

The alerts table carries a partial unique index on
(partner_id, alert_type, related_entity_id) WHERE is_resolved = false, so a
second unresolved alert for the same entity cannot be inserted even by a
concurrent process. Resolved alerts are kept for history and do not block
new ones.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from programwatch.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

UNRESOLVED_ALERT_INDEX = "uq_alerts_unresolved_entity"


class Alert(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A monitoring alert raised for a partner.

    Attributes:
        partner_id: Owning partner.
        alert_type: AlertType value.
        severity: AlertSeverity value.
        title: Alert title.
        description: Rendered description.
        issue_count: Magnitude of the problem.
        call_to_action: Relative action reference.
        related_entity_type: RelatedEntityType value.
        related_entity_id: Id of the entity that triggered the alert.
        details: Detector-specific facts.
        is_resolved: Whether the alert has been resolved.
        resolved_by: User who resolved it.
        resolved_at: When it was resolved.
    """

    __tablename__ = "alerts"

    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    issue_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    call_to_action: Mapped[str | None] = mapped_column(String(255), nullable=True)
    related_entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    related_entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB, default=dict, server_default=text("'{}'::jsonb"), nullable=False
    )
    is_resolved: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    resolved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "severity IN ('CRITICAL', 'WARNING', 'INFO')",
            name="ck_alerts_severity",
        ),
        Index(
            UNRESOLVED_ALERT_INDEX,
            "partner_id",
            "alert_type",
            "related_entity_id",
            unique=True,
            postgresql_where=text("is_resolved = false"),
        ),
        Index("idx_alerts_partner_resolved", "partner_id", "is_resolved"),
    )


class Notification(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """An in-app notification for one user."""

    __tablename__ = "notifications"

    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    alert_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("alerts.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(16), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    is_read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )

    __table_args__ = (Index("idx_notifications_recipient_read", "recipient_id", "is_read"),)


class AuditLog(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """An audit trail entry."""

    __tablename__ = "audit_logs"

    partner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
