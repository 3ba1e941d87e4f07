# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Partner (tenant) and user models.

A partner is the isolation boundary: every program row hangs off exactly one
partner. Users belong to one partner and carry a role; the active user with
the ME_OFFICER role is the partner's designated monitoring actor.
"""

from sqlalchemy import Boolean, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from programwatch.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

ME_OFFICER_ROLE = "ME_OFFICER"


class Partner(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """An implementing partner organization."""

    __tablename__ = "partners"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A partner staff member.

    Attributes:
        partner_id: Owning partner.
        email: Login email.
        full_name: Display name.
        role: One of ME_OFFICER, FACILITATOR, DONOR.
        is_active: Whether the account is enabled.
    """

    __tablename__ = "users"

    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )

    __table_args__ = (Index("idx_users_partner_role", "partner_id", "role"),)
