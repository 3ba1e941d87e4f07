# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Survey and survey response models.

A response counts as submitted once submitted_at is set.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from programwatch.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class Survey(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A survey owned by a partner."""

    __tablename__ = "surveys"

    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    survey_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="DRAFT", nullable=False)

    __table_args__ = (
        Index("idx_surveys_partner_status", "partner_id", "status", "created_at"),
    )


class SurveyResponse(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A participant's response to a survey."""

    __tablename__ = "survey_responses"

    survey_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False
    )
    participant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("idx_survey_responses_survey", "survey_id"),)
