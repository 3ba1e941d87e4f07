# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Program, cohort, participant, enrollment, attendance and score models.

Ownership chain: Partner -> Program -> Cohort -> Enrollment, and
Partner -> Participant -> Enrollment. Status columns hold the string values
of the enums in programwatch.core.monitoring.sources.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from programwatch.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class Program(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A training program run by a partner."""

    __tablename__ = "programs"

    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (Index("idx_programs_partner", "partner_id"),)


class Cohort(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A cohort of a program."""

    __tablename__ = "cohorts"

    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="ACTIVE", nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (Index("idx_cohorts_program_status", "program_id", "status"),)


class Participant(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A program participant registered by a partner."""

    __tablename__ = "participants"

    partner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (Index("idx_participants_partner", "partner_id"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Enrollment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A participant's enrollment in a cohort."""

    __tablename__ = "enrollments"

    participant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    cohort_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), default="ENROLLED", nullable=False)

    __table_args__ = (
        Index("idx_enrollments_participant", "participant_id"),
        Index("idx_enrollments_cohort_status", "cohort_id", "status"),
    )


class Attendance(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One attendance record of an enrollment for a module session."""

    __tablename__ = "attendance"

    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False
    )
    module_id: Mapped[str] = mapped_column(String(36), nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="PRESENT", nullable=False)

    __table_args__ = (
        Index("idx_attendance_enrollment_date", "enrollment_id", "session_date"),
        Index(
            "idx_attendance_enrollment_module_date",
            "enrollment_id",
            "module_id",
            "session_date",
        ),
    )


class Score(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """An assessment score of an enrollment."""

    __tablename__ = "scores"

    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False
    )
    module_id: Mapped[str] = mapped_column(String(36), nullable=False)
    assessment_name: Mapped[str] = mapped_column(String(255), nullable=False)
    score_value: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    max_score: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    assessment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (Index("idx_scores_enrollment", "enrollment_id"),)
