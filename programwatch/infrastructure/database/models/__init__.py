# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the program data store.

Importing this package registers every table on Base.metadata.
"""

from programwatch.infrastructure.database.models.alert import (
    UNRESOLVED_ALERT_INDEX,
    Alert,
    AuditLog,
    Notification,
)
from programwatch.infrastructure.database.models.base import Base, generate_uuid
from programwatch.infrastructure.database.models.partner import (
    ME_OFFICER_ROLE,
    Partner,
    User,
)
from programwatch.infrastructure.database.models.program import (
    Attendance,
    Cohort,
    Enrollment,
    Participant,
    Program,
    Score,
)
from programwatch.infrastructure.database.models.survey import Survey, SurveyResponse

__all__ = [
    "Base",
    "generate_uuid",
    # Tenancy
    "ME_OFFICER_ROLE",
    "Partner",
    "User",
    # Program data
    "Attendance",
    "Cohort",
    "Enrollment",
    "Participant",
    "Program",
    "Score",
    "Survey",
    "SurveyResponse",
    # Monitoring output
    "UNRESOLVED_ALERT_INDEX",
    "Alert",
    "AuditLog",
    "Notification",
]
