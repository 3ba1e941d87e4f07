# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Status monitor for freshly created draft surveys.

Surfaces an operational event rather than a problem: a survey created in the
last run interval that is still a draft prompts the partner's monitor to
publish it.
"""

from datetime import timedelta

from programwatch.core.monitoring.detectors.base import (
    AlertSeverity,
    AlertType,
    BaseDetector,
    CandidateAlert,
    DetectionContext,
    RelatedEntityType,
)


class SurveyStatusMonitor(BaseDetector):
    """Detector that reports draft surveys awaiting publication."""

    DEFAULT_WINDOW_MINUTES = 60

    def __init__(self, window_minutes: int = DEFAULT_WINDOW_MINUTES) -> None:
        super().__init__()
        self.window_minutes = window_minutes

    @property
    def name(self) -> str:
        """Return the detector name."""
        return "status_monitor"

    @property
    def alert_types(self) -> tuple[AlertType, ...]:
        """Return the alert types this detector generates."""
        return (AlertType.STATUS_MONITOR,)

    async def detect(self, context: DetectionContext) -> list[CandidateAlert]:
        since = context.now - timedelta(minutes=self.window_minutes)
        surveys = await context.source.get_draft_surveys_created_since(
            context.partner_id, since
        )

        return [
            self.create_candidate(
                alert_type=AlertType.STATUS_MONITOR,
                severity=AlertSeverity.INFO,
                title="New Survey Ready for Distribution",
                description=(
                    f"Survey '{survey.title}' ({survey.survey_type}) has been "
                    "created and is ready to be published."
                ),
                related_entity_type=RelatedEntityType.SURVEY,
                related_entity_id=survey.id,
                issue_count=1,
                call_to_action=f"/surveys/{survey.id}/publish",
                details={"survey_type": survey.survey_type},
            )
            for survey in surveys
        ]
