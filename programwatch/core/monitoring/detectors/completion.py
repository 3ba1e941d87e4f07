# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Completion-lag detector for surveys trailing the program average.

Rates are percentages computed with Decimal arithmetic:

- survey rate: submitted / total, rounded HALF_UP to 4 places, times 100,
  then rounded to 2 places
- program average: mean of the survey rates over published surveys with at
  least one response, rounded to 2 places

A survey is lagging when ``average - rate > average * lag_ratio``. The lag
is CRITICAL above ``average * critical_ratio`` and WARNING otherwise.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from programwatch.core.monitoring.detectors.base import (
    AlertSeverity,
    AlertType,
    BaseDetector,
    CandidateAlert,
    DetectionContext,
    RelatedEntityType,
)
from programwatch.core.monitoring.sources import SurveyCompletionStats

logger = logging.getLogger(__name__)

_RATIO_PLACES = Decimal("0.0001")
_PERCENT_PLACES = Decimal("0.01")
_HUNDRED = Decimal(100)


def completion_rate(stats: SurveyCompletionStats) -> Decimal:
    """Completion percentage of one survey.

    Args:
        stats: Response counts; total_responses must be positive.

    Returns:
        Percentage rounded to 2 decimal places.
    """
    ratio = (
        Decimal(stats.submitted_responses) / Decimal(stats.total_responses)
    ).quantize(_RATIO_PLACES, rounding=ROUND_HALF_UP)
    return (ratio * _HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)


def program_average(rates: list[Decimal]) -> Decimal:
    """Mean of survey rates rounded to 2 decimal places, zero when empty."""
    if not rates:
        return Decimal("0.00")
    total = sum(rates, Decimal(0))
    return (total / Decimal(len(rates))).quantize(
        _PERCENT_PLACES, rounding=ROUND_HALF_UP
    )


class CompletionLagDetector(BaseDetector):
    """Detector that flags published surveys with lagging completion.

    Configuration:
        lag_ratio: Fraction of the average a survey may trail by (default: 0.20)
        critical_ratio: Fraction above which the lag is critical (default: 0.40)
    """

    DEFAULT_LAG_RATIO = 0.20
    DEFAULT_CRITICAL_RATIO = 0.40

    def __init__(
        self,
        lag_ratio: float = DEFAULT_LAG_RATIO,
        critical_ratio: float = DEFAULT_CRITICAL_RATIO,
    ) -> None:
        """Initialize the detector.

        Args:
            lag_ratio: Lag threshold as a fraction of the program average.
            critical_ratio: Escalation threshold as a fraction of the average.
        """
        super().__init__()
        # str() keeps 0.2 from turning into 0.2000000000000000111...
        self.lag_ratio = Decimal(str(lag_ratio))
        self.critical_ratio = Decimal(str(critical_ratio))

    @property
    def name(self) -> str:
        """Return the detector name."""
        return "completion_check"

    @property
    def alert_types(self) -> tuple[AlertType, ...]:
        """Return the alert types this detector generates."""
        return (AlertType.COMPLETION_CHECK,)

    async def detect(self, context: DetectionContext) -> list[CandidateAlert]:
        """Compare each published survey's rate against the program average.

        Args:
            context: Partner, reference time and data source.

        Returns:
            One WARNING or CRITICAL candidate per lagging survey. Empty when
            the program average is zero.
        """
        stats = await context.source.get_published_survey_stats(context.partner_id)
        answered = [s for s in stats if s.total_responses > 0]
        rates = {s.survey_id: completion_rate(s) for s in answered}

        average = program_average(list(rates.values()))
        if average == 0:
            logger.debug(
                "Skipping completion check for partner %s: no completion data",
                context.partner_id,
            )
            return []

        lag_threshold = average * self.lag_ratio
        critical_threshold = average * self.critical_ratio

        candidates: list[CandidateAlert] = []
        for survey in answered:
            rate = rates[survey.survey_id]
            difference = average - rate
            if difference <= lag_threshold:
                continue

            severity = (
                AlertSeverity.CRITICAL
                if difference > critical_threshold
                else AlertSeverity.WARNING
            )
            candidates.append(
                self.create_candidate(
                    alert_type=AlertType.COMPLETION_CHECK,
                    severity=severity,
                    title="Low Survey Completion Rate",
                    description=(
                        f"Survey '{survey.title}' has a completion rate of {rate}% "
                        f"which is {difference}% below the program average of "
                        f"{average}%. {survey.pending_responses} responses pending."
                    ),
                    related_entity_type=RelatedEntityType.SURVEY,
                    related_entity_id=survey.survey_id,
                    issue_count=survey.pending_responses,
                    details={
                        "survey_title": survey.title,
                        "completion_rate": str(rate),
                        "program_average": str(average),
                        "difference": str(difference),
                    },
                )
            )

        return candidates
