"""
SM-2 Review Outcome Calculator.

Implements the SuperMemo 2 update rule:
- Easiness Factor (EF): EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), min 1.3
- Repetitions: consecutive passing reviews (q >= 3), reset to 0 on failure
- Interval: 1 day, then 6 days, then round(previous interval * EF')

Interval rounding is half away from zero (15.5 -> 16), applied to the
product before it becomes a whole day count.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .state import (
    DEFAULT_EASE_FACTOR,
    MINIMUM_EASE_FACTOR,
    Quality,
    SchedulingState,
    validate_quality,
)


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class SM2Config:
    """Fixed SM-2 constants."""

    initial_easiness: float = DEFAULT_EASE_FACTOR
    minimum_easiness: float = MINIMUM_EASE_FACTOR
    first_interval: int = 1  # Days after the first passing review
    second_interval: int = 6  # Days after the second passing review
    failure_interval: int = 1  # Failed items come back the next day


class SM2Calculator:
    """
    Computes the next scheduling state from a review quality.

    Stateless: the same quality, prior state and ``now`` always give the
    same result. Callers must not run two computations for the same item
    concurrently without serializing the writes.
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def next_ease_factor(self, ease_factor: float, quality: Quality) -> float:
        """Apply the EF update and the 1.3 floor."""
        q = float(quality)
        new_ef = ease_factor + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        return max(self.config.minimum_easiness, new_ef)

    def compute_next_state(
        self,
        quality: int,
        prior: SchedulingState,
        now: datetime | None = None,
    ) -> SchedulingState:
        """
        Calculate the state that follows a review.

        Args:
            quality: Recall quality (0-5)
            prior: Current scheduling state of the item
            now: Review time (defaults to current UTC time)

        Returns:
            New SchedulingState with next_review_at = now + interval_days

        Raises:
            InvalidQuality: If quality is outside [0, 5]
        """
        grade = validate_quality(quality)
        if now is None:
            now = utc_now()

        new_ef = self.next_ease_factor(prior.ease_factor, grade)

        if not grade.is_pass:
            new_repetitions = 0
            new_interval = self.config.failure_interval
        else:
            new_repetitions = prior.repetition_count + 1

            if new_repetitions == 1:
                new_interval = self.config.first_interval
            elif new_repetitions == 2:
                new_interval = self.config.second_interval
            else:
                # Compounds on the previous interval with the updated EF.
                # A zero prior interval here means legacy data; never schedule same-day.
                new_interval = max(1, round_half_away_from_zero(prior.interval_days * new_ef))

        return SchedulingState(
            ease_factor=new_ef,
            repetition_count=new_repetitions,
            interval_days=new_interval,
            next_review_at=now + timedelta(days=new_interval),
            last_reviewed_at=now,
        )


default_calculator = SM2Calculator()


def compute_next_state(
    quality: int,
    prior_ease: float,
    prior_repetitions: int,
    prior_interval_days: int,
    now: datetime | None = None,
) -> SchedulingState:
    """
    Flat form of SM2Calculator.compute_next_state for hosts that store
    the parameters as separate columns.

    Raises:
        InvalidQuality: If quality is outside [0, 5]
        InvalidSchedulingState: If a prior counter is negative
    """
    validate_quality(quality)
    prior = SchedulingState(
        ease_factor=prior_ease,
        repetition_count=prior_repetitions,
        interval_days=prior_interval_days,
    )
    return default_calculator.compute_next_state(quality, prior, now)
