"""
Scheduling state and quality value objects for the SM-2 engine.

Quality Scale:
0 - Complete blackout, didn't remember
1 - Incorrect, but the answer felt familiar once shown
2 - Incorrect, but the answer seemed easy once shown
3 - Correct, but required significant difficulty
4 - Correct, after some hesitation
5 - Perfect response, immediate recall
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

DEFAULT_EASE_FACTOR = 2.5
MINIMUM_EASE_FACTOR = 1.3


# =============================================================================
# Errors
# =============================================================================


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class InvalidQuality(SchedulingError, ValueError):
    """Raised when a review quality is not an integer in [0, 5]."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Quality must be an integer between 0 and 5, got {quality!r}")


class InvalidSchedulingState(SchedulingError, ValueError):
    """Raised when stored scheduling parameters are corrupt (negative counters)."""


# =============================================================================
# Quality
# =============================================================================


class Quality(IntEnum):
    """Self-reported recall quality for one review."""

    BLACKOUT = 0
    WRONG = 1
    HARD = 2
    GOOD = 3
    EASY = 4
    PERFECT = 5

    @property
    def is_pass(self) -> bool:
        """GOOD or better keeps the repetition streak alive."""
        return self >= Quality.GOOD


def validate_quality(quality: object) -> Quality:
    """
    Validate a raw quality value.

    Args:
        quality: Value supplied by the caller

    Returns:
        The value as a Quality member

    Raises:
        InvalidQuality: If quality is not an int in [0, 5] (bools rejected)
    """
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQuality(quality)
    if not Quality.BLACKOUT <= quality <= Quality.PERFECT:
        raise InvalidQuality(quality)
    return Quality(quality)


# =============================================================================
# Scheduling State
# =============================================================================


@dataclass(frozen=True)
class SchedulingState:
    """SM-2 memory parameters for a single learnable item."""

    ease_factor: float = DEFAULT_EASE_FACTOR
    repetition_count: int = 0  # Consecutive successful reviews
    interval_days: int = 0  # Days between last review and the next one
    next_review_at: datetime | None = None  # None = never reviewed, due now
    last_reviewed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.repetition_count < 0:
            raise InvalidSchedulingState(
                f"repetition_count must be non-negative, got {self.repetition_count}"
            )
        if self.interval_days < 0:
            raise InvalidSchedulingState(
                f"interval_days must be non-negative, got {self.interval_days}"
            )
