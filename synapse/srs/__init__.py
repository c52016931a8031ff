"""
Spaced Repetition Engine.

Two pure components:
- SM2Calculator: review quality -> next scheduling state
- select_due: snapshot of items -> ordered due item ids

Neither component touches storage or calls the other; the host loads,
computes and persists.
"""

from .calculator import SM2Calculator, SM2Config, compute_next_state, round_half_away_from_zero
from .selector import DEFAULT_EXCLUDED_STAGES, DueCandidate, DueSelection, select_due
from .state import (
    DEFAULT_EASE_FACTOR,
    MINIMUM_EASE_FACTOR,
    InvalidQuality,
    InvalidSchedulingState,
    Quality,
    SchedulingError,
    SchedulingState,
    validate_quality,
)

__all__ = [
    # State
    "SchedulingState",
    "Quality",
    "validate_quality",
    "DEFAULT_EASE_FACTOR",
    "MINIMUM_EASE_FACTOR",
    # Errors
    "SchedulingError",
    "InvalidQuality",
    "InvalidSchedulingState",
    # Calculator
    "SM2Calculator",
    "SM2Config",
    "compute_next_state",
    "round_half_away_from_zero",
    # Selector
    "DueCandidate",
    "DueSelection",
    "select_due",
    "DEFAULT_EXCLUDED_STAGES",
]
