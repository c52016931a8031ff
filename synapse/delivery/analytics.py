"""
Learner analytics over stored scheduling state.

All figures are aggregates of fields the SM-2 engine maintains; nothing
here feeds back into scheduling.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from synapse.core.mastery import MasteryStage
from synapse.srs.calculator import utc_now
from synapse.srs.selector import DEFAULT_EXCLUDED_STAGES, DueCandidate, select_due
from synapse.srs.state import DEFAULT_EASE_FACTOR

from .state_store import StateStore, VocabularyItem, require_aware


@dataclass
class ChallengingWord:
    """A reviewed word with low ease."""

    item_id: int
    term: str
    definition: str
    ease_factor: float
    repetition_count: int


@dataclass
class LearnerStats:
    """Dashboard statistics for one learner."""

    total_words: int = 0
    words_by_stage: dict[MasteryStage, int] = field(default_factory=dict)
    words_due_today: int = 0
    average_ease_factor: float = DEFAULT_EASE_FACTOR
    total_reviews: int = 0  # From the review log
    approximate_reviews: int = 0  # Sum of repetition counts; drops on every failure

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "total_words": self.total_words,
            "words_by_stage": {stage.value: count for stage, count in self.words_by_stage.items()},
            "words_due_today": self.words_due_today,
            "average_ease_factor": round(self.average_ease_factor, 2),
            "total_reviews": self.total_reviews,
            "approximate_reviews": self.approximate_reviews,
        }


def challenging_words(items: list[VocabularyItem], limit: int = 10) -> list[ChallengingWord]:
    """Reviewed items with the lowest ease factor, hardest first."""
    reviewed = [item for item in items if item.state.last_reviewed_at is not None]
    reviewed.sort(key=lambda item: (item.state.ease_factor, item.id))
    return [
        ChallengingWord(
            item_id=item.id,
            term=item.term,
            definition=item.definition,
            ease_factor=item.state.ease_factor,
            repetition_count=item.state.repetition_count,
        )
        for item in reviewed[:limit]
    ]


class AnalyticsService:
    """Computes learner statistics from the state store."""

    def __init__(
        self,
        store: StateStore,
        excluded_stages: Iterable[MasteryStage] = DEFAULT_EXCLUDED_STAGES,
    ):
        self.store = store
        self.excluded_stages = frozenset(excluded_stages)

    def learner_stats(self, learner_id: int, now: datetime | None = None) -> LearnerStats:
        """
        Dashboard figures for one learner.

        Args:
            learner_id: Owner of the items
            now: Aware reference time for the due count (defaults to UTC now)

        Returns:
            LearnerStats; every stage is present, zero when empty
        """
        items = self.store.list_items(learner_id)
        if not items:
            return LearnerStats(words_by_stage={stage: 0 for stage in MasteryStage})

        by_stage = Counter(item.mastery_stage for item in items)
        due = select_due(
            (DueCandidate(item.id, item.state.next_review_at, item.mastery_stage) for item in items),
            utc_now() if now is None else require_aware(now, "now"),
            exclude_stages=self.excluded_stages,
        )

        return LearnerStats(
            total_words=len(items),
            words_by_stage={stage: by_stage.get(stage, 0) for stage in MasteryStage},
            words_due_today=due.count(),
            average_ease_factor=sum(item.state.ease_factor for item in items) / len(items),
            total_reviews=self.store.count_reviews(learner_id),
            approximate_reviews=sum(item.state.repetition_count for item in items),
        )

    def challenging_words(self, learner_id: int, limit: int = 10) -> list[ChallengingWord]:
        """
        Hardest reviewed words for one learner.

        Args:
            learner_id: Owner of the items
            limit: Maximum words returned

        Returns:
            ChallengingWords ordered by ascending ease factor
        """
        return challenging_words(self.store.list_items(learner_id), limit)
