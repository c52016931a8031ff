"""
Review Service: hosts the SM-2 engine on top of the state store.

Responsibilities:
- Validate quality before touching any state
- Serialize read-compute-write per item (in-process lock + version check)
- Append every accepted review to the review log
- Build the due-review queue with the due-set selector

Mastery stages are read for filtering only; this service never changes them.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from synapse.config import get_settings
from synapse.core.mastery import MasteryStage
from synapse.srs.calculator import SM2Calculator, utc_now
from synapse.srs.selector import DueCandidate, select_due
from synapse.srs.state import InvalidQuality, Quality, validate_quality

from .state_store import StateStore, VocabularyItem, require_aware


def format_interval(days: int) -> str:
    """
    Human-readable interval.

    Examples: "1 day", "6 days", "2 weeks", "1 month", "4 months"
    """
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks = days // 7
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    months = days // 30
    return "1 month" if months == 1 else f"{months} months"


def feedback_message(quality: int, interval_days: int) -> str:
    """Encouragement shown after a review."""
    if quality >= Quality.EASY:
        return f"Great job! You'll see this word again in {format_interval(interval_days)}"
    if quality >= Quality.GOOD:
        return f"Good! Review scheduled in {format_interval(interval_days)}"
    return "Keep practicing! You'll review this again tomorrow."


@dataclass
class ReviewResponse:
    """Result of an accepted review."""

    item: VocabularyItem
    next_interval: int
    message: str


class ReviewService:
    """
    Coordinates review submissions and due queues for learners.

    Within one process, reviews of the same item run one at a time; across
    processes the store's version check rejects a write based on a stale read.
    """

    def __init__(
        self,
        store: StateStore,
        calculator: SM2Calculator | None = None,
        clock: Callable[[], datetime] | None = None,
        due_limit: int | None = None,
        excluded_stages: Iterable[MasteryStage] | None = None,
    ):
        """
        Initialize the review service.

        Args:
            store: StateStore for items and the review log
            calculator: SM2Calculator (creates default if None)
            clock: Returns "now" as an aware datetime; defaults to current UTC time
            due_limit: Cap for due queues (defaults to settings)
            excluded_stages: Stages never due (defaults to settings)
        """
        settings = get_settings()
        self.store = store
        self.calculator = calculator or SM2Calculator()
        self.clock = clock or utc_now
        self.due_limit = due_limit if due_limit is not None else settings.due_review_limit
        self.excluded_stages = frozenset(
            excluded_stages if excluded_stages is not None else settings.get_excluded_stages()
        )

        # item_id -> [lock, number of threads holding or waiting for it]
        self._locks: dict[int, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _item_lock(self, item_id: int) -> Iterator[None]:
        """Hold the item's lock; the entry is dropped once nobody needs it."""
        with self._locks_guard:
            entry = self._locks.get(item_id)
            if entry is None:
                entry = self._locks[item_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[item_id]

    def _now(self) -> datetime:
        return require_aware(self.clock(), "clock time")

    def submit_review(
        self,
        item_id: int,
        quality: int,
        learner_id: int | None = None,
    ) -> ReviewResponse:
        """
        Record a review and update the item's scheduling state.

        Args:
            item_id: Reviewed item
            quality: Recall quality (0-5)
            learner_id: Owner check; None skips it

        Returns:
            ReviewResponse with the updated item

        Raises:
            InvalidQuality: Quality outside [0, 5]; nothing is written
            ItemNotFoundError: Unknown item (or not the learner's)
            ConcurrentUpdateError: Item changed by another writer mid-review
            ValueError: The clock returned a naive datetime; nothing is written
        """
        try:
            grade = validate_quality(quality)
        except InvalidQuality:
            logger.warning(f"Rejected review for item {item_id}: invalid quality {quality!r}")
            raise

        with self._item_lock(item_id):
            item = self.store.get_item(item_id, learner_id)
            new_state = self.calculator.compute_next_state(grade, item.state, self._now())

            item.version = self.store.record_review(item, grade, new_state, item.version)
            item.state = new_state

        logger.debug(
            f"Recorded review for {item.id}: quality={int(grade)}, "
            f"ease={new_state.ease_factor:.2f}, interval={new_state.interval_days}d, "
            f"next_review={new_state.next_review_at}"
        )

        return ReviewResponse(
            item=item,
            next_interval=new_state.interval_days,
            message=feedback_message(grade, new_state.interval_days),
        )

    def due_items(
        self,
        learner_id: int,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[VocabularyItem]:
        """
        Items due for review, never-reviewed first, then most overdue.

        Args:
            learner_id: Owner of the items
            limit: Maximum items (defaults to the service's due_limit)
            now: Aware reference time (defaults to the clock)

        Returns:
            Ordered list of VocabularyItems

        Raises:
            ValueError: If the reference time is naive
        """
        now = self._now() if now is None else require_aware(now, "now")
        items = {item.id: item for item in self.store.list_items(learner_id)}
        selection = select_due(
            (
                DueCandidate(
                    id=item.id,
                    next_review_at=item.state.next_review_at,
                    mastery_stage=item.mastery_stage,
                )
                for item in items.values()
            ),
            now,
            exclude_stages=self.excluded_stages,
            limit=self.due_limit if limit is None else limit,
        )
        due = [items[item_id] for item_id in selection]

        logger.debug(f"Found {len(due)} due items for learner {learner_id}")
        return due
