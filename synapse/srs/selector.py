"""
Due-Set Selector.

Picks the items that are due for review from a snapshot:
1. Items in an excluded mastery stage (solid by default) are never due
2. Never-reviewed items (no next_review_at) are always due and come first
3. Remaining due items are ordered by next_review_at, oldest first

Ties keep their input order, so a fixed snapshot and ``now`` always give
the same sequence.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from itertools import islice

from synapse.core.mastery import MasteryStage

DEFAULT_EXCLUDED_STAGES: frozenset[MasteryStage] = frozenset({MasteryStage.SOLID})


@dataclass(frozen=True)
class DueCandidate:
    """The fields the selector needs from an item."""

    id: Hashable
    next_review_at: datetime | None = None
    mastery_stage: MasteryStage = MasteryStage.GHOST


def _due_order(candidate: DueCandidate) -> tuple[bool, datetime | None]:
    # (False, None) sorts before (True, <timestamp>) and never compares None to a datetime
    return (candidate.next_review_at is not None, candidate.next_review_at)


class DueSelection:
    """
    Lazy, restartable sequence of due item ids.

    Nothing is computed until iteration; each iteration re-runs the
    filter and ordering over the captured snapshot.
    """

    def __init__(
        self,
        items: Iterable[DueCandidate],
        now: datetime,
        exclude_stages: Iterable[MasteryStage] = DEFAULT_EXCLUDED_STAGES,
        limit: int | None = None,
    ):
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        self._items = tuple(items)
        self._now = now
        self._exclude = frozenset(MasteryStage.parse(s) for s in exclude_stages)
        self._limit = limit

    def _ordered(self) -> list[DueCandidate]:
        due = [
            item
            for item in self._items
            if item.mastery_stage not in self._exclude
            and (item.next_review_at is None or item.next_review_at <= self._now)
        ]
        return sorted(due, key=_due_order)

    def __iter__(self) -> Iterator[Hashable]:
        ordered = (item.id for item in self._ordered())
        if self._limit is not None:
            return islice(ordered, self._limit)
        return ordered

    def take(self, n: int) -> list[Hashable]:
        """First ``n`` due ids, after ordering and any existing limit."""
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        return list(islice(self, n))

    def count(self) -> int:
        """Number of due items (respecting the limit)."""
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"DueSelection(items={len(self._items)}, now={self._now!r}, limit={self._limit})"


def select_due(
    items: Iterable[DueCandidate],
    now: datetime,
    exclude_stages: Iterable[MasteryStage] = DEFAULT_EXCLUDED_STAGES,
    limit: int | None = None,
) -> DueSelection:
    """
    Select the items due for review at ``now``.

    Args:
        items: Snapshot of candidates
        now: Reference time
        exclude_stages: Stages that are never due
        limit: Optional cap, applied after ordering

    Returns:
        DueSelection yielding item ids in review order
    """
    return DueSelection(items, now, exclude_stages, limit)
