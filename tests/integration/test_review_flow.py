"""
Integration tests for the review flow on a temporary SQLite store.

Tests:
- Review submission persists state and appends to the review log
- Invalid quality, naive clocks and failed log writes leave the item untouched
- Version check rejects stale writes
- Concurrent reviews of one item are serialized
- Due queue ordering, stage exclusion and limits
- Learner analytics

Run: pytest tests/integration/test_review_flow.py -v
"""

import sqlite3
import threading
from datetime import datetime, timedelta

import pytest

from synapse.core.mastery import MasteryStage
from synapse.delivery.analytics import AnalyticsService
from synapse.delivery.review_service import ReviewService, feedback_message, format_interval
from synapse.delivery.state_store import ConcurrentUpdateError, ItemNotFoundError, StateStore
from synapse.srs.state import InvalidQuality, SchedulingState

LEARNER = 1


class Clock:
    """Settable clock for deterministic reviews."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock(fixed_now):
    return Clock(fixed_now)


@pytest.fixture
def service(store, clock):
    return ReviewService(store, clock=clock, due_limit=20, excluded_stages={MasteryStage.SOLID})


@pytest.fixture
def word(store):
    return store.add_item(LEARNER, "talo", "house")


class TestStateStore:
    def test_new_item_has_default_state(self, word):
        assert word.state == SchedulingState()
        assert word.mastery_stage is MasteryStage.GHOST
        assert word.version == 0
        assert word.added_at is not None

    def test_get_unknown_item(self, store):
        with pytest.raises(ItemNotFoundError):
            store.get_item(999)

    def test_get_item_scoped_by_learner(self, store, word):
        with pytest.raises(ItemNotFoundError):
            store.get_item(word.id, learner_id=LEARNER + 1)

    def test_state_round_trips(self, store, word, fixed_now):
        state = SchedulingState(2.36, 3, 16, fixed_now + timedelta(days=16), fixed_now)

        store.save_state(word.id, state, expected_version=0)

        loaded = store.get_item(word.id)
        assert loaded.state == state
        assert loaded.version == 1

    def test_stale_version_rejected(self, store, word, fixed_now):
        state = SchedulingState(2.6, 1, 1, fixed_now + timedelta(days=1), fixed_now)
        store.save_state(word.id, state, expected_version=0)

        with pytest.raises(ConcurrentUpdateError):
            store.save_state(word.id, SchedulingState(), expected_version=0)

        assert store.get_item(word.id).state == state

    def test_reopen_keeps_data(self, tmp_path, fixed_now):
        path = tmp_path / "persist.db"
        first = StateStore(path)
        item = first.add_item(LEARNER, "kissa", "cat")
        first.close()

        second = StateStore(path)
        assert second.get_item(item.id).term == "kissa"
        second.close()

    def test_memory_store(self):
        store = StateStore(":memory:")
        item = store.add_item(LEARNER, "koira")

        assert store.list_items(LEARNER) == [item]
        store.close()

    def test_record_review_writes_state_and_log(self, store, word, fixed_now):
        state = SchedulingState(2.6, 1, 1, fixed_now + timedelta(days=1), fixed_now)

        version = store.record_review(word, 5, state, expected_version=0)

        assert version == 1
        assert store.get_item(word.id).state == state
        [record] = store.get_review_history(word.id)
        assert record.quality == 5
        assert record.reviewed_at == fixed_now

    def test_stale_record_review_logs_nothing(self, store, word, fixed_now):
        state = SchedulingState(2.6, 1, 1, fixed_now + timedelta(days=1), fixed_now)
        store.save_state(word.id, state, expected_version=0)

        with pytest.raises(ConcurrentUpdateError):
            store.record_review(word, 5, state, expected_version=0)

        assert store.count_reviews(LEARNER) == 0

    def test_naive_timestamp_rejected(self, store, word):
        naive = datetime(2024, 3, 15, 9, 30)
        state = SchedulingState(2.6, 1, 1, naive + timedelta(days=1), naive)

        with pytest.raises(ValueError, match="timezone-aware"):
            store.save_state(word.id, state, expected_version=0)

        assert store.get_item(word.id) == word


class TestSubmitReview:
    def test_first_review(self, service, store, word, fixed_now):
        response = service.submit_review(word.id, 5)

        assert response.next_interval == 1
        assert response.message == "Great job! You'll see this word again in 1 day"

        stored = store.get_item(word.id)
        assert stored.state.ease_factor == pytest.approx(2.6)
        assert stored.state.repetition_count == 1
        assert stored.state.next_review_at == fixed_now + timedelta(days=1)
        assert stored.state.last_reviewed_at == fixed_now
        assert stored.version == 1
        assert response.item == stored

    def test_review_sequence(self, service, store, word, clock):
        service.submit_review(word.id, 5)
        clock.advance(days=1)
        second = service.submit_review(word.id, 4)
        clock.advance(days=6)
        third = service.submit_review(word.id, 2)

        assert second.next_interval == 6
        assert second.message == "Great job! You'll see this word again in 6 days"
        assert third.message == "Keep practicing! You'll review this again tomorrow."

        state = store.get_item(word.id).state
        assert state.repetition_count == 0
        assert state.interval_days == 1
        assert state.ease_factor == pytest.approx(2.28)
        assert state.next_review_at == clock.now + timedelta(days=1)

    def test_review_is_logged(self, service, store, word, clock):
        service.submit_review(word.id, 5)
        clock.advance(days=1)
        service.submit_review(word.id, 3)

        history = store.get_review_history(word.id)
        assert [record.quality for record in history] == [3, 5]
        assert history[0].reviewed_at == clock.now
        assert history[0].repetition_count == 2
        assert store.count_reviews(LEARNER) == 2

    @pytest.mark.parametrize("quality", [-1, 6, "5", None])
    def test_invalid_quality_changes_nothing(self, service, store, word, quality):
        with pytest.raises(InvalidQuality):
            service.submit_review(word.id, quality)

        assert store.get_item(word.id) == word
        assert store.count_reviews(LEARNER) == 0

    def test_unknown_item(self, service):
        with pytest.raises(ItemNotFoundError):
            service.submit_review(4242, 4)

    def test_other_learners_item(self, service, word):
        with pytest.raises(ItemNotFoundError):
            service.submit_review(word.id, 4, learner_id=LEARNER + 1)

    def test_stage_never_changed(self, service, store, word, clock):
        for _ in range(6):
            service.submit_review(word.id, 5)
            clock.advance(days=30)

        assert store.get_item(word.id).mastery_stage is MasteryStage.GHOST

    def test_concurrent_reviews_serialized(self, service, store, word):
        threads = [threading.Thread(target=service.submit_review, args=(word.id, 5)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stored = store.get_item(word.id)
        assert stored.state.repetition_count == 8
        assert stored.version == 8
        assert store.count_reviews(LEARNER) == 8
        assert service._locks == {}

    def test_item_locks_released(self, service, store, word):
        other = store.add_item(LEARNER, "kissa")
        service.submit_review(word.id, 4)
        service.submit_review(other.id, 4)
        with pytest.raises(InvalidQuality):
            service.submit_review(word.id, 9)
        with pytest.raises(ItemNotFoundError):
            service.submit_review(4242, 4)

        assert service._locks == {}

    def test_failed_log_write_rolls_back_state(self, service, store, word, monkeypatch):
        def broken_insert(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "_insert_review", broken_insert)

        with pytest.raises(sqlite3.OperationalError):
            service.submit_review(word.id, 5)

        stored = store.get_item(word.id)
        assert stored.state == SchedulingState()
        assert stored.version == 0
        assert store.count_reviews(LEARNER) == 0
        assert service._locks == {}

        monkeypatch.undo()
        assert service.submit_review(word.id, 5).item.version == 1

    def test_naive_clock_rejected(self, store, word):
        service = ReviewService(store, clock=lambda: datetime(2024, 3, 15, 9, 30))

        with pytest.raises(ValueError, match="timezone-aware"):
            service.submit_review(word.id, 4)

        assert store.get_item(word.id) == word
        assert store.count_reviews(LEARNER) == 0


class TestDueItems:
    def test_order_and_exclusion(self, service, store, clock):
        fresh = store.add_item(LEARNER, "uusi")
        overdue = store.add_item(LEARNER, "vanha")
        later = store.add_item(LEARNER, "myohemmin")
        mastered = store.add_item(LEARNER, "osattu")
        store.add_item(LEARNER + 1, "muu")

        service.submit_review(overdue.id, 3)
        service.submit_review(later.id, 5)
        service.submit_review(later.id, 5)  # 6 days out
        store.set_mastery_stage(mastered.id, MasteryStage.SOLID)
        clock.advance(days=2)

        due = service.due_items(LEARNER)

        assert [item.id for item in due] == [fresh.id, overdue.id]

    def test_limit(self, service, store):
        for n in range(5):
            store.add_item(LEARNER, f"sana{n}")

        assert len(service.due_items(LEARNER, limit=3)) == 3
        assert len(ReviewService(store, due_limit=2).due_items(LEARNER)) == 2

    def test_reviewed_item_not_due_until_next_day(self, service, word, clock):
        service.submit_review(word.id, 4)

        assert service.due_items(LEARNER) == []
        clock.advance(days=1)
        assert [item.id for item in service.due_items(LEARNER)] == [word.id]

    def test_naive_now_rejected(self, service, word, clock):
        service.submit_review(word.id, 4)

        with pytest.raises(ValueError, match="timezone-aware"):
            service.due_items(LEARNER, now=datetime(2024, 3, 20))


class TestAnalytics:
    def test_learner_stats(self, service, store, clock):
        easy = store.add_item(LEARNER, "helppo")
        hard = store.add_item(LEARNER, "vaikea")
        store.add_item(LEARNER, "uusi")
        solid = store.add_item(LEARNER, "valmis")
        store.set_mastery_stage(solid.id, "solid")

        service.submit_review(easy.id, 5)
        service.submit_review(hard.id, 1)
        service.submit_review(hard.id, 0)

        stats = AnalyticsService(store).learner_stats(LEARNER, now=clock.now)

        assert stats.total_words == 4
        assert stats.words_by_stage[MasteryStage.SOLID] == 1
        assert stats.words_by_stage[MasteryStage.GHOST] == 3
        assert stats.words_due_today == 1  # only "uusi"
        assert stats.total_reviews == 3
        assert stats.approximate_reviews == 1
        assert stats.average_ease_factor == pytest.approx((2.6 + 1.3 + 2.5 + 2.5) / 4)
        assert stats.to_dict()["words_by_stage"]["solid"] == 1

    def test_challenging_words(self, service, store):
        words = {term: store.add_item(LEARNER, term) for term in ["a", "b", "c", "never"]}
        service.submit_review(words["a"].id, 5)
        service.submit_review(words["b"].id, 0)
        service.submit_review(words["c"].id, 3)

        hardest = AnalyticsService(store).challenging_words(LEARNER, limit=2)

        assert [word.term for word in hardest] == ["b", "c"]

    def test_empty_learner(self, store):
        stats = AnalyticsService(store).learner_stats(99)

        assert stats.total_words == 0
        assert stats.average_ease_factor == 2.5
        assert all(count == 0 for count in stats.words_by_stage.values())

    def test_naive_now_rejected(self, store, word):
        with pytest.raises(ValueError, match="timezone-aware"):
            AnalyticsService(store).learner_stats(LEARNER, now=datetime(2024, 3, 15))


class TestMessages:
    @pytest.mark.parametrize(
        "days,expected",
        [(1, "1 day"), (6, "6 days"), (7, "1 week"), (16, "2 weeks"), (30, "1 month"), (95, "3 months")],
    )
    def test_format_interval(self, days, expected):
        assert format_interval(days) == expected

    def test_feedback_message(self):
        assert feedback_message(3, 6) == "Good! Review scheduled in 6 days"
        assert feedback_message(5, 16) == "Great job! You'll see this word again in 2 weeks"
        assert feedback_message(0, 1) == "Keep practicing! You'll review this again tomorrow."
