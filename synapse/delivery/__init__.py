"""
Delivery layer: hosts the scheduling engine.

Components:
- StateStore: SQLite persistence for items and the review log
- ReviewService: Serialized review submission and due queues
- AnalyticsService: Learner statistics over stored state
"""

from .analytics import AnalyticsService, ChallengingWord, LearnerStats
from .review_service import ReviewResponse, ReviewService, feedback_message, format_interval
from .state_store import (
    ConcurrentUpdateError,
    ItemNotFoundError,
    ReviewRecord,
    StateStore,
    VocabularyItem,
)

__all__ = [
    # Persistence
    "StateStore",
    "VocabularyItem",
    "ReviewRecord",
    "ItemNotFoundError",
    "ConcurrentUpdateError",
    # Reviews
    "ReviewService",
    "ReviewResponse",
    "feedback_message",
    "format_interval",
    # Analytics
    "AnalyticsService",
    "LearnerStats",
    "ChallengingWord",
]
