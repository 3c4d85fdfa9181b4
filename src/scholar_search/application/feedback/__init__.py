"""
Feedback Learning - feedback history and preference-based re-ranking.
"""

from .learning import FeedbackLearningSystem, evaluate_filter, is_negative, is_positive, update_pattern
from .store import FeedbackStore, InMemoryFeedbackStore

__all__ = [
    "FeedbackLearningSystem",
    "FeedbackStore",
    "InMemoryFeedbackStore",
    "evaluate_filter",
    "is_negative",
    "is_positive",
    "update_pattern",
]
