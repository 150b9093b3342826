"""Classification: saved state and runtime scoring."""

from .runtime import CASCADE_ACCEPT_SCORE, REJECTED_SCORE, ClassifierRuntime, make_classifier
from .state import SavedState

__all__ = [
    'CASCADE_ACCEPT_SCORE', 'REJECTED_SCORE', 'ClassifierRuntime', 'make_classifier',
    'SavedState',
]
