"""
Feature Protocol - Interface for lazily evaluated feature vectors.

Implementations:
- CachedFeature (cascade_classifier.features)
- ArrayFeature (cascade_classifier.features)
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FeatureProvider(Protocol):
    """Protocol for one candidate's feature vector."""

    def value(self, index: int) -> float:
        """Value of coordinate ``index``, computed on first access and cached."""
        ...

    def dimension(self) -> int:
        """Fixed number of coordinates."""
        ...
