"""
Feature vectors with lazy, cached per-coordinate evaluation.

The cascade only looks at a handful of coordinates before rejecting most
candidates, so expensive features are computed on first access only.
"""

from abc import ABC, abstractmethod
from typing import Sequence, Union

import numpy as np

from cascade_classifier.errors import InvalidData
from cascade_classifier.interfaces import FeatureProvider


class CachedFeature(ABC):
    """
    Base for feature vectors whose coordinates are expensive to compute.

    Subclasses implement ``compute(index)``; ``value(index)`` computes each
    coordinate at most once and rejects non-finite values.
    """

    def __init__(self, dim: int):
        if dim <= 0:
            raise InvalidData("Feature dimension must be positive", data={"dim": dim})
        self._dim = dim
        self._values = np.full(dim, np.nan)
        self._computed = np.zeros(dim, dtype=bool)

    @abstractmethod
    def compute(self, index: int) -> float:
        """Compute coordinate ``index``."""

    def dimension(self) -> int:
        return self._dim

    def value(self, index: int) -> float:
        if not self._computed[index]:
            value = float(self.compute(index))
            if not np.isfinite(value):
                raise InvalidData(
                    "Feature value is not finite",
                    data={"index": index, "value": value},
                )
            self._values[index] = value
            self._computed[index] = True
        return self._values[index]

    def computed_count(self) -> int:
        """How many coordinates have been evaluated so far."""
        return int(self._computed.sum())

    def entire_feature(self) -> np.ndarray:
        """Evaluate every coordinate and return a copy of the vector."""
        for i in range(self._dim):
            self.value(i)
        return self._values.copy()


class ArrayFeature(CachedFeature):
    """Feature vector whose values are already known."""

    def __init__(self, values: Union[Sequence[float], np.ndarray]):
        values = np.asarray(values, dtype=np.float64).ravel()
        super().__init__(len(values))
        self._source = values

    def compute(self, index: int) -> float:
        return self._source[index]


def as_feature(feature: Union[FeatureProvider, Sequence[float], np.ndarray]) -> FeatureProvider:
    """Wrap arrays and sequences in an ``ArrayFeature``; pass providers through."""
    if isinstance(feature, FeatureProvider):
        return feature
    return ArrayFeature(feature)


def feature_vector(feature: FeatureProvider) -> np.ndarray:
    """Full coordinate vector of any provider."""
    if isinstance(feature, CachedFeature):
        return feature.entire_feature()
    return np.array([feature.value(i) for i in range(feature.dimension())], dtype=np.float64)
