"""Per-feature centering/scaling and feature subset selection."""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from cascade_classifier.errors import InvalidData
from cascade_classifier.interfaces import FeatureProvider
from cascade_classifier.training.examples import ExampleSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizationCoefficients:
    """Mean and scale for every feature dimension."""
    mean: np.ndarray
    scale: np.ndarray

    def __post_init__(self):
        mean = np.asarray(self.mean, dtype=np.float64)
        scale = np.asarray(self.scale, dtype=np.float64)
        if mean.shape != scale.shape or mean.ndim != 1:
            raise InvalidData(
                "Normalization mean and scale must be vectors of equal length",
                data={"mean_shape": mean.shape, "scale_shape": scale.shape},
            )
        if not np.all(np.isfinite(scale)) or not np.all(np.isfinite(mean)):
            raise InvalidData("Normalization coefficients are not finite")
        object.__setattr__(self, 'mean', mean)
        object.__setattr__(self, 'scale', scale)

    @property
    def dimension(self) -> int:
        return len(self.mean)

    def normalize(self, matrix: np.ndarray) -> np.ndarray:
        return (matrix - self.mean) * self.scale


@dataclass(frozen=True)
class FeatureSubset:
    """Selected feature indices plus full-dimension normalization."""
    indices: Tuple[int, ...]
    coefficients: NormalizationCoefficients

    def __post_init__(self):
        indices = tuple(int(i) for i in self.indices)
        if not indices:
            raise InvalidData("Feature subset is empty")
        if len(set(indices)) != len(indices):
            raise InvalidData("Feature subset has duplicate indices", data={"indices": list(indices)})
        if min(indices) < 0 or max(indices) >= self.coefficients.dimension:
            raise InvalidData(
                "Feature subset index out of range",
                data={"indices": list(indices), "dimension": self.coefficients.dimension},
            )
        object.__setattr__(self, 'indices', indices)

    def __len__(self) -> int:
        return len(self.indices)

    def select_and_normalize(self, matrix: np.ndarray) -> np.ndarray:
        """Rows of ``matrix`` restricted to the subset and normalized."""
        idx = list(self.indices)
        return (np.asarray(matrix)[:, idx] - self.coefficients.mean[idx]) * self.coefficients.scale[idx]

    def select_and_normalize_feature(self, feature: FeatureProvider) -> np.ndarray:
        """One normalized row, evaluating only the selected coordinates."""
        idx = list(self.indices)
        values = np.array([feature.value(i) for i in idx], dtype=np.float64)
        row = (values - self.coefficients.mean[idx]) * self.coefficients.scale[idx]
        return row.reshape(1, -1)


class NormalizationFitter:
    """Fits mean and 1/SD per feature over both classes together."""

    def fit(self, examples: ExampleSet) -> NormalizationCoefficients:
        """
        Compute coefficients from the union of positives and negatives.

        A zero standard deviation gives scale 1.

        Raises:
            InvalidData: if there are no examples or a scale is not finite
        """
        features = examples.all_features()
        if len(features) == 0 or examples.dimension == 0:
            raise InvalidData(
                "Cannot fit normalization without examples",
                data={"n_examples": len(features), "dimension": examples.dimension},
            )

        mean = features.mean(axis=0)
        sd = features.std(axis=0)
        with np.errstate(divide='ignore', invalid='ignore'):
            scale = np.where(sd == 0, 1.0, 1.0 / sd)

        bad = np.flatnonzero(~np.isfinite(scale) | ~np.isfinite(mean))
        if len(bad):
            raise InvalidData(
                "Normalization scale is not finite",
                data={"features": bad.tolist()},
            )

        coefficients = NormalizationCoefficients(mean, scale)
        if logger.isEnabledFor(logging.DEBUG):
            self._log_class_statistics(examples, coefficients)
        return coefficients

    @staticmethod
    def _log_class_statistics(examples: ExampleSet, coefficients: NormalizationCoefficients):
        for name, rows in (("negative", examples.negatives), ("positive", examples.positives)):
            if len(rows) == 0:
                continue
            normalized = coefficients.normalize(rows)
            logger.debug(
                f"Normalized {name} mean: {np.array2string(normalized.mean(axis=0), precision=3)} "
                f"SD: {np.array2string(normalized.std(axis=0), precision=3)}"
            )
