"""
Trainer Protocols - Interfaces for the external solvers.

Implementations:
- SVMTrainer (cascade_classifier.training.svm_trainer)
- ProbabilityCalibrator (cascade_classifier.evaluation.calibration)
"""

from typing import Any, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class ClassifierTrainer(Protocol):
    """Protocol for a trainable binary kernel classifier."""

    def train(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        hyperparameter: Any,
        class_weights: Any,
    ) -> Any:
        """Fit a model on rows of ``features`` with +1/-1 ``labels``."""
        ...

    def predict(self, model: Any, features: np.ndarray, raw: bool = True) -> np.ndarray:
        """Raw decision values (or class labels when ``raw`` is False)."""
        ...

    def support_vector_count(self, model: Any) -> int:
        """Number of support vectors kept by ``model``."""
        ...


@runtime_checkable
class Calibrator(Protocol):
    """Protocol for score-to-probability calibration."""

    def fit(self, scores: np.ndarray, labels: np.ndarray) -> Any:
        """Fit calibration parameters to scores and +1/-1 labels."""
        ...
