"""
Pytest configuration for cascade-classifier tests.

Automatically adds project root to sys.path so that 'from cascade_classifier...'
imports work without installing. Defines markers and shared fixtures.
"""
import sys
from pathlib import Path
from typing import Any, List

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cascade_classifier.errors import PredictionFailure
from cascade_classifier.training.examples import ExampleSet
from cascade_classifier.utils.config import TrainingConfig


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Tests that train real SVMs end to end")
    config.addinivalue_line("markers", "slow: Slow tests")


# =============================================================================
# Helpers
# =============================================================================

class LinearTrainer:
    """
    Deterministic stand-in for the SVM: the model is (weights, bias) and the
    raw output is ``features @ weights + bias``.
    """

    def __init__(self, weights=None, fail_on: Any = None):
        self.weights = weights
        self.fail_on = fail_on
        self.train_calls: List[Any] = []

    def train(self, features, labels, hyperparameter, class_weights):
        self.train_calls.append(hyperparameter)
        if self.fail_on is not None and hyperparameter == self.fail_on:
            raise PredictionFailure("scripted failure")
        if self.weights is not None:
            return np.asarray(self.weights, dtype=np.float64), 0.0
        # Difference of class means, centred between them
        mu_pos = features[labels > 0].mean(axis=0)
        mu_neg = features[labels < 0].mean(axis=0)
        weights = mu_pos - mu_neg
        return weights, -float(weights @ (mu_pos + mu_neg)) / 2

    def predict(self, model, features, raw=True):
        weights, bias = model
        return np.asarray(features, dtype=np.float64) @ weights + bias

    def support_vector_count(self, model):
        return len(model[0])


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def separable_examples(rng) -> ExampleSet:
    """Classes split cleanly along feature 0; feature 1 is noise."""
    negatives = np.column_stack([rng.uniform(-3, -1, 400), rng.normal(size=400)])
    positives = np.column_stack([rng.uniform(1, 3, 40), rng.normal(size=40)])
    return ExampleSet(negatives, positives)


@pytest.fixture
def overlapping_examples(rng) -> ExampleSet:
    """Three features, only feature 0 informative, classes overlap."""
    negatives = rng.normal(size=(200, 3))
    positives = rng.normal(size=(60, 3))
    positives[:, 0] += 2.5
    return ExampleSet(negatives, positives)


@pytest.fixture
def small_config() -> TrainingConfig:
    """Tiny grid and few folds so real SVM training stays fast."""
    return TrainingConfig(
        folds=3,
        nu_lo=0.05,
        nu_hi=0.3,
        nu_steps=2,
        log_gamma_lo=-3.0,
        log_gamma_hi=0.0,
        gamma_steps=2,
        feature_selection="backward",
        use_cascade=False,
        n_workers=2,
    ).validate()


@pytest.fixture
def linear_trainer() -> LinearTrainer:
    return LinearTrainer()


@pytest.fixture
def make_linear_trainer():
    """Factory for LinearTrainer with fixed weights or scripted failures."""
    return LinearTrainer
