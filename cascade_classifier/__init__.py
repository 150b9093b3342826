"""
Cascade classifier: a cheap cascade of single-feature rejectors in front of a
calibrated SVM, with cross-validated feature subset and hyperparameter search.

Primary Components:
- TrainingOrchestrator: collects examples, trains and saves a classifier
- ClassifierRuntime / make_classifier: loads and scores with a saved classifier
- TrainingConfig: every training knob, loaded once
"""

__version__ = "0.1.0"

from .utils.config import TrainingConfig
from .training.orchestrator import TrainingOrchestrator, TrainingResult, TrainingStage
from .classification.runtime import ClassifierRuntime, make_classifier
from .features import ArrayFeature, CachedFeature

__all__ = [
    'TrainingConfig',
    'TrainingOrchestrator', 'TrainingResult', 'TrainingStage',
    'ClassifierRuntime', 'make_classifier',
    'ArrayFeature', 'CachedFeature',
]
