"""
Interfaces (Protocols) for dependency injection.

Concrete implementations are built by factory functions
(``make_trainer``, ``make_classifier``) from a ``TrainingConfig``.
"""

from .feature_protocol import FeatureProvider
from .trainer_protocol import ClassifierTrainer, Calibrator

__all__ = ['FeatureProvider', 'ClassifierTrainer', 'Calibrator']
