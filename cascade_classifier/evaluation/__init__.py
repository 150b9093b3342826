"""Evaluation: scoring, precision tables and probability calibration."""

from .calibration import ProbabilityCalibrator, SigmoidParams
from .scoring import NO_PRECISION, ClassWeights, PrecisionTable, ScoreEvaluator, ScoreSummary

__all__ = [
    'ProbabilityCalibrator', 'SigmoidParams',
    'NO_PRECISION', 'ClassWeights', 'PrecisionTable', 'ScoreEvaluator', 'ScoreSummary',
]
