"""
Runtime scoring of candidates with a trained cascade classifier.

Usage:
    from cascade_classifier.classification.runtime import make_classifier

    classifier = make_classifier('models/', 'door', target_precision=0.9)
    score = classifier.classify(feature)
    prob, score = classifier.probability(feature)
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from cascade_classifier.classification.state import SavedState
from cascade_classifier.errors import InvalidParameters, InvalidState
from cascade_classifier.features import as_feature
from cascade_classifier.evaluation.scoring import NO_PRECISION
from cascade_classifier.interfaces import ClassifierTrainer
from cascade_classifier.training.svm_trainer import SVMTrainer
from cascade_classifier.utils.logger import get_logger

logger = get_logger(__name__)

# Returned when the cascade rejects
REJECTED_SCORE = -1.0
# Returned when the cascade accepts and no SVM was trained
CASCADE_ACCEPT_SCORE = 1.0


class ClassifierRuntime:
    """Cascade, then normalized subset, then SVM, sign and boundary."""

    def __init__(
        self,
        state: SavedState,
        target_precision: float = NO_PRECISION,
        trainer: Optional[ClassifierTrainer] = None,
    ):
        self.state = state
        self.trainer = trainer or SVMTrainer()
        self.target_precision = target_precision
        self.boundary = 0.0

        if not state.cascade_only:
            self.boundary = state.precision_table.interpolate(target_precision)
            if target_precision != NO_PRECISION:
                logger.info(f"Boundary {self.boundary:.4f} for target precision {target_precision}")

    @classmethod
    def load(
        cls,
        directory: Union[str, Path],
        label: str,
        target_precision: float = NO_PRECISION,
        trainer: Optional[ClassifierTrainer] = None,
    ) -> "ClassifierRuntime":
        return cls(SavedState.load(directory, label), target_precision, trainer)

    def classify(self, feature) -> float:
        """Signed score; positive means the candidate is accepted."""
        feature = as_feature(feature)
        if not self.state.cascade.keep(feature):
            return REJECTED_SCORE
        if self.state.cascade_only:
            return CASCADE_ACCEPT_SCORE

        row = self.state.subset.select_and_normalize_feature(feature)
        raw = float(self.trainer.predict(self.state.model, row, raw=True)[0])
        return self.state.sign_correction * (raw - self.boundary)

    def probability(self, feature) -> Tuple[float, float]:
        """
        (probability, score) for one candidate.

        Raises:
            InvalidState: if the saved calibration is invalid or yields a value
                outside [0, 1]
        """
        try:
            self.state.sigmoid.validate()
        except InvalidParameters as e:
            raise InvalidState("Saved calibration is invalid", data=self.state.sigmoid.to_dict(), cause=e) from e

        score = self.classify(feature)
        prob = float(self.state.sigmoid.prob(score))
        if not (np.isfinite(prob) and 0.0 <= prob <= 1.0):
            raise InvalidState("Calibrated probability out of range", data={"prob": prob, "score": score})
        return prob, score


def make_classifier(
    directory: Union[str, Path],
    label: str,
    target_precision: float = NO_PRECISION,
    trainer: Optional[ClassifierTrainer] = None,
) -> ClassifierRuntime:
    """Load a saved classifier ready for scoring."""
    return ClassifierRuntime.load(directory, label, target_precision, trainer)
