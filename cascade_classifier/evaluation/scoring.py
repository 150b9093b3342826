"""
Scoring of raw classifier outputs under class imbalance.

Usage:
    from cascade_classifier.evaluation.scoring import ClassWeights, ScoreEvaluator

    weights = ClassWeights.balanced(n_pos, n_neg)
    summary = ScoreEvaluator(weights).evaluate(labels, outputs)
    print(summary.sign_correction, summary.success_rate, summary.bsr)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np

from cascade_classifier.errors import InvalidData

logger = logging.getLogger(__name__)

# Target precision meaning "no constraint": use boundary 0
NO_PRECISION = -1.0


# =============================================================================
# CLASS WEIGHTS
# =============================================================================

@dataclass(frozen=True)
class ClassWeights:
    """Misclassification cost of one example of each class."""
    negative: float
    positive: float = 1.0

    @classmethod
    def balanced(cls, n_positives: int, n_negatives: int, neg_relative_weight: float = 1.0) -> "ClassWeights":
        """Weights giving both classes equal total cost (times ``neg_relative_weight``)."""
        if n_positives <= 0 or n_negatives <= 0:
            raise InvalidData(
                "Class weights need examples of both classes",
                data={"n_positives": n_positives, "n_negatives": n_negatives},
            )
        return cls(negative=neg_relative_weight * n_positives / n_negatives, positive=1.0)

    def for_labels(self, labels: np.ndarray) -> np.ndarray:
        return np.where(labels > 0, self.positive, self.negative)

    def as_sklearn(self) -> Dict[int, float]:
        return {-1: self.negative, 1: self.positive}


# =============================================================================
# SCORE SUMMARY
# =============================================================================

@dataclass
class ScoreSummary:
    """Scores of one set of sign-corrected predictions."""
    sign_correction: int
    success_rate: float
    bsr: float
    precision: float
    recall: float
    negative_success_rate: float
    positive_success_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sign_correction': self.sign_correction,
            'success_rate': self.success_rate,
            'bsr': self.bsr,
            'precision': self.precision,
            'recall': self.recall,
            'negative_success_rate': self.negative_success_rate,
            'positive_success_rate': self.positive_success_rate,
        }


class ScoreEvaluator:
    """
    Sign correction, weighted success rate, BSR and precision/recall.

    The classifier's polarity is not trusted: if the weighted error of
    ``sign(output - boundary)`` is at least half the total weight, the outputs
    are taken to be inverted and every score is computed on the flipped
    predictions.
    """

    def __init__(self, class_weights: ClassWeights):
        self.class_weights = class_weights

    def evaluate(self, labels: np.ndarray, outputs: np.ndarray, boundary: float = 0.0) -> ScoreSummary:
        labels = np.asarray(labels, dtype=np.float64)
        outputs = np.asarray(outputs, dtype=np.float64)
        if labels.shape != outputs.shape or len(labels) == 0:
            raise InvalidData(
                "Labels and outputs must be non-empty and aligned",
                data={"labels": labels.shape, "outputs": outputs.shape},
            )
        if not np.all(np.isfinite(outputs)):
            raise InvalidData("Classifier outputs are not finite")

        shifted = outputs - boundary
        actual_pos = labels > 0
        weights = self.class_weights.for_labels(labels)

        wrong = (shifted > 0) != actual_pos
        total_cost = weights.sum()
        error_cost = weights[wrong].sum()

        if error_cost < 0.5 * total_cost:
            sign = 1
            success_rate = (total_cost - error_cost) / total_cost
        else:
            sign = -1
            success_rate = error_cost / total_cost

        predicted_pos = sign * shifted > 0
        correct = predicted_pos == actual_pos

        class_rates = []
        for mask in (~actual_pos, actual_pos):
            n = mask.sum()
            class_rates.append(correct[mask].sum() / n if n else 0.0)
        bsr = 0.5 * (class_rates[0] + class_rates[1])

        true_pos = (predicted_pos & actual_pos).sum()
        n_predicted = predicted_pos.sum()
        n_actual = actual_pos.sum()
        precision = true_pos / n_predicted if n_predicted else 0.0
        recall = true_pos / n_actual if n_actual else 0.0

        return ScoreSummary(
            sign_correction=sign,
            success_rate=float(success_rate),
            bsr=float(bsr),
            precision=float(precision),
            recall=float(recall),
            negative_success_rate=float(class_rates[0]),
            positive_success_rate=float(class_rates[1]),
        )


# =============================================================================
# PRECISION TABLE
# =============================================================================

@dataclass(frozen=True)
class PrecisionTable:
    """Measured precision at each swept decision boundary."""
    boundaries: Tuple[float, ...]
    precisions: Tuple[float, ...]

    def __post_init__(self):
        boundaries = tuple(float(b) for b in self.boundaries)
        precisions = tuple(float(p) for p in self.precisions)
        if len(boundaries) != len(precisions):
            raise InvalidData(
                "Precision table columns differ in length",
                data={"boundaries": len(boundaries), "precisions": len(precisions)},
            )
        object.__setattr__(self, 'boundaries', boundaries)
        object.__setattr__(self, 'precisions', precisions)

    def __len__(self) -> int:
        return len(self.boundaries)

    def interpolate(self, target_precision: float) -> float:
        """
        Boundary expected to give ``target_precision``.

        Fits a line through the entry nearest in precision and the nearest
        entry with a different precision. An exact match returns its boundary.
        ``NO_PRECISION`` returns 0.

        Raises:
            InvalidData: if the table cannot support a line fit
        """
        if target_precision == NO_PRECISION:
            return 0.0
        if len(self) == 0:
            raise InvalidData("Precision table is empty")

        precisions = np.asarray(self.precisions)
        boundaries = np.asarray(self.boundaries)
        distance = np.abs(precisions - target_precision)
        order = np.argsort(distance, kind='stable')

        first = order[0]
        if distance[first] == 0:
            return float(boundaries[first])

        others = [i for i in order[1:] if precisions[i] != precisions[first]]
        if not others:
            raise InvalidData(
                "Precision table has no two distinct precisions to interpolate",
                data={"target": target_precision},
            )
        second = others[0]

        p1, p2 = precisions[first], precisions[second]
        b1, b2 = boundaries[first], boundaries[second]
        m = (b2 - b1) / (p2 - p1)
        c = b1 - m * p1
        boundary = target_precision * m + c
        if not np.isfinite(boundary):
            raise InvalidData(
                "Interpolated boundary is not finite",
                data={"target": target_precision, "points": [(b1, p1), (b2, p2)]},
            )
        return float(boundary)


def sweep_boundaries(lo: float = -1.0, hi: float = 1.0, step: float = 0.1) -> np.ndarray:
    """Boundaries lo, lo+step, ... up to and including hi."""
    n = int(np.floor((hi - lo) / step + 1e-9)) + 1
    return np.round(lo + step * np.arange(n), 12)


def build_precision_table(
    evaluator: ScoreEvaluator,
    labels: np.ndarray,
    outputs: np.ndarray,
    boundaries: np.ndarray,
) -> Tuple[PrecisionTable, List[ScoreSummary]]:
    """Evaluate every boundary (each with its own sign correction)."""
    summaries = [evaluator.evaluate(labels, outputs, b) for b in boundaries]
    for b, s in zip(boundaries, summaries):
        logger.debug(
            f"Boundary {b:+.2f}: precision {s.precision:.4f} recall {s.recall:.4f} "
            f"success rate {s.success_rate:.4f} sign {s.sign_correction:+d}"
        )
    table = PrecisionTable(tuple(boundaries), tuple(s.precision for s in summaries))
    return table, summaries
