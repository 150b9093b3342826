"""
Class-stratified K-fold splitting and cross-validation of one grid point.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from cascade_classifier.errors import InvalidData, PredictionFailure
from cascade_classifier.evaluation.scoring import ClassWeights, ScoreEvaluator
from cascade_classifier.interfaces import ClassifierTrainer
from cascade_classifier.training.examples import ExampleSet
from cascade_classifier.training.hyperparams import Hyperparameter, Parameterization
from cascade_classifier.utils.config import SelectionMetric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fold:
    """Training and validation rows (already subset-selected and normalized)."""
    train_features: np.ndarray
    train_labels: np.ndarray
    validation_features: np.ndarray
    validation_labels: np.ndarray

    @property
    def dimension(self) -> int:
        return self.train_features.shape[1]


def fold_ranges(count: int, k: int) -> List[Tuple[int, int]]:
    """Contiguous [start, end) ranges splitting ``count`` items into ``k`` parts."""
    return [(count * i // k, count * (i + 1) // k) for i in range(k)]


class FoldSplitter:
    """
    Splits each class into K contiguous blocks; fold i validates on block i of
    both classes and trains on the rest.
    """

    def __init__(self, k: int = 6):
        if k < 2:
            raise InvalidData("Need at least two folds", data={"k": k})
        self.k = k

    def validation_indices(self, examples: ExampleSet) -> List[Tuple[np.ndarray, np.ndarray]]:
        """Per fold, (negative row indices, positive row indices) held out."""
        neg_ranges = fold_ranges(examples.n_negatives, self.k)
        pos_ranges = fold_ranges(examples.n_positives, self.k)
        return [
            (np.arange(*neg_ranges[i]), np.arange(*pos_ranges[i]))
            for i in range(self.k)
        ]

    def split(self, examples: ExampleSet, transform=None) -> List[Fold]:
        """
        Build the folds, applying ``transform`` (e.g. subset selection) to rows.

        Raises:
            InvalidData: if any fold has an empty training or validation side
        """
        transform = transform or (lambda rows: rows)
        neg = transform(examples.negatives)
        pos = transform(examples.positives)

        folds = []
        for i, (neg_val, pos_val) in enumerate(self.validation_indices(examples)):
            neg_mask = np.zeros(examples.n_negatives, dtype=bool)
            pos_mask = np.zeros(examples.n_positives, dtype=bool)
            neg_mask[neg_val] = True
            pos_mask[pos_val] = True

            train_x = np.vstack([neg[~neg_mask], pos[~pos_mask]])
            train_y = np.concatenate([-np.ones((~neg_mask).sum()), np.ones((~pos_mask).sum())])
            val_x = np.vstack([neg[neg_mask], pos[pos_mask]])
            val_y = np.concatenate([-np.ones(neg_mask.sum()), np.ones(pos_mask.sum())])

            if len(train_y) == 0 or len(val_y) == 0:
                raise InvalidData(
                    "Fold has no training or validation examples",
                    data={"fold": i, "n_train": len(train_y), "n_validation": len(val_y)},
                )
            folds.append(Fold(train_x, train_y, val_x, val_y))
        return folds


class CrossValidator:
    """
    Penalized K-fold score of one parameterization.

    score = mean fold success rate - complexity_penalty * dimension
    """

    def __init__(
        self,
        trainer: ClassifierTrainer,
        class_weights: ClassWeights,
        complexity_penalty: float = 0.003,
        metric: SelectionMetric = SelectionMetric.WEIGHTED,
    ):
        self.trainer = trainer
        self.class_weights = class_weights
        self.evaluator = ScoreEvaluator(class_weights)
        self.complexity_penalty = complexity_penalty
        self.metric = SelectionMetric(metric)

    def _fold_result(self, hyperparameter: Hyperparameter, fold: Fold) -> Tuple[float, int]:
        """(fold score, support vectors); a solver failure scores 0."""
        try:
            model = self.trainer.train(
                fold.train_features, fold.train_labels, hyperparameter, self.class_weights
            )
            outputs = self.trainer.predict(model, fold.validation_features, raw=True)
        except PredictionFailure as e:
            logger.warning(f"Fold scored 0 for {hyperparameter}: {e.message}")
            return 0.0, 0

        summary = self.evaluator.evaluate(fold.validation_labels, outputs)
        score = summary.bsr if self.metric == SelectionMetric.BSR else summary.success_rate
        return score, self.trainer.support_vector_count(model)

    def evaluate(self, parameterization: Parameterization, folds: Sequence[Fold]) -> float:
        """Cross-validate and record the score on ``parameterization``."""
        if not folds:
            raise InvalidData("No folds to cross-validate on")

        results = [self._fold_result(parameterization.hyperparameter, f) for f in folds]
        mean_score = float(np.mean([r[0] for r in results]))
        mean_sv = float(np.mean([r[1] for r in results]))
        score = mean_score - self.complexity_penalty * folds[0].dimension

        parameterization.set_score(score, mean_sv)
        return score

    def out_of_fold_scores(
        self,
        hyperparameter: Hyperparameter,
        folds: Sequence[Fold],
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Held-out raw scores of every fold, each multiplied by its fold's sign
        correction, with their labels. Folds whose solver fails are skipped.
        """
        scores, labels = [], []
        for i, fold in enumerate(folds):
            try:
                model = self.trainer.train(
                    fold.train_features, fold.train_labels, hyperparameter, self.class_weights
                )
                outputs = self.trainer.predict(model, fold.validation_features, raw=True)
            except PredictionFailure as e:
                logger.warning(f"Skipping fold {i} for calibration: {e.message}")
                continue
            sign = self.evaluator.evaluate(fold.validation_labels, outputs).sign_correction
            scores.append(sign * outputs)
            labels.append(fold.validation_labels)

        if not scores:
            return np.empty(0), np.empty(0)
        return np.concatenate(scores), np.concatenate(labels)
