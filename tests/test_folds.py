"""Fold splitting and cross-validation tests."""

import numpy as np
import pytest

from cascade_classifier.errors import InvalidData
from cascade_classifier.evaluation.scoring import ClassWeights
from cascade_classifier.training.examples import ExampleSet
from cascade_classifier.training.folds import CrossValidator, FoldSplitter, fold_ranges
from cascade_classifier.training.hyperparams import Hyperparameter, Parameterization
from cascade_classifier.utils.config import SelectionMetric


def indexed_examples(n_neg, n_pos):
    """Rows hold their own id so folds can be traced back."""
    negatives = np.arange(n_neg, dtype=float).reshape(-1, 1)
    positives = (1000 + np.arange(n_pos, dtype=float)).reshape(-1, 1)
    return ExampleSet(negatives, positives)


# =============================================================================
# SPLITTER
# =============================================================================

@pytest.mark.unit
class TestFoldSplitter:
    """Tests for FoldSplitter.split."""

    def test_fold_ranges_are_contiguous(self):
        assert fold_ranges(10, 3) == [(0, 3), (3, 6), (6, 10)]

    def test_validation_partitions_each_class(self):
        """Each example is held out exactly once."""
        examples = indexed_examples(60, 30)
        folds = FoldSplitter(6).split(examples)

        held_out = np.concatenate([f.validation_features.ravel() for f in folds])
        assert sorted(held_out) == sorted(examples.all_features().ravel())
        assert len(set(held_out)) == len(held_out)

    def test_training_is_complement(self):
        examples = indexed_examples(60, 30)
        for fold in FoldSplitter(6).split(examples):
            train = set(fold.train_features.ravel())
            val = set(fold.validation_features.ravel())
            assert not train & val
            assert train | val == set(examples.all_features().ravel())

    def test_folds_are_stratified(self):
        examples = indexed_examples(60, 30)
        for fold in FoldSplitter(6).split(examples):
            assert (fold.validation_labels < 0).sum() == 10
            assert (fold.validation_labels > 0).sum() == 5
            assert (fold.validation_labels > 0).tolist() == (fold.validation_features.ravel() >= 1000).tolist()

    def test_transform_applied(self):
        examples = indexed_examples(12, 6)
        folds = FoldSplitter(3).split(examples, transform=lambda rows: rows * 2)
        assert folds[0].validation_features.max() == 2 * 1001

    def test_empty_validation_side(self):
        with pytest.raises(InvalidData):
            FoldSplitter(3).split(indexed_examples(1, 1))

    def test_needs_two_folds(self):
        with pytest.raises(InvalidData):
            FoldSplitter(1)


# =============================================================================
# CROSS VALIDATOR
# =============================================================================

@pytest.mark.unit
class TestCrossValidator:
    """Tests for CrossValidator.evaluate."""

    @pytest.fixture
    def folds(self, overlapping_examples):
        # 200 negatives and 60 positives split evenly into 4 folds
        return FoldSplitter(4).split(overlapping_examples)

    def test_penalized_score(self, folds, linear_trainer):
        weights = ClassWeights.balanced(60, 200)
        cv = CrossValidator(linear_trainer, weights, complexity_penalty=0.003)
        p = Parameterization(Hyperparameter(0.1, 0.5))

        score = cv.evaluate(p, folds)

        assert p.score == score
        assert 0.8 < score + 0.003 * 3 <= 1.0
        assert p.support_vectors == 3

    def test_bsr_metric(self, folds, linear_trainer):
        weights = ClassWeights.balanced(60, 200)
        weighted = CrossValidator(linear_trainer, weights, 0.0).evaluate(Parameterization(Hyperparameter(0.1)), folds)
        bsr = CrossValidator(linear_trainer, weights, 0.0, SelectionMetric.BSR).evaluate(
            Parameterization(Hyperparameter(0.1)), folds
        )
        # Balanced weights make the two metrics coincide
        assert bsr == pytest.approx(weighted)

    def test_solver_failure_scores_zero(self, folds, make_linear_trainer, caplog):
        bad = Hyperparameter(0.9, 1.0)
        trainer = make_linear_trainer(fail_on=bad)
        cv = CrossValidator(trainer, ClassWeights.balanced(60, 200), complexity_penalty=0.01)
        p = Parameterization(bad)

        with caplog.at_level("WARNING"):
            score = cv.evaluate(p, folds)

        assert score == pytest.approx(-0.03)
        assert p.support_vectors == 0
        assert "scored 0" in caplog.text

    def test_score_set_once(self, folds, linear_trainer):
        cv = CrossValidator(linear_trainer, ClassWeights.balanced(60, 200))
        p = Parameterization(Hyperparameter(0.1))
        cv.evaluate(p, folds)
        with pytest.raises(InvalidData):
            cv.evaluate(p, folds)

    def test_out_of_fold_scores(self, folds, linear_trainer):
        cv = CrossValidator(linear_trainer, ClassWeights.balanced(60, 200))
        scores, labels = cv.out_of_fold_scores(Hyperparameter(0.1), folds)

        assert len(scores) == len(labels) == 260
        # Held-out scores still separate the classes on average
        assert scores[labels > 0].mean() > scores[labels < 0].mean()
