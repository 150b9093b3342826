"""Cascade construction and evaluation tests.

Tests the greedy booster search:
    - Separable classes lose most negatives and no positives
    - Every accepted booster strictly shrinks the negatives
    - Splits never bisect equal values
    - Runtime evaluation stops at the first rejecting booster
"""

import numpy as np
import pytest

from cascade_classifier.errors import InvalidData
from cascade_classifier.features import CachedFeature
from cascade_classifier.training.cascade import BoosterState, Cascade, CascadeBuilder
from cascade_classifier.training.examples import ExampleSet


class CountingFeature(CachedFeature):
    """Feature over fixed values that counts how often it computes."""

    def __init__(self, values):
        super().__init__(len(values))
        self.source = list(values)
        self.calls = 0

    def compute(self, index):
        self.calls += 1
        return self.source[index]


# =============================================================================
# BUILD
# =============================================================================

@pytest.mark.unit
class TestCascadeBuilder:
    """Tests for CascadeBuilder.build."""

    def test_separable_classes(self, separable_examples):
        """Clean split along feature 0 removes >= 90% negatives, 0 positives."""
        cascade, remaining = CascadeBuilder().build(separable_examples)

        assert len(cascade) >= 1
        removed = separable_examples.n_negatives - remaining.n_negatives
        assert removed >= 0.9 * separable_examples.n_negatives
        assert remaining.n_positives == separable_examples.n_positives

        first = cascade.boosters[0]
        assert first.feature_index == 0
        assert not first.reject_above
        assert -1 < first.threshold < 1

    def test_each_booster_shrinks_negatives(self, rng):
        """Replaying boosters one by one never grows either class."""
        negatives = rng.normal(size=(2000, 4))
        positives = rng.normal(size=(50, 4)) * 0.3
        examples = ExampleSet(negatives, positives)

        cascade, remaining = CascadeBuilder().build(examples)

        current = examples
        for booster in cascade.boosters:
            filtered = Cascade((booster,)).filter(current)
            assert filtered.n_negatives < current.n_negatives
            assert filtered.n_positives <= current.n_positives
            current = filtered
        assert current.n_negatives == remaining.n_negatives
        assert current.n_positives == remaining.n_positives

    def test_too_few_negatives_gives_empty_cascade(self, rng):
        """Fewer than 150 removable negatives: no booster qualifies."""
        negatives = np.column_stack([rng.uniform(-3, -1, 149), rng.normal(size=149)])
        positives = np.column_stack([rng.uniform(1, 3, 40), rng.normal(size=40)])
        examples = ExampleSet(negatives, positives)

        cascade, remaining = CascadeBuilder().build(examples)

        assert len(cascade) == 0
        assert remaining.n_negatives == 149

    def test_thresholds_are_configurable(self, rng):
        """Lowering min_removed lets a small clean split through."""
        negatives = np.column_stack([rng.uniform(-3, -1, 50), rng.normal(size=50)])
        positives = np.column_stack([rng.uniform(1, 3, 20), rng.normal(size=20)])
        examples = ExampleSet(negatives, positives)

        cascade, remaining = CascadeBuilder(min_removed=10).build(examples)

        assert len(cascade) == 1
        assert remaining.n_negatives == 0

    def test_never_bisects_equal_values(self):
        """Negatives tied with a positive's value stay on the kept side."""
        negatives = np.array([[v] for v in range(200)], dtype=float)
        negatives = np.vstack([negatives, [[300.0]] * 50])
        positives = np.array([[300.0], [301.0], [302.0]])
        examples = ExampleSet(negatives, positives)

        cascade, remaining = CascadeBuilder().build(examples)

        assert len(cascade) == 1
        booster = cascade.boosters[0]
        assert booster.threshold == pytest.approx(249.5)
        assert remaining.n_negatives == 50
        assert remaining.n_positives == 3

    def test_no_negatives(self):
        """Nothing to reject: empty cascade."""
        examples = ExampleSet(np.empty((0, 2)), np.ones((5, 2)))
        cascade, remaining = CascadeBuilder().build(examples)
        assert len(cascade) == 0
        assert remaining is examples


# =============================================================================
# SPLIT SEARCH
# =============================================================================

@pytest.mark.unit
class TestBestSplit:
    """Tests for the per-feature split scan."""

    def test_reject_above_takes_furthest_clean_split(self):
        builder = CascadeBuilder()
        neg = np.arange(10, dtype=float)
        pos = np.array([-5.0, -6.0])

        split = builder.best_split(neg, pos, feature_index=3, reject_above=True)

        assert split.booster == BoosterState(3, -2.5, True)
        assert split.removed == 10
        assert split.fraction_removed == 1.0

    def test_no_admissible_split(self):
        builder = CascadeBuilder()
        neg = np.zeros(10)
        pos = np.zeros(3)
        assert builder.best_split(neg, pos, 0, True) is None


# =============================================================================
# RUNTIME EVALUATION
# =============================================================================

@pytest.mark.unit
class TestCascadeEvaluation:
    """Tests for Cascade.keep and persistence rows."""

    def test_empty_cascade_keeps_everything(self):
        assert Cascade().keep(CountingFeature([1.0, 2.0]))

    def test_short_circuits_on_rejection(self):
        cascade = Cascade((
            BoosterState(0, 0.5, True),
            BoosterState(1, 0.5, True),
        ))
        feature = CountingFeature([1.0, 0.0])

        assert not cascade.keep(feature)
        assert feature.calls == 1
        assert feature.computed_count() == 1

    def test_keep_matches_keep_rows(self, rng):
        cascade = Cascade((BoosterState(0, 0.1, True), BoosterState(1, -0.2, False)))
        matrix = rng.normal(size=(50, 2))
        expected = cascade.keep_rows(matrix)
        actual = [cascade.keep(CountingFeature(row)) for row in matrix]
        assert list(expected) == actual

    def test_rows_round_trip(self):
        cascade = Cascade((BoosterState(2, 0.125, True), BoosterState(0, -3.5, False)))
        assert Cascade.from_rows(cascade.to_rows()) == cascade

    def test_malformed_row(self):
        with pytest.raises(InvalidData):
            Cascade.from_rows([[1, 2.0]])
