"""Example storage and lazy feature tests."""

import threading

import numpy as np
import pytest

from cascade_classifier.errors import InvalidData
from cascade_classifier.features import ArrayFeature, CachedFeature, as_feature, feature_vector
from cascade_classifier.interfaces import FeatureProvider
from cascade_classifier.training.examples import ExampleCollector, ExampleSet


class CountingFeature(CachedFeature):
    """Coordinate i is i squared; counts compute() calls."""

    def __init__(self, dim):
        super().__init__(dim)
        self.calls = 0

    def compute(self, index):
        self.calls += 1
        return float(index * index)


class PlainProvider:
    """FeatureProvider that is not a CachedFeature."""

    def value(self, index):
        return 10.0 + index

    def dimension(self):
        return 2


# =============================================================================
# FEATURES
# =============================================================================

@pytest.mark.unit
class TestCachedFeature:
    """Tests for lazy per-coordinate evaluation."""

    def test_computes_each_coordinate_once(self):
        feature = CountingFeature(4)

        assert feature.value(3) == 9.0
        assert feature.value(3) == 9.0
        assert feature.calls == 1
        assert feature.computed_count() == 1

    def test_entire_feature(self):
        feature = CountingFeature(3)
        feature.value(1)

        np.testing.assert_array_equal(feature.entire_feature(), [0.0, 1.0, 4.0])
        assert feature.calls == 3

    def test_non_finite_value(self):
        with pytest.raises(InvalidData):
            ArrayFeature([1.0, np.inf]).value(1)

    def test_empty_feature(self):
        with pytest.raises(InvalidData):
            ArrayFeature([])

    def test_protocol(self):
        assert isinstance(ArrayFeature([1.0]), FeatureProvider)
        assert isinstance(PlainProvider(), FeatureProvider)

    def test_as_feature(self):
        provider = PlainProvider()
        assert as_feature(provider) is provider
        assert isinstance(as_feature([1.0, 2.0]), ArrayFeature)
        np.testing.assert_array_equal(feature_vector(provider), [10.0, 11.0])


# =============================================================================
# EXAMPLE SET
# =============================================================================

@pytest.mark.unit
class TestExampleSet:
    """Tests for ExampleSet."""

    def test_labels_follow_stacking_order(self):
        examples = ExampleSet(np.zeros((3, 2)), np.ones((2, 2)))

        np.testing.assert_array_equal(examples.labels(), [-1, -1, -1, 1, 1])
        assert examples.all_features().shape == (5, 2)
        assert examples.dimension == 2

    def test_arrays_are_read_only(self):
        examples = ExampleSet(np.zeros((2, 2)), np.ones((1, 2)))
        with pytest.raises(ValueError):
            examples.negatives[0, 0] = 5.0

    def test_dimension_mismatch(self):
        with pytest.raises(InvalidData):
            ExampleSet(np.zeros((2, 2)), np.ones((1, 3)))

    def test_is_empty(self):
        assert ExampleSet(np.zeros((0, 2)), np.ones((1, 2))).is_empty()
        assert not ExampleSet(np.zeros((1, 2)), np.ones((1, 2))).is_empty()


# =============================================================================
# COLLECTOR
# =============================================================================

@pytest.mark.unit
class TestExampleCollector:
    """Tests for ExampleCollector."""

    def test_collects_by_label(self):
        collector = ExampleCollector()
        collector.add([1.0, 2.0], False)
        collector.add(ArrayFeature([3.0, 4.0]), True)

        examples = collector.snapshot()

        assert collector.counts() == (1, 1)
        np.testing.assert_array_equal(examples.positives, [[3.0, 4.0]])

    def test_evaluates_lazy_features(self):
        collector = ExampleCollector()
        collector.add(CountingFeature(3), True)
        np.testing.assert_array_equal(collector.snapshot().positives, [[0.0, 1.0, 4.0]])

    def test_dimension_mismatch(self):
        collector = ExampleCollector()
        collector.add([1.0, 2.0], False)
        with pytest.raises(InvalidData):
            collector.add([1.0, 2.0, 3.0], True)

    def test_drop_duplicates(self):
        collector = ExampleCollector(drop_duplicates=True)

        assert collector.add([1.0, 2.0], False)
        assert not collector.add([1.0, 2.0], False)
        # Same vector with the other label is kept
        assert collector.add([1.0, 2.0], True)

        assert collector.counts() == (1, 1)
        assert collector.duplicates_dropped == 1

    def test_duplicates_kept_by_default(self):
        collector = ExampleCollector()
        collector.add([1.0], True)
        collector.add([1.0], True)
        assert collector.counts() == (0, 2)

    def test_dump_file(self, tmp_path):
        path = tmp_path / "dump" / "features.tsv"
        collector = ExampleCollector(dump_path=path)
        collector.add([0.5, -1.25], True)
        collector.add([2.0, 3.0], False)

        assert path.read_text().splitlines() == ["1\t0.5\t-1.25", "0\t2.0\t3.0"]

    def test_empty_snapshot(self):
        examples = ExampleCollector(dimension=3).snapshot()
        assert examples.n_negatives == examples.n_positives == 0
        assert examples.dimension == 3

    def test_concurrent_adds(self):
        collector = ExampleCollector(drop_duplicates=True)

        def produce(offset):
            for i in range(250):
                collector.add([float(offset), float(i)], i % 5 == 0)

        threads = [threading.Thread(target=produce, args=(t,)) for t in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert collector.counts() == (8 * 200, 8 * 50)
        assert collector.duplicates_dropped == 0
