"""
Labelled example storage.

ExampleCollector accepts examples from any number of producer threads;
ExampleSet is the immutable snapshot the training stages work on.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import List, Optional, Tuple, Union

import numpy as np

from cascade_classifier.errors import InvalidData
from cascade_classifier.features import as_feature, feature_vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExampleSet:
    """Negative and positive examples, one row per example."""
    negatives: np.ndarray
    positives: np.ndarray

    def __post_init__(self):
        neg = np.asarray(self.negatives, dtype=np.float64)
        pos = np.asarray(self.positives, dtype=np.float64)
        if neg.ndim != 2 or pos.ndim != 2:
            raise InvalidData("Example arrays must be 2-D")
        if neg.shape[1] != pos.shape[1]:
            raise InvalidData(
                "Positive and negative examples differ in dimension",
                data={"neg_dim": neg.shape[1], "pos_dim": pos.shape[1]},
            )
        neg.setflags(write=False)
        pos.setflags(write=False)
        object.__setattr__(self, 'negatives', neg)
        object.__setattr__(self, 'positives', pos)

    @property
    def n_negatives(self) -> int:
        return len(self.negatives)

    @property
    def n_positives(self) -> int:
        return len(self.positives)

    @property
    def dimension(self) -> int:
        return self.negatives.shape[1]

    def is_empty(self) -> bool:
        return self.n_negatives == 0 or self.n_positives == 0

    def all_features(self) -> np.ndarray:
        """Negatives then positives, stacked."""
        return np.vstack([self.negatives, self.positives])

    def labels(self) -> np.ndarray:
        """+1/-1 labels aligned with ``all_features()``."""
        return np.concatenate([
            -np.ones(self.n_negatives),
            np.ones(self.n_positives),
        ])

    def filter(self, keep_negatives: np.ndarray, keep_positives: np.ndarray) -> "ExampleSet":
        """New set holding only the rows where the masks are True."""
        return ExampleSet(self.negatives[keep_negatives], self.positives[keep_positives])


class ExampleCollector:
    """
    Thread-safe accumulator of labelled feature vectors.

    Every append happens under one lock. Optionally drops exact duplicates and
    appends each accepted example to a TSV file (label, then values).
    """

    def __init__(
        self,
        dimension: Optional[int] = None,
        drop_duplicates: bool = False,
        dump_path: Optional[Union[str, Path]] = None,
    ):
        self._dimension = dimension
        self._drop_duplicates = drop_duplicates
        self._dump_path = Path(dump_path) if dump_path else None
        self._lock = Lock()
        self._rows: Tuple[List[np.ndarray], List[np.ndarray]] = ([], [])
        self._seen = set()
        self.duplicates_dropped = 0

        if self._dump_path is not None:
            self._dump_path.parent.mkdir(parents=True, exist_ok=True)
            self._dump_path.write_text("")

    def add(self, feature, label: bool) -> bool:
        """
        Add one example.

        Args:
            feature: FeatureProvider or array-like of values
            label: True for positive, False for negative

        Returns:
            False if the example was dropped as a duplicate
        """
        values = feature_vector(as_feature(feature))

        with self._lock:
            if self._dimension is None:
                self._dimension = len(values)
            elif len(values) != self._dimension:
                raise InvalidData(
                    "Example dimension does not match collector",
                    data={"expected": self._dimension, "got": len(values)},
                )

            if self._drop_duplicates:
                key = (bool(label), values.tobytes())
                if key in self._seen:
                    self.duplicates_dropped += 1
                    logger.debug("Dropping duplicate training vector")
                    return False
                self._seen.add(key)

            self._rows[1 if label else 0].append(values)

            if self._dump_path is not None:
                with open(self._dump_path, "a", encoding="utf-8") as f:
                    f.write("\t".join([str(int(bool(label)))] + [repr(float(v)) for v in values]) + "\n")

        return True

    def counts(self) -> Tuple[int, int]:
        """(negatives, positives) collected so far."""
        with self._lock:
            return len(self._rows[0]), len(self._rows[1])

    def snapshot(self) -> ExampleSet:
        """Immutable copy of everything collected."""
        with self._lock:
            dim = self._dimension or 0
            neg, pos = (
                np.vstack(rows) if rows else np.empty((0, dim))
                for rows in self._rows
            )
        if self.duplicates_dropped:
            logger.warning(f"Dropped {self.duplicates_dropped} duplicate training vectors")
        return ExampleSet(neg, pos)
