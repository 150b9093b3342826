"""
Cascade of single-feature threshold rejectors.

The builder greedily adds boosters that throw away large blocks of easy
negatives while letting (almost) no positives go. At runtime the cascade is
evaluated coordinate by coordinate, so a rejected candidate only pays for the
features the cascade actually looked at.

Usage:
    from cascade_classifier.training.cascade import CascadeBuilder

    cascade, remaining = CascadeBuilder().build(example_set)
    cascade.keep(feature)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from cascade_classifier.errors import InvalidData
from cascade_classifier.interfaces import FeatureProvider
from cascade_classifier.training.examples import ExampleSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoosterState:
    """Reject when the feature is above (or below) the threshold."""
    feature_index: int
    threshold: float
    reject_above: bool

    def keep(self, value: float) -> bool:
        if self.reject_above:
            return value < self.threshold
        return value > self.threshold

    def keep_rows(self, matrix: np.ndarray) -> np.ndarray:
        column = matrix[:, self.feature_index]
        if self.reject_above:
            return column < self.threshold
        return column > self.threshold

    def to_row(self) -> List[float]:
        return [int(self.feature_index), float(self.threshold), int(self.reject_above)]

    @classmethod
    def from_row(cls, row: Sequence[float]) -> "BoosterState":
        if len(row) != 3:
            raise InvalidData("Booster rows need (index, threshold, rejectAbove)", data={"row": list(row)})
        return cls(int(row[0]), float(row[1]), bool(int(row[2])))


@dataclass(frozen=True)
class Cascade:
    """Ordered boosters; an empty cascade keeps everything."""
    boosters: Tuple[BoosterState, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.boosters)

    def keep(self, feature: FeatureProvider) -> bool:
        """True unless some booster rejects; stops at the first rejection."""
        for booster in self.boosters:
            if not booster.keep(feature.value(booster.feature_index)):
                return False
        return True

    def keep_rows(self, matrix: np.ndarray) -> np.ndarray:
        mask = np.ones(len(matrix), dtype=bool)
        for booster in self.boosters:
            mask &= booster.keep_rows(matrix)
        return mask

    def filter(self, examples: ExampleSet) -> ExampleSet:
        return examples.filter(
            self.keep_rows(examples.negatives),
            self.keep_rows(examples.positives),
        )

    def to_rows(self) -> List[List[float]]:
        return [b.to_row() for b in self.boosters]

    @classmethod
    def from_rows(cls, rows: Optional[Sequence[Sequence[float]]]) -> "Cascade":
        return cls(tuple(BoosterState.from_row(r) for r in (rows or [])))


@dataclass
class SplitCandidate:
    """Best split found for one (feature, direction)."""
    booster: BoosterState
    removed: int
    fraction_removed: float


class CascadeBuilder:
    """
    Greedy cascade construction.

    For each feature and direction, examples are sorted so that the side to be
    rejected comes first. The furthest split point whose rejected side holds
    fewer than ``max_positive_ratio`` positives per negative, and which does
    not bisect equal values, is that feature's split. A split qualifies when
    it removes at least ``min_removed`` negatives and ``min_fraction`` of all
    negatives; the qualifying split removing the largest fraction wins.
    """

    def __init__(
        self,
        min_removed: int = 150,
        min_fraction: float = 0.1,
        max_positive_ratio: float = 0.0005,
    ):
        self.min_removed = min_removed
        self.min_fraction = min_fraction
        self.max_positive_ratio = max_positive_ratio

    @classmethod
    def from_config(cls, config) -> "CascadeBuilder":
        return cls(
            min_removed=config.cascade_min_removed,
            min_fraction=config.cascade_min_fraction,
            max_positive_ratio=config.cascade_max_positive_ratio,
        )

    def best_split(
        self,
        neg_values: np.ndarray,
        pos_values: np.ndarray,
        feature_index: int,
        reject_above: bool,
    ) -> Optional[SplitCandidate]:
        """Furthest admissible split along one feature and direction."""
        values = np.concatenate([neg_values, pos_values])
        is_pos = np.concatenate([np.zeros(len(neg_values)), np.ones(len(pos_values))])
        if len(values) < 2:
            return None

        order = np.argsort(-values if reject_above else values, kind='stable')
        sorted_values = values[order]
        sorted_pos = is_pos[order]

        pos_count = np.cumsum(sorted_pos)[:-1]
        neg_count = np.cumsum(1.0 - sorted_pos)[:-1]
        distinct = sorted_values[:-1] != sorted_values[1:]
        admissible = (pos_count < self.max_positive_ratio * neg_count) & distinct

        hits = np.flatnonzero(admissible)
        if len(hits) == 0:
            return None
        i = hits[-1]

        removed = int(neg_count[i])
        threshold = 0.5 * (sorted_values[i] + sorted_values[i + 1])
        return SplitCandidate(
            booster=BoosterState(feature_index, float(threshold), reject_above),
            removed=removed,
            fraction_removed=removed / len(neg_values),
        )

    def find_candidate(self, examples: ExampleSet) -> Optional[SplitCandidate]:
        """Best qualifying booster over all features and both directions."""
        if examples.n_negatives == 0:
            return None

        best: Optional[SplitCandidate] = None
        for reject_above in (False, True):
            for j in range(examples.dimension):
                split = self.best_split(
                    examples.negatives[:, j], examples.positives[:, j], j, reject_above
                )
                if split is None:
                    continue
                if split.removed < self.min_removed or split.fraction_removed < self.min_fraction:
                    continue
                if best is None or split.fraction_removed > best.fraction_removed:
                    best = split
        return best

    def build(self, examples: ExampleSet) -> Tuple[Cascade, ExampleSet]:
        """
        Build a cascade and return it with the examples that pass it.

        Raises:
            InvalidData: if a booster fails to shrink the negatives, or grows
                either class
        """
        boosters: List[BoosterState] = []
        remaining = examples

        while True:
            candidate = self.find_candidate(remaining)
            if candidate is None:
                break

            booster = candidate.booster
            filtered = Cascade((booster,)).filter(remaining)

            if filtered.n_negatives >= remaining.n_negatives or filtered.n_positives > remaining.n_positives:
                raise InvalidData(
                    "Cascade booster did not shrink the negative set",
                    data={
                        "booster": booster.to_row(),
                        "negatives_before": remaining.n_negatives,
                        "negatives_after": filtered.n_negatives,
                        "positives_before": remaining.n_positives,
                        "positives_after": filtered.n_positives,
                    },
                )

            logger.info(
                f"Booster {len(boosters)}: feature {booster.feature_index} "
                f"{'>' if booster.reject_above else '<'} {booster.threshold:.6g} rejects "
                f"{remaining.n_negatives - filtered.n_negatives}/{remaining.n_negatives} negatives, "
                f"{remaining.n_positives - filtered.n_positives} positives"
            )
            boosters.append(booster)
            remaining = filtered

        logger.info(
            f"Cascade has {len(boosters)} boosters; {remaining.n_negatives} negatives and "
            f"{remaining.n_positives} positives remain"
        )
        return Cascade(tuple(boosters)), remaining
