"""
Stepwise feature subset selection.

Backward elimination starts from every feature and drops one per step;
forward selection starts from single features and adds one per step. Each
candidate subset gets its own hyperparameter search on freshly normalized
folds. The answer is the best subset over all sizes visited, ties going to
the later step.

Usage:
    search = FeatureSubsetSearch(config, hyper_search, FoldSplitter(6))
    result = search.search(examples, coefficients, build_grid(config))
    result.subset, result.parameterization
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from cascade_classifier.errors import InvalidData
from cascade_classifier.training.examples import ExampleSet
from cascade_classifier.training.folds import FoldSplitter
from cascade_classifier.training.hyperparams import (
    Hyperparameter,
    HyperparameterSearch,
    Parameterization,
    filter_top,
)
from cascade_classifier.training.normalization import FeatureSubset, NormalizationCoefficients
from cascade_classifier.training.reports import SearchRecord, write_records, write_surface
from cascade_classifier.utils.config import FeatureSelection, TrainingConfig
from cascade_classifier.utils.logger import get_logger

logger = get_logger(__name__)

Subset = Tuple[int, ...]


@dataclass
class SubsetSearchResult:
    """Winning subset, its best grid point and the search history."""
    subset: FeatureSubset
    parameterization: Parameterization
    all_records: List[SearchRecord] = field(default_factory=list)
    best_records: List[SearchRecord] = field(default_factory=list)

    @property
    def score(self) -> float:
        return self.parameterization.score


def initial_subsets(mode: FeatureSelection, dims: int, fixed: Optional[Sequence[int]] = None) -> Set[Subset]:
    if mode == FeatureSelection.FORWARD:
        return {(i,) for i in range(dims)}
    if mode == FeatureSelection.FIXED:
        if not fixed:
            raise InvalidData("Fixed feature selection needs a subset")
        return {tuple(int(i) for i in fixed)}
    return {tuple(range(dims))}


def next_subsets(mode: FeatureSelection, best: Subset, dims: int) -> Set[Subset]:
    """Neighbours of the best subset of this size."""
    if mode == FeatureSelection.BACKWARD:
        if len(best) <= 1:
            return set()
        return {tuple(f for f in best if f != removed) for removed in best}
    if mode == FeatureSelection.FORWARD:
        return {best + (i,) for i in range(dims) if i not in best}
    return set()


class FeatureSubsetSearch:
    """Drives HyperparameterSearch over stepwise candidate subsets."""

    def __init__(
        self,
        config: TrainingConfig,
        hyper_search: HyperparameterSearch,
        splitter: FoldSplitter,
        report_dir: Optional[Path] = None,
        label: str = "",
    ):
        self.config = config
        self.hyper_search = hyper_search
        self.splitter = splitter
        self.report_dir = Path(report_dir) if report_dir and config.write_reports else None
        self.label = label

    def evaluate_subset(
        self,
        examples: ExampleSet,
        subset: FeatureSubset,
        grid: Sequence[Hyperparameter],
    ) -> Tuple[Parameterization, List[Parameterization]]:
        folds = self.splitter.split(examples, subset.select_and_normalize)
        best, evaluated = self.hyper_search.search(grid, folds)
        if self.report_dir is not None:
            write_surface(self.report_dir / f"{self.label}-hyperparams", subset.indices, evaluated)
        return best, evaluated

    def search(
        self,
        examples: ExampleSet,
        coefficients: NormalizationCoefficients,
        grid: Sequence[Hyperparameter],
    ) -> SubsetSearchResult:
        mode = self.config.feature_selection
        dims = examples.dimension
        if dims == 0:
            raise InvalidData("Examples have no features to select from")
        grid = list(grid)
        candidates = initial_subsets(mode, dims, self.config.fixed_subset)

        best_overall: Optional[Tuple[FeatureSubset, Parameterization]] = None
        all_records: List[SearchRecord] = []
        best_records: List[SearchRecord] = []

        for _ in range(dims):
            best_this_size: Optional[Tuple[FeatureSubset, Parameterization]] = None

            for indices in sorted(candidates):
                subset = FeatureSubset(indices, coefficients)
                best, evaluated = self.evaluate_subset(examples, subset, grid)
                all_records.append(self._record(subset, best))
                logger.debug(f"Subset {list(indices)}: {best.hyperparameter} score {best.score:.4f}")

                if best_this_size is None or best.score > best_this_size[1].score:
                    best_this_size = (subset, best)

                if self.config.filter_hyperparameters and len(indices) > dims / 3:
                    grid = filter_top(evaluated, self.config.folds)

            subset, best = best_this_size
            best_records.append(self._record(subset, best))
            logger.info(
                f"Best subset of size {len(subset)}: {list(subset.indices)} "
                f"({best.hyperparameter}) score {best.score:.4f}"
            )

            if best_overall is None or best.score >= best_overall[1].score:
                best_overall = best_this_size

            if mode in (FeatureSelection.FIXED, FeatureSelection.NONE):
                break
            candidates = next_subsets(mode, subset.indices, dims)
            if not candidates:
                break

        subset, best = best_overall
        logger.info(
            f"Selected {len(subset)} of {dims} features {list(subset.indices)}: "
            f"{best.hyperparameter} score {best.score:.4f}"
        )

        if self.report_dir is not None:
            write_records(self.report_dir / f"{self.label}-allResults.tsv", all_records)
            write_records(self.report_dir / f"{self.label}-bestResults.tsv", best_records)

        return SubsetSearchResult(subset, best, all_records, best_records)

    @staticmethod
    def _record(subset: FeatureSubset, best: Parameterization) -> SearchRecord:
        h = best.hyperparameter
        return SearchRecord(
            size=len(subset),
            subset=subset.indices,
            regularization=h.regularization,
            kernel_width=None if h.is_linear else h.kernel_width,
            score=best.score,
            support_vectors=best.support_vectors,
        )
