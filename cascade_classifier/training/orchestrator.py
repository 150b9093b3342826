"""
Training orchestration: examples in, saved classifier out.

Stages:
    COLLECTING_EXAMPLES -> CASCADE_BUILT -> NORMALIZATION_FIT
    -> SUBSET_AND_HYPERPARAM_SEARCH -> FINAL_RETRAIN -> CALIBRATED -> PERSISTED

With too few examples of either class (or no examples of a class left after
the cascade) training stops early and saves a cascade-only classifier. Every
run ends with a saved state.

Usage:
    from cascade_classifier.training.orchestrator import TrainingOrchestrator

    trainer = TrainingOrchestrator('models/', 'door', config)
    for feature, is_positive in examples:
        trainer.add_example(feature, is_positive)
    result = trainer.train()
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from cascade_classifier.classification.state import SavedState
from cascade_classifier.errors import InsufficientTrainingData, PredictionFailure
from cascade_classifier.evaluation.calibration import ProbabilityCalibrator
from cascade_classifier.evaluation.scoring import (
    ClassWeights,
    ScoreEvaluator,
    ScoreSummary,
    build_precision_table,
    sweep_boundaries,
)
from cascade_classifier.interfaces import Calibrator, ClassifierTrainer
from cascade_classifier.training.cascade import Cascade, CascadeBuilder
from cascade_classifier.training.examples import ExampleCollector, ExampleSet
from cascade_classifier.training.folds import CrossValidator, FoldSplitter
from cascade_classifier.training.hyperparams import HyperparameterSearch, build_grid
from cascade_classifier.training.normalization import NormalizationFitter
from cascade_classifier.training.subset_search import FeatureSubsetSearch, SubsetSearchResult
from cascade_classifier.training.svm_trainer import make_trainer
from cascade_classifier.utils.config import TrainingConfig, get_config
from cascade_classifier.utils.logger import get_logger

logger = get_logger(__name__)

# Fewest points the four-parameter calibration fit accepts
MIN_CALIBRATION_POINTS = 4


class TrainingStage(str, Enum):
    COLLECTING_EXAMPLES = "collecting_examples"
    ABORTED_CASCADE_ONLY = "aborted_cascade_only"
    CASCADE_BUILT = "cascade_built"
    NORMALIZATION_FIT = "normalization_fit"
    SUBSET_AND_HYPERPARAM_SEARCH = "subset_and_hyperparam_search"
    FINAL_RETRAIN = "final_retrain"
    CALIBRATED = "calibrated"
    PERSISTED = "persisted"


@dataclass
class TrainingResult:
    """Outcome of one training run."""
    state: SavedState
    state_path: Path
    stages: List[TrainingStage]
    n_negatives: int
    n_positives: int
    search: Optional[SubsetSearchResult] = None
    summary: Optional[ScoreSummary] = None

    @property
    def cascade_only(self) -> bool:
        return self.state.cascade_only

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state_path': str(self.state_path),
            'stages': [s.value for s in self.stages],
            'n_negatives': self.n_negatives,
            'n_positives': self.n_positives,
            'cascade_boosters': len(self.state.cascade),
            'sign_correction': self.state.sign_correction,
            'feature_subset': list(self.state.subset.indices) if self.state.subset else [],
            'cv_score': self.search.score if self.search else None,
            'summary': self.summary.to_dict() if self.summary else None,
        }


class TrainingOrchestrator:
    """
    Collects labelled examples and runs one training pass.

    ``add_example`` may be called from several threads; ``train`` must only
    be called once collection is finished.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        label: str,
        config: Optional[TrainingConfig] = None,
        trainer: Optional[ClassifierTrainer] = None,
        calibrator: Optional[Calibrator] = None,
    ):
        self.directory = Path(directory)
        self.label = label
        self.config = (config or get_config()).validate()
        self.trainer = trainer or make_trainer(self.config)
        self.calibrator = calibrator or ProbabilityCalibrator()
        self.stages: List[TrainingStage] = [TrainingStage.COLLECTING_EXAMPLES]

        dump_path = self.directory / f"{label}_features.tsv" if self.config.dump_features else None
        self.collector = ExampleCollector(
            drop_duplicates=self.config.drop_duplicates,
            dump_path=dump_path,
        )

    @property
    def stage(self) -> TrainingStage:
        return self.stages[-1]

    def _enter(self, stage: TrainingStage):
        logger.info(f"[{self.label}] {stage.value}")
        self.stages.append(stage)

    def add_example(self, feature, label: bool) -> bool:
        return self.collector.add(feature, label)

    def train(self, examples: Optional[ExampleSet] = None) -> TrainingResult:
        """Run every stage on the collected (or given) examples and save."""
        examples = examples if examples is not None else self.collector.snapshot()
        n_neg, n_pos = examples.n_negatives, examples.n_positives
        logger.info(f"[{self.label}] Training on {n_pos} positives, {n_neg} negatives, {examples.dimension} features")

        try:
            self._check_sufficient(examples)
        except InsufficientTrainingData:
            cascade = Cascade()
            if self.config.use_cascade and not examples.is_empty():
                cascade, _ = CascadeBuilder.from_config(self.config).build(examples)
            return self._save_cascade_only(cascade, examples, TrainingStage.ABORTED_CASCADE_ONLY,
                                           "insufficient training data")

        # Cascade
        cascade = Cascade()
        remaining = examples
        if self.config.use_cascade:
            cascade, remaining = CascadeBuilder.from_config(self.config).build(examples)
        self._enter(TrainingStage.CASCADE_BUILT)

        if remaining.is_empty():
            logger.warning(
                f"[{self.label}] Cascade left {remaining.n_positives} positives and "
                f"{remaining.n_negatives} negatives; saving cascade only"
            )
            return self._save_cascade_only(cascade, examples, self.stage, "cascade separated the classes")

        # Normalization
        coefficients = NormalizationFitter().fit(remaining)
        self._enter(TrainingStage.NORMALIZATION_FIT)

        # Subset and hyperparameter search
        class_weights = ClassWeights.balanced(
            remaining.n_positives, remaining.n_negatives, self.config.neg_relative_weight
        )
        cross_validator = CrossValidator(
            self.trainer, class_weights, self.config.complexity_penalty, self.config.selection_metric
        )
        splitter = FoldSplitter(self.config.folds)
        subset_search = FeatureSubsetSearch(
            self.config,
            HyperparameterSearch(cross_validator, self.config.n_workers, self.config.show_progress),
            splitter,
            report_dir=self.directory,
            label=self.label,
        )
        self._enter(TrainingStage.SUBSET_AND_HYPERPARAM_SEARCH)
        search = subset_search.search(remaining, coefficients, build_grid(self.config))

        # Final retrain on everything that passed the cascade
        subset = search.subset
        hyperparameter = search.parameterization.hyperparameter
        features = subset.select_and_normalize(remaining.all_features())
        labels = remaining.labels()
        try:
            model = self.trainer.train(features, labels, hyperparameter, class_weights)
            outputs = self.trainer.predict(model, features, raw=True)
        except PredictionFailure:
            logger.warning(f"[{self.label}] Final retrain failed; saving cascade only")
            return self._save_cascade_only(cascade, examples, self.stage, "final retrain failed")
        self._enter(TrainingStage.FINAL_RETRAIN)

        evaluator = ScoreEvaluator(class_weights)
        boundaries = sweep_boundaries(self.config.boundary_lo, self.config.boundary_hi, self.config.boundary_step)
        precision_table, _ = build_precision_table(evaluator, labels, outputs, boundaries)
        summary = evaluator.evaluate(labels, outputs, 0.0)

        # Calibration on held-out scores
        folds = splitter.split(remaining, subset.select_and_normalize)
        cal_scores, cal_labels = cross_validator.out_of_fold_scores(hyperparameter, folds)
        if len(cal_scores) < MIN_CALIBRATION_POINTS:
            logger.warning(f"[{self.label}] Too few held-out scores; calibrating on training scores")
            cal_scores, cal_labels = summary.sign_correction * outputs, labels
        sigmoid = self.calibrator.fit(cal_scores, cal_labels)
        self._enter(TrainingStage.CALIBRATED)

        state = SavedState(
            cascade=cascade,
            sign_correction=summary.sign_correction,
            subset=subset,
            precision_table=precision_table,
            sigmoid=sigmoid,
            model=model,
            training_details=self._details(examples, remaining, cascade, search, summary),
        )
        path = state.save(self.directory, self.label)
        self._enter(TrainingStage.PERSISTED)

        logger.info(
            f"[{self.label}] Success rate {summary.success_rate:.4f}, BSR {summary.bsr:.4f}, "
            f"precision {summary.precision:.4f}, recall {summary.recall:.4f}"
        )
        return TrainingResult(state, path, list(self.stages), n_neg, n_pos, search, summary)

    def _check_sufficient(self, examples: ExampleSet):
        minimum = self.config.min_examples_per_class
        if examples.n_positives < minimum or examples.n_negatives < minimum:
            raise InsufficientTrainingData(
                f"Need {minimum} examples of each class to train '{self.label}'",
                data={"n_positives": examples.n_positives, "n_negatives": examples.n_negatives},
            )

    def _save_cascade_only(
        self,
        cascade: Cascade,
        examples: ExampleSet,
        stage: TrainingStage,
        reason: str,
    ) -> TrainingResult:
        if stage != self.stage:
            self._enter(stage)
        details = (
            f"Cascade-only classifier ({reason})\n"
            f"Examples: {examples.n_positives} positive, {examples.n_negatives} negative\n"
            f"Boosters: {len(cascade)}\n"
        )
        state = SavedState(cascade=cascade, sign_correction=0, training_details=details)
        path = state.save(self.directory, self.label)
        self._enter(TrainingStage.PERSISTED)
        return TrainingResult(state, path, list(self.stages), examples.n_negatives, examples.n_positives)

    @staticmethod
    def _details(
        examples: ExampleSet,
        remaining: ExampleSet,
        cascade: Cascade,
        search: SubsetSearchResult,
        summary: ScoreSummary,
    ) -> str:
        h = search.parameterization.hyperparameter
        lines = [
            f"Examples: {examples.n_positives} positive, {examples.n_negatives} negative",
            f"After cascade ({len(cascade)} boosters): "
            f"{remaining.n_positives} positive, {remaining.n_negatives} negative",
            f"Feature subset: {list(search.subset.indices)} of {examples.dimension}",
            f"Hyperparameters: {h}",
            f"CV score: {search.score:.4f} "
            f"(mean support vectors {np.round(search.parameterization.support_vectors, 1)})",
            f"Sign correction: {summary.sign_correction:+d}",
            f"Negative success rate: {summary.negative_success_rate:.4f}",
            f"Positive success rate: {summary.positive_success_rate:.4f}",
            f"Weighted success rate: {summary.success_rate:.4f}",
            f"BSR: {summary.bsr:.4f}",
            f"Precision: {summary.precision:.4f}, recall: {summary.recall:.4f}",
        ]
        return "\n".join(lines) + "\n"
