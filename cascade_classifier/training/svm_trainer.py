"""
Kernel classifier backed by scikit-learn's libsvm wrappers.

``NuSVC`` for the nu formulation, ``SVC`` for the C formulation; an RBF kernel
of width gamma, or a linear kernel when gamma is None or not positive.
"""

import logging
from typing import Any

import numpy as np
from sklearn.svm import NuSVC, SVC

from cascade_classifier.errors import PredictionFailure
from cascade_classifier.evaluation.scoring import ClassWeights
from cascade_classifier.training.hyperparams import Hyperparameter
from cascade_classifier.utils.config import SvmType, TrainingConfig

logger = logging.getLogger(__name__)


class SVMTrainer:
    """ClassifierTrainer implementation over sklearn SVMs."""

    def __init__(self, svm_type: SvmType = SvmType.NU, cache_size: float = 200.0):
        self.svm_type = SvmType(svm_type)
        self.cache_size = cache_size

    def _make_model(self, hyperparameter: Hyperparameter, class_weights: ClassWeights):
        gamma = hyperparameter.kernel_width
        kernel_args = {'kernel': 'linear'} if hyperparameter.is_linear else {'kernel': 'rbf', 'gamma': gamma}
        common = dict(class_weight=class_weights.as_sklearn(), cache_size=self.cache_size, **kernel_args)
        if self.svm_type == SvmType.NU:
            return NuSVC(nu=hyperparameter.regularization, **common)
        return SVC(C=hyperparameter.regularization, **common)

    def train(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        hyperparameter: Hyperparameter,
        class_weights: ClassWeights,
    ) -> Any:
        """
        Fit one model.

        Raises:
            PredictionFailure: if the solver rejects the problem (e.g. infeasible nu)
        """
        model = self._make_model(hyperparameter, class_weights)
        try:
            model.fit(features, labels)
        except ValueError as e:
            raise PredictionFailure(
                "SVM training failed",
                data={"hyperparameter": hyperparameter.to_dict(), "n_examples": len(labels)},
                cause=e,
            ) from e
        return model

    def predict(self, model: Any, features: np.ndarray, raw: bool = True) -> np.ndarray:
        """
        Decision values (positive means class +1), or labels if ``raw`` is False.

        Raises:
            PredictionFailure: if the model cannot score the features
        """
        try:
            if raw:
                return np.asarray(model.decision_function(features), dtype=np.float64).ravel()
            return np.asarray(model.predict(features), dtype=np.float64).ravel()
        except (ValueError, AttributeError) as e:
            raise PredictionFailure(
                "SVM prediction failed",
                data={"n_examples": len(features)},
                cause=e,
            ) from e

    def support_vector_count(self, model: Any) -> int:
        return int(np.sum(model.n_support_))


def make_trainer(config: TrainingConfig) -> SVMTrainer:
    """Build the classifier trainer described by ``config``."""
    return SVMTrainer(svm_type=config.svm_type)
