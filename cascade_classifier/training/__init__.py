"""
Training components: example collection, cascade, normalization, folds,
hyperparameter and feature subset search.

The driver composing them is cascade_classifier.training.orchestrator.
"""

from .cascade import BoosterState, Cascade, CascadeBuilder
from .examples import ExampleCollector, ExampleSet
from .folds import CrossValidator, Fold, FoldSplitter
from .hyperparams import Hyperparameter, HyperparameterSearch, Parameterization, build_grid
from .normalization import FeatureSubset, NormalizationCoefficients, NormalizationFitter
from .subset_search import FeatureSubsetSearch, SubsetSearchResult
from .svm_trainer import SVMTrainer, make_trainer

__all__ = [
    'BoosterState', 'Cascade', 'CascadeBuilder',
    'ExampleCollector', 'ExampleSet',
    'CrossValidator', 'Fold', 'FoldSplitter',
    'Hyperparameter', 'HyperparameterSearch', 'Parameterization', 'build_grid',
    'FeatureSubset', 'NormalizationCoefficients', 'NormalizationFitter',
    'FeatureSubsetSearch', 'SubsetSearchResult',
    'SVMTrainer', 'make_trainer',
]
