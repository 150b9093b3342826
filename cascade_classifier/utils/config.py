"""
Training configuration using dataclasses.

A config is built once (defaults, a YAML file or a dict) and threaded
through the orchestrator; nothing re-reads it mid-run.

Environment variables:
- CASCADE_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR
- CASCADE_WORKERS: worker threads for grid evaluation (default: CPU count)
"""

import os
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from cascade_classifier.errors import ConfigurationError


class FeatureSelection(str, Enum):
    """Feature subset search modes."""
    BACKWARD = "backward"
    FORWARD = "forward"
    FIXED = "fixed"
    NONE = "none"


class SvmType(str, Enum):
    """Kernel classifier formulations."""
    NU = "nu"
    C = "c"


class SelectionMetric(str, Enum):
    """Score used to rank parameterizations during search."""
    WEIGHTED = "weighted"
    BSR = "bsr"


def _env_workers() -> Optional[int]:
    value = os.getenv("CASCADE_WORKERS")
    return int(value) if value else None


@dataclass
class TrainingConfig:
    """
    Configuration of one training run.

    Defaults reproduce the behaviour the cascade/SVM trainer has always had.
    """

    # ─────────────────────────────────────────────────────────────
    # CLASS BALANCE
    # Negative class weight = neg_relative_weight * n_pos / n_neg,
    # positive weight = 1, so both classes carry equal total cost
    # when neg_relative_weight is 1.
    # ─────────────────────────────────────────────────────────────
    neg_relative_weight: float = 1.0

    # ─────────────────────────────────────────────────────────────
    # CROSS VALIDATION
    # ─────────────────────────────────────────────────────────────
    folds: int = 6
    complexity_penalty: float = 0.003
    selection_metric: SelectionMetric = SelectionMetric.WEIGHTED

    # ─────────────────────────────────────────────────────────────
    # HYPERPARAMETER GRID
    # nu is log-spaced (base nu_log_base) in [nu_lo, nu_hi);
    # gamma = exp(g) for g linearly spaced in [log_gamma_lo, log_gamma_hi).
    # svm_type 'c' replaces the nu axis with C = 2^p, p in c_log2_lo..c_log2_hi.
    # ─────────────────────────────────────────────────────────────
    svm_type: SvmType = SvmType.NU
    nu_lo: float = 0.0005
    nu_hi: float = 0.4
    nu_steps: int = 10
    nu_log_base: float = 1.5
    log_gamma_lo: float = -14.0
    log_gamma_hi: float = 5.0
    gamma_steps: int = 10
    include_linear_kernel: bool = False
    c_log2_lo: int = -5
    c_log2_hi: int = 15
    c_log2_step: int = 2
    filter_hyperparameters: bool = True

    # ─────────────────────────────────────────────────────────────
    # FEATURE SELECTION
    # ─────────────────────────────────────────────────────────────
    feature_selection: FeatureSelection = FeatureSelection.BACKWARD
    fixed_subset: Optional[List[int]] = None

    # ─────────────────────────────────────────────────────────────
    # CASCADE
    # A booster is accepted when it removes at least cascade_min_removed
    # negatives and cascade_min_fraction of all remaining negatives while
    # letting fewer than cascade_max_positive_ratio positives per negative
    # through the rejected side.
    # ─────────────────────────────────────────────────────────────
    use_cascade: bool = True
    cascade_min_removed: int = 150
    cascade_min_fraction: float = 0.1
    cascade_max_positive_ratio: float = 0.0005

    # ─────────────────────────────────────────────────────────────
    # FINAL MODEL
    # ─────────────────────────────────────────────────────────────
    min_examples_per_class: int = 20
    boundary_lo: float = -1.0
    boundary_hi: float = 1.0
    boundary_step: float = 0.1

    # ─────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────
    n_workers: Optional[int] = field(default_factory=_env_workers)
    drop_duplicates: bool = False
    dump_features: bool = False
    write_reports: bool = True
    show_progress: bool = False
    log_level: str = field(
        default_factory=lambda: os.getenv("CASCADE_LOG_LEVEL", "INFO")
    )

    def __post_init__(self):
        try:
            self.svm_type = SvmType(self.svm_type)
            self.feature_selection = FeatureSelection(self.feature_selection)
            self.selection_metric = SelectionMetric(self.selection_metric)
        except ValueError as e:
            raise ConfigurationError(str(e), cause=e) from e
        if self.fixed_subset is not None:
            self.fixed_subset = [int(i) for i in self.fixed_subset]

    def validate(self) -> "TrainingConfig":
        """Check value ranges. Returns self for chaining."""
        problems = []
        if not self.neg_relative_weight > 0:
            problems.append("neg_relative_weight must be > 0")
        if self.folds < 2:
            problems.append("folds must be >= 2")
        if not 0 < self.nu_lo < self.nu_hi <= 1:
            problems.append("nu range must satisfy 0 < nu_lo < nu_hi <= 1")
        if self.nu_steps < 1 or self.gamma_steps < 1:
            problems.append("grid step counts must be >= 1")
        if self.log_gamma_lo >= self.log_gamma_hi:
            problems.append("log_gamma_lo must be below log_gamma_hi")
        if self.c_log2_step <= 0 or self.c_log2_lo > self.c_log2_hi:
            problems.append("invalid C grid")
        if self.feature_selection == FeatureSelection.FIXED and not self.fixed_subset:
            problems.append("feature_selection 'fixed' needs fixed_subset")
        if self.min_examples_per_class < self.folds:
            problems.append("min_examples_per_class must be >= folds")
        if self.boundary_step <= 0 or self.boundary_lo > self.boundary_hi:
            problems.append("invalid boundary sweep")
        if self.n_workers is not None and self.n_workers < 1:
            problems.append("n_workers must be >= 1")

        if problems:
            raise ConfigurationError(
                "Invalid training configuration",
                data={"problems": problems},
            )
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                "Unknown configuration keys",
                data={"keys": unknown},
            )
        return cls(**data).validate()

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TrainingConfig":
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Cannot read configuration {path}", cause=e
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {path} is not a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    def to_yaml(self, path: Union[str, Path]) -> None:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)


# Singleton instance
_config: Optional[TrainingConfig] = None


def load_config(path: Optional[Union[str, Path]] = None) -> TrainingConfig:
    """Load the process default configuration once (defaults if no path)."""
    global _config
    _config = TrainingConfig.from_yaml(path) if path else TrainingConfig().validate()
    return _config


def get_config() -> TrainingConfig:
    """Get configuration singleton."""
    global _config
    if _config is None:
        _config = TrainingConfig().validate()
    return _config
