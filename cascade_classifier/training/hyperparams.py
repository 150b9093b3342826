"""
Hyperparameter grid and its parallel evaluation.

Every grid point is cross-validated on the same folds by a worker thread;
the search waits for all of them before picking the best. libsvm releases
the GIL while fitting, so threads give real parallelism here.
"""

import math
import os
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from cascade_classifier.errors import InvalidData
from cascade_classifier.utils.config import SvmType, TrainingConfig
from cascade_classifier.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Hyperparameter:
    """Regularization (nu or C) and RBF width; no width means a linear kernel."""
    regularization: float
    kernel_width: Optional[float] = None

    @property
    def is_linear(self) -> bool:
        return self.kernel_width is None or self.kernel_width <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'regularization': self.regularization,
            'kernel_width': None if self.is_linear else self.kernel_width,
        }

    def __str__(self) -> str:
        width = "linear" if self.is_linear else f"gamma={self.kernel_width:.4g}"
        return f"reg={self.regularization:.4g}, {width}"


@dataclass
class Parameterization:
    """A grid point and its cross-validation result, set once."""
    hyperparameter: Hyperparameter
    score: Optional[float] = None
    support_vectors: Optional[float] = None
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    @property
    def evaluated(self) -> bool:
        return self.score is not None

    def set_score(self, score: float, support_vectors: float) -> None:
        with self._lock:
            if self.score is not None:
                raise InvalidData(
                    "Parameterization already scored",
                    data={"hyperparameter": self.hyperparameter.to_dict()},
                )
            if not math.isfinite(score):
                raise InvalidData("Cross-validation score is not finite", data={"score": score})
            self.score = score
            self.support_vectors = support_vectors


# =============================================================================
# GRID
# =============================================================================

def log_spaced(lo: float, hi: float, steps: int, base: float = math.e) -> List[float]:
    """
    ``steps`` values from ``lo`` towards ``hi`` (exclusive), evenly spaced in log.

    The step is chosen so that the last value stays just below ``hi``.
    """
    log_lo = math.log(lo, base)
    log_hi = math.log(hi, base)
    return [base ** v for v in linear_spaced(log_lo, log_hi, steps)]


def linear_spaced(lo: float, hi: float, steps: int) -> List[float]:
    step = (hi - lo) / (steps - 0.999)
    values = []
    v = lo
    while v < hi and len(values) < steps:
        values.append(v)
        v = lo + step * len(values)
    return values


def regularization_values(config: TrainingConfig) -> List[float]:
    if config.svm_type == SvmType.NU:
        return log_spaced(config.nu_lo, config.nu_hi, config.nu_steps, config.nu_log_base)
    return [2.0 ** p for p in range(config.c_log2_lo, config.c_log2_hi + 1, config.c_log2_step)]


def kernel_widths(config: TrainingConfig) -> List[Optional[float]]:
    widths: List[Optional[float]] = [
        math.exp(g) for g in linear_spaced(config.log_gamma_lo, config.log_gamma_hi, config.gamma_steps)
    ]
    if config.include_linear_kernel:
        widths.append(None)
    return widths


def build_grid(config: TrainingConfig) -> List[Hyperparameter]:
    """All (width, regularization) pairs, width-major."""
    grid = [
        Hyperparameter(regularization=reg, kernel_width=width)
        for width in kernel_widths(config)
        for reg in regularization_values(config)
    ]
    logger.debug(f"Hyperparameter grid has {len(grid)} points")
    return grid


def filter_top(parameterizations: Sequence[Parameterization], keep: int) -> List[Hyperparameter]:
    """Hyperparameters of the ``keep`` best-scoring parameterizations."""
    scored = [p for p in parameterizations if p.evaluated]
    ranked = sorted(scored, key=lambda p: p.score, reverse=True)
    return [p.hyperparameter for p in ranked[:keep]]


# =============================================================================
# SEARCH
# =============================================================================

class HyperparameterSearch:
    """Cross-validates every grid point in a thread pool and picks the best."""

    def __init__(self, cross_validator, n_workers: Optional[int] = None, progress: bool = False):
        self.cross_validator = cross_validator
        self.n_workers = n_workers or os.cpu_count() or 1
        self.progress = progress

    def search(
        self,
        grid: Sequence[Hyperparameter],
        folds: Sequence[Any],
    ) -> Tuple[Parameterization, List[Parameterization]]:
        """
        Evaluate ``grid`` on ``folds``.

        Returns:
            (best parameterization, all parameterizations in grid order)
        """
        if not grid:
            raise InvalidData("Hyperparameter grid is empty")

        parameterizations = [Parameterization(h) for h in grid]
        pbar = tqdm(total=len(grid), desc="Grid", unit="fit", leave=False) if self.progress else None

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            futures = [
                executor.submit(self.cross_validator.evaluate, p, folds)
                for p in parameterizations
            ]
            if pbar:
                for future in futures:
                    future.add_done_callback(lambda _: pbar.update(1))
            wait(futures)

        if pbar:
            pbar.close()

        # Re-raise anything a worker raised
        for future in futures:
            future.result()

        best = parameterizations[0]
        for p in parameterizations[1:]:
            if p.score > best.score:
                best = p

        logger.debug(f"Best of {len(grid)} grid points: {best.hyperparameter} score {best.score:.4f}")
        return best, parameterizations
