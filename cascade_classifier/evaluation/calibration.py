"""
Sigmoid calibration of classifier scores.

    prob(x) = lo + (hi - lo) * logistic(scale * (x - shift))

The least-squares fit works on (scale, shift, logit(hi), logit(lo)) so the
optimizer is unconstrained while both thresholds stay inside (0, 1).

Usage:
    from cascade_classifier.evaluation.calibration import ProbabilityCalibrator

    params = ProbabilityCalibrator().fit(scores, labels)
    p = params.prob(score)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np
from scipy.optimize import least_squares
from scipy.special import expit, logit

from cascade_classifier.errors import InvalidData, InvalidParameters

logger = logging.getLogger(__name__)

LOGIT_CLIP = (0.0001, 0.9999)


@dataclass(frozen=True)
class SigmoidParams:
    """Bounded logistic curve; valid when 0 <= lo < hi <= 1 and scale > 0."""
    thresh_lo: float = 0.1
    thresh_hi: float = 0.9
    shift: float = 0.0
    scale: float = 1.0

    def prob(self, x):
        p = self.thresh_lo + (self.thresh_hi - self.thresh_lo) * expit(self.scale * (np.asarray(x) - self.shift))
        # rounding in lo + (hi - lo) can step one ulp outside [lo, hi]
        return np.clip(p, min(self.thresh_lo, self.thresh_hi), max(self.thresh_lo, self.thresh_hi))

    def validate(self) -> "SigmoidParams":
        """
        Raises:
            InvalidParameters: if thresholds are out of order or range, or
                the scale is not positive
        """
        values = (self.thresh_lo, self.thresh_hi, self.shift, self.scale)
        if not all(np.isfinite(v) for v in values):
            raise InvalidParameters("Sigmoid parameters are not finite", data=self.to_dict())
        if not (0 <= self.thresh_lo < self.thresh_hi <= 1):
            raise InvalidParameters("Sigmoid thresholds out of order or range", data=self.to_dict())
        if self.scale <= 0:
            raise InvalidParameters("Sigmoid scale must be positive", data=self.to_dict())
        return self

    def is_valid(self) -> bool:
        return (
            all(np.isfinite(v) for v in (self.thresh_lo, self.thresh_hi, self.shift, self.scale))
            and 0 <= self.thresh_lo < self.thresh_hi <= 1
            and self.scale > 0
        )

    def to_vector(self) -> np.ndarray:
        """Optimizer parameters (scale, shift, logit(hi), logit(lo))."""
        return np.array([
            self.scale,
            self.shift,
            logit(np.clip(self.thresh_hi, *LOGIT_CLIP)),
            logit(np.clip(self.thresh_lo, *LOGIT_CLIP)),
        ])

    @classmethod
    def from_vector(cls, params: np.ndarray) -> "SigmoidParams":
        scale, shift, hi, lo = (float(v) for v in params)
        return cls(thresh_lo=float(expit(lo)), thresh_hi=float(expit(hi)), shift=shift, scale=scale)

    def canonical(self) -> "SigmoidParams":
        """
        The same curve with a positive scale.

        lo + (hi - lo) * logistic(-s * d) == hi + (lo - hi) * logistic(s * d),
        so a negative-scale fit with lo > hi is reflected.
        """
        if self.scale < 0 and self.thresh_lo > self.thresh_hi:
            return SigmoidParams(
                thresh_lo=self.thresh_hi,
                thresh_hi=self.thresh_lo,
                shift=self.shift,
                scale=-self.scale,
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'thresh_lo': self.thresh_lo,
            'thresh_hi': self.thresh_hi,
            'shift': self.shift,
            'scale': self.scale,
        }


def sigmoid_residuals(params: np.ndarray, scores: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """prob(score) - target for every point, in optimizer coordinates."""
    scale, shift, hi, lo = params
    lo_p, hi_p = expit(lo), expit(hi)
    return lo_p + (hi_p - lo_p) * expit(scale * (scores - shift)) - targets


class ProbabilityCalibrator:
    """Fits SigmoidParams to (score, label) pairs by nonlinear least squares."""

    def __init__(self, initial: SigmoidParams = SigmoidParams(), max_nfev: int = 2000):
        self.initial = initial
        self.max_nfev = max_nfev

    def fit(self, scores: np.ndarray, labels: np.ndarray) -> SigmoidParams:
        """
        Args:
            scores: sign-corrected raw classifier scores
            labels: +1/-1 (or 1/0) ground truth

        Raises:
            InvalidData: if there are fewer points than parameters
            InvalidParameters: if the fitted curve is invalid
        """
        scores = np.asarray(scores, dtype=np.float64).ravel()
        targets = (np.asarray(labels, dtype=np.float64).ravel() > 0).astype(np.float64)
        x0 = self.initial.to_vector()

        if len(scores) != len(targets):
            raise InvalidData("Scores and labels differ in length")
        if len(scores) < len(x0):
            raise InvalidData(
                "Too few points to fit calibration",
                data={"n_points": len(scores)},
            )
        if not np.all(np.isfinite(scores)):
            raise InvalidData("Calibration scores are not finite")

        result = least_squares(
            sigmoid_residuals,
            x0,
            args=(scores, targets),
            method='lm',
            max_nfev=self.max_nfev,
        )
        fitted = SigmoidParams.from_vector(result.x).canonical()

        logger.info(
            f"Calibration: lo={fitted.thresh_lo:.4f} hi={fitted.thresh_hi:.4f} "
            f"shift={fitted.shift:.4f} scale={fitted.scale:.4f} "
            f"(cost {result.cost:.4f}, {result.nfev} evaluations)"
        )
        return fitted.validate()
