"""
Persisted classifier state.

Two files per classifier label in the model directory:

- ``<label>_state.yaml``: cascade, feature subset, normalization, sign
  correction, precision table, sigmoid parameters, training details
- ``<label>_model.pkl``: the trained SVM; only written when the sign
  correction is non-zero (a zero sign means the cascade decides alone)
"""

import pickle
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml

from cascade_classifier.errors import CascadeClassifierError, InvalidData, StateLoadFailure
from cascade_classifier.evaluation.calibration import SigmoidParams
from cascade_classifier.evaluation.scoring import PrecisionTable
from cascade_classifier.training.cascade import Cascade
from cascade_classifier.training.normalization import FeatureSubset, NormalizationCoefficients
from cascade_classifier.utils.logger import get_logger

logger = get_logger(__name__)

STATE_VERSION = "1.0"

REQUIRED_KEYS = (
    'boosterStates', 'featureSubset', 'normalisingMean', 'normalisingScale',
    'signCorrection', 'boundaries', 'precision',
    'sigmoid_thresh_lo', 'sigmoid_thresh_hi', 'sigmoid_scale', 'sigmoid_shift',
)


def state_path(directory: Union[str, Path], label: str) -> Path:
    return Path(directory) / f"{label}_state.yaml"


def model_path(directory: Union[str, Path], label: str) -> Path:
    return Path(directory) / f"{label}_model.pkl"


@dataclass
class SavedState:
    """Everything a ClassifierRuntime needs; read-only once saved."""
    cascade: Cascade = field(default_factory=Cascade)
    sign_correction: int = 0
    subset: Optional[FeatureSubset] = None
    precision_table: PrecisionTable = field(default_factory=lambda: PrecisionTable((), ()))
    sigmoid: SigmoidParams = field(default_factory=SigmoidParams)
    model: Any = None
    training_details: str = ""

    def __post_init__(self):
        if self.sign_correction not in (-1, 0, 1):
            raise InvalidData("Sign correction must be -1, 0 or 1", data={"sign": self.sign_correction})
        if self.sign_correction != 0 and (self.subset is None or self.model is None):
            raise InvalidData("A trained state needs a feature subset and a model")

    @property
    def cascade_only(self) -> bool:
        return self.sign_correction == 0

    def to_dict(self) -> Dict[str, Any]:
        subset = self.subset
        return {
            'version': STATE_VERSION,
            'boosterStates': self.cascade.to_rows(),
            'featureSubset': list(subset.indices) if subset else [],
            'normalisingMean': subset.coefficients.mean.tolist() if subset else [],
            'normalisingScale': subset.coefficients.scale.tolist() if subset else [],
            'signCorrection': int(self.sign_correction),
            'boundaries': list(self.precision_table.boundaries),
            'precision': list(self.precision_table.precisions),
            'sigmoid_thresh_lo': float(self.sigmoid.thresh_lo),
            'sigmoid_thresh_hi': float(self.sigmoid.thresh_hi),
            'sigmoid_scale': float(self.sigmoid.scale),
            'sigmoid_shift': float(self.sigmoid.shift),
            'trainingDetails': self.training_details,
        }

    def save(self, directory: Union[str, Path], label: str) -> Path:
        """Write the state (and model, if any). Returns the state file path."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        path = state_path(directory, label)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

        if self.sign_correction != 0:
            with open(model_path(directory, label), 'wb') as f:
                pickle.dump({'version': STATE_VERSION, 'model': self.model}, f)

        logger.info(f"Saved classifier '{label}' to {directory}")
        return path

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: Any = None) -> "SavedState":
        sign = int(data['signCorrection'])
        subset = None
        if data['featureSubset']:
            coefficients = NormalizationCoefficients(
                np.asarray(data['normalisingMean'], dtype=np.float64),
                np.asarray(data['normalisingScale'], dtype=np.float64),
            )
            subset = FeatureSubset(tuple(data['featureSubset']), coefficients)
        return cls(
            cascade=Cascade.from_rows(data['boosterStates']),
            sign_correction=sign,
            subset=subset,
            precision_table=PrecisionTable(tuple(data['boundaries']), tuple(data['precision'])),
            sigmoid=SigmoidParams(
                thresh_lo=float(data['sigmoid_thresh_lo']),
                thresh_hi=float(data['sigmoid_thresh_hi']),
                shift=float(data['sigmoid_shift']),
                scale=float(data['sigmoid_scale']),
            ),
            model=model,
            training_details=data.get('trainingDetails', ""),
        )

    @classmethod
    def load(cls, directory: Union[str, Path], label: str) -> "SavedState":
        """
        Raises:
            StateLoadFailure: if a required file is missing or malformed
        """
        path = state_path(directory, label)
        try:
            with open(path, encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StateLoadFailure(f"Cannot read classifier state {path}", cause=e) from e

        if not isinstance(data, dict):
            raise StateLoadFailure(f"Classifier state {path} is not a mapping")
        missing = [k for k in REQUIRED_KEYS if k not in data]
        if missing:
            raise StateLoadFailure(f"Classifier state {path} is incomplete", data={"missing": missing})

        model = None
        if int(data['signCorrection']) != 0:
            blob = model_path(directory, label)
            try:
                with open(blob, 'rb') as f:
                    model = pickle.load(f)['model']
            except (OSError, pickle.UnpicklingError, EOFError, KeyError, TypeError) as e:
                raise StateLoadFailure(f"Cannot read classifier model {blob}", cause=e) from e

        try:
            return cls.from_dict(data, model)
        except (CascadeClassifierError, ValueError, TypeError) as e:
            raise StateLoadFailure(f"Classifier state {path} is malformed", cause=e) from e
