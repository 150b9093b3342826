"""TSV reports of the subset/hyperparameter search."""

import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class SearchRecord:
    """Best grid point found for one evaluated feature subset."""
    size: int
    subset: Tuple[int, ...]
    regularization: float
    kernel_width: Optional[float]
    score: float
    support_vectors: float

    def to_row(self):
        row = asdict(self)
        row['subset'] = subset_name(self.subset)
        return row


def subset_name(subset: Sequence[int]) -> str:
    return "-".join(str(i) for i in subset)


def write_records(path: Path, records: Iterable[SearchRecord]) -> Path:
    """Write one row per record (size, subset, reg, width, score, SVs)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame([r.to_row() for r in records],
                      columns=['size', 'subset', 'regularization', 'kernel_width', 'score', 'support_vectors'])
    df.to_csv(path, sep='\t', index=False)
    return path


def write_surface(directory: Path, subset: Sequence[int], parameterizations) -> Path:
    """Score of every grid point evaluated for ``subset``."""
    path = Path(directory) / f"surface_{subset_name(subset)}.tsv"
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame([
        {
            'kernel_width': p.hyperparameter.kernel_width,
            'regularization': p.hyperparameter.regularization,
            'score': p.score,
            'support_vectors': p.support_vectors,
        }
        for p in parameterizations
    ])
    df.to_csv(path, sep='\t', index=False)
    return path
