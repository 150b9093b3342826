"""
Command line interface.

Usage:
    cascade-classifier train --features door_features.tsv --output models/ --label door
    cascade-classifier score --features candidates.tsv --model models/ --label door --precision 0.9

Feature files are tab-separated, no header: the label (1 positive, 0 or -1
negative) followed by the feature values, the format written by
``dump_features``.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from cascade_classifier.classification.runtime import make_classifier
from cascade_classifier.errors import CascadeClassifierError, InvalidData
from cascade_classifier.evaluation.scoring import NO_PRECISION
from cascade_classifier.training.orchestrator import TrainingOrchestrator
from cascade_classifier.utils.config import TrainingConfig, load_config
from cascade_classifier.utils.logger import setup_logger


def read_feature_file(path: Path) -> Tuple[np.ndarray, np.ndarray]:
    """(labels as bools, feature matrix) from a feature TSV."""
    try:
        df = pd.read_csv(path, sep='\t', header=None)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise InvalidData(f"Cannot read feature file {path}", cause=e) from e
    if df.shape[1] < 2:
        raise InvalidData(f"Feature file {path} needs a label and at least one feature")
    labels = df.iloc[:, 0].to_numpy(dtype=np.float64) > 0
    features = df.iloc[:, 1:].to_numpy(dtype=np.float64)
    return labels, features


def cmd_train(args, config: TrainingConfig) -> int:
    if args.workers:
        config.n_workers = args.workers
    labels, features = read_feature_file(args.features)

    orchestrator = TrainingOrchestrator(args.output, args.label, config)
    for row, label in zip(features, labels):
        orchestrator.add_example(row, bool(label))
    result = orchestrator.train()

    print(result.state.training_details, end="")
    print(f"Saved to {result.state_path}")
    return 0


def cmd_score(args, config: TrainingConfig) -> int:
    classifier = make_classifier(args.model, args.label, target_precision=args.precision)
    _, features = read_feature_file(args.features)

    print("row\tscore\tprobability")
    for i, row in enumerate(features):
        prob, score = classifier.probability(row)
        print(f"{i}\t{score:.6f}\t{prob:.6f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Cascade + SVM binary classifier')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR (default: from config)')
    parser.add_argument('--log-file', type=Path, help='Rotating log file')
    sub = parser.add_subparsers(dest='command', required=True)

    train = sub.add_parser('train', help='Train and save a classifier')
    train.add_argument('--features', '-f', type=Path, required=True, help='Labelled feature TSV')
    train.add_argument('--output', '-o', type=Path, required=True, help='Model directory')
    train.add_argument('--label', '-l', required=True, help='Classifier name')
    train.add_argument('--config', '-c', type=Path, help='Training config YAML')
    train.add_argument('--workers', type=int, help='Worker threads for grid evaluation')
    train.set_defaults(func=cmd_train)

    score = sub.add_parser('score', help='Score candidates with a saved classifier')
    score.add_argument('--features', '-f', type=Path, required=True, help='Feature TSV (first column ignored)')
    score.add_argument('--model', '-m', type=Path, required=True, help='Model directory')
    score.add_argument('--label', '-l', required=True, help='Classifier name')
    score.add_argument('--precision', '-p', type=float, default=NO_PRECISION,
                       help='Target precision in (0, 1); default uses boundary 0')
    score.set_defaults(func=cmd_score)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config(getattr(args, 'config', None))
        setup_logger("cascade_classifier", args.log_level or config.log_level,
                     str(args.log_file) if args.log_file else None)
        return args.func(args, config)
    except CascadeClassifierError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
