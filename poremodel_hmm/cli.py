#!/usr/bin/env python
"""
Train a pore model for a base analogue from nanopore training data.

Aligns each training read to the reference with a per-read profile HMM,
pools the aligned signal by reference position inside the training bounds,
and fits a two-component Gaussian mixture at every position.

Examples:
    # Positions 150-650 of the reference hold the de Bruijn sequence
    poremodel-train -d data.foh -b 150 650 -m template_r9.4_5mer.model -o trained.model

    # Override transition or fitting parameters from a JSON file
    poremodel-train -d data.foh -b 150 650 -m template.model -o trained.model -c train.json
"""

import argparse
import sys
from typing import List, Optional

from .config import TrainingConfig
from .exceptions import ConfigurationError
from .training import train_from_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='poremodel-train',
        description="Determine the mean and standard deviation of a base analogue's current.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Example:\n  poremodel-train -d data.foh -b 150 650 -m pore.model -o output.txt -t 20",
    )
    parser.add_argument(
        '-d', '--trainingData', required=True, dest='training_data',
        help='Path to training data in the .foh format'
    )
    parser.add_argument(
        '-b', '--bounds', required=True, nargs=2, type=int, metavar=('LOWER', 'UPPER'),
        help='Indices of where the de Bruijn sequence starts and ends in the reference'
    )
    parser.add_argument(
        '-o', '--output', required=True,
        help='Path to the output pore model file'
    )
    parser.add_argument(
        '-m', '--pore-model', required=True, dest='pore_model',
        help='Path to the 5-mer pore model used for alignment and as mixture seed'
    )
    parser.add_argument(
        '-t', '--threads', type=int, default=1,
        help='Number of threads (default: 1). Reads are currently aligned sequentially.'
    )
    parser.add_argument(
        '-c', '--config', default=None,
        help='Optional JSON file overriding TrainingConfig fields'
    )
    return parser


def config_from_args(args: argparse.Namespace) -> TrainingConfig:
    """Merge command-line arguments over the optional JSON config."""
    overrides = dict(
        training_data_path=args.training_data,
        pore_model_path=args.pore_model,
        output_path=args.output,
        bounds=tuple(args.bounds),
        threads=args.threads,
    )
    if args.config:
        return TrainingConfig.from_json(args.config, **overrides)
    return TrainingConfig(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        if config.threads > 1:
            print(f"Note: {config.threads} threads requested; reads are aligned sequentially")
        fits = train_from_file(config)
    except ConfigurationError as e:
        print(f"Exiting with error. {e}", file=sys.stderr)
        return 1

    print(f"Done! Wrote {len(fits)} positions to {config.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
