"""Core batch normalization entry point.

This module contains the actual runner, separated from argument parsing in
``main``. ``scripts/normalize_datafiles.py`` is a thin wrapper around it.
"""

import argparse
import json
import logging
from typing import List, Optional

import pandas as pd

from arraydata.pipeline.orchestrator import BatchOrchestrator
from arraydata.schemas.initialization import init_runtime_config

logger = logging.getLogger(__name__)

__all__ = ['build_parser', 'run_normalize', 'main']

DATA_TYPES = ["raw", "normalized", "transformed", "measured_data_matrix", "EXP"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arraydata-normalize",
        description="Normalize microarray data files into canonical tab-delimited tables",
    )
    parser.add_argument("paths", nargs="*", help="Data files or directories (default: input dir from config)")
    parser.add_argument("-c", "--config", help="User config file (Python file with a CONFIG dict)")
    parser.add_argument("-i", "--input-dir", help="Directory searched for data files")
    parser.add_argument("-o", "--output-dir", help="Directory for canonical files, logs and summary")
    parser.add_argument("-t", "--data-type", choices=DATA_TYPES, help="Declared data type of the inputs")
    parser.add_argument("-w", "--workers", type=int, help="Number of worker threads")
    parser.add_argument("--mage-tab", action="store_true",
                        help="Data matrices carry a two-line MAGE-TAB header")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def run_normalize(args: argparse.Namespace) -> pd.DataFrame:
    """Resolve configuration and normalize the batch.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments from ``build_parser()``.

    Returns
    -------
    pandas.DataFrame
        Batch summary, one row per file.

    Raises
    ------
    FileNotFoundError
        If the user config file does not exist.
    pydantic.ValidationError
        If the configuration is invalid.
    """
    config = init_runtime_config(args)

    print(f"\n{'=' * 60}")
    print("arraydata normalization")
    print('=' * 60)
    print(f"Config:    {args.config or '(defaults)'}")
    print(f"Data type: {config.pipeline.data_type}")
    print(f"Workers:   {config.pipeline.workers}")
    print(f"Output:    {config.pipeline.output_dir}")
    print('=' * 60)

    if args.verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('=' * 60)

    orchestrator = BatchOrchestrator(config)
    return orchestrator.run(args.paths or None)


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)
    summary = run_normalize(args)
    if summary.empty:
        print("No data files processed")
        return 1

    counts = summary["status"].value_counts()
    print(f"Completed: {counts.get('completed', 0)}, "
          f"skipped: {counts.get('skipped', 0)}, failed: {counts.get('failed', 0)}")
    return 1 if counts.get('failed', 0) else 0
