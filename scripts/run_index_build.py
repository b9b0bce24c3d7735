#!/usr/bin/env python
"""Build a geo-position tree index from a record table using a YAML config.

Usage:
    python scripts/run_index_build.py --config configs/index_build.template.yaml
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys


# Ensure local package import works when the script is executed directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from geo_kdindex.index_build import run_index_build_from_config


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run reproducible geo index build")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to YAML config file (configs/*.yaml)",
    )
    return parser


def main() -> None:
    args = _build_arg_parser().parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    run_dir = run_index_build_from_config(config_path=args.config)

    summary_path = run_dir / "summary.json"
    with summary_path.open("r", encoding="utf-8") as handle:
        summary = json.load(handle)

    print(f"Index build complete: {run_dir}")
    print(
        "Summary:",
        {
            "n_valid_points": summary["n_valid_points"],
            "n_indexed_points": summary["n_indexed_points"],
            "n_discarded_points": summary["n_discarded_points"],
            "tree_size_bytes": summary["tree_size_bytes"],
        },
    )


if __name__ == "__main__":
    main()
