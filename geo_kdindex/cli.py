"""Command-line entry point.

Usage:
    geo-kdindex RECORDS_TABLE > index.bin
    geo-kdindex LAT_MIN LON_MIN LAT_MAX LON_MAX < index.bin

The record table needs `id` and `content` columns. Rows flagged in an
optional `is_redirect` or `is_deleted` column are not indexed.
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from typing import BinaryIO, Sequence, TextIO

from .builder import write_tree
from .codec import format_degrees, parse_rectangle
from .config import DEFAULT_ID_WIDTH, SUPPORTED_ID_WIDTHS, IndexConfig
from .models import Axis, IndexedPoint
from .records import extract_points, iter_table_records, load_record_table, table_record_columns
from .searcher import search_tree

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geo-kdindex",
        description=(
            "Build a static geo-position tree index from a record table (one argument), "
            "or search one by rectangle (four arguments: latMin lonMin latMax lonMax)."
        ),
    )
    parser.add_argument(
        "arguments",
        nargs="*",
        metavar="ARG",
        help="RECORDS_TABLE, or LAT_MIN LON_MIN LAT_MAX LON_MAX in decimal degrees",
    )
    parser.add_argument(
        "--id-width",
        type=int,
        choices=SUPPORTED_ID_WIDTHS,
        default=DEFAULT_ID_WIDTH,
        help="Bytes per record id in the index file (default: %(default)s)",
    )
    parser.add_argument(
        "--records-format",
        type=str,
        default="auto",
        help="Record table format: auto, csv, tsv or parquet (build mode)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the index here instead of standard output (build mode)",
    )
    parser.add_argument(
        "--tree",
        type=str,
        default=None,
        help="Read the index from here instead of standard input (search mode)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def build_index(records_path: str, sink: BinaryIO, config: IndexConfig, records_format: str = "auto") -> int:
    """Index every tagged record in the table at `records_path`; return points written."""
    records_df = load_record_table(records_path, records_format)
    points, _ = extract_points(
        iter_table_records(records_df, table_record_columns(records_df)),
        marker=config.marker,
        skip_flagged=config.skip_flagged_records,
    )
    report = write_tree(points, sink, id_width=config.id_width)
    logger.info("Indexed %d of %d records from %s", report.n_written_points, len(records_df), records_path)
    return report.n_written_points


def search_index(
    source: BinaryIO,
    bounds: Sequence[str],
    out: TextIO,
    config: IndexConfig,
) -> list[IndexedPoint]:
    """Search `source` for points within `bounds` and print one line per match."""
    rectangle = parse_rectangle(*bounds)

    if not source.seekable():
        source = io.BytesIO(source.read())

    matches = search_tree(source, rectangle, id_width=config.id_width)
    for point in matches:
        out.write(format_match(point) + "\n")
    return matches


def format_match(point: IndexedPoint) -> str:
    return (
        f"{format_degrees(point.latitude, Axis.LATITUDE)}, "
        f"{format_degrees(point.longitude, Axis.LONGITUDE)}: {point.record_id}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if len(args.arguments) not in (1, 4):
        parser.error(f"expected 1 or 4 arguments, got {len(args.arguments)}")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    config = IndexConfig(id_width=args.id_width)

    if len(args.arguments) == 1:
        if args.output is not None:
            with open(args.output, "wb") as sink:
                build_index(args.arguments[0], sink, config, args.records_format)
        else:
            build_index(args.arguments[0], sys.stdout.buffer, config, args.records_format)
            sys.stdout.buffer.flush()
        return 0

    if args.tree is not None:
        with open(args.tree, "rb") as source:
            search_index(source, args.arguments, sys.stdout, config)
    else:
        search_index(sys.stdin.buffer, args.arguments, sys.stdout, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
