"""Range queries over a tree stream written by `builder.write_tree`."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import BinaryIO

import numpy as np

from .codec import format_degrees
from .config import DEFAULT_ID_WIDTH
from .models import Axis, GeoPoint, IndexedPoint, Rectangle
from .tree_format import LeafNode, read_node, records_to_points

logger = logging.getLogger(__name__)


def describe_rectangle(rectangle: Rectangle) -> str:
    """Human-readable bounds in decimal degrees."""
    lower = rectangle.lower
    upper = rectangle.upper
    return (
        f"{format_degrees(lower.latitude, Axis.LATITUDE)}, {format_degrees(lower.longitude, Axis.LONGITUDE)}"
        f" - {format_degrees(upper.latitude, Axis.LATITUDE)}, {format_degrees(upper.longitude, Axis.LONGITUDE)}"
    )


def search_tree(
    source: BinaryIO,
    rectangle: Rectangle,
    id_width: int = DEFAULT_ID_WIDTH,
) -> list[IndexedPoint]:
    """Return all points in `rectangle` (inclusive bounds).

    `source` must be seekable and positioned at the tree's root node. The
    result follows tree order, not input order.
    """
    logger.info("Searching in %s", describe_rectangle(rectangle))

    matches: list[IndexedPoint] = []
    _search_node(source, rectangle.lower, rectangle.upper, 0, id_width, matches)
    return matches


def _search_node(
    source: BinaryIO,
    lower: GeoPoint,
    upper: GeoPoint,
    depth: int,
    id_width: int,
    matches: list[IndexedPoint],
) -> None:
    node = read_node(source, id_width, depth)

    if isinstance(node, LeafNode):
        logger.debug("Descended to depth %d", depth)
        matches.extend(records_to_points(_select_in_bounds(node.records, lower, upper)))
        return

    axis = Axis.for_depth(depth)
    split = node.split_value

    # Less-than side is inline, right after the header just read.
    if lower.axis_value(axis) < split:
        clamped = upper.with_axis_value(axis, min(upper.axis_value(axis), split))
        _search_node(source, lower, clamped, depth + 1, id_width, matches)

    if split <= upper.axis_value(axis):
        clamped = lower.with_axis_value(axis, max(lower.axis_value(axis), split))
        source.seek(node.greater_offset)
        _search_node(source, clamped, upper, depth + 1, id_width, matches)


def _select_in_bounds(records: np.ndarray, lower: GeoPoint, upper: GeoPoint) -> np.ndarray:
    # Vectorized inclusive bounds test over one leaf.
    keep = (
        (records["latitude"] >= lower.latitude)
        & (records["latitude"] <= upper.latitude)
        & (records["longitude"] >= lower.longitude)
        & (records["longitude"] <= upper.longitude)
    )
    return records[keep]


@dataclass(frozen=True)
class TreeSummary:
    """Shape of a stored tree, collected by visiting every node."""

    n_points: int
    n_leaves: int
    n_internal_nodes: int
    max_depth: int


def tree_summary(source: BinaryIO, id_width: int = DEFAULT_ID_WIDTH) -> TreeSummary:
    """Walk the whole tree starting at the current position."""
    counts = {"points": 0, "leaves": 0, "internal": 0, "depth": 0}

    def visit(depth: int) -> None:
        node = read_node(source, id_width, depth)
        counts["depth"] = max(counts["depth"], depth)
        if isinstance(node, LeafNode):
            counts["leaves"] += 1
            counts["points"] += len(node.records)
            return
        counts["internal"] += 1
        visit(depth + 1)
        source.seek(node.greater_offset)
        visit(depth + 1)

    visit(0)
    return TreeSummary(
        n_points=counts["points"],
        n_leaves=counts["leaves"],
        n_internal_nodes=counts["internal"],
        max_depth=counts["depth"],
    )
