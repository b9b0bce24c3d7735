"""Write a static alternating-axis partition tree to a binary stream."""

from __future__ import annotations

from dataclasses import dataclass
import io
import logging
import os
from typing import BinaryIO, Callable

from .config import DEFAULT_ID_WIDTH, LEAF_CAPACITY, MIN_SPLIT_VALUE
from .models import Axis, IndexedPoint
from .tree_format import UINT32, pack_internal_header, pack_leaf, pack_offset, point_dtype

logger = logging.getLogger(__name__)

DiscardHook = Callable[[IndexedPoint, str], None]

DISCARD_SMALL_MEDIAN = "small_median"
DISCARD_DUPLICATE_POSITION = "duplicate_position"


@dataclass
class BuildReport:
    """Counters collected while writing one tree."""

    n_input_points: int = 0
    n_written_points: int = 0
    n_discarded_points: int = 0
    n_leaves: int = 0
    n_internal_nodes: int = 0
    max_depth: int = 0
    n_bytes: int = 0


class _TreeWriter:
    """Recursive writer over index ranges of one shared point list."""

    def __init__(
        self,
        points: list[IndexedPoint],
        sink: BinaryIO,
        id_width: int,
        on_discard: DiscardHook | None,
    ) -> None:
        self.points = points
        self.sink = sink
        self.id_width = id_width
        self.on_discard = on_discard
        self.report = BuildReport(n_input_points=len(points))

    def write(self, begin: int, end: int, depth: int, after_empty_split: bool = False) -> None:
        """Write the subtree for points[begin:end] at `depth`.

        `after_empty_split` is set when the parent split left its less-than
        side empty, so this call holds the parent's whole range.
        """
        points = self.points
        axis = Axis.for_depth(depth)
        self.report.max_depth = max(self.report.max_depth, depth)

        while True:
            if end - begin < LEAF_CAPACITY:
                self._write_leaf(begin, end)
                return

            points[begin:end] = sorted(points[begin:end], key=lambda p: p.axis_value(axis))
            median = begin + (end - begin) // 2
            median_value = points[median].axis_value(axis)

            if median_value >= MIN_SPLIT_VALUE:
                break

            # A split value this small would read back as a leaf count.
            # Drop the point just before the median and retry the rest.
            logger.warning(
                "Median value %d below %d on axis %s at depth %d; discarding one point",
                median_value,
                MIN_SPLIT_VALUE,
                axis.name,
                depth,
            )
            dropped = points[median - 1]
            points[median - 1] = points[begin]
            begin += 1
            self._discard(dropped, DISCARD_SMALL_MEDIAN)
            after_empty_split = False

        # Ties stay together: the split is the smallest value of the upper part.
        while median > begin and points[median - 1].axis_value(axis) == median_value:
            median -= 1

        if median == begin and after_empty_split:
            # Both axes have one equal run below the median, so the same pair
            # of empty splits would repeat forever. Split above the run instead.
            upper = median
            while upper < end and points[upper].axis_value(axis) == median_value:
                upper += 1
            if upper < end:
                median = upper
                median_value = points[median].axis_value(axis)
            elif self._single_position(begin, end):
                # No split can separate identical positions; keep what fits a leaf.
                logger.warning(
                    "%d points share one position at depth %d; keeping %d",
                    end - begin,
                    depth,
                    LEAF_CAPACITY - 1,
                )
                for point in points[begin + LEAF_CAPACITY - 1:end]:
                    self._discard(point, DISCARD_DUPLICATE_POSITION)
                self._write_leaf(begin, begin + LEAF_CAPACITY - 1)
                return

        sink = self.sink
        offset_pos = sink.tell() + UINT32.size
        sink.write(pack_internal_header(median_value, 0))
        self.report.n_internal_nodes += 1

        self.write(begin, median, depth + 1)

        greater_pos = sink.tell()
        sink.seek(offset_pos)
        sink.write(pack_offset(greater_pos))
        sink.seek(0, os.SEEK_END)

        self.write(median, end, depth + 1, after_empty_split=median == begin)

    def _write_leaf(self, begin: int, end: int) -> None:
        self.sink.write(pack_leaf(self.points[begin:end], self.id_width))
        self.report.n_leaves += 1
        self.report.n_written_points += end - begin

    def _single_position(self, begin: int, end: int) -> bool:
        first = self.points[begin]
        return all(
            p.latitude == first.latitude and p.longitude == first.longitude
            for p in self.points[begin + 1:end]
        )

    def _discard(self, point: IndexedPoint, reason: str) -> None:
        self.report.n_discarded_points += 1
        if self.on_discard is not None:
            self.on_discard(point, reason)


def write_tree(
    points: list[IndexedPoint],
    sink: BinaryIO,
    id_width: int = DEFAULT_ID_WIDTH,
    on_discard: DiscardHook | None = None,
) -> BuildReport:
    """Write the tree for `points` to `sink` and return build counters.

    Notes:
    - `points` is reordered in place.
    - Offsets are absolute positions in `sink`, so the tree should start at
      the beginning of the stream a reader will open.
    - A sink that cannot seek gets the tree built in memory first; the
      bytes are identical either way.
    """
    point_dtype(id_width)  # rejects unsupported id widths early

    if not sink.seekable():
        buffer = io.BytesIO()
        report = write_tree(points, buffer, id_width=id_width, on_discard=on_discard)
        sink.write(buffer.getvalue())
        return report

    start = sink.tell()
    writer = _TreeWriter(points, sink, id_width, on_discard)
    writer.write(0, len(points), 0)
    writer.report.n_bytes = sink.tell() - start

    logger.info(
        "Wrote tree: %d points, %d leaves, %d internal nodes, depth %d, %d bytes",
        writer.report.n_written_points,
        writer.report.n_leaves,
        writer.report.n_internal_nodes,
        writer.report.max_depth,
        writer.report.n_bytes,
    )
    if writer.report.n_discarded_points:
        logger.warning("Discarded %d points while building the tree", writer.report.n_discarded_points)

    return writer.report


def build_tree_bytes(
    points: list[IndexedPoint],
    id_width: int = DEFAULT_ID_WIDTH,
    on_discard: DiscardHook | None = None,
) -> bytes:
    """Convenience wrapper: build a tree for `points` into a bytes object."""
    buffer = io.BytesIO()
    write_tree(list(points), buffer, id_width=id_width, on_discard=on_discard)
    return buffer.getvalue()
