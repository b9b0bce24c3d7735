"""Binary node layout shared by the tree builder and the tree searcher.

All integers are little-endian and there is no file header. Every node
starts with one uint32:

- value < LEAF_CAPACITY: leaf. The value is the point count, followed by
  that many records {uint32 latitude, uint32 longitude, uintN record_id}.
- value >= LEAF_CAPACITY: internal node. The value is the split value on the
  depth's axis, followed by a uint32 absolute offset of the
  greater-or-equal subtree. The less-than subtree follows inline.
"""

from __future__ import annotations

from dataclasses import dataclass
import struct
from typing import BinaryIO, Sequence

import numpy as np

from .config import DOMAIN_MAX, LEAF_CAPACITY, SUPPORTED_ID_WIDTHS
from .models import IndexedPoint

UINT32 = struct.Struct("<I")
INTERNAL_HEADER = struct.Struct("<II")


class TreeFormatError(ValueError):
    """Raised when a tree stream is truncated or cannot hold a value."""


def point_dtype(id_width: int) -> np.dtype:
    """Return the packed numpy record layout for leaf points."""
    if id_width not in SUPPORTED_ID_WIDTHS:
        raise ValueError(f"id_width must be one of {SUPPORTED_ID_WIDTHS}, got {id_width!r}")

    id_code = "<u4" if id_width == 4 else "<u8"
    return np.dtype([("latitude", "<u4"), ("longitude", "<u4"), ("record_id", id_code)])


def record_size(id_width: int) -> int:
    return point_dtype(id_width).itemsize


@dataclass(frozen=True)
class LeafNode:
    """Leaf as read from a stream; `records` uses `point_dtype`."""

    offset: int
    depth: int
    records: np.ndarray

    @property
    def points(self) -> list[IndexedPoint]:
        return records_to_points(self.records)


@dataclass(frozen=True)
class InternalNode:
    """Internal node header; the less-than subtree starts at `less_offset`."""

    offset: int
    depth: int
    split_value: int
    greater_offset: int

    @property
    def less_offset(self) -> int:
        return self.offset + INTERNAL_HEADER.size


def pack_leaf(points: Sequence[IndexedPoint], id_width: int) -> bytes:
    """Serialize one leaf: count followed by every point record."""
    if len(points) >= LEAF_CAPACITY:
        raise ValueError(f"a leaf holds at most {LEAF_CAPACITY - 1} points, got {len(points)}")

    max_id = (1 << (8 * id_width)) - 1
    for point in points:
        if not 0 <= point.record_id <= max_id:
            raise ValueError(f"record id {point.record_id} does not fit in {id_width} bytes")

    records = np.array(
        [(p.latitude, p.longitude, p.record_id) for p in points],
        dtype=point_dtype(id_width),
    )
    return UINT32.pack(len(points)) + records.tobytes()


def pack_internal_header(split_value: int, greater_offset: int) -> bytes:
    if not LEAF_CAPACITY <= split_value <= DOMAIN_MAX:
        raise ValueError(f"split value {split_value} collides with the leaf discriminant")
    if not 0 <= greater_offset <= DOMAIN_MAX:
        raise TreeFormatError(f"offset {greater_offset} does not fit in 32 bits")
    return INTERNAL_HEADER.pack(split_value, greater_offset)


def pack_offset(offset: int) -> bytes:
    if not 0 <= offset <= DOMAIN_MAX:
        raise TreeFormatError(f"offset {offset} does not fit in 32 bits")
    return UINT32.pack(offset)


def read_exact(source: BinaryIO, size: int) -> bytes:
    """Read exactly `size` bytes or raise `TreeFormatError`."""
    data = source.read(size)
    if len(data) != size:
        raise TreeFormatError(f"unexpected end of tree stream: wanted {size} bytes, got {len(data)}")
    return data


def read_node(source: BinaryIO, id_width: int, depth: int = 0) -> LeafNode | InternalNode:
    """Read the node at the current position.

    After an internal node the stream is positioned at its less-than subtree;
    after a leaf it is positioned right past the leaf's last record.
    """
    offset = source.tell()
    (value,) = UINT32.unpack(read_exact(source, UINT32.size))

    if value < LEAF_CAPACITY:
        dtype = point_dtype(id_width)
        data = read_exact(source, value * dtype.itemsize)
        return LeafNode(offset=offset, depth=depth, records=np.frombuffer(data, dtype=dtype))

    (greater_offset,) = UINT32.unpack(read_exact(source, UINT32.size))
    return InternalNode(offset=offset, depth=depth, split_value=value, greater_offset=greater_offset)


def records_to_points(records: np.ndarray) -> list[IndexedPoint]:
    return [
        IndexedPoint(latitude=int(lat), longitude=int(lon), record_id=int(rid))
        for lat, lon, rid in zip(records["latitude"], records["longitude"], records["record_id"])
    ]
