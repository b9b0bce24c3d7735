"""Constants and configuration objects for the geo-position tree index."""

from __future__ import annotations

from dataclasses import dataclass

# Nodes whose first field is below this value are leaves; it doubles as the
# maximum leaf size, so every leaf holds at most LEAF_CAPACITY - 1 points.
LEAF_CAPACITY = 10

# Split values must never collide with the leaf discriminant above.
MIN_SPLIT_VALUE = LEAF_CAPACITY

# Fixed-point mapping of [-180, +180] degrees (in microdegrees) onto uint32.
MICRODEGREE_SPAN = 360_000_000
MICRODEGREE_OFFSET = 180_000_000
DOMAIN_BITS = 32
DOMAIN_MAX = (1 << DOMAIN_BITS) - 1
FRACTION_DIGITS = 6

GEO_POSITION_MARKER = '<meta name="geo.position" content="'

SUPPORTED_ID_WIDTHS = (4, 8)
DEFAULT_ID_WIDTH = 4

# Sentinel record id meaning "unset" for the default 32-bit id width.
UNSET_RECORD_ID = (1 << (8 * DEFAULT_ID_WIDTH)) - 1


@dataclass(frozen=True)
class IndexConfig:
    """Runtime options for building and reading one index file.

    The id width is part of the file contract: a reader must use the same
    width the builder used, since the format carries no header.
    """

    # Bytes used per record id in leaf records (4 or 8).
    id_width: int = DEFAULT_ID_WIDTH

    # Text that precedes "latitude;longitude" in record content.
    marker: str = GEO_POSITION_MARKER

    # If True, records flagged as redirects/deleted are never indexed.
    skip_flagged_records: bool = True

    def __post_init__(self) -> None:
        """Validate config values once at construction time."""
        if self.id_width not in SUPPORTED_ID_WIDTHS:
            raise ValueError(f"id_width must be one of {SUPPORTED_ID_WIDTHS}, got {self.id_width!r}")

        if not self.marker:
            raise ValueError("marker must be a non-empty string")

    @property
    def unset_record_id(self) -> int:
        """Return the largest id representable with this id width."""
        return (1 << (8 * self.id_width)) - 1
