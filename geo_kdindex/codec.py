"""Fixed-point coordinate codec between decimal degrees and uint32 domain values.

Both axes are mapped through the same affine transform of [-180, +180]
degrees onto [0, 2**32 - 1]. Latitude only spans [-90, +90], so it is doubled
in microdegree space before encoding and halved after decoding. That keeps
one domain unit roughly the same physical distance on both axes, which
matters because the tree's thresholds are expressed in raw domain units.
"""

from __future__ import annotations

from .config import (
    DOMAIN_BITS,
    DOMAIN_MAX,
    FRACTION_DIGITS,
    MICRODEGREE_OFFSET,
    MICRODEGREE_SPAN,
)
from .models import Axis, GeoPoint, IndexedPoint, Rectangle

POSITION_SEPARATOR = ";"


def parse_decimal_degrees(text: str) -> tuple[int, str]:
    """Parse a leading decimal-degree number into microdegrees.

    Accepts an optional sign, digits and at most one decimal point, and stops
    at the first other character. Returns the value and the unparsed rest.
    This never fails: garbled input yields whatever numeric prefix was read.
    """
    pos = 0
    negative = False
    if pos < len(text) and text[pos] in "+-":
        negative = text[pos] == "-"
        pos += 1

    value = 0
    fraction_digits = 0
    seen_point = False
    while pos < len(text):
        char = text[pos]
        if char == ".":
            if seen_point:
                break
            seen_point = True
        elif "0" <= char <= "9":
            if not seen_point:
                value = value * 10 + int(char)
            elif fraction_digits < FRACTION_DIGITS:
                value = value * 10 + int(char)
                fraction_digits += 1
            # Digits past microdegree precision are consumed but ignored.
        else:
            break
        pos += 1

    value *= 10 ** (FRACTION_DIGITS - fraction_digits)
    return (-value if negative else value), text[pos:]


def to_domain(microdegrees: int) -> int:
    """Map microdegrees in [-180e6, +180e6] onto [0, 2**32 - 1]."""
    value = ((microdegrees + MICRODEGREE_OFFSET) << DOMAIN_BITS) // MICRODEGREE_SPAN
    return min(max(value, 0), DOMAIN_MAX)


def from_domain_microdegrees(value: int, axis: Axis | int) -> int:
    """Inverse of `encode_axis`: domain value back to microdegrees."""
    microdegrees = ((value * MICRODEGREE_SPAN) >> DOMAIN_BITS) - MICRODEGREE_OFFSET
    if Axis(axis) is Axis.LATITUDE:
        # Truncate toward zero.
        microdegrees = -(-microdegrees // 2) if microdegrees < 0 else microdegrees // 2
    return microdegrees


def from_domain(value: int, axis: Axis | int) -> float:
    """Return decimal degrees for a domain value on `axis`."""
    return from_domain_microdegrees(value, axis) / 10**FRACTION_DIGITS


def encode_axis(microdegrees: int, axis: Axis | int) -> int:
    """Encode microdegrees on `axis`, doubling latitude first."""
    if Axis(axis) is Axis.LATITUDE:
        microdegrees *= 2
    return to_domain(microdegrees)


def encode_degrees(value: str | float, axis: Axis | int) -> int:
    """Encode a decimal-degree string or number on `axis`."""
    text = value if isinstance(value, str) else f"{value:.{FRACTION_DIGITS}f}"
    microdegrees, _ = parse_decimal_degrees(text.strip())
    return encode_axis(microdegrees, axis)


def format_degrees(value: int, axis: Axis | int) -> str:
    """Display text for a domain value (six significant digits)."""
    return f"{from_domain(value, axis):g}"


def parse_geo_position(text: str) -> tuple[int, int] | None:
    """Parse "latitude;longitude" into microdegrees, or None without a separator."""
    latitude, rest = parse_decimal_degrees(text)
    if not rest.startswith(POSITION_SEPARATOR):
        return None
    longitude, _ = parse_decimal_degrees(rest[len(POSITION_SEPARATOR):])
    return latitude, longitude


def parse_point(record_id: int, text: str) -> IndexedPoint:
    """Build an indexed point from tag text; invalid (0/0) if it cannot be parsed."""
    position = parse_geo_position(text)
    if position is None:
        return IndexedPoint()

    latitude, longitude = position
    return IndexedPoint(
        latitude=encode_axis(latitude, Axis.LATITUDE),
        longitude=encode_axis(longitude, Axis.LONGITUDE),
        record_id=record_id,
    )


def parse_rectangle(
    lat_min: str | float,
    lon_min: str | float,
    lat_max: str | float,
    lon_max: str | float,
) -> Rectangle:
    """Encode decimal-degree bounds; reversed bounds on an axis are swapped."""
    rect = Rectangle(
        lower=GeoPoint(encode_degrees(lat_min, Axis.LATITUDE), encode_degrees(lon_min, Axis.LONGITUDE)),
        upper=GeoPoint(encode_degrees(lat_max, Axis.LATITUDE), encode_degrees(lon_max, Axis.LONGITUDE)),
    )
    return rect.normalized()
