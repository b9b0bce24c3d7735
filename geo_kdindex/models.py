"""Value types for points, indexed points and query rectangles."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum

from .config import DOMAIN_MAX, UNSET_RECORD_ID


class Axis(IntEnum):
    """Coordinate selector; the tree alternates between these by depth."""

    LATITUDE = 0
    LONGITUDE = 1

    @staticmethod
    def for_depth(depth: int) -> "Axis":
        """Return the axis compared at `depth` in the tree."""
        return Axis(depth % 2)


@dataclass(frozen=True)
class GeoPoint:
    """Position as two encoded domain values (see `codec.to_domain`)."""

    latitude: int = 0
    longitude: int = 0

    def __post_init__(self) -> None:
        for name in ("latitude", "longitude"):
            value = getattr(self, name)
            if not 0 <= value <= DOMAIN_MAX:
                raise ValueError(f"{name} domain value {value!r} is outside uint32 range")

    @property
    def is_valid(self) -> bool:
        """Zero/zero is the sentinel for "no geographic tag found"."""
        return self.latitude != 0 or self.longitude != 0

    def axis_value(self, axis: Axis | int) -> int:
        """Return the domain value on `axis`."""
        return self.latitude if Axis(axis) is Axis.LATITUDE else self.longitude

    def with_axis_value(self, axis: Axis | int, value: int) -> "GeoPoint":
        """Return a copy with the value on `axis` replaced."""
        if Axis(axis) is Axis.LATITUDE:
            return replace(self, latitude=value)
        return replace(self, longitude=value)


@dataclass(frozen=True)
class IndexedPoint(GeoPoint):
    """One record position as stored in the tree."""

    record_id: int = UNSET_RECORD_ID

    def as_geo_point(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned query bounds, inclusive on both axes."""

    lower: GeoPoint
    upper: GeoPoint

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.lower.latitude <= point.latitude <= self.upper.latitude
            and self.lower.longitude <= point.longitude <= self.upper.longitude
        )

    def normalized(self) -> "Rectangle":
        """Return bounds with reversed axes swapped so lower <= upper."""
        lower = self.lower
        upper = self.upper
        for axis in Axis:
            low = lower.axis_value(axis)
            high = upper.axis_value(axis)
            if low > high:
                lower = lower.with_axis_value(axis, high)
                upper = upper.with_axis_value(axis, low)
        return Rectangle(lower=lower, upper=upper)

    @classmethod
    def full(cls) -> "Rectangle":
        """Return bounds covering the whole encodable domain."""
        return cls(lower=GeoPoint(0, 0), upper=GeoPoint(DOMAIN_MAX, DOMAIN_MAX))

