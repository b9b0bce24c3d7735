"""Record sources and geo-position extraction from record content."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from .codec import parse_point
from .config import GEO_POSITION_MARKER
from .models import IndexedPoint

logger = logging.getLogger(__name__)

DEFAULT_RECORD_COLUMNS: dict[str, str | None] = {
    "record_id": "id",
    "content": "content",
    "is_redirect": None,
    "is_deleted": None,
}

# Bytes after the marker handed to the coordinate parser.
TAG_WINDOW = 64


@dataclass(frozen=True)
class ArchiveRecord:
    """One record of the source collection."""

    record_id: int
    content: bytes
    skip: bool = False

    def __post_init__(self) -> None:
        if self.record_id < 0:
            raise ValueError(f"record_id must be >= 0, got {self.record_id}")

        if isinstance(self.content, str):
            object.__setattr__(self, "content", self.content.encode("utf-8"))


@dataclass
class ExtractionStats:
    """Counters for one pass over a record source."""

    n_records: int = 0
    n_skipped: int = 0
    n_tagged: int = 0
    n_valid_points: int = 0

    @property
    def n_invalid_tags(self) -> int:
        return self.n_tagged - self.n_valid_points


def normalize_table_format(raw_format: str, path: Path) -> str:
    value = raw_format.strip().lower()
    if value == "auto":
        suffix = path.suffix.lower()
        if suffix in {".csv"}:
            return "csv"
        if suffix in {".tsv", ".txt"}:
            return "tsv"
        if suffix in {".parquet", ".pq"}:
            return "parquet"
        raise ValueError(f"cannot infer format from extension for file: {path}")

    if value not in {"csv", "tsv", "parquet"}:
        raise ValueError(f"unsupported table format: {raw_format!r}")
    return value


def load_record_table(path: str | Path, table_format: str = "auto") -> pd.DataFrame:
    """Load a record table (csv, tsv or parquet) into a DataFrame."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"record table not found: {path}")

    table_format = normalize_table_format(table_format, path)
    if table_format == "csv":
        return pd.read_csv(path, keep_default_na=False)
    if table_format == "tsv":
        return pd.read_csv(path, sep="\t", keep_default_na=False)
    return pd.read_parquet(path)


def resolve_record_columns(overrides: dict[str, Any] | None = None) -> dict[str, str | None]:
    """Merge column overrides into the defaults; id and content are required."""
    cols = dict(DEFAULT_RECORD_COLUMNS)
    cols.update(overrides or {})

    unknown = sorted(set(cols) - set(DEFAULT_RECORD_COLUMNS))
    if unknown:
        raise ValueError(f"unknown record columns: {unknown}")

    for key in ("record_id", "content"):
        if cols.get(key) is None:
            raise ValueError(f"record column {key!r} must not be null")

    return {key: (None if value is None else str(value)) for key, value in cols.items()}


def table_record_columns(df: pd.DataFrame) -> dict[str, str | None]:
    """Default columns, plus any `is_redirect`/`is_deleted` flag columns the table has."""
    flags = {key: key for key in ("is_redirect", "is_deleted") if key in df.columns}
    return resolve_record_columns(flags)


def iter_table_records(
    df: pd.DataFrame,
    columns: dict[str, str | None] | None = None,
) -> Iterator[ArchiveRecord]:
    """Yield one `ArchiveRecord` per table row."""
    cols = resolve_record_columns(columns)
    required = [col for col in cols.values() if col is not None]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"missing columns in record table: {missing}")

    record_ids = pd.to_numeric(df[cols["record_id"]], errors="raise").to_numpy()
    contents = df[cols["content"]].to_numpy()

    skip = pd.Series(False, index=df.index)
    for flag_key in ("is_redirect", "is_deleted"):
        flag_col = cols[flag_key]
        if flag_col is not None:
            skip = skip | df[flag_col].map(_as_flag).astype(bool)
    skip_values = skip.to_numpy()

    for i in range(len(df)):
        content = contents[i]
        if not isinstance(content, (bytes, str)):
            content = "" if pd.isna(content) else str(content)
        yield ArchiveRecord(record_id=int(record_ids[i]), content=content, skip=bool(skip_values[i]))


def find_geo_position(content: bytes, marker: str = GEO_POSITION_MARKER) -> str | None:
    """Return the text right after `marker`, or None if the marker is absent.

    At most `TAG_WINDOW` bytes are returned. A tag whose `latitude;longitude`
    text runs past that window is cut off and parses as an invalid point.
    """
    marker_bytes = marker.encode("utf-8")
    start = content.find(marker_bytes)
    if start < 0:
        return None
    start += len(marker_bytes)
    # Only a short numeric prefix is parsed; latin-1 never fails to decode.
    return content[start:start + TAG_WINDOW].decode("latin-1")


def extract_points(
    records: Iterable[ArchiveRecord],
    marker: str = GEO_POSITION_MARKER,
    skip_flagged: bool = True,
) -> tuple[list[IndexedPoint], ExtractionStats]:
    """Collect valid tagged points from `records`.

    Records without the marker, or whose tag does not parse into a valid
    position, are left out silently; the counters in the returned stats
    show how many.
    """
    stats = ExtractionStats()
    points: list[IndexedPoint] = []

    for record in records:
        stats.n_records += 1
        if skip_flagged and record.skip:
            stats.n_skipped += 1
            continue

        tag = find_geo_position(record.content, marker)
        if tag is None:
            continue

        stats.n_tagged += 1
        point = parse_point(record.record_id, tag)
        if point.is_valid:
            points.append(point)
            stats.n_valid_points += 1

    logger.info(
        "Scanned %d records: %d skipped, %d tagged, %d valid points",
        stats.n_records,
        stats.n_skipped,
        stats.n_tagged,
        stats.n_valid_points,
    )
    return points, stats


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "t"}
    if pd.isna(value):
        return False
    return bool(value)
