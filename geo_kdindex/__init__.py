"""Public API for the static on-disk geo-position tree index."""

from .builder import BuildReport, build_tree_bytes, write_tree
from .codec import (
    encode_axis,
    encode_degrees,
    format_degrees,
    from_domain,
    parse_decimal_degrees,
    parse_geo_position,
    parse_point,
    parse_rectangle,
    to_domain,
)
from .config import GEO_POSITION_MARKER, LEAF_CAPACITY, IndexConfig
from .index_build import ConfigError, IndexBuildConfig, run_index_build, run_index_build_from_config
from .models import Axis, GeoPoint, IndexedPoint, Rectangle
from .records import (
    ArchiveRecord,
    ExtractionStats,
    extract_points,
    iter_table_records,
    load_record_table,
    table_record_columns,
)
from .searcher import TreeSummary, search_tree, tree_summary
from .tree_format import TreeFormatError

__all__ = [
    "ArchiveRecord",
    "Axis",
    "BuildReport",
    "ConfigError",
    "ExtractionStats",
    "GEO_POSITION_MARKER",
    "GeoPoint",
    "IndexBuildConfig",
    "IndexConfig",
    "IndexedPoint",
    "LEAF_CAPACITY",
    "Rectangle",
    "TreeFormatError",
    "TreeSummary",
    "build_tree_bytes",
    "encode_axis",
    "encode_degrees",
    "extract_points",
    "format_degrees",
    "from_domain",
    "iter_table_records",
    "load_record_table",
    "parse_decimal_degrees",
    "parse_geo_position",
    "parse_point",
    "parse_rectangle",
    "run_index_build",
    "run_index_build_from_config",
    "search_tree",
    "table_record_columns",
    "to_domain",
    "tree_summary",
    "write_tree",
]
