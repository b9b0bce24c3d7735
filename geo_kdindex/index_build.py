"""Reproducible, config-driven index build with run artifacts."""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
import json
import logging
from pathlib import Path
import platform
import re
import subprocess
import sys
from typing import Any

import yaml

from .builder import write_tree
from .config import GEO_POSITION_MARKER, IndexConfig
from .models import IndexedPoint
from .records import (
    extract_points,
    iter_table_records,
    load_record_table,
    normalize_table_format,
    resolve_record_columns,
)

logger = logging.getLogger(__name__)

TREE_FILE_NAME = "geo_index.bin"


class ConfigError(ValueError):
    """Raised when index-build config is invalid."""


@dataclass(frozen=True)
class IndexBuildConfig:
    """Resolved config for one reproducible index-build run."""

    run_name: str
    output_root: Path
    records_path: Path
    records_format: str
    record_columns: dict[str, str | None]
    index_config: IndexConfig

    def to_serializable_dict(self) -> dict[str, Any]:
        """Return config as plain Python types for YAML/JSON output."""
        return {
            "run": {
                "name": self.run_name,
                "output_root": str(self.output_root),
            },
            "inputs": {
                "records_path": str(self.records_path),
                "records_format": self.records_format,
                "columns": dict(self.record_columns),
            },
            "index": {
                "id_width": self.index_config.id_width,
                "marker": self.index_config.marker,
                "skip_flagged_records": self.index_config.skip_flagged_records,
            },
        }


def load_index_build_config(config_path: str | Path) -> IndexBuildConfig:
    """Load and validate YAML config for an index build."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)

    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")

    run = _as_dict(raw.get("run"), "run")
    inputs = _as_dict(raw.get("inputs"), "inputs")
    index = _as_dict(raw.get("index"), "index")

    run_name = str(run.get("name", "geo_index"))
    if not run_name.strip():
        raise ConfigError("run.name must be a non-empty string")

    output_root = Path(str(run.get("output_root", "runs"))).expanduser().resolve()
    records_path = Path(str(_require(inputs, "records_path", "inputs"))).expanduser().resolve()

    try:
        records_format = normalize_table_format(str(inputs.get("records_format", "auto")), records_path)
        record_columns = resolve_record_columns(_as_dict(inputs.get("columns", {}), "inputs.columns"))
        index_config = IndexConfig(
            id_width=int(index.get("id_width", 4)),
            marker=str(index.get("marker", GEO_POSITION_MARKER)),
            skip_flagged_records=bool(index.get("skip_flagged_records", True)),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return IndexBuildConfig(
        run_name=run_name,
        output_root=output_root,
        records_path=records_path,
        records_format=records_format,
        record_columns=record_columns,
        index_config=index_config,
    )


def run_index_build(config: IndexBuildConfig) -> Path:
    """Run the full index-build pipeline and return the run directory."""
    config.output_root.mkdir(parents=True, exist_ok=True)

    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    run_dir = config.output_root / f"{_slugify(config.run_name)}_{timestamp}"
    run_dir.mkdir(parents=False, exist_ok=False)

    config_dir = run_dir / "config"
    logs_dir = run_dir / "logs"
    config_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    steps_log_path = logs_dir / "steps.jsonl"
    _append_step_log(steps_log_path, event="run_start", payload={"run_name": config.run_name})

    records_df = load_record_table(config.records_path, config.records_format)
    _append_step_log(steps_log_path, event="records_loaded", payload={"n_input_records": int(len(records_df))})

    index_config = config.index_config
    points, stats = extract_points(
        iter_table_records(records_df, config.record_columns),
        marker=index_config.marker,
        skip_flagged=index_config.skip_flagged_records,
    )
    _append_step_log(
        steps_log_path,
        event="points_extracted",
        payload={
            "n_records": stats.n_records,
            "n_skipped": stats.n_skipped,
            "n_tagged": stats.n_tagged,
            "n_valid_points": stats.n_valid_points,
        },
    )

    discarded: list[dict[str, Any]] = []

    def record_discard(point: IndexedPoint, reason: str) -> None:
        discarded.append({"record_id": int(point.record_id), "reason": reason})

    tree_path = run_dir / TREE_FILE_NAME
    with tree_path.open("wb") as sink:
        report = write_tree(points, sink, id_width=index_config.id_width, on_discard=record_discard)

    for entry in discarded:
        _append_step_log(steps_log_path, event="point_discarded", payload=entry)
    _append_step_log(
        steps_log_path,
        event="tree_written",
        payload={"tree_path": str(tree_path), "n_bytes": int(report.n_bytes)},
    )

    summary = {
        "n_input_records": int(len(records_df)),
        "n_skipped_records": stats.n_skipped,
        "n_tagged_records": stats.n_tagged,
        "n_invalid_tags": stats.n_invalid_tags,
        "n_valid_points": stats.n_valid_points,
        "n_indexed_points": report.n_written_points,
        "n_discarded_points": report.n_discarded_points,
        "n_leaves": report.n_leaves,
        "n_internal_nodes": report.n_internal_nodes,
        "max_depth": report.max_depth,
        "id_width": index_config.id_width,
        "tree_size_bytes": report.n_bytes,
        "tree_path": str(tree_path),
    }

    _write_yaml(config_dir / "config_resolved.yaml", config.to_serializable_dict())
    _write_json(config_dir / "metadata.json", _build_metadata(run_dir=run_dir))
    _write_json(run_dir / "summary.json", summary)
    _append_step_log(
        steps_log_path,
        event="run_complete",
        payload={"n_indexed_points": report.n_written_points, "n_discarded_points": report.n_discarded_points},
    )

    logger.info("Index build complete: %s", run_dir)
    return run_dir


def run_index_build_from_config(config_path: str | Path) -> Path:
    """Convenience wrapper: load config, execute build, and return run dir."""
    config = load_index_build_config(config_path)
    return run_index_build(config=config)


def _as_dict(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _require(mapping: dict[str, Any], key: str, section: str) -> Any:
    if key not in mapping:
        raise ConfigError(f"missing required key '{key}' in section '{section}'")
    return mapping[key]


def _build_metadata(run_dir: Path) -> dict[str, Any]:
    return {
        "timestamp_utc": dt.datetime.now(dt.timezone.utc).isoformat(),
        "run_dir": str(run_dir),
        "python_version": sys.version,
        "platform": platform.platform(),
        "git_commit": _try_git_commit(),
    }


def _try_git_commit() -> str | None:
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return completed.stdout.strip() or None


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=False)
        handle.write("\n")


def _write_yaml(path: Path, payload: dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)


def _append_step_log(path: Path, event: str, payload: dict[str, Any]) -> None:
    entry = {
        "timestamp_utc": dt.datetime.now(dt.timezone.utc).isoformat(),
        "event": event,
        "payload": payload,
    }
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(entry, sort_keys=False))
        handle.write("\n")


def _slugify(text: str) -> str:
    normalized = re.sub(r"[^A-Za-z0-9._-]+", "_", text.strip())
    normalized = normalized.strip("_")
    return normalized or "item"
