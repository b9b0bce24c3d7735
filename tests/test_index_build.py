"""Tests for the config-driven index build runner."""

from __future__ import annotations

import json
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

import pandas as pd
import yaml

from geo_kdindex import ConfigError, parse_rectangle, search_tree
from geo_kdindex.index_build import TREE_FILE_NAME, load_index_build_config, run_index_build_from_config


def _page(position: str | None) -> str:
    if position is None:
        return "<html><head></head></html>"
    return f'<html><head><meta name="geo.position" content="{position}" /></head></html>'


class IndexBuildRunnerTest(unittest.TestCase):
    """Validate config-driven index build and artifact outputs."""

    def _write_records(self, work_dir: Path) -> Path:
        positions = [f"{-60 + 5 * i};{-170 + 13 * i}" for i in range(25)]
        records = pd.DataFrame(
            {
                "id": list(range(100, 125)) + [200, 201],
                "content": [_page(p) for p in positions] + [_page(None), _page("1;1")],
                "deleted": [0] * 26 + [1],
            }
        )
        path = work_dir / "records.csv"
        records.to_csv(path, index=False)
        return path

    def _write_config(self, work_dir: Path, records_path: Path, **index: object) -> Path:
        cfg = {
            "run": {
                "name": "test build",
                "output_root": str(work_dir / "runs"),
            },
            "inputs": {
                "records_path": str(records_path),
                "records_format": "csv",
                "columns": {
                    "record_id": "id",
                    "content": "content",
                    "is_deleted": "deleted",
                },
            },
            "index": {"id_width": 4, **index},
        }

        config_path = work_dir / "config.yaml"
        with config_path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(cfg, handle, sort_keys=False)

        return config_path

    def test_runner_writes_expected_artifacts(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            work_dir = Path(tmp_dir)
            records_path = self._write_records(work_dir)
            config_path = self._write_config(work_dir, records_path)

            run_dir = run_index_build_from_config(config_path)

            self.assertTrue(run_dir.name.startswith("test_build_"))
            self.assertTrue((run_dir / "config" / "config_resolved.yaml").exists())
            self.assertTrue((run_dir / "config" / "metadata.json").exists())
            self.assertTrue((run_dir / "logs" / "steps.jsonl").exists())
            self.assertTrue((run_dir / TREE_FILE_NAME).exists())

            with (run_dir / "summary.json").open("r", encoding="utf-8") as handle:
                summary = json.load(handle)

            self.assertEqual(summary["n_input_records"], 27)
            self.assertEqual(summary["n_skipped_records"], 1)
            self.assertEqual(summary["n_tagged_records"], 25)
            self.assertEqual(summary["n_valid_points"], 25)
            self.assertEqual(summary["n_indexed_points"], 25)
            self.assertEqual(summary["n_discarded_points"], 0)
            self.assertEqual(summary["tree_size_bytes"], (run_dir / TREE_FILE_NAME).stat().st_size)

            with (run_dir / "logs" / "steps.jsonl").open("r", encoding="utf-8") as handle:
                events = [json.loads(line)["event"] for line in handle if line.strip()]

            self.assertEqual(events[0], "run_start")
            self.assertIn("points_extracted", events)
            self.assertIn("tree_written", events)
            self.assertEqual(events[-1], "run_complete")

            with (run_dir / TREE_FILE_NAME).open("rb") as source:
                matches = search_tree(source, parse_rectangle("-60", "-180", "-50", "180"))

        self.assertEqual(sorted(p.record_id for p in matches), [100, 101, 102])

    def test_invalid_id_width_is_a_config_error(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            work_dir = Path(tmp_dir)
            records_path = self._write_records(work_dir)
            config_path = self._write_config(work_dir, records_path, id_width=3)

            with self.assertRaises(ConfigError):
                load_index_build_config(config_path)

    def test_missing_records_path_is_a_config_error(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.yaml"
            config_path.write_text("run:\n  name: x\ninputs: {}\n", encoding="utf-8")

            with self.assertRaises(ConfigError):
                load_index_build_config(config_path)

    def test_missing_config_file(self) -> None:
        with self.assertRaises(ConfigError):
            load_index_build_config("/nonexistent/config.yaml")


if __name__ == "__main__":
    unittest.main()
