"""Tests for the build/search command surface."""

from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
import io
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

import pandas as pd

from geo_kdindex import IndexConfig
from geo_kdindex.cli import build_index, format_match, main, search_index
from geo_kdindex.codec import parse_point


def _write_records(work_dir: Path) -> Path:
    pages = {
        1: '<meta name="geo.position" content="48.858222;2.2945" />',
        2: '<meta name="geo.position" content="-33.8688;151.2093" />',
        3: "<p>no position</p>",
        4: '<meta name="geo.position" content="40.6892;-74.0445" />',
    }
    df = pd.DataFrame({"id": list(pages), "content": list(pages.values())})
    path = work_dir / "records.csv"
    df.to_csv(path, index=False)
    return path


class CommandLineTest(unittest.TestCase):
    """Build mode, search mode and usage errors."""

    def test_build_then_search(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            work_dir = Path(tmp_dir)
            records_path = _write_records(work_dir)
            tree_path = work_dir / "index.bin"

            self.assertEqual(main([str(records_path), "--output", str(tree_path)]), 0)
            self.assertGreater(tree_path.stat().st_size, 0)

            out = io.StringIO()
            with redirect_stdout(out):
                self.assertEqual(main(["49", "3", "48", "2", "--tree", str(tree_path)]), 0)

        self.assertEqual(out.getvalue().splitlines(), ["48.8582, 2.2945: 1"])

    def test_search_with_negative_bounds(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            work_dir = Path(tmp_dir)
            tree_path = work_dir / "index.bin"
            main([str(_write_records(work_dir)), "--output", str(tree_path)])

            out = io.StringIO()
            with redirect_stdout(out):
                main(["-34", "151", "-33", "152", "--tree", str(tree_path)])

        self.assertEqual(len(out.getvalue().splitlines()), 1)
        self.assertTrue(out.getvalue().endswith(": 2\n"))

    def test_search_reads_non_seekable_source(self) -> None:
        with TemporaryDirectory() as tmp_dir:
            sink = io.BytesIO()
            build_index(str(_write_records(Path(tmp_dir))), sink, IndexConfig())

        class _Pipe(io.BytesIO):
            def seekable(self) -> bool:
                return False

        out = io.StringIO()
        matches = search_index(_Pipe(sink.getvalue()), ["-90", "-180", "90", "180"], out, IndexConfig())
        self.assertEqual(sorted(p.record_id for p in matches), [1, 2, 4])
        self.assertEqual(len(out.getvalue().splitlines()), 3)

    def test_build_skips_redirect_and_deleted_rows(self) -> None:
        df = pd.DataFrame(
            {
                "id": [1, 2, 3],
                "content": [
                    '<meta name="geo.position" content="10;20" />',
                    '<meta name="geo.position" content="11;21" />',
                    '<meta name="geo.position" content="12;22" />',
                ],
                "is_redirect": [False, True, False],
                "is_deleted": [False, False, True],
            }
        )
        with TemporaryDirectory() as tmp_dir:
            records_path = Path(tmp_dir) / "records.csv"
            df.to_csv(records_path, index=False)
            sink = io.BytesIO()
            self.assertEqual(build_index(str(records_path), sink, IndexConfig()), 1)

        sink.seek(0)
        matches = search_index(sink, ["-90", "-180", "90", "180"], io.StringIO(), IndexConfig())
        self.assertEqual([p.record_id for p in matches], [1])

    def test_wrong_argument_count_is_a_usage_error(self) -> None:
        for argv in ([], ["a", "b"], ["1", "2", "3"], ["1", "2", "3", "4", "5"]):
            with self.subTest(argv=argv):
                with redirect_stderr(io.StringIO()):
                    with self.assertRaises(SystemExit) as ctx:
                        main(argv)
                self.assertEqual(ctx.exception.code, 2)

    def test_format_match(self) -> None:
        self.assertEqual(format_match(parse_point(42, "0;0")), "0, 0: 42")


if __name__ == "__main__":
    unittest.main()
