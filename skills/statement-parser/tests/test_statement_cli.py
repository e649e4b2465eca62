"""Tests for the statement-parser CLI (main.py)."""

from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import main as statement_main

SAMPLE_CSV = """株式会社サンプル,,
自 2023年4月1日 至 2024年3月31日,,
区分,科目,金額
BS,資産合計,1000
PL,売上高,800
CF,営業活動によるキャッシュ・フロー,300
"""


class TestStatementCli(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.input_dir = self.tmp / "input"
        self.input_dir.mkdir()
        (self.input_dir / "b_sample.csv").write_text(SAMPLE_CSV, encoding="utf-8")
        (self.input_dir / "a_sample.csv").write_text(SAMPLE_CSV, encoding="utf-8")
        (self.input_dir / "notes.md").write_text("ignored", encoding="utf-8")
        self.output_dir = self.tmp / "out"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_expand_inputs_sorted_and_filtered(self) -> None:
        paths = statement_main.expand_inputs([str(self.input_dir)])
        self.assertEqual([p.name for p in paths], ["a_sample.csv", "b_sample.csv"])

    def test_directory_run_writes_outputs(self) -> None:
        code = statement_main.main(
            ["--input", str(self.input_dir), "--output-dir", str(self.output_dir)]
        )
        self.assertEqual(code, 0)

        parsed = json.loads((self.output_dir / "a_sample.json").read_text(encoding="utf-8"))
        self.assertEqual(parsed["company"]["name"], "株式会社サンプル")

        summary = json.loads((self.output_dir / "results.json").read_text(encoding="utf-8"))
        self.assertEqual(summary["summary"]["succeeded"], 2)
        self.assertEqual(summary["results"][0]["statistics"]["total_accounts"], 1)
        self.assertNotIn("data", summary["results"][0])

    def test_any_failure_exits_nonzero(self) -> None:
        code = statement_main.main([
            "--input", str(self.input_dir / "a_sample.csv"), str(self.tmp / "missing.csv"),
            "--output-dir", str(self.output_dir),
        ])
        self.assertEqual(code, 1)
        summary = json.loads((self.output_dir / "results.json").read_text(encoding="utf-8"))
        self.assertEqual(summary["summary"]["succeeded"], 1)
        self.assertEqual(summary["summary"]["failed"], 1)
        self.assertFalse((self.output_dir / "missing.json").exists())

    def test_strict_flag(self) -> None:
        (self.input_dir / "a_sample.csv").write_text(
            SAMPLE_CSV.replace("CF,営業活動によるキャッシュ・フロー,300\n", ""), encoding="utf-8"
        )
        code = statement_main.main([
            "--input", str(self.input_dir / "a_sample.csv"),
            "--output-dir", str(self.output_dir), "--strict",
        ])
        self.assertEqual(code, 1)

    def test_build_options(self) -> None:
        parser_args = statement_main.argparse.Namespace(
            strict=True, streaming=False, skip_rows=2, debug=False,
            encoding="cp932", delimiter="\\t", chunk_size=None,
        )
        options = statement_main.build_options(parser_args)
        self.assertTrue(options.strict)
        self.assertEqual(options.delimiter, "\t")
        self.assertEqual(options.encoding, "cp932")
        self.assertEqual(options.skip_rows, 2)
        self.assertIsNone(options.chunk_size)

    def test_script_entrypoint(self) -> None:
        env = {**os.environ, "DATA_PATH": str(self.tmp / "data")}
        proc = subprocess.run(
            [sys.executable, str(SCRIPT_DIR / "main.py"), "--input", str(self.input_dir)],
            capture_output=True,
            text=True,
            env=env,
            check=False,
        )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertTrue((self.tmp / "data" / "parsed" / "results.json").exists())


if __name__ == "__main__":
    unittest.main()
