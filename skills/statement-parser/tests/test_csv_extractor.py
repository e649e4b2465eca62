"""Tests for csv_extractor.py: encodings, header layout, grouping."""

from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import csv_extractor
from errors import StatementParserError
from extraction import Extracted, Missing, RawLine
from src.schemas import ParserOptions

HEADING_CSV = """株式会社サンプル,,
自 2023年4月1日 至 2024年3月31日,,
損益計算書,,
（単位：千円）,,
売上高,1000,
売上原価,400,
"""

HEADER_CSV = """勘定科目,前期,当期
貸借対照表,,
現金及び預金,900,1000
資産合計,900,1000
"""

GROUPED_CSV = """区分,科目,金額
BS,現金及び預金,1000
PL,売上高,800
PL,営業利益,100
"""


class TestCsvExtractor(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, name: str, text: str, encoding: str = "utf-8") -> Path:
        path = self.tmp / name
        path.write_bytes(text.encode(encoding))
        return path

    def test_heading_search_without_header(self) -> None:
        path = self._write("plain.csv", HEADING_CSV)
        document = csv_extractor.extract_csv(path, ParserOptions())

        self.assertEqual(document.format, "csv")
        self.assertEqual(document.company.name, "株式会社サンプル")
        income = document.sections["income_statement"]
        self.assertIsInstance(income, Extracted)
        self.assertEqual(income.lines[0], RawLine("売上高", "1000", 0))
        self.assertIsInstance(document.sections["balance_sheet"], Missing)

    def test_cp932_fallback(self) -> None:
        path = self._write("sjis.csv", HEADING_CSV, encoding="cp932")
        document = csv_extractor.extract_csv(path, ParserOptions())
        self.assertEqual(document.company.name, "株式会社サンプル")

    def test_utf8_bom(self) -> None:
        path = self._write("bom.csv", "\ufeff" + HEADING_CSV)
        document = csv_extractor.extract_csv(path, ParserOptions())
        self.assertEqual(document.company.name, "株式会社サンプル")

    def test_explicit_encoding_failure(self) -> None:
        path = self._write("sjis.csv", HEADING_CSV, encoding="cp932")
        with self.assertRaises(StatementParserError):
            csv_extractor.extract_csv(path, ParserOptions(encoding="utf-8"))

    def test_header_selects_current_column(self) -> None:
        path = self._write("header.csv", HEADER_CSV)
        document = csv_extractor.extract_csv(path, ParserOptions())
        lines = document.sections["balance_sheet"].lines
        self.assertEqual(
            [(line.label, line.amount_text) for line in lines],
            [("現金及び預金", "1000"), ("資産合計", "1000")],
        )

    def test_statement_column_groups_rows(self) -> None:
        path = self._write("grouped.csv", GROUPED_CSV)
        document = csv_extractor.extract_csv(path, ParserOptions())

        self.assertEqual(
            document.sections["balance_sheet"].lines,
            (RawLine("現金及び預金", "1000", 0),),
        )
        self.assertEqual(len(document.sections["income_statement"].lines), 2)
        self.assertIsInstance(document.sections["cash_flow_statement"], Missing)

    def test_delimiter_and_skip_rows(self) -> None:
        text = "社外秘\n区分;科目;金額\nPL;売上高;800\n"
        path = self._write("semi.csv", text)
        document = csv_extractor.extract_csv(path, ParserOptions(delimiter=";", skip_rows=1))
        self.assertEqual(document.sections["income_statement"].lines[0].amount_text, "800")

    def test_tsv_defaults_to_tab(self) -> None:
        path = self._write("data.tsv", GROUPED_CSV.replace(",", "\t"))
        document = csv_extractor.extract_csv(path, ParserOptions())
        self.assertIsInstance(document.sections["income_statement"], Extracted)

    def test_detect_header(self) -> None:
        layout = csv_extractor.detect_header([["メモ"], ["項目", "金額", "種別"]])
        self.assertEqual(layout.row_index, 1)
        self.assertEqual(layout.label_column, 0)
        self.assertEqual(layout.amount_column, 1)
        self.assertEqual(layout.type_column, 2)
        self.assertIsNone(csv_extractor.detect_header([["売上高", "100"]]))


if __name__ == "__main__":
    unittest.main()
