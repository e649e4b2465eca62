"""Tests for spreadsheet_extractor.py: openpyxl workbooks and legacy .xls."""

from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import openpyxl
import xlrd

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import spreadsheet_extractor
from errors import StatementParserError
from extraction import Extracted, Missing, RawLine
from src.schemas import AmountUnit, ParserOptions


def write_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> None:
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(row)
    workbook.save(path)


def xlrd_cell(value: object) -> MagicMock:
    cell = MagicMock()
    if value is None:
        cell.ctype = xlrd.XL_CELL_EMPTY
        cell.value = ""
    elif isinstance(value, float):
        cell.ctype = xlrd.XL_CELL_NUMBER
        cell.value = value
    else:
        cell.ctype = xlrd.XL_CELL_TEXT
        cell.value = value
    return cell


class TestCellText(unittest.TestCase):

    def test_values(self) -> None:
        self.assertEqual(spreadsheet_extractor.cell_text(None), "")
        self.assertEqual(spreadsheet_extractor.cell_text(1234567.0), "1234567")
        self.assertEqual(spreadsheet_extractor.cell_text(1234567), "1234567")
        self.assertEqual(spreadsheet_extractor.cell_text(12.5), "12.5")
        self.assertEqual(spreadsheet_extractor.cell_text(datetime(2024, 3, 31)), "2024-03-31")
        self.assertEqual(spreadsheet_extractor.cell_text(" 売上高 "), "売上高")

    def test_trailing_empty_cells_trimmed(self) -> None:
        row = spreadsheet_extractor.values_to_row(["売上高", 100, None, None])
        self.assertEqual(row.cells, ("売上高", "100"))


class TestExtractSpreadsheet(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_named_sheets_taken_whole(self) -> None:
        path = self.tmp / "statements.xlsx"
        write_workbook(path, {
            "表紙": [["株式会社サンプル"], ["自 2023年4月1日 至 2024年3月31日"]],
            "BS": [["（単位：百万円）"], ["現金及び預金", 1000], ["資産合計", 1000]],
            "PL": [["売上高", 800], ["", "売上原価", 300]],
        })
        document = spreadsheet_extractor.extract_spreadsheet(path, ParserOptions())

        self.assertEqual(document.format, "excel")
        self.assertEqual(document.company.name, "株式会社サンプル")
        balance_sheet = document.sections["balance_sheet"]
        self.assertIsInstance(balance_sheet, Extracted)
        self.assertEqual(balance_sheet.unit, AmountUnit.MILLION_YEN)
        self.assertEqual(balance_sheet.lines[0], RawLine("現金及び預金", "1000", 0))
        income = document.sections["income_statement"]
        self.assertEqual(income.lines[1], RawLine("売上原価", "300", 1))
        self.assertIsInstance(document.sections["cash_flow_statement"], Missing)

    def test_heading_search_in_unnamed_sheet(self) -> None:
        path = self.tmp / "single.xlsx"
        write_workbook(path, {
            "Sheet1": [
                ["株式会社サンプル"],
                ["キャッシュ・フロー計算書"],
                ["営業活動によるキャッシュ・フロー", 500],
            ],
        })
        document = spreadsheet_extractor.extract_spreadsheet(path, ParserOptions(streaming=True))

        cash_flow = document.sections["cash_flow_statement"]
        self.assertIsInstance(cash_flow, Extracted)
        self.assertEqual(cash_flow.lines[0].amount_text, "500")
        self.assertTrue(document.streaming)

    def test_skip_rows_per_sheet(self) -> None:
        path = self.tmp / "skip.xlsx"
        write_workbook(path, {
            "損益計算書": [["社外秘"], ["売上高", 800]],
        })
        document = spreadsheet_extractor.extract_spreadsheet(path, ParserOptions(skip_rows=1))
        lines = document.sections["income_statement"].lines
        self.assertEqual(lines, (RawLine("売上高", "800", 0),))

    def test_corrupt_workbook_wrapped(self) -> None:
        path = self.tmp / "broken.xlsx"
        path.write_bytes(b"PK\x03\x04 not really a zip")
        with self.assertRaises(StatementParserError):
            spreadsheet_extractor.extract_spreadsheet(path, ParserOptions())

    def test_legacy_xls_through_xlrd(self) -> None:
        path = self.tmp / "legacy.xls"
        path.write_bytes(b"\xd0\xcf\x11\xe0")
        sheet = MagicMock()
        sheet.name = "貸借対照表"
        sheet.nrows = 2
        sheet.row.side_effect = lambda i: [
            [xlrd_cell("現金及び預金"), xlrd_cell(1000.0)],
            [xlrd_cell("資産合計"), xlrd_cell(1000.0), xlrd_cell(None)],
        ][i]
        book = MagicMock()
        book.nsheets = 1
        book.sheet_by_index.return_value = sheet

        with patch("spreadsheet_extractor.xlrd.open_workbook", return_value=book) as opened:
            document = spreadsheet_extractor.extract_spreadsheet(path, ParserOptions())

        opened.assert_called_once_with(str(path), on_demand=False)
        book.release_resources.assert_called_once()
        lines = document.sections["balance_sheet"].lines
        self.assertEqual([line.amount_text for line in lines], ["1000", "1000"])


if __name__ == "__main__":
    unittest.main()
