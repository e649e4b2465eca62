"""Spreadsheet extraction (openpyxl for .xlsx/.xlsm, xlrd for legacy .xls)."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable

import openpyxl
import xlrd

from src.schemas import ParserOptions

from errors import StatementParserError
from extraction import (
    ExtractedDocument,
    SourceRow,
    build_document,
    collect_sections,
    kind_from_name,
    section_from_rows,
)

logger = logging.getLogger(__name__)


def cell_text(value: Any) -> str:
    """Render a cell value as text; numbers carry no thousands separators."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def values_to_row(values: Iterable[Any]) -> SourceRow:
    cells = [cell_text(value) for value in values]
    while cells and not cells[-1]:
        cells.pop()
    return SourceRow(cells=tuple(cells))


def _read_openpyxl(path: Path, streaming: bool, skip_rows: int) -> list[tuple[str, list[SourceRow]]]:
    workbook = openpyxl.load_workbook(path, read_only=streaming, data_only=True)
    try:
        sheets = []
        for worksheet in workbook.worksheets:
            rows = [
                values_to_row(values)
                for values in worksheet.iter_rows(min_row=skip_rows + 1, values_only=True)
            ]
            sheets.append((worksheet.title, rows))
        return sheets
    finally:
        workbook.close()


def _xlrd_value(book: xlrd.book.Book, cell: xlrd.sheet.Cell) -> Any:
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, book.datemode)
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    return cell.value


def _read_xlrd(path: Path, streaming: bool, skip_rows: int) -> list[tuple[str, list[SourceRow]]]:
    book = xlrd.open_workbook(str(path), on_demand=streaming)
    try:
        sheets = []
        for index in range(book.nsheets):
            sheet = book.sheet_by_index(index)
            rows = [
                values_to_row(_xlrd_value(book, cell) for cell in sheet.row(row_index))
                for row_index in range(skip_rows, sheet.nrows)
            ]
            sheets.append((sheet.name, rows))
            if streaming:
                book.unload_sheet(index)
        return sheets
    finally:
        book.release_resources()


def read_sheets(path: Path, options: ParserOptions) -> list[tuple[str, list[SourceRow]]]:
    """Return ``(sheet name, rows)`` for every sheet in workbook order."""
    try:
        if path.suffix.lower() == ".xls":
            return _read_xlrd(path, options.streaming, options.skip_rows)
        return _read_openpyxl(path, options.streaming, options.skip_rows)
    except StatementParserError:
        raise
    except Exception as exc:
        raise StatementParserError(f"Excel解析エラー: {path.name}: {exc}") from exc


def extract_spreadsheet(path: Path, options: ParserOptions) -> ExtractedDocument:
    """Read a workbook and collect its statement sections.

    Sheets named after a statement are taken whole as that section; the
    remaining kinds are searched for by heading across all sheets.
    """
    path = Path(path)
    sheets = read_sheets(path, options)

    all_rows: list[SourceRow] = []
    named: dict[str, list[SourceRow]] = {}
    for name, rows in sheets:
        all_rows.extend(rows)
        kind = kind_from_name(name)
        if kind is not None and kind not in named:
            logger.debug("sheet %s read as %s", name, kind)
            named[kind] = rows

    sections = collect_sections(all_rows)
    for kind, rows in named.items():
        sections[kind] = section_from_rows(rows)

    return build_document(
        str(path),
        "excel",
        all_rows,
        sections=sections,
        streaming=options.streaming,
    )
