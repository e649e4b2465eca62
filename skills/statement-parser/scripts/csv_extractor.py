"""Delimited-text extraction (CSV/TSV) for financial statements."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from src.schemas import ParserOptions

from detector import default_delimiter
from errors import SECTION_ERRORS, FileReadError, StatementParserError
from extraction import (
    STATEMENT_KINDS,
    ExtractedDocument,
    Missing,
    SectionOutcome,
    SourceRow,
    build_document,
    collect_sections,
    indent_depth,
    kind_from_name,
    section_from_rows,
)

logger = logging.getLogger(__name__)

FALLBACK_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp932")
HEADER_SCAN_ROWS = 5

LABEL_HEADERS: tuple[str, ...] = ("勘定科目", "科目", "項目", "account", "item")
CURRENT_HEADERS: tuple[str, ...] = ("当期", "current")
AMOUNT_HEADERS: tuple[str, ...] = ("金額", "amount", "value")
PRIOR_HEADERS: tuple[str, ...] = ("前期", "prior", "previous")
TYPE_HEADERS: tuple[str, ...] = ("区分", "種別", "statement", "type")


@dataclass(frozen=True)
class HeaderLayout:
    """Column positions read from a header row."""

    row_index: int
    label_column: int
    amount_column: int | None
    type_column: int | None


def decode_bytes(data: bytes, encoding: str | None, name: str) -> str:
    """Decode with the caller's encoding, else UTF-8 (BOM-aware) then Shift_JIS."""
    encodings = (encoding,) if encoding else FALLBACK_ENCODINGS
    for candidate in encodings:
        try:
            return data.decode(candidate)
        except UnicodeDecodeError:
            logger.debug("%s is not %s", name, candidate)
        except LookupError as exc:
            raise StatementParserError(f"CSV解析エラー: {name}: unknown encoding {candidate}") from exc
    raise StatementParserError(f"CSV解析エラー: {name}: 文字コードを判別できません ({', '.join(encodings)})")


def read_records(path: Path, options: ParserOptions) -> list[list[str]]:
    """Split the file into records, after ``skip_rows`` leading records."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise FileReadError(f"Failed reading file: {path}") from exc

    text = decode_bytes(data, options.encoding, path.name)
    delimiter = options.delimiter
    if "delimiter" not in options.model_fields_set:
        delimiter = default_delimiter(path) or delimiter

    try:
        records = list(csv.reader(io.StringIO(text, newline=""), delimiter=delimiter))
    except csv.Error as exc:
        raise StatementParserError(f"CSV解析エラー: {path.name}: {exc}") from exc
    return records[options.skip_rows:]


def _matches(cell: str, keywords: tuple[str, ...]) -> bool:
    key = cell.strip().lower()
    return bool(key) and any(keyword in key for keyword in keywords)


def _first_column(cells: list[str], keywords: tuple[str, ...]) -> int | None:
    for index, cell in enumerate(cells):
        if _matches(cell, keywords):
            return index
    return None


def detect_header(records: list[list[str]]) -> HeaderLayout | None:
    """Find a header row naming the account column in the first records."""
    for row_index, cells in enumerate(records[:HEADER_SCAN_ROWS]):
        label_column = _first_column(cells, LABEL_HEADERS)
        if label_column is None:
            continue
        amount_column = _first_column(cells, CURRENT_HEADERS)
        if amount_column is None:
            amount_column = _first_column(cells, AMOUNT_HEADERS)
        if amount_column is None:
            # Single-period files sometimes only label the prior column.
            amount_column = _first_column(cells, PRIOR_HEADERS)
        type_column = _first_column(cells, TYPE_HEADERS)
        return HeaderLayout(row_index, label_column, amount_column, type_column)
    return None


def _cell(cells: list[str], index: int | None) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index]


def layout_row(cells: list[str], layout: HeaderLayout) -> SourceRow:
    """Reorder a data record to ``(label, amount)``."""
    label = _cell(cells, layout.label_column)
    if layout.amount_column is None:
        rest = tuple(
            cell for index, cell in enumerate(cells)
            if index not in (layout.label_column, layout.type_column)
        )
        return SourceRow(cells=(label.strip(), *rest), depth=indent_depth(label))
    amount = _cell(cells, layout.amount_column)
    return SourceRow(cells=(label.strip(), amount.strip()), depth=indent_depth(label))


def grouped_sections(
    records: list[list[str]],
    layout: HeaderLayout,
) -> dict[str, SectionOutcome]:
    """Sections built from the statement-type column."""
    grouped: dict[str, list[SourceRow]] = {}
    for cells in records[layout.row_index + 1:]:
        kind = kind_from_name(_cell(cells, layout.type_column))
        if kind is None:
            continue
        grouped.setdefault(kind, []).append(layout_row(cells, layout))

    sections: dict[str, SectionOutcome] = {}
    for kind in STATEMENT_KINDS:
        if kind in grouped:
            sections[kind] = section_from_rows(grouped[kind])
        else:
            sections[kind] = Missing(error=SECTION_ERRORS[kind]())
    return sections


def extract_csv(path: Path, options: ParserOptions) -> ExtractedDocument:
    """Read a delimited file and collect its statement sections."""
    path = Path(path)
    records = read_records(path, options)
    raw_rows = [SourceRow(cells=tuple(cell.strip() for cell in cells)) for cells in records]

    layout = detect_header(records)
    if layout is None:
        rows = raw_rows
        sections = collect_sections(rows)
    elif layout.type_column is not None:
        rows = raw_rows
        sections = grouped_sections(records, layout)
    else:
        rows = raw_rows[:layout.row_index + 1] + [
            layout_row(cells, layout) for cells in records[layout.row_index + 1:]
        ]
        sections = collect_sections(rows)

    return build_document(
        str(path),
        "csv",
        rows,
        sections=sections,
        streaming=options.streaming,
    )
