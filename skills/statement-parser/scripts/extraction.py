"""Format-independent extraction of statement sections from rows of text.

Every extractor reduces its source to ``SourceRow``s: PDF text lines are
one-cell rows, spreadsheet and CSV rows keep their cells. Heading search,
section bounding, company/period detection and line-item matching all
work on that shape.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Union

from src.schemas import AmountUnit, CompanyInfo, FiscalPeriod

from errors import SECTION_ERRORS, InvalidDateFormat, SectionNotFound
from normalizer import clean_text, detect_unit, parse_date, to_halfwidth

logger = logging.getLogger(__name__)

STATEMENT_KINDS: tuple[str, ...] = ("balance_sheet", "income_statement", "cash_flow_statement")

SECTION_HEADINGS: dict[str, tuple[str, ...]] = {
    "balance_sheet": (
        "貸借対照表",
        "財政状態計算書",
        "balancesheet",
        "statementoffinancialposition",
    ),
    "income_statement": (
        "損益計算書",
        "損益及び包括利益計算書",
        "incomestatement",
        "profitandloss",
        "statementofincome",
    ),
    "cash_flow_statement": (
        "キャッシュ・フロー計算書",
        "キャッシュフロー計算書",
        "cashflowstatement",
        "statementofcashflows",
    ),
}

BLANK_RUN_LIMIT = 5
COMPANY_SCAN_LIMIT = 50
UNIT_SCAN_ROWS = 5

# ---------------------------------------------------------------------------
# Row model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceRow:
    """One line of text or one table row."""

    cells: tuple[str, ...]
    depth: int = 0

    @property
    def text(self) -> str:
        return " ".join(cell for cell in self.cells if cell)

    @property
    def is_blank(self) -> bool:
        return not any(cell.strip() for cell in self.cells)


@dataclass(frozen=True)
class RawLine:
    """Label with its amount token; ``amount_text`` is None for group markers."""

    label: str
    amount_text: str | None
    depth: int = 0


@dataclass(frozen=True)
class Extracted:
    """A located statement section."""

    lines: tuple[RawLine, ...]
    unit: AmountUnit | None = None


@dataclass(frozen=True)
class Missing:
    """A statement section that could not be located."""

    error: SectionNotFound

    @property
    def reason(self) -> str:
        return self.error.reason


SectionOutcome = Union[Extracted, Missing]


@dataclass
class ExtractedDocument:
    """Everything an extractor read from one file, before normalization."""

    source_file: str
    format: str
    rows: list[SourceRow]
    sections: dict[str, SectionOutcome]
    company: CompanyInfo
    period: FiscalPeriod
    period_estimated: bool = False
    unit_detected: str | None = None
    page_count: int | None = None
    streaming: bool = False
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------

_FOOTNOTE_RE = re.compile(r"※[0-9０-９]*[,、]?\s*")
_NOTE_REF_RE = re.compile(r"[(（]\s*注\s*[0-9０-９,，、]*\s*[)）]")
_LABEL_PREFIX_RE = re.compile(r"^(?:[ⅠⅡⅢⅣⅤⅥⅦⅧⅨⅩ]+\s*[.．]?|[(（][0-9０-９一二三四五六七八九十]+[)）]|[①-⑳])\s*")


def _amount_token(sign: str) -> str:
    return (
        rf"[△▲]?[(（]?{sign}?[0-9０-９][0-9０-９,，、.．]*[)）]?"
        r"(?:億円?|百[万萬]円?|千円?|円)?"
    )


# The long-vowel mark ー only reads as a minus after whitespace; glued to a
# label it belongs to the katakana word (キャッシュ・フロー1,000).
_AMOUNT_TOKEN = _amount_token(r"(?:[-−－]|(?<=\s)ー)")
_AMOUNTS = rf"(?P<amounts>{_AMOUNT_TOKEN}(?:\s+{_AMOUNT_TOKEN})*)"
# Label and figures separated by whitespace: the label may hold digits (1年内…).
_SPACED_LINE_RE = re.compile(rf"^(?P<label>.*?[^\s0-9０-９,，、.．△▲(（)）].*?)\s+{_AMOUNTS}$")
# Figures glued to the label: the label must be free of digits.
_COMPACT_LINE_RE = re.compile(rf"^(?P<label>[^0-9０-９]+?){_AMOUNTS}$")
_AMOUNT_CELL_RE = re.compile(rf"^\s*{_amount_token('[-−－ー]')}\s*$")


def match_item_line(text: str) -> re.Match[str] | None:
    """Match ``<label> <amount>...`` on one line of text."""
    return _SPACED_LINE_RE.match(text) or _COMPACT_LINE_RE.match(text)


_DIGIT_RE = re.compile(r"[0-9０-９]")
MARKER_MAX_LENGTH = 30


def indent_depth(text: str) -> int:
    """Indent level: one per full-width space, one per two ASCII spaces."""
    depth = 0
    ascii_spaces = 0
    for char in text:
        if char == "　":
            depth += 1
        elif char == " ":
            ascii_spaces += 1
        else:
            break
    return depth + ascii_spaces // 2


def clean_label(label: str) -> str:
    label = _NOTE_REF_RE.sub("", _FOOTNOTE_RE.sub("", label))
    label = clean_text(label)
    return _LABEL_PREFIX_RE.sub("", label).strip()


def is_amount_cell(text: str) -> bool:
    return bool(_AMOUNT_CELL_RE.match(_FOOTNOTE_RE.sub("", text)))


def _line_from_text(row: SourceRow) -> RawLine | None:
    text = clean_text(_FOOTNOTE_RE.sub("", row.text))
    if not text:
        return None

    m = match_item_line(text)
    if m:
        label = clean_label(m.group("label"))
        if not label:
            return None
        # Columns run prior -> current, so the rightmost figure is the current period.
        amount = m.group("amounts").split()[-1]
        return RawLine(label=label, amount_text=amount, depth=row.depth)

    if _DIGIT_RE.search(text) or len(text) > MARKER_MAX_LENGTH:
        return None
    label = clean_label(text)
    return RawLine(label=label, amount_text=None, depth=row.depth) if label else None


def _line_from_cells(row: SourceRow, amount_column: int | None) -> RawLine | None:
    label_index = None
    for index, cell in enumerate(row.cells):
        if cell.strip() and not is_amount_cell(cell):
            label_index = index
            break
    if label_index is None:
        return None

    label = clean_label(row.cells[label_index])
    if not label:
        return None
    depth = row.depth + label_index

    if amount_column is not None:
        if amount_column < len(row.cells) and is_amount_cell(row.cells[amount_column]):
            return RawLine(label=label, amount_text=row.cells[amount_column].strip(), depth=depth)
    else:
        for cell in row.cells[label_index + 1:]:
            if cell.strip() and is_amount_cell(cell):
                return RawLine(label=label, amount_text=cell.strip(), depth=depth)

    if len(label) > MARKER_MAX_LENGTH:
        return None
    return RawLine(label=label, amount_text=None, depth=depth)


def extract_raw_lines(
    rows: list[SourceRow],
    amount_column: int | None = None,
) -> list[RawLine]:
    """Turn rows into ``(label, amount)`` lines, keeping label-only markers."""
    lines: list[RawLine] = []
    for row in rows:
        if row.is_blank or detect_unit(row.text) is not None:
            continue
        if len(row.cells) == 1:
            line = _line_from_text(row)
        else:
            line = _line_from_cells(row, amount_column)
        if line is not None:
            lines.append(line)
    return lines


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

_HEADING_KEY_RE = re.compile(r"\s+")


def heading_kind(row: SourceRow) -> str | None:
    """Statement kind whose heading keyword appears in the row, if any."""
    key = _HEADING_KEY_RE.sub("", row.text).lower()
    if not key:
        return None
    for kind in STATEMENT_KINDS:
        if any(keyword in key for keyword in SECTION_HEADINGS[kind]):
            return kind
    return None


NAME_KEYWORDS: dict[str, tuple[str, ...]] = {
    "balance_sheet": ("貸借", "財政状態", "balance sheet"),
    "income_statement": ("損益", "income", "profit"),
    "cash_flow_statement": ("キャッシュ", "cash flow", "cashflow"),
}
NAME_CODES: dict[str, re.Pattern[str]] = {
    "balance_sheet": re.compile(r"(?<![a-z])bs(?![a-z])"),
    "income_statement": re.compile(r"(?<![a-z])(?:pl|p&l)(?![a-z])"),
    "cash_flow_statement": re.compile(r"(?<![a-z])cf(?![a-z])"),
}


def kind_from_name(name: str) -> str | None:
    """Statement kind named by a sheet title or a statement-type cell."""
    name = name.strip().lower()
    for kind, keywords in NAME_KEYWORDS.items():
        if any(keyword in name for keyword in keywords):
            return kind
    for kind, pattern in NAME_CODES.items():
        if pattern.search(name):
            return kind
    return None


def section_bounds(rows: list[SourceRow], start: int) -> int:
    """End index (exclusive) of the section whose heading is at ``start``.

    A section ends at the next heading of another statement kind or after
    a run of BLANK_RUN_LIMIT blank rows.
    """
    kind = heading_kind(rows[start])
    blank_run = 0
    for index in range(start + 1, len(rows)):
        row = rows[index]
        other = heading_kind(row)
        if other is not None and other != kind:
            return index
        if row.is_blank:
            blank_run += 1
            if blank_run >= BLANK_RUN_LIMIT:
                return index
        else:
            blank_run = 0
    return len(rows)


def section_unit(rows: list[SourceRow]) -> AmountUnit | None:
    """Unit declared in the first rows of a section."""
    for row in rows[:UNIT_SCAN_ROWS + 1]:
        unit = detect_unit(row.text)
        if unit is not None:
            return unit
    return None


def locate_section(
    rows: list[SourceRow],
    kind: str,
    amount_column: int | None = None,
) -> Extracted:
    """Find the section of the given kind by heading search.

    A heading whose section holds no figures (a table of contents entry,
    say) is passed over in favour of a later one that does.

    Raises the kind-specific SectionNotFound when no heading exists.
    """
    candidates = [index for index, row in enumerate(rows) if heading_kind(row) == kind]
    if not candidates:
        raise SECTION_ERRORS[kind]()

    outcomes: list[Extracted] = []
    for start in candidates:
        end = section_bounds(rows, start)
        section_rows = rows[start + 1:end]
        lines = extract_raw_lines(section_rows, amount_column)
        outcome = Extracted(
            lines=tuple(lines),
            unit=section_unit(rows[start:end]),
        )
        if any(line.amount_text is not None for line in lines):
            return outcome
        outcomes.append(outcome)
    return outcomes[0]


def collect_sections(
    rows: list[SourceRow],
    amount_column: int | None = None,
) -> dict[str, SectionOutcome]:
    """Locate every statement kind, tagging each as Extracted or Missing."""
    sections: dict[str, SectionOutcome] = {}
    for kind in STATEMENT_KINDS:
        try:
            sections[kind] = locate_section(rows, kind, amount_column)
        except SectionNotFound as exc:
            logger.debug("section missing: %s", exc.reason)
            sections[kind] = Missing(error=exc)
    return sections


def section_from_rows(
    rows: list[SourceRow],
    amount_column: int | None = None,
) -> Extracted:
    """Treat all rows as one section (a sheet named after its statement)."""
    body = [row for row in rows if heading_kind(row) is None]
    return Extracted(
        lines=tuple(extract_raw_lines(body, amount_column)),
        unit=section_unit(rows),
    )


# ---------------------------------------------------------------------------
# Company information
# ---------------------------------------------------------------------------

ENTITY_MARKERS_JA: tuple[str, ...] = ("株式会社", "(株)", "（株）", "有限会社", "合同会社")
ENTITY_MARKERS_EN: tuple[str, ...] = ("Co., Ltd.", "Co.,Ltd.", "Inc.", "Corporation")

_NAME_LABEL_RE = re.compile(r"^(?:提出会社名|会社名|商号|企業名|Company\s*name)\s*[：:]?\s*", re.IGNORECASE)
_PAREN_FRAGMENT_RE = re.compile(r"[(（](?!株[)）])[^)）]*[)）]")
_CODE_LABEL_RE = re.compile(r"(?:証券コード|コード番号|銘柄コード|コード)\s*[：:]?\s*(\d{4})(?!\d)")
_CODE_TOKEN_RE = re.compile(r"(?<![\d,./\-])(\d{4})(?![\d,./\-年月日期])")
_INDUSTRY_RE = re.compile(r"業種\s*[：:]?\s*([^\s(（]+)")


def _company_name_from_cell(cell: str, markers: tuple[str, ...]) -> str | None:
    text = clean_text(cell)
    if not any(marker in text for marker in markers):
        return None
    text = _NAME_LABEL_RE.sub("", text)
    if markers is ENTITY_MARKERS_JA and " " in text:
        for token in text.split(" "):
            if any(marker in token for marker in markers):
                text = token
                break
    text = _PAREN_FRAGMENT_RE.sub("", text).strip()
    return text or None


def extract_company_info(
    rows: list[SourceRow],
    scan_limit: int = COMPANY_SCAN_LIMIT,
) -> CompanyInfo:
    """Read company name, securities code and industry from the first rows.

    The name is left empty when no corporate-entity marker is found; the
    structural validator reports that case.
    """
    name: str | None = None
    name_en: str | None = None
    labelled_code: str | None = None
    token_code: str | None = None
    industry: str | None = None
    in_header = True

    for row in rows[:scan_limit]:
        for cell in row.cells:
            if name is None:
                name = _company_name_from_cell(cell, ENTITY_MARKERS_JA)
            if name_en is None:
                name_en = _company_name_from_cell(cell, ENTITY_MARKERS_EN)

        text = to_halfwidth(row.text)
        if heading_kind(row) is not None:
            in_header = False
        if labelled_code is None:
            m = _CODE_LABEL_RE.search(text)
            if m:
                labelled_code = m.group(1)
        # Bare 4-digit tokens only count above the statements, outside amount lines.
        if token_code is None and in_header and not match_item_line(clean_text(text)):
            m = _CODE_TOKEN_RE.search(text)
            if m:
                token_code = m.group(1)
        if industry is None:
            m = _INDUSTRY_RE.search(text)
            if m:
                industry = m.group(1)

    if name is None and name_en is not None:
        name, name_en = name_en, None

    return CompanyInfo(
        name=name or "",
        name_en=name_en,
        security_code=labelled_code or token_code,
        industry=industry,
    )


# ---------------------------------------------------------------------------
# Fiscal period
# ---------------------------------------------------------------------------

_DATE_TOKEN = (
    r"(?:(?:令和|平成|昭和|大正|明治)\s*(?:\d{1,2}|元)\s*年|\d{4}\s*年)\s*\d{1,2}\s*月\s*\d{1,2}\s*日"
    r"|\d{4}[/-]\d{1,2}[/-]\d{1,2}"
)
_DATE_TOKEN_RE = re.compile(_DATE_TOKEN)
_PERIOD_START_RE = re.compile(rf"自\s*({_DATE_TOKEN})")
_PERIOD_END_RE = re.compile(rf"至\s*({_DATE_TOKEN})")
_TERM_RE = re.compile(r"第\s*(\d+)\s*期")


def default_fiscal_period(today: date | None = None) -> FiscalPeriod:
    """April 1 to March 31 window closing in the current year."""
    today = today or date.today()
    end = date(today.year, 3, 31)
    return FiscalPeriod(start_date=date(today.year - 1, 4, 1), end_date=end, fiscal_year=end.year)


def _dual_date(text: str) -> tuple[date, date] | None:
    tokens = _DATE_TOKEN_RE.findall(text)
    if len(tokens) < 2:
        return None
    try:
        return parse_date(tokens[0]), parse_date(tokens[1])
    except InvalidDateFormat:
        return None


def _split_dates(texts: list[str]) -> tuple[date, date] | None:
    start: date | None = None
    end: date | None = None
    for text in texts:
        try:
            if start is None:
                m = _PERIOD_START_RE.search(text)
                if m:
                    start = parse_date(m.group(1))
            if end is None:
                m = _PERIOD_END_RE.search(text)
                if m:
                    end = parse_date(m.group(1))
        except InvalidDateFormat:
            continue
        if start is not None and end is not None:
            return start, end
    return None


def extract_fiscal_period(
    rows: list[SourceRow],
    today: date | None = None,
) -> tuple[FiscalPeriod, bool]:
    """Find the accounting period; returns ``(period, estimated)``.

    The first row carrying two dates wins. ``自 … 至 …`` split over
    separate lines is accepted next. Without either, the default April-March
    window is returned with ``estimated=True``.
    """
    texts = [to_halfwidth(row.text) for row in rows]

    term: int | None = None
    for text in texts[:COMPANY_SCAN_LIMIT]:
        m = _TERM_RE.search(text)
        if m:
            term = int(m.group(1))
            break

    dates = None
    for text in texts:
        dates = _dual_date(text)
        if dates is not None:
            break
    if dates is None:
        dates = _split_dates(texts)

    if dates is None:
        period = default_fiscal_period(today)
        if term is not None:
            period = period.model_copy(update={"period": term})
        return period, True

    start, end = dates
    return FiscalPeriod(start_date=start, end_date=end, period=term, fiscal_year=end.year), False


def estimated_period_warning(period: FiscalPeriod) -> str:
    return (
        "会計期間を検出できませんでした: 既定値 "
        f"{period.start_date.isoformat()}〜{period.end_date.isoformat()} を使用"
    )


# ---------------------------------------------------------------------------
# Document assembly
# ---------------------------------------------------------------------------


def document_unit(sections: dict[str, SectionOutcome]) -> str | None:
    for outcome in sections.values():
        if isinstance(outcome, Extracted) and outcome.unit is not None:
            return outcome.unit.value
    return None


def build_document(
    source_file: str,
    file_format: str,
    rows: list[SourceRow],
    *,
    sections: dict[str, SectionOutcome] | None = None,
    amount_column: int | None = None,
    page_count: int | None = None,
    streaming: bool = False,
    warnings: list[str] | None = None,
    today: date | None = None,
) -> ExtractedDocument:
    """Run the shared detection steps over an extractor's rows."""
    warnings = list(warnings or [])
    if sections is None:
        sections = collect_sections(rows, amount_column)

    company = extract_company_info(rows)
    period, estimated = extract_fiscal_period(rows, today=today)
    if estimated:
        message = estimated_period_warning(period)
        logger.warning("%s: %s", source_file, message)
        warnings.append(message)
    if company.fiscal_year_end is None:
        company = company.model_copy(update={"fiscal_year_end": period.end_date.month})

    return ExtractedDocument(
        source_file=source_file,
        format=file_format,
        rows=rows,
        sections=sections,
        company=company,
        period=period,
        period_estimated=estimated,
        unit_detected=document_unit(sections),
        page_count=page_count,
        streaming=streaming,
        warnings=warnings,
    )
