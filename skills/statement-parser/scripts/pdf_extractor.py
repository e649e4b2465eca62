"""PDF extraction for Japanese financial statements.

Page text from pdfplumber is split into lines; each line becomes a one-cell
row for the shared section search in ``extraction``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pdfplumber

from src.schemas import ParserOptions

from errors import StatementParserError
from extraction import ExtractedDocument, SourceRow, build_document, indent_depth

logger = logging.getLogger(__name__)

NO_TEXT_WARNING = "PDFからテキストを抽出できませんでした"
NO_TEXT_OCR_WARNING = "PDFにテキスト層がありません（OCR処理は未対応です）"


def text_to_rows(text: str) -> list[SourceRow]:
    rows: list[SourceRow] = []
    for line in text.splitlines():
        rows.append(SourceRow(cells=(line.strip(),), depth=indent_depth(line)))
    return rows


def pages_per_batch(file_size: int, page_count: int, chunk_size: int | None) -> int:
    """Number of pages whose share of the file fits in one chunk."""
    if not chunk_size or page_count == 0:
        return max(page_count, 1)
    bytes_per_page = max(file_size // page_count, 1)
    return max(chunk_size // bytes_per_page, 1)


def _read_pages(pdf: pdfplumber.PDF, batch: int, streaming: bool) -> list[SourceRow]:
    rows: list[SourceRow] = []
    pages = pdf.pages
    for start in range(0, len(pages), batch):
        for page in pages[start:start + batch]:
            text = page.extract_text() or ""
            rows.extend(text_to_rows(text))
            if streaming:
                page.flush_cache()
        if streaming:
            logger.debug("processed pages %d-%d", start + 1, min(start + batch, len(pages)))
    return rows


def extract_pdf(path: Path, options: ParserOptions) -> ExtractedDocument:
    """Read a PDF and collect its statement sections."""
    path = Path(path)
    warnings: list[str] = []

    try:
        with pdfplumber.open(path) as pdf:
            page_count = len(pdf.pages)
            batch = pages_per_batch(path.stat().st_size, page_count, options.chunk_size)
            rows = _read_pages(pdf, batch, options.streaming)
    except StatementParserError:
        raise
    except Exception as exc:
        raise StatementParserError(f"PDF解析エラー: {path.name}: {exc}") from exc

    if all(row.is_blank for row in rows):
        message = NO_TEXT_OCR_WARNING if options.use_ocr else NO_TEXT_WARNING
        logger.warning("%s: %s", path.name, message)
        warnings.append(message)

    return build_document(
        str(path),
        "pdf",
        rows,
        page_count=page_count,
        streaming=options.streaming,
        warnings=warnings,
    )
