"""Parser entry points: single-file and batch parsing.

Every call returns a ParserResult envelope; no exception escapes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Iterable

from src.schemas import ParsedStatement, ParserOptions, ParserResult

from assembler import PARSER_VERSION, assemble_statement
from csv_extractor import extract_csv
from detector import FileFormat, detect_file_format, get_file_size
from errors import FileReadError, FileTooLarge, UnsupportedFormat
from extraction import ExtractedDocument
from pdf_extractor import extract_pdf
from spreadsheet_extractor import extract_spreadsheet

__all__ = [
    "BATCH_CONCURRENCY",
    "DEFAULT_CHUNK_SIZE",
    "EXTRACTORS",
    "MAX_FILE_SIZE",
    "PARSER_VERSION",
    "STREAMING_THRESHOLD",
    "parse_statement",
    "parse_statement_sync",
    "parse_statements",
]

logger = logging.getLogger(__name__)

MB = 1024 * 1024
MAX_FILE_SIZE = 100 * MB
STREAMING_THRESHOLD = 10 * MB
DEFAULT_CHUNK_SIZE = 5 * MB
BATCH_CONCURRENCY = 3

Extractor = Callable[[Path, ParserOptions], ExtractedDocument]

EXTRACTORS: dict[FileFormat, Extractor] = {
    FileFormat.PDF: extract_pdf,
    FileFormat.EXCEL: extract_spreadsheet,
    FileFormat.CSV: extract_csv,
}


def effective_options(options: ParserOptions, size: int) -> ParserOptions:
    """Switch on streaming for large files, leaving ``options`` untouched."""
    if size <= STREAMING_THRESHOLD:
        return options
    update: dict[str, object] = {"streaming": True}
    if options.chunk_size is None:
        update["chunk_size"] = DEFAULT_CHUNK_SIZE
    return options.model_copy(update=update)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def parse_file(path: Path, options: ParserOptions) -> ParsedStatement:
    """Blocking parse of one file; raises on any failure."""
    if not path.is_file():
        raise FileReadError(f"File not found: {path}")

    size = get_file_size(path)
    if size > MAX_FILE_SIZE:
        raise FileTooLarge(size, MAX_FILE_SIZE)

    options = effective_options(options, size)
    file_format = detect_file_format(path)
    extractor = EXTRACTORS.get(file_format)
    if extractor is None:
        raise UnsupportedFormat(f"Unsupported file format: {path.suffix}")

    if options.debug:
        logger.debug(
            "parsing %s as %s (%d bytes, streaming=%s)",
            path, file_format.value, size, options.streaming,
        )
    document = extractor(path, options)
    return assemble_statement(document, options)


def _failure(path: Path, exc: Exception, started: float) -> ParserResult:
    logger.warning("parse failed for %s: %s", path, exc)
    return ParserResult(success=False, error=str(exc), duration=_elapsed_ms(started))


def _success(statement: ParsedStatement, started: float) -> ParserResult:
    return ParserResult(
        success=True,
        data=statement,
        warnings=list(statement.metadata.warnings),
        duration=_elapsed_ms(started),
    )


async def parse_statement(
    path: str | Path,
    options: ParserOptions | None = None,
) -> ParserResult:
    """Parse one file; extraction runs in a worker thread."""
    path = Path(path)
    options = options or ParserOptions()
    started = time.perf_counter()
    try:
        statement = await asyncio.to_thread(parse_file, path, options)
    except Exception as exc:
        return _failure(path, exc, started)
    logger.info("parsed %s in %d ms", path.name, _elapsed_ms(started))
    return _success(statement, started)


def parse_statement_sync(
    path: str | Path,
    options: ParserOptions | None = None,
) -> ParserResult:
    """Synchronous variant of parse_statement."""
    path = Path(path)
    options = options or ParserOptions()
    started = time.perf_counter()
    try:
        statement = parse_file(path, options)
    except Exception as exc:
        return _failure(path, exc, started)
    return _success(statement, started)


async def parse_statements(
    paths: Iterable[str | Path],
    options: ParserOptions | None = None,
) -> list[ParserResult]:
    """Parse files in windows of BATCH_CONCURRENCY, preserving input order.

    Each window finishes before the next one starts.
    """
    paths = list(paths)
    results: list[ParserResult] = []
    for start in range(0, len(paths), BATCH_CONCURRENCY):
        window = paths[start:start + BATCH_CONCURRENCY]
        results.extend(await asyncio.gather(*(parse_statement(p, options) for p in window)))
    return results
