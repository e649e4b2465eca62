"""Input format detection for statement files."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from errors import FileReadError


class FileFormat(str, Enum):
    """Formats with a registered extractor."""

    PDF = "pdf"
    EXCEL = "excel"
    CSV = "csv"


EXTENSION_FORMATS: dict[str, FileFormat] = {
    ".pdf": FileFormat.PDF,
    ".xlsx": FileFormat.EXCEL,
    ".xlsm": FileFormat.EXCEL,
    ".xls": FileFormat.EXCEL,
    ".csv": FileFormat.CSV,
    ".tsv": FileFormat.CSV,
    ".txt": FileFormat.CSV,
}

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK"
HEADER_BYTES = 8


def read_header(path: Path, size: int = HEADER_BYTES) -> bytes:
    try:
        with path.open("rb") as file:
            return file.read(size)
    except OSError as exc:
        raise FileReadError(f"Failed reading file: {path}") from exc


def detect_file_format(path: str | Path) -> FileFormat:
    """Classify a file as PDF, spreadsheet or delimited text.

    The extension decides when it is known; magic bytes are only consulted
    for files without a recognised extension, and anything else is treated
    as delimited text.
    """
    path = Path(path)
    by_extension = EXTENSION_FORMATS.get(path.suffix.lower())
    if by_extension is not None:
        return by_extension

    header = read_header(path)
    if header.startswith(PDF_MAGIC):
        return FileFormat.PDF
    if header.startswith(ZIP_MAGIC):
        return FileFormat.EXCEL
    return FileFormat.CSV


def get_file_size(path: str | Path) -> int:
    """Return the file size in bytes."""
    try:
        return Path(path).stat().st_size
    except OSError as exc:
        raise FileReadError(f"File not found: {path}") from exc


def default_delimiter(path: str | Path) -> str | None:
    """Delimiter implied by the extension, if any."""
    if Path(path).suffix.lower() == ".tsv":
        return "\t"
    return None
