"""Parser configuration model."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ParserOptions(BaseModel):
    """Per-call parser settings.

    Every field has its default applied here so the pipeline never has to
    check for a missing setting.

    streaming: process the source in bounded pieces (PDF page batches,
        read-only workbooks). Switched on automatically for large files.
    chunk_size: piece size in bytes when streaming. ``None`` lets the
        orchestrator choose.
    use_ocr: request OCR for image-only PDFs. OCR itself is not bundled;
        the flag only affects the warning reported for such files.
    encoding: CSV text encoding. ``None`` tries UTF-8 (BOM aware) and then
        CP932.
    delimiter: CSV field delimiter.
    skip_rows: leading rows to ignore in CSV files and in every sheet.
    strict: a missing statement section aborts the parse instead of being
        recorded as a warning.
    debug: emit per-step DEBUG logs.
    """

    model_config = ConfigDict(frozen=True)

    streaming: bool = False
    chunk_size: Optional[int] = Field(default=None, gt=0)
    use_ocr: bool = False
    encoding: Optional[str] = None
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    skip_rows: int = Field(default=0, ge=0)
    strict: bool = False
    debug: bool = False
