"""Source document metadata models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class StatementMetadata(BaseModel):
    """Where a ParsedStatement came from and how it was read."""

    model_config = ConfigDict(extra="allow")

    source_file: str
    format: Literal["pdf", "excel", "csv"]
    parsed_at: datetime
    parser_version: str
    warnings: list[str] = []
    period_estimated: bool = False
    unit_detected: Optional[str] = None
    page_count: Optional[int] = None
    streaming: bool = False
