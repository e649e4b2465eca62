"""Result envelopes for parser calls and quality gates."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from .financials import ParsedStatement


class ParserResult(BaseModel):
    """Uniform envelope returned by every parser entry point."""

    success: bool
    data: Optional[ParsedStatement] = None
    error: Optional[str] = None
    warnings: Optional[list[str]] = None
    duration: int = 0


class GateResult(BaseModel):
    """Single gate validation result."""

    model_config = ConfigDict(extra="allow")

    id: str
    gate_type: Optional[str] = None
    passed: bool
    detail: dict = {}
