"""Post-processing of parse results: statistics, validation and JSON export."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from src.schemas import ParsedStatement, ParserResult

from errors import StatementParserError


@dataclass
class StatementStatistics:
    success: bool
    duration: int
    warning_count: int
    has_balance_sheet: bool
    has_income_statement: bool
    has_cash_flow_statement: bool
    total_accounts: int


@dataclass
class ValidationReport:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def statement_to_dict(statement: ParsedStatement) -> dict[str, Any]:
    """JSON-ready dict; dates and timestamps become ISO-8601 strings."""
    return statement.model_dump(mode="json")


def export_to_json(result: ParserResult, output_path: str | Path) -> Path:
    """Write the parsed statement of a successful result to ``output_path``."""
    if not result.success or result.data is None:
        raise StatementParserError("Cannot export failed parse result")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(statement_to_dict(result.data), f, ensure_ascii=False, indent=2)
    return output_path


def get_statistics(result: ParserResult) -> StatementStatistics:
    data = result.data
    return StatementStatistics(
        success=result.success,
        duration=result.duration,
        warning_count=len(result.warnings or []),
        has_balance_sheet=data is not None and data.balance_sheet is not None,
        has_income_statement=data is not None and data.income_statement is not None,
        has_cash_flow_statement=data is not None and data.cash_flow_statement is not None,
        total_accounts=data.account_count() if data is not None else 0,
    )


def validate_result(result: ParserResult) -> ValidationReport:
    """Structural checks on a parse result.

    Reports a failed parse, missing data, an empty company name, a missing
    or inverted fiscal period, and a result with no statement at all.
    """
    errors: list[str] = []

    if not result.success:
        errors.append(f"Parse failed: {result.error}")
        return ValidationReport(is_valid=False, errors=errors)

    data = result.data
    if data is None:
        errors.append("No data in result")
        return ValidationReport(is_valid=False, errors=errors)

    if not data.company.name:
        errors.append("Company name is missing")

    period = data.period
    if period is None or period.start_date is None or period.end_date is None:
        errors.append("Fiscal period is missing")
    elif period.start_date >= period.end_date:
        errors.append("Invalid fiscal period: start date is not before end date")

    if not data.sections_present():
        errors.append("No financial statements found")

    return ValidationReport(is_valid=not errors, errors=errors)


def summarize_batch(results: Sequence[ParserResult]) -> dict[str, int]:
    """Counts for a batch run."""
    succeeded = sum(1 for r in results if r.success)
    return {
        "total": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
        "duration": sum(r.duration for r in results),
    }
