"""Quality gate validators for exported ParsedStatement JSON files."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from src.schemas import GateResult, ParsedStatement

logger = logging.getLogger(__name__)

STATEMENT_SECTIONS = ("balance_sheet", "income_statement", "cash_flow_statement")
# Files the statement-parser CLI and this gate runner write next to statements.
NON_STATEMENT_FILES = frozenset({"results.json", "gate_results.json"})


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class PresenceResult:
    """Result of statement presence validation."""

    gate_pass: bool
    min_sections: int
    detail: dict[str, list[str]]  # {"file.json": ["balance_sheet", ...], ...}


@dataclass
class PeriodOrderResult:
    """Result of fiscal period ordering validation."""

    gate_pass: bool
    violations: list[dict]


@dataclass
class CompanyNameResult:
    """Result of company name validation."""

    gate_pass: bool
    missing: list[str]


@dataclass
class AccountCountResult:
    """Result of account count validation."""

    gate_pass: bool
    min_accounts: int
    counts: dict[str, int]


@dataclass
class WarningRateResult:
    """Result of warning count validation."""

    gate_pass: bool
    max_warnings: int
    counts: dict[str, int]


@dataclass
class FileResult:
    """Result of file existence validation."""

    gate_pass: bool
    detail: dict[str, dict]  # {"filename": {"exists": bool, "size": int}, ...}


@dataclass
class SchemaResult:
    """Result of ParsedStatement schema validation."""

    gate_pass: bool
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class GateResults:
    """Aggregated results from all gates."""

    overall_pass: bool
    gates: list[GateResult]


# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------


def load_statements(data_dir: Path) -> dict[str, dict]:
    """Load every exported statement JSON in ``data_dir`` keyed by file name."""
    statements: dict[str, dict] = {}
    for path in sorted(data_dir.glob("*.json")):
        if path.name in NON_STATEMENT_FILES:
            continue
        try:
            with path.open("r", encoding="utf-8") as f:
                statements[path.name] = json.load(f)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping unreadable JSON %s: %s", path.name, exc)
    return statements


def count_accounts(data: dict) -> int:
    """Line items in a statement dict; a file that fails the schema counts 0."""
    try:
        statement = ParsedStatement.model_validate(data)
    except ValidationError as exc:
        logger.warning("Counting 0 accounts: %d validation error(s)", exc.error_count())
        return 0
    return statement.account_count()


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_statement_presence(
    statements: dict[str, dict],
    min_sections: int = 1,
) -> PresenceResult:
    """Check that every file carries at least ``min_sections`` statements."""
    detail = {
        name: [section for section in STATEMENT_SECTIONS if data.get(section) is not None]
        for name, data in statements.items()
    }
    gate_pass = bool(statements) and all(len(found) >= min_sections for found in detail.values())
    return PresenceResult(gate_pass=gate_pass, min_sections=min_sections, detail=detail)


def validate_period_order(statements: dict[str, dict]) -> PeriodOrderResult:
    """Check that every fiscal period starts strictly before it ends."""
    violations: list[dict] = []
    for name, data in statements.items():
        period = data.get("period") or {}
        start = period.get("start_date")
        end = period.get("end_date")
        if not start or not end:
            violations.append({"file": name, "reason": "fiscal period missing"})
            continue
        try:
            ordered = date.fromisoformat(start) < date.fromisoformat(end)
        except ValueError:
            violations.append({"file": name, "reason": f"unparseable period {start} - {end}"})
            continue
        if not ordered:
            violations.append({
                "file": name,
                "start_date": start,
                "end_date": end,
                "reason": f"start {start} >= end {end}",
            })
    return PeriodOrderResult(gate_pass=not violations, violations=violations)


def validate_company_name(statements: dict[str, dict]) -> CompanyNameResult:
    """Check that every file names its company."""
    missing = [
        name for name, data in statements.items()
        if not (data.get("company") or {}).get("name")
    ]
    return CompanyNameResult(gate_pass=not missing, missing=missing)


def validate_account_count(
    statements: dict[str, dict],
    min_accounts: int = 1,
) -> AccountCountResult:
    """Check that every file holds at least ``min_accounts`` line items."""
    counts = {name: count_accounts(data) for name, data in statements.items()}
    gate_pass = bool(counts) and all(count >= min_accounts for count in counts.values())
    return AccountCountResult(gate_pass=gate_pass, min_accounts=min_accounts, counts=counts)


def validate_warning_rate(
    statements: dict[str, dict],
    max_warnings: int = 5,
) -> WarningRateResult:
    """Check that no file carries more than ``max_warnings`` parse warnings."""
    counts = {
        name: len((data.get("metadata") or {}).get("warnings") or [])
        for name, data in statements.items()
    }
    return WarningRateResult(
        gate_pass=all(count <= max_warnings for count in counts.values()),
        max_warnings=max_warnings,
        counts=counts,
    )


def validate_file_exists(
    data_dir: Path,
    required_files: list[str],
) -> FileResult:
    """Check that required files exist and are non-empty."""
    detail: dict[str, dict] = {}
    all_exist = True

    for filename in required_files:
        path = data_dir / filename
        exists = path.exists()
        size = path.stat().st_size if exists else 0
        detail[filename] = {"exists": exists, "size": size}
        if not exists or size == 0:
            all_exist = False

    return FileResult(gate_pass=all_exist, detail=detail)


def validate_schema(statements: dict[str, dict]) -> SchemaResult:
    """Validate every file through the ParsedStatement model."""
    errors: dict[str, str] = {}
    for name, data in statements.items():
        try:
            ParsedStatement.model_validate(data)
        except ValidationError as exc:
            errors[name] = f"{exc.error_count()} validation error(s)"
    return SchemaResult(gate_pass=bool(statements) and not errors, errors=errors)


# ---------------------------------------------------------------------------
# Gate runner
# ---------------------------------------------------------------------------


def run_all_gates(
    gates_config: list[dict],
    data_dir: Path,
) -> GateResults:
    """Execute all gates defined in the configuration.

    Each gate dict has: {"id": str, "type": str, "params": dict}
    """
    statements = load_statements(data_dir)
    results: list[GateResult] = []

    for gate in gates_config:
        gate_id = gate["id"]
        gate_type = gate["type"]
        params = gate.get("params") or {}

        if gate_type == "statement_presence":
            r = validate_statement_presence(statements, min_sections=params.get("min_sections", 1))
            passed, detail = r.gate_pass, {"min_sections": r.min_sections, "sections": r.detail}

        elif gate_type == "period_order":
            r = validate_period_order(statements)
            passed, detail = r.gate_pass, {
                "violations": r.violations,
                "violation_count": len(r.violations),
            }

        elif gate_type == "company_name":
            r = validate_company_name(statements)
            passed, detail = r.gate_pass, {"missing": r.missing}

        elif gate_type == "account_count":
            r = validate_account_count(statements, min_accounts=params.get("min_accounts", 1))
            passed, detail = r.gate_pass, {"min_accounts": r.min_accounts, "counts": r.counts}

        elif gate_type == "warning_rate":
            r = validate_warning_rate(statements, max_warnings=params.get("max_warnings", 5))
            passed, detail = r.gate_pass, {"max_warnings": r.max_warnings, "counts": r.counts}

        elif gate_type == "file_exists":
            r = validate_file_exists(data_dir, required_files=params.get("required_files", []))
            passed, detail = r.gate_pass, r.detail

        elif gate_type == "schema":
            if not statements:
                passed, detail = False, {"error": "no statement JSON files found"}
            else:
                r = validate_schema(statements)
                passed, detail = r.gate_pass, {"errors": r.errors, "checked": len(statements)}

        else:
            logger.warning("Unknown gate type: %s", gate_type)
            passed, detail = False, {"error": f"unknown gate type: {gate_type}"}

        results.append(GateResult(id=gate_id, gate_type=gate_type, passed=passed, detail=detail))

    overall = all(g.passed for g in results) if results else False
    return GateResults(overall_pass=overall, gates=results)
