"""Exception taxonomy for the statement parser."""

from __future__ import annotations


class StatementParserError(Exception):
    """Raised when a statement file cannot be parsed."""


class InvalidAmountFormat(StatementParserError):
    """A token could not be read as a monetary amount."""


class InvalidDateFormat(StatementParserError):
    """A token could not be read as a calendar date."""


class SectionNotFound(StatementParserError):
    """A statement heading could not be located in the source."""

    kind: str = "statement"
    label: str = "財務諸表"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or f"{self.label}が見つかりません"
        super().__init__(self.reason)


class BalanceSheetNotFound(SectionNotFound):
    kind = "balance_sheet"
    label = "貸借対照表"


class IncomeStatementNotFound(SectionNotFound):
    kind = "income_statement"
    label = "損益計算書"


class CashFlowStatementNotFound(SectionNotFound):
    kind = "cash_flow_statement"
    label = "キャッシュ・フロー計算書"


SECTION_ERRORS: dict[str, type[SectionNotFound]] = {
    cls.kind: cls
    for cls in (BalanceSheetNotFound, IncomeStatementNotFound, CashFlowStatementNotFound)
}


class FileTooLarge(StatementParserError):
    """The input exceeds the hard size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File size too large: {size / 1024 / 1024:.2f}MB "
            f"(max {limit / 1024 / 1024:.0f}MB)"
        )


class UnsupportedFormat(StatementParserError):
    """No extractor is registered for the detected format."""


class FileReadError(StatementParserError):
    """The input file is missing or could not be read."""
