"""Shared Pydantic v2 schemas for the kessan statement parser."""

from .documents import StatementMetadata
from .financials import (
    AccountItem,
    Amount,
    AmountUnit,
    Assets,
    BalanceSheet,
    CashFlowStatement,
    CompanyInfo,
    Equity,
    FinancingActivities,
    FiscalPeriod,
    IncomeStatement,
    InvestingActivities,
    Liabilities,
    OperatingActivities,
    ParsedStatement,
    count_line_items,
    zero_amount,
)
from .options import ParserOptions
from .results import GateResult, ParserResult

__all__ = [
    "AccountItem",
    "Amount",
    "AmountUnit",
    "Assets",
    "BalanceSheet",
    "CashFlowStatement",
    "CompanyInfo",
    "Equity",
    "FinancingActivities",
    "FiscalPeriod",
    "GateResult",
    "IncomeStatement",
    "InvestingActivities",
    "Liabilities",
    "OperatingActivities",
    "ParsedStatement",
    "ParserOptions",
    "ParserResult",
    "StatementMetadata",
    "count_line_items",
    "zero_amount",
]
