"""Financial statement models for the kessan parser."""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .documents import StatementMetadata


class AmountUnit(str, Enum):
    """Monetary unit attached to an amount."""

    YEN = "円"
    THOUSAND_YEN = "千円"
    MILLION_YEN = "百万円"
    HUNDRED_MILLION_YEN = "億円"

    @property
    def multiplier(self) -> int:
        return _UNIT_MULTIPLIERS[self]


_UNIT_MULTIPLIERS: dict[AmountUnit, int] = {
    AmountUnit.YEN: 1,
    AmountUnit.THOUSAND_YEN: 1_000,
    AmountUnit.MILLION_YEN: 1_000_000,
    AmountUnit.HUNDRED_MILLION_YEN: 100_000_000,
}


class Amount(BaseModel):
    """A figure in a stated unit, keeping the source token for audit."""

    model_config = ConfigDict(frozen=True)

    value: float
    unit: AmountUnit = AmountUnit.YEN
    original: Optional[str] = None

    @field_validator("value")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"amount value must be finite, got {value}")
        return value

    @classmethod
    def zero(cls) -> Amount:
        """Placeholder for totals the document does not state."""
        return cls(value=0.0, unit=AmountUnit.YEN)


def zero_amount() -> Amount:
    return Amount.zero()


def count_line_items(model: BaseModel) -> int:
    """Number of line items in a model's lists; sub-items are not counted."""
    total = 0
    for name in type(model).model_fields:
        value = getattr(model, name)
        if isinstance(value, list):
            total += len(value)
        elif isinstance(value, BaseModel) and not isinstance(value, Amount):
            total += count_line_items(value)
    return total


class AccountItem(BaseModel):
    """Single labelled figure, optionally with nested detail lines."""

    code: Optional[str] = None
    name: str
    name_en: Optional[str] = None
    amount: Amount
    sub_items: Optional[list[AccountItem]] = None


class FiscalPeriod(BaseModel):
    """Accounting period covered by the statements.

    Ordering of start and end is checked by the structural validator,
    not here: an inverted period still parses.
    """

    start_date: date
    end_date: date
    period: Optional[int] = None
    fiscal_year: Optional[int] = None


class CompanyInfo(BaseModel):
    """Reporting entity."""

    model_config = ConfigDict(extra="allow")

    name: str
    name_en: Optional[str] = None
    security_code: Optional[str] = Field(default=None, pattern=r"^[0-9]{4}$")
    industry: Optional[str] = None
    fiscal_year_end: Optional[int] = Field(default=None, ge=1, le=12)


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------


class Assets(BaseModel):
    current_assets: list[AccountItem] = []
    fixed_assets: list[AccountItem] = []
    deferred_assets: list[AccountItem] = []
    total: Amount = Field(default_factory=zero_amount)


class Liabilities(BaseModel):
    current_liabilities: list[AccountItem] = []
    fixed_liabilities: list[AccountItem] = []
    total: Amount = Field(default_factory=zero_amount)


class Equity(BaseModel):
    shareholders_equity: list[AccountItem] = []
    accumulated_other_comprehensive_income: list[AccountItem] = []
    stock_acquisition_rights: list[AccountItem] = []
    non_controlling_interests: list[AccountItem] = []
    total: Amount = Field(default_factory=zero_amount)


class BalanceSheet(BaseModel):
    """貸借対照表."""

    assets: Assets = Field(default_factory=Assets)
    liabilities: Liabilities = Field(default_factory=Liabilities)
    equity: Equity = Field(default_factory=Equity)
    unclassified: list[AccountItem] = []


# ---------------------------------------------------------------------------
# Income statement
# ---------------------------------------------------------------------------


class IncomeStatement(BaseModel):
    """損益計算書."""

    revenue: list[AccountItem] = []
    cost_of_sales: list[AccountItem] = []
    gross_profit: Amount = Field(default_factory=zero_amount)
    selling_general_and_administrative_expenses: list[AccountItem] = []
    operating_income: Amount = Field(default_factory=zero_amount)
    non_operating_income: list[AccountItem] = []
    non_operating_expenses: list[AccountItem] = []
    ordinary_income: Amount = Field(default_factory=zero_amount)
    extraordinary_income: list[AccountItem] = []
    extraordinary_losses: list[AccountItem] = []
    income_before_tax: Amount = Field(default_factory=zero_amount)
    income_taxes: list[AccountItem] = []
    net_income: Amount = Field(default_factory=zero_amount)
    unclassified: list[AccountItem] = []


# ---------------------------------------------------------------------------
# Cash flow statement
# ---------------------------------------------------------------------------


class OperatingActivities(BaseModel):
    items: list[AccountItem] = []
    subtotal: Amount = Field(default_factory=zero_amount)
    interest_and_dividends_received: Optional[Amount] = None
    interest_paid: Optional[Amount] = None
    income_taxes_paid: Optional[Amount] = None
    total: Amount = Field(default_factory=zero_amount)


class InvestingActivities(BaseModel):
    items: list[AccountItem] = []
    total: Amount = Field(default_factory=zero_amount)


class FinancingActivities(BaseModel):
    items: list[AccountItem] = []
    total: Amount = Field(default_factory=zero_amount)


class CashFlowStatement(BaseModel):
    """キャッシュ・フロー計算書."""

    operating_activities: OperatingActivities = Field(default_factory=OperatingActivities)
    investing_activities: InvestingActivities = Field(default_factory=InvestingActivities)
    financing_activities: FinancingActivities = Field(default_factory=FinancingActivities)
    net_increase_in_cash: Amount = Field(default_factory=zero_amount)
    cash_at_beginning_of_period: Amount = Field(default_factory=zero_amount)
    cash_at_end_of_period: Amount = Field(default_factory=zero_amount)
    unclassified: list[AccountItem] = []


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


class ParsedStatement(BaseModel):
    """Normalized result of parsing one source file."""

    company: CompanyInfo
    period: FiscalPeriod
    balance_sheet: Optional[BalanceSheet] = None
    income_statement: Optional[IncomeStatement] = None
    cash_flow_statement: Optional[CashFlowStatement] = None
    metadata: StatementMetadata

    def sections_present(self) -> list[str]:
        """Names of the statement sections that were extracted."""
        return [
            name
            for name in ("balance_sheet", "income_statement", "cash_flow_statement")
            if getattr(self, name) is not None
        ]

    def account_count(self) -> int:
        """Line items across the extracted statement sections."""
        return sum(count_line_items(getattr(self, name)) for name in self.sections_present())
