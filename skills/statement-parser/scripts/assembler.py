"""Assemble normalized statements from extracted sections.

Each raw line is normalized (account name, amount in the section's unit)
and routed to a statement group:

1. a stated total fills its total field and ends the running group;
2. keyword containment on the name selects a group and makes it running;
3. otherwise the running group, then the dictionary default group;
4. anything left goes to ``unclassified``.

Totals are copied from the document, never computed.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from src.schemas import (
    AccountItem,
    Amount,
    AmountUnit,
    BalanceSheet,
    CashFlowStatement,
    IncomeStatement,
    ParsedStatement,
    ParserOptions,
    StatementMetadata,
)

from extraction import Extracted, ExtractedDocument, Missing, RawLine
from normalizer import account_name_en, normalize_account_name, try_parse_amount, validate_amount

__version__ = "1.0.0"
PARSER_VERSION = __version__

logger = logging.getLogger(__name__)

UNCLASSIFIED = "unclassified"
NO_COMPANY_WARNING = "会社名を検出できませんでした"


class StatementLayout:
    """Routing tables for one statement kind."""

    def __init__(
        self,
        model: type,
        keywords: tuple[tuple[str, str], ...],
        totals: dict[str, str],
        defaults: dict[str, str],
        fields: dict[str, str] | None = None,
        closing: frozenset[str] = frozenset(),
    ) -> None:
        self.model = model
        self.keywords = keywords
        self.totals = totals
        self.defaults = defaults
        self.fields = fields or {}
        self.closing = closing

    def keyword_group(self, name: str) -> str | None:
        for keyword, target in self.keywords:
            if keyword in name:
                return target
        return None


_AOCI = "equity.accumulated_other_comprehensive_income"

BALANCE_SHEET_LAYOUT = StatementLayout(
    BalanceSheet,
    keywords=(
        ("流動資産", "assets.current_assets"),
        ("固定資産", "assets.fixed_assets"),
        ("繰延資産", "assets.deferred_assets"),
        ("流動負債", "liabilities.current_liabilities"),
        ("固定負債", "liabilities.fixed_liabilities"),
        ("株主資本", "equity.shareholders_equity"),
        ("純資産の部", "equity.shareholders_equity"),
        ("その他の包括利益", _AOCI),
        ("評価・換算差額等", _AOCI),
        ("評価差額金", _AOCI),
        ("為替換算調整勘定", _AOCI),
        ("新株予約権", "equity.stock_acquisition_rights"),
        ("非支配株主持分", "equity.non_controlling_interests"),
    ),
    totals={
        "資産合計": "assets.total",
        "負債合計": "liabilities.total",
        "純資産合計": "equity.total",
    },
    defaults={
        "現金及び預金": "assets.current_assets",
        "受取手形": "assets.current_assets",
        "売掛金": "assets.current_assets",
        "受取手形及び売掛金": "assets.current_assets",
        "有価証券": "assets.current_assets",
        "商品": "assets.current_assets",
        "製品": "assets.current_assets",
        "仕掛品": "assets.current_assets",
        "原材料": "assets.current_assets",
        "建物": "assets.fixed_assets",
        "建物及び構築物": "assets.fixed_assets",
        "機械装置": "assets.fixed_assets",
        "土地": "assets.fixed_assets",
        "建設仮勘定": "assets.fixed_assets",
        "ソフトウェア": "assets.fixed_assets",
        "のれん": "assets.fixed_assets",
        "投資有価証券": "assets.fixed_assets",
        "長期貸付金": "assets.fixed_assets",
        "支払手形": "liabilities.current_liabilities",
        "買掛金": "liabilities.current_liabilities",
        "支払手形及び買掛金": "liabilities.current_liabilities",
        "短期借入金": "liabilities.current_liabilities",
        "1年内返済予定の長期借入金": "liabilities.current_liabilities",
        "未払金": "liabilities.current_liabilities",
        "未払費用": "liabilities.current_liabilities",
        "未払法人税等": "liabilities.current_liabilities",
        "賞与引当金": "liabilities.current_liabilities",
        "長期借入金": "liabilities.fixed_liabilities",
        "社債": "liabilities.fixed_liabilities",
        "退職給付引当金": "liabilities.fixed_liabilities",
        "退職給付に係る負債": "liabilities.fixed_liabilities",
        "資本金": "equity.shareholders_equity",
        "資本剰余金": "equity.shareholders_equity",
        "利益剰余金": "equity.shareholders_equity",
        "自己株式": "equity.shareholders_equity",
    },
    closing=frozenset({"負債純資産合計"}),
)

INCOME_STATEMENT_LAYOUT = StatementLayout(
    IncomeStatement,
    keywords=(
        ("売上高", "revenue"),
        ("売上原価", "cost_of_sales"),
        ("販売費", "selling_general_and_administrative_expenses"),
        ("営業外収益", "non_operating_income"),
        ("営業外費用", "non_operating_expenses"),
        ("特別利益", "extraordinary_income"),
        ("特別損失", "extraordinary_losses"),
        ("法人税", "income_taxes"),
    ),
    totals={
        "売上総利益": "gross_profit",
        "売上総損失": "gross_profit",
        "営業利益": "operating_income",
        "営業損失": "operating_income",
        "経常利益": "ordinary_income",
        "経常損失": "ordinary_income",
        "税金等調整前当期純利益": "income_before_tax",
        "当期純利益": "net_income",
        "当期純損失": "net_income",
        "親会社株主に帰属する当期純利益": "net_income",
    },
    defaults={
        "受取利息": "non_operating_income",
        "受取配当金": "non_operating_income",
        "支払利息": "non_operating_expenses",
    },
)

CASH_FLOW_LAYOUT = StatementLayout(
    CashFlowStatement,
    keywords=(
        ("営業活動", "operating_activities.items"),
        ("投資活動", "investing_activities.items"),
        ("財務活動", "financing_activities.items"),
    ),
    totals={
        "営業活動によるキャッシュ・フロー": "operating_activities.total",
        "投資活動によるキャッシュ・フロー": "investing_activities.total",
        "財務活動によるキャッシュ・フロー": "financing_activities.total",
        "現金及び現金同等物の増減額": "net_increase_in_cash",
        "現金及び現金同等物の期首残高": "cash_at_beginning_of_period",
        "現金及び現金同等物の期末残高": "cash_at_end_of_period",
    },
    defaults={
        "減価償却費": "operating_activities.items",
        "有形固定資産の取得による支出": "investing_activities.items",
        "長期借入れによる収入": "financing_activities.items",
        "配当金の支払額": "financing_activities.items",
    },
    fields={
        "小計": "operating_activities.subtotal",
        "利息及び配当金の受取額": "operating_activities.interest_and_dividends_received",
        "利息の支払額": "operating_activities.interest_paid",
        "法人税等の支払額": "operating_activities.income_taxes_paid",
    },
)

LAYOUTS: dict[str, StatementLayout] = {
    "balance_sheet": BALANCE_SHEET_LAYOUT,
    "income_statement": INCOME_STATEMENT_LAYOUT,
    "cash_flow_statement": CASH_FLOW_LAYOUT,
}


def _nest(values: dict[str, Any]) -> dict[str, Any]:
    """Expand dotted keys (``assets.total``) into nested dicts."""
    tree: dict[str, Any] = {}
    for path, value in values.items():
        *parents, leaf = path.split(".")
        node = tree
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value
    return tree


class SectionBuilder:
    """Feeds raw lines of one section into group lists and total fields."""

    def __init__(self, layout: StatementLayout, unit: AmountUnit) -> None:
        self.layout = layout
        self.unit = unit
        self.lists: dict[str, list[AccountItem]] = {}
        self.amounts: dict[str, Amount] = {}
        self.group: str | None = None
        self._stack: list[tuple[int, AccountItem]] = []
        self._stack_target: str | None = None

    def _switch(self, group: str | None) -> None:
        self.group = group

    def _add(self, target: str, item: AccountItem, depth: int) -> None:
        if target != self._stack_target:
            self._stack = []
            self._stack_target = target
        while self._stack and self._stack[-1][0] >= depth:
            self._stack.pop()
        if self._stack:
            parent = self._stack[-1][1]
            if parent.sub_items is None:
                parent.sub_items = []
            parent.sub_items.append(item)
        else:
            self.lists.setdefault(target, []).append(item)
        self._stack.append((depth, item))

    def feed(self, line: RawLine) -> None:
        is_marker = line.amount_text is None
        name = normalize_account_name(line.label, warn_unmapped=not is_marker)

        if is_marker:
            group = self.layout.keyword_group(name)
            if group is not None:
                self._switch(group)
            return

        amount = try_parse_amount(line.amount_text, self.unit)
        if amount is None:
            logger.debug("skipped line with unparseable amount: %s %s", name, line.amount_text)
            return
        validate_amount(amount, name)

        total = self.layout.totals.get(name)
        if total is not None:
            self.amounts.setdefault(total, amount)
            self._switch(None)
            return
        field = self.layout.fields.get(name)
        if field is not None:
            self.amounts.setdefault(field, amount)
            return

        item = AccountItem(name=name, name_en=account_name_en(name), amount=amount)
        if name in self.layout.closing:
            self._switch(None)
            self._add(UNCLASSIFIED, item, line.depth)
            return

        group = self.layout.keyword_group(name)
        if group is not None:
            self._switch(group)
            target = group
        elif self.group is not None:
            target = self.group
        else:
            target = self.layout.defaults.get(name, UNCLASSIFIED)
        self._add(target, item, line.depth)

    def build(self) -> Any:
        values: dict[str, Any] = {**self.lists, **self.amounts}
        return self.layout.model.model_validate(_nest(values))


def build_section(kind: str, section: Extracted, default_unit: AmountUnit) -> Any:
    """Build the statement model for one extracted section."""
    builder = SectionBuilder(LAYOUTS[kind], section.unit or default_unit)
    for line in section.lines:
        builder.feed(line)
    return builder.build()


def assemble_statement(
    document: ExtractedDocument,
    options: ParserOptions | None = None,
) -> ParsedStatement:
    """Turn an extracted document into a ParsedStatement.

    A missing section raises its SectionNotFound in strict mode; otherwise
    the reason is recorded as a warning and the statement is left out.
    """
    options = options or ParserOptions()
    warnings = list(document.warnings)
    default_unit = AmountUnit(document.unit_detected) if document.unit_detected else AmountUnit.YEN

    statements: dict[str, Any] = {}
    for kind in LAYOUTS:
        outcome = document.sections.get(kind)
        if isinstance(outcome, Missing):
            if options.strict:
                raise outcome.error
            logger.warning("%s: %s", document.source_file, outcome.reason)
            warnings.append(outcome.reason)
            statements[kind] = None
        elif outcome is None:
            statements[kind] = None
        else:
            statements[kind] = build_section(kind, outcome, default_unit)

    if not document.company.name:
        warnings.append(NO_COMPANY_WARNING)

    metadata = StatementMetadata(
        source_file=document.source_file,
        format=document.format,
        parsed_at=datetime.now(UTC),
        parser_version=PARSER_VERSION,
        warnings=warnings,
        period_estimated=document.period_estimated,
        unit_detected=document.unit_detected,
        page_count=document.page_count,
        streaming=document.streaming,
    )
    return ParsedStatement(
        company=document.company,
        period=document.period,
        metadata=metadata,
        **statements,
    )
