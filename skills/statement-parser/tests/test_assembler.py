"""Tests for assembler.py: line routing, stated totals, strict policy."""

from __future__ import annotations

import sys
import unittest
from datetime import date
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import assembler
import extraction
from errors import CashFlowStatementNotFound, IncomeStatementNotFound
from extraction import Extracted, ExtractedDocument, Missing, RawLine, SourceRow
from src.schemas import AmountUnit, CompanyInfo, FiscalPeriod, ParserOptions


def line(label: str, amount: str | None = None, depth: int = 0) -> RawLine:
    return RawLine(label=label, amount_text=amount, depth=depth)


BALANCE_SHEET_LINES = (
    line("資産の部"),
    line("流動資産"),
    line("現金及び預金", "1,000"),
    line("売掛金", "500"),
    line("流動資産合計", "1,500"),
    line("固定資産"),
    line("建物", "300"),
    line("資産合計", "1,800"),
    line("負債の部"),
    line("流動負債"),
    line("買掛金", "200"),
    line("固定負債"),
    line("長期借入金", "400"),
    line("負債合計", "600"),
    line("純資産の部"),
    line("資本金", "1,000"),
    line("利益剰余金", "200"),
    line("純資産合計", "1,200"),
    line("負債純資産合計", "1,800"),
)

INCOME_LINES = (
    line("売上高", "5,000"),
    line("売上原価", "△3,000"),
    line("売上総利益", "2,000"),
    line("販売費及び一般管理費", "1,500"),
    line("給料手当", "900", depth=1),
    line("営業利益", "500"),
    line("受取利息", "10"),
    line("経常利益", "510"),
    line("当期純利益", "300"),
)

CASH_FLOW_LINES = (
    line("営業活動によるキャッシュ・フロー"),
    line("税金等調整前当期純利益", "450"),
    line("減価償却費", "100"),
    line("小計", "550"),
    line("法人税等の支払額", "△150"),
    line("営業活動によるキャッシュ・フロー", "400"),
    line("投資活動によるキャッシュ・フロー"),
    line("有形固定資産の取得による支出", "△120"),
    line("投資活動によるキャッシュ・フロー", "△120"),
    line("現金及び現金同等物の期末残高", "900"),
)


def make_document(**sections) -> ExtractedDocument:
    defaults = {
        "balance_sheet": Extracted(BALANCE_SHEET_LINES, AmountUnit.MILLION_YEN),
        "income_statement": Extracted(INCOME_LINES),
        "cash_flow_statement": Extracted(CASH_FLOW_LINES),
    }
    defaults.update(sections)
    return ExtractedDocument(
        source_file="sample.pdf",
        format="pdf",
        rows=[],
        sections=defaults,
        company=CompanyInfo(name="株式会社サンプル", security_code="1234"),
        period=FiscalPeriod(start_date=date(2023, 4, 1), end_date=date(2024, 3, 31)),
        unit_detected="百万円",
        page_count=3,
    )


class TestBalanceSheet(unittest.TestCase):

    def setUp(self) -> None:
        self.statement = assembler.assemble_statement(make_document())
        self.bs = self.statement.balance_sheet

    def test_groups_follow_markers(self) -> None:
        names = [item.name for item in self.bs.assets.current_assets]
        self.assertEqual(names, ["現金及び預金", "売掛金", "流動資産合計"])
        self.assertEqual([i.name for i in self.bs.assets.fixed_assets], ["建物"])
        self.assertEqual([i.name for i in self.bs.liabilities.current_liabilities], ["買掛金"])
        self.assertEqual([i.name for i in self.bs.liabilities.fixed_liabilities], ["長期借入金"])
        self.assertEqual(
            [i.name for i in self.bs.equity.shareholders_equity], ["資本金", "利益剰余金"]
        )

    def test_stated_totals_copied(self) -> None:
        self.assertEqual(self.bs.assets.total.value, 1800)
        self.assertEqual(self.bs.liabilities.total.value, 600)
        self.assertEqual(self.bs.equity.total.value, 1200)

    def test_section_unit_applied(self) -> None:
        self.assertEqual(self.bs.assets.total.unit, AmountUnit.MILLION_YEN)
        self.assertEqual(self.bs.assets.current_assets[0].amount.original, "1,000")

    def test_grand_total_without_field_is_unclassified(self) -> None:
        self.assertEqual([i.name for i in self.bs.unclassified], ["負債純資産合計"])

    def test_english_names(self) -> None:
        self.assertEqual(self.bs.assets.current_assets[0].name_en, "Cash and deposits")


class TestIncomeStatement(unittest.TestCase):

    def setUp(self) -> None:
        self.pl = assembler.assemble_statement(make_document()).income_statement

    def test_groups_and_totals(self) -> None:
        self.assertEqual(self.pl.revenue[0].amount.value, 5000)
        self.assertEqual(self.pl.cost_of_sales[0].amount.value, -3000)
        self.assertEqual(self.pl.gross_profit.value, 2000)
        self.assertEqual(self.pl.operating_income.value, 500)
        self.assertEqual(self.pl.ordinary_income.value, 510)
        self.assertEqual(self.pl.net_income.value, 300)

    def test_deeper_line_becomes_sub_item(self) -> None:
        sga = self.pl.selling_general_and_administrative_expenses
        self.assertEqual(len(sga), 1)
        self.assertEqual(sga[0].sub_items[0].name, "給料手当")

    def test_default_group_after_total(self) -> None:
        self.assertEqual([i.name for i in self.pl.non_operating_income], ["受取利息"])

    def test_document_unit_used_when_section_has_none(self) -> None:
        self.assertEqual(self.pl.revenue[0].amount.unit, AmountUnit.MILLION_YEN)

    def test_missing_totals_stay_zero(self) -> None:
        self.assertEqual(self.pl.income_before_tax.value, 0)


class TestCashFlowStatement(unittest.TestCase):

    def setUp(self) -> None:
        self.cf = assembler.assemble_statement(make_document()).cash_flow_statement

    def test_activity_items_and_totals(self) -> None:
        operating = self.cf.operating_activities
        self.assertEqual([i.name for i in operating.items], ["税金等調整前当期純利益", "減価償却費"])
        self.assertEqual(operating.subtotal.value, 550)
        self.assertEqual(operating.income_taxes_paid.value, -150)
        self.assertIsNone(operating.interest_paid)
        self.assertEqual(operating.total.value, 400)
        self.assertEqual(self.cf.investing_activities.total.value, -120)
        self.assertEqual(len(self.cf.investing_activities.items), 1)
        self.assertEqual(self.cf.cash_at_end_of_period.value, 900)

    def test_cash_flow_total_glued_to_label(self) -> None:
        rows = [
            SourceRow(cells=(text,))
            for text in ("株式会社テスト", "キャッシュ・フロー計算書", "営業活動によるキャッシュ・フロー1,000")
        ]
        document = extraction.build_document("cf.pdf", "pdf", rows, today=date(2026, 10, 17))
        operating = assembler.assemble_statement(document).cash_flow_statement.operating_activities
        self.assertEqual(operating.total.value, 1000)
        self.assertEqual(operating.items, [])


class TestPolicy(unittest.TestCase):

    def test_unparseable_amount_skipped(self) -> None:
        document = make_document(income_statement=Extracted((line("売上高", "1,2,3x"),)))
        pl = assembler.assemble_statement(document).income_statement
        self.assertEqual(pl.revenue, [])

    def test_unknown_account_unclassified(self) -> None:
        document = make_document(income_statement=Extracted((line("雑収入", "5"),)))
        pl = assembler.assemble_statement(document).income_statement
        self.assertEqual([i.name for i in pl.unclassified], ["雑収入"])

    def test_unknown_marker_not_warned(self) -> None:
        document = make_document(
            balance_sheet=Extracted(()),
            income_statement=Extracted((line("その他の区分"), line("売上高", "5"))),
            cash_flow_statement=Extracted(()),
        )
        with self.assertNoLogs("normalizer", level="WARNING"):
            assembler.assemble_statement(document)

    def test_missing_section_becomes_warning(self) -> None:
        document = make_document(cash_flow_statement=Missing(CashFlowStatementNotFound()))
        statement = assembler.assemble_statement(document, ParserOptions())
        self.assertIsNone(statement.cash_flow_statement)
        self.assertIn("キャッシュ・フロー計算書が見つかりません", statement.metadata.warnings)

    def test_missing_section_raises_in_strict_mode(self) -> None:
        document = make_document(income_statement=Missing(IncomeStatementNotFound()))
        with self.assertRaises(IncomeStatementNotFound):
            assembler.assemble_statement(document, ParserOptions(strict=True))

    def test_metadata(self) -> None:
        statement = assembler.assemble_statement(make_document())
        metadata = statement.metadata
        self.assertEqual(metadata.source_file, "sample.pdf")
        self.assertEqual(metadata.format, "pdf")
        self.assertEqual(metadata.parser_version, assembler.PARSER_VERSION)
        self.assertEqual(metadata.page_count, 3)
        self.assertEqual(statement.company.security_code, "1234")

    def test_empty_company_name_warned(self) -> None:
        document = make_document()
        document.company = CompanyInfo(name="")
        statement = assembler.assemble_statement(document)
        self.assertIn(assembler.NO_COMPANY_WARNING, statement.metadata.warnings)


if __name__ == "__main__":
    unittest.main()
