"""Normalization of amounts, account names and dates in Japanese statements."""

from __future__ import annotations

import logging
import math
import re
from datetime import date
from types import MappingProxyType

from src.schemas import AccountItem, Amount, AmountUnit

from errors import InvalidAmountFormat, InvalidDateFormat

logger = logging.getLogger(__name__)

_FULLWIDTH_TABLE = str.maketrans("０１２３４５６７８９．（）／＋", "0123456789.()/+")


def to_halfwidth(text: str) -> str:
    """Replace full-width digits and number punctuation with ASCII."""
    return text.translate(_FULLWIDTH_TABLE)

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_SEPARATOR_RE = re.compile(r"[,、，¥￥\s]")
_MINUS_RE = re.compile(r"[−ー－‐﹣]")
_TRIANGLE_RE = re.compile(r"^[△▲]")
_PAREN_NEG_RE = re.compile(r"^\((.+)\)$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")

# Longest suffix first: 百万円 must win over 円.
_UNIT_SUFFIXES: tuple[tuple[re.Pattern[str], AmountUnit], ...] = (
    (re.compile(r"億円?(?=[)）]?$)"), AmountUnit.HUNDRED_MILLION_YEN),
    (re.compile(r"百[万萬]円?(?=[)）]?$)"), AmountUnit.MILLION_YEN),
    (re.compile(r"千円?(?=[)）]?$)"), AmountUnit.THOUSAND_YEN),
    (re.compile(r"円(?=[)）]?$)"), AmountUnit.YEN),
)

UNIT_PATTERNS: tuple[tuple[re.Pattern[str], AmountUnit], ...] = (
    (re.compile(r"単位\s*[：:]\s*億円|[（(]\s*億円\s*[）)]"), AmountUnit.HUNDRED_MILLION_YEN),
    (re.compile(r"単位\s*[：:]\s*百[万萬]円|[（(]\s*百[万萬]円\s*[）)]"), AmountUnit.MILLION_YEN),
    (re.compile(r"単位\s*[：:]\s*千円|[（(]\s*千円\s*[）)]"), AmountUnit.THOUSAND_YEN),
    (re.compile(r"単位\s*[：:]\s*円|[（(]\s*円\s*[）)]"), AmountUnit.YEN),
)

ABNORMAL_AMOUNT_YEN = 100_000_000_000_000


def _split_unit(text: str) -> tuple[str, AmountUnit | None]:
    for pattern, unit in _UNIT_SUFFIXES:
        if pattern.search(text):
            return pattern.sub("", text, count=1), unit
    return text, None


def parse_amount(text: str, default_unit: AmountUnit = AmountUnit.YEN) -> Amount:
    """Parse a Japanese-formatted figure such as ``"(1,234)円"`` or ``"123百万円"``.

    ``default_unit`` applies when the token carries no unit suffix, which is
    the usual case inside a table headed ``（単位：百万円）``.

    Raises InvalidAmountFormat when the token is not a finite number.
    """
    original = text
    cleaned = _SEPARATOR_RE.sub("", text)

    cleaned, unit = _split_unit(cleaned)
    if unit is None:
        unit = default_unit

    cleaned = cleaned.translate(_FULLWIDTH_TABLE)
    cleaned = _MINUS_RE.sub("-", cleaned)

    negative = False
    if _TRIANGLE_RE.match(cleaned):
        cleaned = cleaned[1:]
        negative = True

    m = _PAREN_NEG_RE.match(cleaned)
    if m:
        cleaned = m.group(1)
        negative = True

    if not _NUMBER_RE.match(cleaned):
        raise InvalidAmountFormat(f"無効な金額形式: {original}")

    value = float(cleaned)
    if not math.isfinite(value):
        raise InvalidAmountFormat(f"無効な金額形式: {original}")
    if negative:
        value = -abs(value)

    return Amount(value=value, unit=unit, original=original)


def try_parse_amount(text: str, default_unit: AmountUnit = AmountUnit.YEN) -> Amount | None:
    """Line-item variant of parse_amount: ``None`` instead of an exception."""
    try:
        return parse_amount(text, default_unit)
    except InvalidAmountFormat:
        return None


def to_yen(amount: Amount) -> float:
    """Convert an amount to its value in yen."""
    return amount.value * amount.unit.multiplier


def detect_unit(text: str) -> AmountUnit | None:
    """Find a declared unit header such as ``（単位：百万円）`` in text."""
    for pattern, unit in UNIT_PATTERNS:
        if pattern.search(text):
            return unit
    return None


def validate_amount(amount: Amount, context: str = "") -> None:
    """Reject non-finite amounts and log implausibly large ones."""
    if not math.isfinite(amount.value):
        raise InvalidAmountFormat(f"無効な金額: {context} - {amount.value}")

    yen_value = to_yen(amount)
    if abs(yen_value) > ABNORMAL_AMOUNT_YEN:
        logger.warning("abnormally large amount: %s - %s yen", context, yen_value)


def clean_text(text: str) -> str:
    """Collapse line breaks, tabs and whitespace runs into single spaces."""
    text = re.sub(r"[\r\n\t]+", " ", text)
    return re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Account names
# ---------------------------------------------------------------------------

_ACCOUNT_ALIASES: dict[str, tuple[str, ...]] = {
    # 資産の部
    "現金及び預金": ("現金預金", "現預金", "現金及び現金同等物"),
    "受取手形": (),
    "売掛金": ("売掛債権",),
    "受取手形及び売掛金": (),
    "有価証券": (),
    "商品": (),
    "製品": (),
    "商品及び製品": (),
    "仕掛品": (),
    "原材料": (),
    "原材料及び貯蔵品": (),
    "貯蔵品": (),
    "前払費用": (),
    "繰延税金資産": (),
    "その他流動資産": (),
    "貸倒引当金": (),
    "流動資産合計": (),
    "有形固定資産": (),
    "建物": (),
    "建物及び構築物": (),
    "構築物": (),
    "機械装置": ("機械及び装置",),
    "機械装置及び運搬具": (),
    "車両運搬具": (),
    "工具器具備品": ("工具、器具及び備品",),
    "土地": (),
    "建設仮勘定": (),
    "有形固定資産合計": (),
    "無形固定資産": (),
    "ソフトウェア": ("ソフトウエア",),
    "のれん": (),
    "無形固定資産合計": (),
    "投資その他の資産": (),
    "投資有価証券": (),
    "長期貸付金": (),
    "投資その他の資産合計": (),
    "固定資産合計": (),
    "繰延資産合計": (),
    "資産合計": ("資産の部合計", "総資産"),
    # 負債の部
    "支払手形": (),
    "買掛金": (),
    "支払手形及び買掛金": (),
    "短期借入金": (),
    "1年内返済予定の長期借入金": (),
    "未払金": (),
    "未払費用": (),
    "未払法人税等": (),
    "賞与引当金": (),
    "その他流動負債": (),
    "流動負債合計": (),
    "長期借入金": (),
    "社債": (),
    "退職給付引当金": (),
    "退職給付に係る負債": (),
    "固定負債合計": (),
    "負債合計": ("負債の部合計",),
    # 純資産の部
    "資本金": (),
    "資本剰余金": (),
    "利益剰余金": (),
    "自己株式": (),
    "株主資本合計": (),
    "その他有価証券評価差額金": (),
    "その他の包括利益累計額合計": (),
    "新株予約権": (),
    "非支配株主持分": (),
    "純資産合計": ("純資産の部合計",),
    "負債純資産合計": ("負債及び純資産合計",),
    # 損益計算書
    "売上高": ("営業収益", "売上収益"),
    "売上原価": (),
    "売上総利益": (),
    "販売費及び一般管理費": ("販管費",),
    "営業利益": (),
    "営業損失": (),
    "営業外収益": (),
    "受取利息": (),
    "受取配当金": (),
    "営業外費用": (),
    "支払利息": (),
    "経常利益": (),
    "経常損失": (),
    "特別利益": (),
    "特別損失": (),
    "税金等調整前当期純利益": ("税引前当期純利益",),
    "法人税等": ("法人税、住民税及び事業税",),
    "法人税等調整額": (),
    "当期純利益": (),
    "当期純損失": (),
    "親会社株主に帰属する当期純利益": (),
    # キャッシュ・フロー計算書
    "営業活動によるキャッシュ・フロー": ("営業活動によるキャッシュフロー",),
    "投資活動によるキャッシュ・フロー": ("投資活動によるキャッシュフロー",),
    "財務活動によるキャッシュ・フロー": ("財務活動によるキャッシュフロー",),
    "減価償却費": (),
    "小計": (),
    "利息及び配当金の受取額": (),
    "利息の支払額": (),
    "法人税等の支払額": (),
    "有形固定資産の取得による支出": (),
    "長期借入れによる収入": (),
    "配当金の支払額": (),
    "現金及び現金同等物の増減額": ("現金及び現金同等物の増加額", "現金及び現金同等物の減少額"),
    "現金及び現金同等物の期首残高": (),
    "現金及び現金同等物の期末残高": (),
}


def _build_account_mapping() -> dict[str, str]:
    mapping: dict[str, str] = {}
    for canonical, aliases in _ACCOUNT_ALIASES.items():
        for label in (canonical, *aliases):
            if label in mapping and mapping[label] != canonical:
                raise ValueError(f"Alias collision detected: {label}")
            mapping[label] = canonical
    return mapping


ACCOUNT_MAPPING = MappingProxyType(_build_account_mapping())

ACCOUNT_NAMES_EN = MappingProxyType({
    "現金及び預金": "Cash and deposits",
    "受取手形": "Notes receivable",
    "売掛金": "Accounts receivable",
    "商品": "Merchandise",
    "製品": "Finished goods",
    "仕掛品": "Work in process",
    "原材料": "Raw materials",
    "流動資産合計": "Total current assets",
    "有形固定資産": "Property, plant and equipment",
    "建物": "Buildings",
    "土地": "Land",
    "無形固定資産": "Intangible assets",
    "ソフトウェア": "Software",
    "のれん": "Goodwill",
    "投資有価証券": "Investment securities",
    "固定資産合計": "Total non-current assets",
    "資産合計": "Total assets",
    "支払手形": "Notes payable",
    "買掛金": "Accounts payable",
    "短期借入金": "Short-term borrowings",
    "流動負債合計": "Total current liabilities",
    "長期借入金": "Long-term borrowings",
    "社債": "Bonds payable",
    "固定負債合計": "Total non-current liabilities",
    "負債合計": "Total liabilities",
    "資本金": "Share capital",
    "資本剰余金": "Capital surplus",
    "利益剰余金": "Retained earnings",
    "自己株式": "Treasury shares",
    "純資産合計": "Total net assets",
    "売上高": "Net sales",
    "売上原価": "Cost of sales",
    "売上総利益": "Gross profit",
    "販売費及び一般管理費": "Selling, general and administrative expenses",
    "営業利益": "Operating income",
    "営業外収益": "Non-operating income",
    "営業外費用": "Non-operating expenses",
    "経常利益": "Ordinary income",
    "特別利益": "Extraordinary income",
    "特別損失": "Extraordinary losses",
    "税金等調整前当期純利益": "Income before income taxes",
    "法人税等": "Income taxes",
    "当期純利益": "Net income",
    "営業活動によるキャッシュ・フロー": "Net cash provided by operating activities",
    "投資活動によるキャッシュ・フロー": "Net cash provided by investing activities",
    "財務活動によるキャッシュ・フロー": "Net cash provided by financing activities",
    "現金及び現金同等物の期末残高": "Cash and cash equivalents at end of period",
})

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_account_name(raw_name: str, *, warn_unmapped: bool = True) -> str:
    """Map a raw line-item label to its canonical name.

    Whitespace (full-width included) is removed before an exact lookup.
    Labels missing from the dictionary come back trimmed and are logged,
    at WARNING unless ``warn_unmapped`` is False (group markers).
    """
    trimmed = _WHITESPACE_RE.sub("", raw_name)
    normalized = ACCOUNT_MAPPING.get(trimmed)
    if normalized is not None:
        return normalized

    level = logging.WARNING if warn_unmapped else logging.DEBUG
    logger.log(level, "unmapped account: %s", raw_name)
    return trimmed


def account_name_en(name: str) -> str | None:
    """English label for a canonical account name, when one is known."""
    return ACCOUNT_NAMES_EN.get(name)


def normalize_account_items(items: list[AccountItem]) -> list[AccountItem]:
    """Normalize names across an AccountItem tree."""
    return [
        item.model_copy(update={
            "name": normalize_account_name(item.name),
            "sub_items": normalize_account_items(item.sub_items) if item.sub_items else None,
        })
        for item in items
    ]


_INDUSTRIES = MappingProxyType({
    1: "水産・農林業",
    2: "鉱業",
    3: "建設業",
    4: "食料品",
    5: "繊維製品",
    6: "パルプ・紙",
    7: "化学",
    8: "医薬品",
    9: "石油・石炭製品",
    10: "ゴム製品",
    11: "ガラス・土石製品",
    12: "鉄鋼",
    13: "非鉄金属",
    14: "金属製品",
    15: "機械",
    16: "電気機器",
    17: "輸送用機器",
    18: "精密機器",
    19: "その他製品",
    20: "電気・ガス業",
    21: "陸運業",
    22: "海運業",
    23: "空運業",
    24: "倉庫・運輸関連業",
    25: "情報・通信業",
    26: "卸売業",
    27: "小売業",
    28: "銀行業",
    29: "証券、商品先物取引業",
    30: "保険業",
    31: "その他金融業",
    32: "不動産業",
    33: "サービス業",
})


def industry_name(code: int) -> str:
    """Return the TSE 33-sector name for a sector code."""
    return _INDUSTRIES.get(code, "不明")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

ERA_BASE_YEARS = MappingProxyType({
    "令和": 2018,
    "平成": 1988,
    "昭和": 1925,
    "大正": 1911,
    "明治": 1867,
})

_ERA_YEAR_RE = re.compile(r"(令和|平成|昭和|大正|明治)(\d{1,2}|元)年")

_GREGORIAN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日"),
    re.compile(r"(\d{4})/(\d{1,2})/(\d{1,2})"),
    re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})"),
)


def era_to_western(era: str, era_year: int) -> int:
    return ERA_BASE_YEARS[era] + era_year


def parse_date(text: str) -> date:
    """Parse ``2024年3月31日``, ``2024/03/31``, ``2024-03-31`` or an era date.

    Era years are rewritten to Western years first, so ``令和6年3月31日``
    is matched by the ``YYYY年MM月DD日`` pattern afterwards.
    """
    cleaned = _WHITESPACE_RE.sub("", text).translate(_FULLWIDTH_TABLE)

    m = _ERA_YEAR_RE.search(cleaned)
    if m:
        era_year = 1 if m.group(2) == "元" else int(m.group(2))
        year = era_to_western(m.group(1), era_year)
        cleaned = f"{cleaned[:m.start()]}{year}年{cleaned[m.end():]}"

    for pattern in _GREGORIAN_PATTERNS:
        m = pattern.search(cleaned)
        if m:
            try:
                return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError as exc:
                raise InvalidDateFormat(f"無効な日付形式: {text}") from exc

    raise InvalidDateFormat(f"無効な日付形式: {text}")
