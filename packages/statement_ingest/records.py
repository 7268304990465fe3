"""Row parsing: raw cells + header map → canonical records.

A row is *skipped* (reported, not failed) when it has no date, no
merchant/description, or no usable non-zero amount; issuer exports interleave
subtotal, blank and footer lines with real transactions. Skip checks run
before the transaction date is parsed: once a row is known to be a
transaction, an unreadable transaction date is fatal because the date drives
ordering and reconciliation.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .cards import last4
from .dates import parse_date, parse_optional_date
from .errors import DateParseError, cell_ref
from .logging_setup import get_logger
from .models import (
    CanonicalRecord,
    Currency,
    FieldRole,
    HeaderMap,
    MonthKey,
    RawCell,
    SkippedRow,
    StatementRow,
    TransactionType,
)

logger = get_logger("statement_ingest.records")

type SheetRow = Mapping[int, RawCell]

DEFAULT_CURRENCY: Currency = "ILS"
EXCEL_SOURCE = "Excel Import"
CSV_SOURCE = "CSV Import"

# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

CURRENCY_ALIASES: dict[str, Currency] = {
    "ils": "ILS",
    "nis": "ILS",
    "₪": "ILS",
    'ש"ח': "ILS",
    "ש״ח": "ILS",
    "שח": "ILS",
    "שקל": "ILS",
    "usd": "USD",
    "$": "USD",
    "דולר": "USD",
    "eur": "EUR",
    "€": "EUR",
    "יורו": "EUR",
}

# Glyph/code → currency, checked against the raw amount text.
AMOUNT_CURRENCY_MARKERS: tuple[tuple[str, Currency], ...] = (
    ("€", "EUR"),
    ("EUR", "EUR"),
    ("$", "USD"),
    ("USD", "USD"),
    ("₪", "ILS"),
    ("NIS", "ILS"),
    ("ILS", "ILS"),
)

INCOME_TYPE_MARKERS = ("הכנסה", "זיכוי", "income", "credit", "refund")

INSTALLMENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"תשלום\s+(\d+)\s+מתוך\s+(\d+)"),
    re.compile(r"installment\s+(\d+)\s+of\s+(\d+)", re.I),
)

_AMOUNT_NOISE_RE = re.compile(r"[₪$€,\s\u200e\u200f\u00a0]|ILS|NIS|USD|EUR|ש\"ח|ש״ח", re.I)


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def parse_amount(raw: Any) -> Decimal | None:
    """Parse a signed amount from a cell value.

    Currency glyphs and codes, thousands separators and whitespace are
    stripped; a leading/trailing minus or surrounding parentheses mark a
    negative value. Returns ``None`` for empty input and raises ``ValueError``
    when the text is not a number.
    """

    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"invalid amount: {raw!r}")
    if isinstance(raw, (int, float, Decimal)):
        d = Decimal(str(raw))
    else:
        s = _AMOUNT_NOISE_RE.sub("", str(raw))
        if not s:
            return None
        negative = False
        if s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
        if s.endswith("-"):
            negative = True
            s = s[:-1]
        if s.startswith("-"):
            negative = True
            s = s[1:]
        elif s.startswith("+"):
            s = s[1:]
        try:
            d = Decimal(s)
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {raw!r}") from exc
        d = -d if negative else d
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return d


def normalize_currency(raw: str | None) -> Currency | None:
    if not raw:
        return None
    key = raw.strip().casefold()
    if key in CURRENCY_ALIASES:
        return CURRENCY_ALIASES[key]
    for alias, code in CURRENCY_ALIASES.items():
        if alias in key:
            return code
    return None


def currency_from_amount_text(text: str) -> Currency | None:
    upper = text.upper()
    for marker, code in AMOUNT_CURRENCY_MARKERS:
        if marker in upper:
            return code
    return None


def parse_installments(column_value: Any, notes: str | None) -> int | None:
    """Installment count: the dedicated column first, then "X of Y" in the notes (keeps Y)."""

    if column_value is not None:
        try:
            count = int(Decimal(str(column_value).strip()))
        except (InvalidOperation, ValueError):
            count = None
        if count is not None and count > 0:
            return count
    if notes:
        for pattern in INSTALLMENT_PATTERNS:
            if m := pattern.search(notes):
                total = int(m.group(2))
                return total if total > 0 else None
    return None


def infer_type(signed_amount: Decimal, type_text: str | None) -> TransactionType:
    """Negative raw amounts are always income; otherwise the type column decides."""

    if signed_amount < 0:
        return TransactionType.INCOME
    if type_text:
        folded = type_text.casefold()
        if any(m in folded for m in INCOME_TYPE_MARKERS):
            return TransactionType.INCOME
    return TransactionType.EXPENSE


# ---------------------------------------------------------------------------
# Row access
# ---------------------------------------------------------------------------


class _RowView:
    """Role-addressed access to one row."""

    __slots__ = ("row", "columns")

    def __init__(self, row: SheetRow, header_map: HeaderMap) -> None:
        self.row = row
        self.columns: dict[FieldRole, int] = {role: col for col, role in header_map.items()}

    def cell(self, role: FieldRole) -> RawCell | None:
        col = self.columns.get(role)
        if col is None:
            return None
        cell = self.row.get(col)
        if cell is None or not cell.text:
            return None
        return cell

    def text(self, role: FieldRole) -> str | None:
        cell = self.cell(role)
        if cell is None:
            return None
        return re.sub(r"\s+", " ", cell.text)

    def value(self, role: FieldRole) -> Any:
        cell = self.cell(role)
        return None if cell is None else cell.value


def _amount_cell(view: _RowView) -> RawCell | None:
    return view.cell(FieldRole.AMOUNT) or view.cell(FieldRole.TRANSACTION_AMOUNT)


def _signed_amount(cell: RawCell) -> Decimal | None:
    try:
        return parse_amount(cell.value)
    except ValueError:
        return None


def _reference(cell: RawCell | None) -> str | None:
    if cell is None:
        return None
    value = cell.value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return cell.text


# ---------------------------------------------------------------------------
# Card rows
# ---------------------------------------------------------------------------


def parse_row(
    row: SheetRow,
    header_map: HeaderMap,
    fallback_card_number: str | None,
    *,
    assigned_month: MonthKey,
    row_index: int = -1,
    source: str = EXCEL_SOURCE,
) -> CanonicalRecord | SkippedRow:
    """Turn one data row into a :class:`CanonicalRecord` or a :class:`SkippedRow`.

    Raises
    ------
    DateParseError
        When the row is a transaction but its date cannot be read; the error
        names the offending cell.
    """

    view = _RowView(row, header_map)

    date_cell = view.cell(FieldRole.TRANSACTION_DATE)
    if date_cell is None:
        return SkippedRow(row_index, "missing transaction date")
    merchant = view.text(FieldRole.MERCHANT_NAME) or view.text(FieldRole.DESCRIPTION)
    if not merchant:
        return SkippedRow(row_index, "missing merchant name")
    amount_cell = _amount_cell(view)
    signed = _signed_amount(amount_cell) if amount_cell is not None else None
    if signed is None or signed == 0:
        return SkippedRow(row_index, "missing or zero amount")

    try:
        transaction_date = parse_date(date_cell.value)
    except DateParseError as exc:
        raise exc.at(cell_ref(date_cell.row, date_cell.col)) from exc
    billing_date = parse_optional_date(view.value(FieldRole.BILLING_DATE), transaction_date)

    card_cell = view.cell(FieldRole.CARD_NUMBER)
    card_number = (last4(card_cell.value) if card_cell else None) or fallback_card_number

    notes = view.text(FieldRole.NOTES)
    currency = (
        normalize_currency(view.text(FieldRole.CURRENCY))
        or currency_from_amount_text(amount_cell.display)
        or DEFAULT_CURRENCY
    )

    return CanonicalRecord(
        transaction_date=transaction_date,
        billing_date=billing_date,
        assigned_month=assigned_month.first_day(),
        amount=abs(signed),
        type=infer_type(signed, view.text(FieldRole.ACTION_TYPE)),
        merchant_name=merchant,
        currency=currency,
        card_number=card_number,
        reference_number=_reference(view.cell(FieldRole.REFERENCE)),
        branch=view.text(FieldRole.BRANCH),
        notes=notes,
        installments=parse_installments(view.value(FieldRole.INSTALLMENTS), notes),
        source=source,
    )


def parse_card_rows(
    rows: Mapping[int, SheetRow] | list[tuple[int, SheetRow]],
    header_map: HeaderMap,
    fallback_card_number: str | None,
    *,
    assigned_month: MonthKey,
    source: str = EXCEL_SOURCE,
) -> tuple[list[CanonicalRecord], list[SkippedRow], int]:
    """Parse every data row; return ``(records, skipped, raw_row_count)``."""

    items = rows.items() if isinstance(rows, Mapping) else rows
    records: list[CanonicalRecord] = []
    skipped: list[SkippedRow] = []
    raw = 0
    for index, row in items:
        if not any(c.text for c in row.values()):
            continue
        raw += 1
        result = parse_row(
            row,
            header_map,
            fallback_card_number,
            assigned_month=assigned_month,
            row_index=index,
            source=source,
        )
        if isinstance(result, SkippedRow):
            skipped.append(result)
        else:
            records.append(result)
    if skipped:
        logger.info(
            "Parsed %d of %d rows; skipped %d (%s)",
            len(records),
            raw,
            len(skipped),
            ", ".join(sorted({s.reason for s in skipped})),
        )
    return records, skipped, raw


# ---------------------------------------------------------------------------
# Bank rows
# ---------------------------------------------------------------------------


def _optional_amount(view: _RowView, role: FieldRole) -> Decimal | None:
    cell = view.cell(role)
    if cell is None:
        return None
    try:
        return parse_amount(cell.value)
    except ValueError:
        logger.warning(
            "Ignoring unreadable amount %r in %s", cell.display, cell_ref(cell.row, cell.col)
        )
        return None


def parse_bank_row(
    row: SheetRow, header_map: HeaderMap, *, row_index: int = -1
) -> StatementRow | SkippedRow:
    """Parse one bank statement line.

    The value date is load-bearing (rows without one are skipped, unreadable
    ones fail); the posting date is cosmetic and defaults to the value date.
    """

    view = _RowView(row, header_map)
    balance = _optional_amount(view, FieldRole.BALANCE)
    debit = _optional_amount(view, FieldRole.DEBIT)
    credit = _optional_amount(view, FieldRole.CREDIT)
    description = view.text(FieldRole.DESCRIPTION)
    if balance is None and debit is None and credit is None and not description:
        return SkippedRow(row_index, "empty statement line")

    value_cell = view.cell(FieldRole.VALUE_DATE) or view.cell(FieldRole.TRANSACTION_DATE)
    if value_cell is None:
        return SkippedRow(row_index, "missing value date")
    try:
        value_date: datetime = parse_date(value_cell.value)
    except DateParseError as exc:
        raise exc.at(cell_ref(value_cell.row, value_cell.col)) from exc
    posted = parse_optional_date(view.value(FieldRole.TRANSACTION_DATE), value_date)

    return StatementRow(
        value_date=value_date,
        date=posted or value_date,
        balance=balance,
        debit=debit,
        credit=credit,
        reference=_reference(view.cell(FieldRole.REFERENCE)),
        description=description,
        action_type=view.text(FieldRole.ACTION_TYPE),
        for_benefit_of=view.text(FieldRole.FOR_BENEFIT_OF),
        for_=view.text(FieldRole.FOR),
    )


__all__ = [
    "CSV_SOURCE",
    "EXCEL_SOURCE",
    "currency_from_amount_text",
    "infer_type",
    "normalize_currency",
    "parse_amount",
    "parse_bank_row",
    "parse_card_rows",
    "parse_installments",
    "parse_row",
]
