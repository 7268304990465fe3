"""Accounting-month extraction.

Card statements print their *billing* month near the top of the sheet ("עסקאות
לחיוב ב-10/11/2025", "11/2025", "נובמבר 2025"). The billing month covers the
previous calendar month's charges, so the resolved accounting month is the
extracted month shifted back by exactly one (January rolls to December of the
prior year).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from .errors import InvalidMonthError, MonthYearNotFoundError, cell_ref
from .ingest.workbook import Sheet
from .logging_setup import get_logger
from .models import MAX_ASSIGNED_YEAR, MIN_ASSIGNED_YEAR, MonthKey

logger = get_logger("statement_ingest.month_year")

HEBREW_MONTHS: dict[str, int] = {
    "ינואר": 1,
    "פברואר": 2,
    "מרץ": 3,
    "מרס": 3,
    "אפריל": 4,
    "מאי": 5,
    "יוני": 6,
    "יולי": 7,
    "אוגוסט": 8,
    "ספטמבר": 9,
    "אוקטובר": 10,
    "נובמבר": 11,
    "דצמבר": 12,
}

# Excel: A3 first (where issuers print the billing line), then row 2, then row 1.
EXCEL_CANDIDATES: tuple[tuple[int, int], ...] = tuple(
    (r, c) for r in (2, 1, 0) for c in range(5)
)
# CSV exports put the billing line somewhere in their preamble.
CSV_CANDIDATES: tuple[tuple[int, int], ...] = tuple((r, c) for r in range(10) for c in range(5))

_DMY_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_EXACT_MY_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_ANY_MY_RE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{4})(?![\d/])")
_MONTH_NAME_RE = re.compile(
    "(" + "|".join(sorted(HEBREW_MONTHS, key=len, reverse=True)) + r")\s*(\d{4})"
)


def _valid(year: int, month: int) -> MonthKey | None:
    if 1 <= month <= 12 and MIN_ASSIGNED_YEAR <= year <= MAX_ASSIGNED_YEAR:
        return MonthKey(year, month)
    return None


def _from_day_month_year(text: str) -> MonthKey | None:
    for m in _DMY_RE.finditer(text):
        if key := _valid(int(m.group(3)), int(m.group(2))):
            return key
    return None


def _from_month_year(text: str) -> MonthKey | None:
    if m := _EXACT_MY_RE.match(text):
        return _valid(int(m.group(2)), int(m.group(1)))
    for m in _ANY_MY_RE.finditer(text):
        if key := _valid(int(m.group(2)), int(m.group(1))):
            return key
    return None


def _from_month_name(text: str) -> MonthKey | None:
    for m in _MONTH_NAME_RE.finditer(text):
        if key := _valid(int(m.group(2)), HEBREW_MONTHS[m.group(1)]):
            return key
    return None


MONTH_PATTERNS: tuple[Callable[[str], MonthKey | None], ...] = (
    _from_day_month_year,
    _from_month_year,
    _from_month_name,
)


def parse_month_year_text(text: str) -> MonthKey | None:
    """Return the first (year, month) found in ``text`` by the ordered patterns."""

    text = text.strip()
    if not text:
        return None
    for pattern in MONTH_PATTERNS:
        if key := pattern(text):
            return key
    return None


def _locate_month_year(
    sheet: Sheet, candidates: Iterable[tuple[int, int]] | None
) -> tuple[MonthKey, str] | None:
    if candidates is None:
        candidates = CSV_CANDIDATES if sheet.kind == "csv" else EXCEL_CANDIDATES
    for row, col in candidates:
        if key := parse_month_year_text(sheet.text(row, col)):
            where = cell_ref(row, col)
            logger.debug("Billing month %s found in %s", key, where)
            return key, where
    return None


def extract_month_year(
    sheet: Sheet, candidates: Iterable[tuple[int, int]] | None = None
) -> MonthKey | None:
    """Return the statement's self-reported billing month, or ``None``."""

    found = _locate_month_year(sheet, candidates)
    return found[0] if found else None


def resolve_assigned_month(
    sheet: Sheet, *, year: int | None = None, month: int | None = None
) -> MonthKey:
    """Resolve the accounting month for a card upload.

    An explicit ``year``/``month`` pair is taken as the accounting month as-is.
    Otherwise the billing month is extracted from the sheet and shifted back by
    one month.

    Raises
    ------
    InvalidMonthError
        When only one of ``year``/``month`` is given or either is out of range,
        or when the shifted billing month would fall before the supported range.
    MonthYearNotFoundError
        When no candidate cell carries a recognizable month.
    """

    if year is not None or month is not None:
        if year is None or month is None:
            raise InvalidMonthError("Both year and month must be provided together")
        return MonthKey(year, month)

    found = _locate_month_year(sheet, None)
    if found is None:
        searched = "the first 10 lines" if sheet.kind == "csv" else "cells A3 or C2"
        raise MonthYearNotFoundError(searched)
    billing, where = found
    if billing == MonthKey(MIN_ASSIGNED_YEAR, 1):
        raise InvalidMonthError(
            f"Billing month {billing} in {where} is too early: its accounting month "
            f"would fall before {MIN_ASSIGNED_YEAR}"
        )
    assigned = billing.previous()
    logger.info("Billing month %s assigned to accounting month %s", billing, assigned)
    return assigned


__all__ = [
    "CSV_CANDIDATES",
    "EXCEL_CANDIDATES",
    "HEBREW_MONTHS",
    "extract_month_year",
    "parse_month_year_text",
    "resolve_assigned_month",
]
