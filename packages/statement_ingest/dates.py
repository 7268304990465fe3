"""Date normalization for statement cells.

Every date that enters the engine passes through :func:`parse_date`, which
accepts the encodings the supported exports actually contain and returns a
timezone-aware ``datetime`` at UTC midnight. Resolution order:

1. native ``date``/``datetime`` values (the calendar date is kept as-is);
2. numeric Excel serials (epoch 1899-12-30, year must land in [1900, 2100]);
3. strings matching the ordered pattern table :data:`DATE_PATTERNS`;
4. a generic day-first parse via :mod:`dateutil`, accepted only when the year
   lands in [1900, 2100].

Day-first ordering is assumed for every ambiguous ``d/m`` form; month-first is
never attempted for strings the pattern table recognizes.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

from dateutil import parser as date_parser

from .errors import DateParseError
from .logging_setup import get_logger

logger = get_logger("statement_ingest.dates")

EXCEL_EPOCH = date(1899, 12, 30)
MIN_YEAR = 1900
MAX_YEAR = 2100
# Two-digit years below this value belong to the 2000s, the rest to the 1900s.
CENTURY_SPLIT = 50


def utc_midnight(value: date | datetime) -> datetime:
    """Return the calendar date of ``value`` as an aware UTC-midnight datetime."""

    d = value.date() if isinstance(value, datetime) else value
    return datetime(d.year, d.month, d.day, tzinfo=UTC)


def expand_two_digit_year(yy: int) -> int:
    return 2000 + yy if yy < CENTURY_SPLIT else 1900 + yy


def _in_range(d: date) -> bool:
    return MIN_YEAR <= d.year <= MAX_YEAR


# ---------------------------------------------------------------------------
# Pattern table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DatePattern:
    name: str
    regex: re.Pattern[str]
    build: Callable[[re.Match[str]], date]


def _dmy(m: re.Match[str]) -> date:
    return date(int(m["y"]), int(m["m"]), int(m["d"]))


def _dmy_short(m: re.Match[str]) -> date:
    return date(expand_two_digit_year(int(m["y"])), int(m["m"]), int(m["d"]))


DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern("dd/mm/yyyy", re.compile(r"^(?P<d>\d{1,2})/(?P<m>\d{1,2})/(?P<y>\d{4})$"), _dmy),
    DatePattern("d/m/yy", re.compile(r"^(?P<d>\d{1,2})/(?P<m>\d{1,2})/(?P<y>\d{2})$"), _dmy_short),
    DatePattern(
        "dd.mm.yy", re.compile(r"^(?P<d>\d{1,2})\.(?P<m>\d{1,2})\.(?P<y>\d{2})$"), _dmy_short
    ),
    DatePattern("dd.mm.yyyy", re.compile(r"^(?P<d>\d{1,2})\.(?P<m>\d{1,2})\.(?P<y>\d{4})$"), _dmy),
    DatePattern("yyyy-mm-dd", re.compile(r"^(?P<y>\d{4})-(?P<m>\d{1,2})-(?P<d>\d{1,2})$"), _dmy),
    DatePattern("dd-mm-yyyy", re.compile(r"^(?P<d>\d{1,2})-(?P<m>\d{1,2})-(?P<y>\d{4})$"), _dmy),
)
"""Ordered string formats; the first matching pattern decides."""


def _match_pattern(token: str) -> date | None:
    for pattern in DATE_PATTERNS:
        m = pattern.regex.match(token)
        if m is None:
            continue
        try:
            return pattern.build(m)
        except ValueError as exc:
            # Matched the shape but names an impossible day/month.
            raise DateParseError(token, f"not a valid {pattern.name} date") from exc
    return None


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


def from_excel_serial(serial: float | int | Decimal) -> datetime:
    """Convert an Excel serial day number to UTC midnight."""

    days = int(serial)
    try:
        d = EXCEL_EPOCH + timedelta(days=days)
    except OverflowError as exc:
        raise DateParseError(serial, "Excel serial out of range") from exc
    if not _in_range(d):
        raise DateParseError(serial, f"Excel serial outside years {MIN_YEAR}-{MAX_YEAR}")
    return utc_midnight(d)


def _parse_text(text: str) -> datetime:
    s = text.strip()
    if not s:
        raise DateParseError(text, "empty value")

    # Exports sometimes append a time of day ("11/12/2025 17:02").
    head = re.split(r"[\sT]", s, maxsplit=1)[0]
    for candidate in dict.fromkeys((s, head)):
        d = _match_pattern(candidate)
        if d is not None:
            if not _in_range(d):
                raise DateParseError(text, f"year outside {MIN_YEAR}-{MAX_YEAR}")
            return utc_midnight(d)

    try:
        parsed = date_parser.parse(s, dayfirst=True)
    except (ValueError, OverflowError) as exc:
        raise DateParseError(text) from exc
    if not _in_range(parsed.date()):
        raise DateParseError(text, f"year outside {MIN_YEAR}-{MAX_YEAR}")
    return utc_midnight(parsed)


def parse_date(value: Any) -> datetime:
    """Normalize a cell value to an aware UTC-midnight ``datetime``.

    Raises
    ------
    DateParseError
        When the value is empty or matches no supported encoding.
    """

    if value is None:
        raise DateParseError(value, "empty value")
    if isinstance(value, (datetime, date)):
        return utc_midnight(value)
    if isinstance(value, bool):
        raise DateParseError(value, "boolean is not a date")
    if isinstance(value, (int, float, Decimal)):
        return from_excel_serial(value)
    if isinstance(value, str):
        return _parse_text(value)
    raise DateParseError(value, f"unsupported type {type(value).__name__}")


def parse_optional_date(value: Any, default: datetime | None) -> datetime | None:
    """Parse a cosmetic date, returning ``default`` when it is missing or invalid."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return parse_date(value)
    except DateParseError as exc:
        logger.warning("Ignoring unparsable date %r: %s", value, exc.reason)
        return default


__all__ = [
    "CENTURY_SPLIT",
    "DATE_PATTERNS",
    "EXCEL_EPOCH",
    "expand_two_digit_year",
    "from_excel_serial",
    "parse_date",
    "parse_optional_date",
    "utc_midnight",
]
