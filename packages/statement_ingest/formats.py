"""Statement format detection.

Bank statements carry a fixed landmark: the extended layout prints
"מספר חשבון ... תאריך הפקה ..." in A4, while the legacy layout prints
"חשבון: ... תאריך: ..." in A3. Card exports have no landmark; the issuer is
whichever template's header vocabulary matches first, so for cards detection
and header classification are the same pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .dates import parse_optional_date
from .errors import FormatDetectionError, HeaderNotFoundError, cell_ref
from .headers import HeaderMatch, find_header_row, scan_header
from .ingest.adapters import BANK_TEMPLATES, CARD_TEMPLATES
from .ingest.workbook import Sheet
from .logging_setup import get_logger
from .models import HeaderMap, StatementFormat, StatementHeader
from .records import parse_amount

logger = get_logger("statement_ingest.formats")


@dataclass(frozen=True, slots=True)
class Landmark:
    row: int
    col: int

    @property
    def ref(self) -> str:
        return cell_ref(self.row, self.col)


# Extended layout: account line in A4, balance in G6.
EXTENDED_ACCOUNT_CELL = Landmark(3, 0)
EXTENDED_BALANCE_CELL = Landmark(5, 6)
EXTENDED_MARKERS = ("מספר חשבון", "תאריך הפקה")
# Legacy layout: account line in A3, balance in I6.
LEGACY_ACCOUNT_CELL = Landmark(2, 0)
LEGACY_BALANCE_CELL = Landmark(5, 8)

_LEGACY_ACCOUNT_RE = re.compile(r"חשבון:\s*([\d-]+)")
_LEGACY_DATE_RE = re.compile(r"תאריך:\s*(\d{1,2}/\d{1,2}/\d{4})")
_EXTENDED_ACCOUNT_RE = re.compile(r"מספר חשבון\s+([\d-]+)")
_EXTENDED_DATE_RE = re.compile(r"תאריך הפקה\s+(\d{1,2}\.\d{1,2}\.\d{4})")


@dataclass(frozen=True, slots=True)
class CardLayout:
    """Resolved card template: format plus its header row and column map."""

    format: StatementFormat
    header_row: int
    header_map: HeaderMap


def detect_bank_format(sheet: Sheet) -> StatementFormat:
    """Select the bank template from the A4 landmark, defaulting to the legacy layout."""

    if sheet.is_empty:
        raise FormatDetectionError(
            "The bank statement is empty; expected account details in "
            f"{LEGACY_ACCOUNT_CELL.ref} or {EXTENDED_ACCOUNT_CELL.ref}"
        )
    landmark = sheet.text(EXTENDED_ACCOUNT_CELL.row, EXTENDED_ACCOUNT_CELL.col)
    if all(m in landmark for m in EXTENDED_MARKERS):
        fmt = StatementFormat.BANK_EXTENDED
    else:
        fmt = StatementFormat.BANK_LEGACY
        if "חשבון" not in sheet.text(LEGACY_ACCOUNT_CELL.row, LEGACY_ACCOUNT_CELL.col):
            logger.warning(
                "No account landmark in %s or %s; assuming the legacy layout",
                LEGACY_ACCOUNT_CELL.ref,
                EXTENDED_ACCOUNT_CELL.ref,
            )
    logger.info("Detected bank statement format %s", fmt)
    return fmt


def find_bank_header(sheet: Sheet, fmt: StatementFormat) -> HeaderMatch:
    return find_header_row(sheet.rows_by_index(), BANK_TEMPLATES[fmt])


def detect_card_format(sheet: Sheet) -> CardLayout:
    """Match the card templates in order; the first satisfied header predicate wins."""

    rows = sheet.rows_by_index()
    failures: list[tuple[list[str], int, int]] = []
    for template in CARD_TEMPLATES:
        match, missing = scan_header(rows, template)
        if match is not None:
            logger.info("Detected card format %s (header row %d)", template.format, match.row + 1)
            return CardLayout(
                format=template.format, header_row=match.row, header_map=match.header_map
            )
        failures.append((missing, template.header_start, template.window - 1))
    # Report the template that came closest; ties go to the earlier one.
    missing, first, last = min(failures, key=lambda f: len(f[0]))
    raise HeaderNotFoundError(missing, first_row=first, last_row=last)


def _landmark_balance(sheet: Sheet, cell: Landmark) -> Decimal | None:
    raw = sheet.cell(cell.row, cell.col)
    if raw is None:
        return None
    try:
        return parse_amount(raw.value)
    except ValueError:
        logger.warning("Unreadable balance %r in %s", raw.display, cell.ref)
        return None


def read_statement_header(sheet: Sheet, fmt: StatementFormat) -> StatementHeader:
    """Read account number, issue date and balance from the template's landmark cells.

    Missing or malformed metadata yields ``None`` fields; nothing defaults to
    the current time.
    """

    account: str | None = None
    issued: datetime | None = None
    if fmt is StatementFormat.BANK_EXTENDED:
        text = sheet.text(EXTENDED_ACCOUNT_CELL.row, EXTENDED_ACCOUNT_CELL.col)
        if m := _EXTENDED_ACCOUNT_RE.search(text):
            # "12-640-361645": branch and bank prefixes are dropped.
            account = m.group(1).split("-")[-1]
        if m := _EXTENDED_DATE_RE.search(text):
            issued = parse_optional_date(m.group(1), None)
        balance = _landmark_balance(sheet, EXTENDED_BALANCE_CELL)
    else:
        text = sheet.text(LEGACY_ACCOUNT_CELL.row, LEGACY_ACCOUNT_CELL.col)
        if m := _LEGACY_ACCOUNT_RE.search(text):
            account = m.group(1)
        if m := _LEGACY_DATE_RE.search(text):
            issued = parse_optional_date(m.group(1), None)
        balance = _landmark_balance(sheet, LEGACY_BALANCE_CELL)
    return StatementHeader(account_number=account, statement_date=issued, balance=balance)


__all__ = [
    "CardLayout",
    "detect_bank_format",
    "detect_card_format",
    "find_bank_header",
    "read_statement_header",
]
