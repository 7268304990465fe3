"""Builders for small statement files used across the tests.

Each builder returns the raw bytes of an upload, laid out the way the real
exports are: a short preamble, the header row, data rows and a footer.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import datetime
from io import BytesIO, StringIO
from typing import Any

from openpyxl import Workbook


def xlsx_bytes(rows: Sequence[Sequence[Any]], *, title: str = "Sheet1") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(list(row))
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def csv_bytes(rows: Sequence[Sequence[Any]], *, encoding: str = "utf-8", delimiter: str = ",") -> bytes:
    buf = StringIO()
    writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    return buf.getvalue().encode(encoding)


CAL_HEADER = [
    "תאריך\nעסקה",
    "שם בית עסק",
    "סכום עסקה",
    "סכום חיוב",
    "סוג עסקה",
    "ענף",
    "הערות",
]


def cal_rows(
    *,
    billing_line: str | None = "עסקאות לחיוב ב-10/11/2025: 1,234.50 ₪",
    data: Sequence[Sequence[Any]] | None = None,
) -> list[list[Any]]:
    """A CAL export: title, card line, billing line in A3, header in row 5."""

    if data is None:
        data = [
            [datetime(2025, 10, 3), "שופרסל דיל", 250.4, 250.4, "רגילה", "מזון", None],
            [datetime(2025, 10, 7), "פז דלק", 180, 180, "רגילה", "רכב", None],
            [datetime(2025, 10, 12), "איקאה", 1200, 400, "תשלומים", "ריהוט", "תשלום 1 מתוך 3"],
            [datetime(2025, 10, 20), "החזר ביטוח", -150, -150, "זיכוי", "ביטוח", None],
        ]
    rows: list[list[Any]] = [
        ["פירוט עסקאות"],
        ["כרטיס ויזה"],
        [billing_line] if billing_line else [],
        [],
        list(CAL_HEADER),
    ]
    rows.extend(list(r) for r in data)
    rows.append([None, 'סה"כ', None, 1880.4])
    return rows


def cal_xlsx(**kwargs: Any) -> bytes:
    return xlsx_bytes(cal_rows(**kwargs))


MAX_HEADER = ["תאריך עסקה", "שם בית העסק", "קטגוריה", "4 ספרות אחרונות", "סוג עסקה", "סכום חיוב"]


def max_xlsx(*, data: Sequence[Sequence[Any]] | None = None) -> bytes:
    """A MAX export carrying two cards in its last-4-digits column."""

    if data is None:
        data = [
            [datetime(2025, 10, 4), "רמי לוי", "מזון", "1111", "רגילה", 320],
            [datetime(2025, 10, 9), "סונול", "רכב", "2222", "רגילה", 210.5],
            [datetime(2025, 10, 15), "ארומה", "מסעדות", "1111", "רגילה", 48],
        ]
    rows: list[list[Any]] = [
        ["כל המשתמשים (2)"],
        ["עסקאות לחיוב ב-10/11/2025"],
        [],
        list(MAX_HEADER),
    ]
    rows.extend(list(r) for r in data)
    return xlsx_bytes(rows)


def generic_csv(
    *,
    preamble: str | None = "Charges for 10/11/2025",
    encoding: str = "utf-8",
    delimiter: str = ",",
) -> bytes:
    rows: list[list[Any]] = []
    if preamble:
        rows.append([preamble])
        rows.append([])
    rows.append(["Date", "Merchant", "Amount", "Currency", "Notes"])
    rows.append(["05/10/2025", "Coffee Bar", "18.50", "ILS", ""])
    rows.append(["06/10/2025", "Online Store", "$42.00", "", ""])
    rows.append(["09/10/2025", "Refund Shop", "-30.00", "", ""])
    rows.append(["", "", "", "", "end of report"])
    return csv_bytes(rows, encoding=encoding, delimiter=delimiter)


BANK_EXTENDED_HEADER = [
    "תאריך",
    "תאריך ערך",
    "הפעולה",
    "פרטים",
    "אסמכתא",
    "חובה",
    "זכות",
    "יתרה",
    "לטובת",
    "עבור",
]


def bank_extended_xlsx(*, data: Sequence[Sequence[Any]] | None = None) -> bytes:
    if data is None:
        data = [
            ["15/12/2025", "15/12/2025", "העברה", "משכורת", "12345", None, 10000, 25000.5, None, None],
            ["16/12/2025", "17/12/2025", "חיוב", "כרטיס אשראי", "555", 1880.4, None, 23120.1, "כאל", "דצמבר"],
        ]
    rows: list[list[Any]] = [
        ["תנועות בחשבון"],
        [],
        [],
        ["מספר חשבון 12-640-361645 תאריך הפקה 16.12.2025"],
        [],
        [None, None, None, None, None, None, "23,120.10"],
        [],
        list(BANK_EXTENDED_HEADER),
    ]
    rows.extend(list(r) for r in data)
    return xlsx_bytes(rows)


BANK_LEGACY_HEADER = ["תאריך", "תאריך ערך", "תיאור", "אסמכתא", "חובה", "זכות", "יתרה"]


def bank_legacy_xlsx() -> bytes:
    rows: list[list[Any]] = [
        ["עובר ושב"],
        [],
        ["חשבון: 036-606197 תאריך: 11/12/2025"],
        [],
        [],
        [None, None, None, None, None, None, None, None, 5400],
        list(BANK_LEGACY_HEADER),
        [datetime(2025, 12, 1), datetime(2025, 12, 1), "ארנונה", "901", 600, None, 5400],
        [None, None, None, None, None, None, None],
        [datetime(2025, 12, 3), datetime(2025, 12, 4), "העברה מחשבון", "902", None, 1000, 6400],
    ]
    return xlsx_bytes(rows)


__all__ = [
    "BANK_EXTENDED_HEADER",
    "BANK_LEGACY_HEADER",
    "CAL_HEADER",
    "bank_extended_xlsx",
    "bank_legacy_xlsx",
    "cal_rows",
    "cal_xlsx",
    "csv_bytes",
    "generic_csv",
    "xlsx_bytes",
]
