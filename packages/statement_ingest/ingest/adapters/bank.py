"""Checking-account statement templates.

Both layouts share the same columns except for the description and action
labels. The extended layout carries account metadata in A4 ("מספר חשבון ...
תאריך הפקה ...") and its header sits lower in the sheet; the legacy layout
keeps the account line in A3 and its header may start one row earlier.
"""

from __future__ import annotations

from ...headers import BANK_HEADER_WINDOW, HeaderTemplate, marker, synonyms
from ...models import FieldRole, StatementFormat

# Order matters: "תאריך ערך" must be seen before the bare "תאריך".
_SHARED_LEAD = (
    synonyms(FieldRole.BALANCE, "יתרה"),
    synonyms(FieldRole.VALUE_DATE, "תאריך ערך"),
    synonyms(FieldRole.DEBIT, "חובה"),
    synonyms(FieldRole.CREDIT, "זכות"),
    synonyms(FieldRole.REFERENCE, "אסמכתא"),
)
_SHARED_TAIL = (
    synonyms(FieldRole.TRANSACTION_DATE, "תאריך"),
    synonyms(FieldRole.FOR_BENEFIT_OF, "לטובת"),
    synonyms(FieldRole.FOR, "עבור"),
)
_MARKERS = (
    marker("תאריך / תאריך ערך", FieldRole.TRANSACTION_DATE, FieldRole.VALUE_DATE),
    marker("תיאור / פרטים", FieldRole.DESCRIPTION),
    marker("חובה / זכות", FieldRole.DEBIT, FieldRole.CREDIT),
)

EXTENDED_HEADER_START = 2

LEGACY_TEMPLATE = HeaderTemplate(
    format=StatementFormat.BANK_LEGACY,
    roles=(
        *_SHARED_LEAD,
        synonyms(FieldRole.DESCRIPTION, "תיאור", "פרטים"),
        synonyms(FieldRole.ACTION_TYPE, "סוג פעולה", "הפעולה"),
        *_SHARED_TAIL,
    ),
    markers=_MARKERS,
    window=BANK_HEADER_WINDOW,
    header_start=EXTENDED_HEADER_START - 1,
)

EXTENDED_TEMPLATE = HeaderTemplate(
    format=StatementFormat.BANK_EXTENDED,
    roles=(
        *_SHARED_LEAD,
        synonyms(FieldRole.DESCRIPTION, "פרטים", "תיאור"),
        synonyms(FieldRole.ACTION_TYPE, "הפעולה", "סוג פעולה"),
        *_SHARED_TAIL,
    ),
    markers=_MARKERS,
    window=BANK_HEADER_WINDOW,
    header_start=EXTENDED_HEADER_START,
)
