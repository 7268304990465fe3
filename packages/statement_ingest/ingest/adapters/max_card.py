"""MAX (formerly Leumi Card) export.

Distinguished by "שם בית העסק" (with the definite article), a category column
and a "last 4 digits" card column, which lets one file carry several cards.
"""

from __future__ import annotations

from ...headers import CARD_HEADER_WINDOW, HeaderTemplate, marker, synonyms
from ...models import FieldRole, StatementFormat
from .common import AMOUNT_MARKER, CARD_SECONDARY_ROLES

TEMPLATE = HeaderTemplate(
    format=StatementFormat.CARD_MAX,
    roles=(
        synonyms(FieldRole.TRANSACTION_DATE, "תאריך עסקה", ("תאריך", "עסקה")),
        synonyms(FieldRole.MERCHANT_NAME, "בית העסק"),
        *CARD_SECONDARY_ROLES,
    ),
    markers=(
        marker("תאריך עסקה", FieldRole.TRANSACTION_DATE),
        marker("שם בית העסק", FieldRole.MERCHANT_NAME),
        AMOUNT_MARKER,
    ),
    window=CARD_HEADER_WINDOW,
)
