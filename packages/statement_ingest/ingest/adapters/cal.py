"""CAL (Visa CAL) export: transaction date, branch ("ענף") and notes carrying installments."""

from __future__ import annotations

from ...headers import CARD_HEADER_WINDOW, HeaderTemplate, marker, synonyms
from ...models import FieldRole, StatementFormat
from .common import AMOUNT_MARKER, CARD_SECONDARY_ROLES, MERCHANT_MARKER

TEMPLATE = HeaderTemplate(
    format=StatementFormat.CARD_CAL,
    roles=(
        synonyms(FieldRole.TRANSACTION_DATE, "תאריך עסקה", ("תאריך", "עסקה")),
        synonyms(FieldRole.MERCHANT_NAME, "שם בית עסק", ("שם", "בית", "עסק"), "שם בית ע"),
        *CARD_SECONDARY_ROLES,
    ),
    markers=(
        marker("תאריך עסקה", FieldRole.TRANSACTION_DATE),
        MERCHANT_MARKER,
        AMOUNT_MARKER,
    ),
    window=CARD_HEADER_WINDOW,
)
