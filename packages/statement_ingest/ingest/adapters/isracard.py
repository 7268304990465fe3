"""Isracard / Amex-IL export: purchase date ("תאריך רכישה") and voucher numbers."""

from __future__ import annotations

from ...headers import CARD_HEADER_WINDOW, HeaderTemplate, marker, synonyms
from ...models import FieldRole, StatementFormat
from .common import AMOUNT_MARKER, CARD_SECONDARY_ROLES, MERCHANT_MARKER

TEMPLATE = HeaderTemplate(
    format=StatementFormat.CARD_ISRACARD,
    roles=(
        synonyms(FieldRole.TRANSACTION_DATE, "תאריך רכישה", ("תאריך", "רכיש")),
        synonyms(FieldRole.MERCHANT_NAME, "שם בית עסק", ("שם", "בית", "עסק"), "שם בית ע"),
        *CARD_SECONDARY_ROLES,
    ),
    markers=(
        marker("תאריך רכישה", FieldRole.TRANSACTION_DATE),
        MERCHANT_MARKER,
        AMOUNT_MARKER,
    ),
    window=CARD_HEADER_WINDOW,
)
