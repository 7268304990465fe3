"""Synonym entries shared by the card issuer templates.

Issuers agree on most secondary columns; only the date and merchant labels
tell them apart, so those live in the per-issuer modules and are listed first.
"""

from __future__ import annotations

from ...headers import marker, synonyms
from ...models import FieldRole

CARD_SECONDARY_ROLES = (
    synonyms(FieldRole.BILLING_DATE, "תאריך חיוב", ("תאריך", "חיוב"), "תאריך חיו"),
    synonyms(FieldRole.AMOUNT, "סכום חיוב", ("סכום", "חיוב"), "סכום חיו"),
    synonyms(FieldRole.TRANSACTION_AMOUNT, "סכום עסקה", ("סכום", "עסק"), ("סכום", "מקור")),
    synonyms(FieldRole.CURRENCY, ("מטבע", "חיוב"), ("מטבע", "חיו"), "מטבע"),
    synonyms(FieldRole.CARD_NUMBER, "מספר כרטיס", "4 ספרות", "ספרות אחרונות"),
    synonyms(FieldRole.REFERENCE, "שובר", "אסמכתא", "מפתח דיסקונט"),
    synonyms(FieldRole.ACTION_TYPE, "סוג עסקה"),
    synonyms(FieldRole.BRANCH, "ענף", "קטגוריה"),
    synonyms(FieldRole.NOTES, "הערות", "פירוט נוסף"),
    synonyms(FieldRole.INSTALLMENTS, "תשלומים"),
)

MERCHANT_MARKER = marker("שם בית עסק", FieldRole.MERCHANT_NAME)
AMOUNT_MARKER = marker("סכום חיוב", FieldRole.AMOUNT, FieldRole.TRANSACTION_AMOUNT)
