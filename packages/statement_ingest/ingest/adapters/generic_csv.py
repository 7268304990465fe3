"""Generic transaction export (CSV downloads and hand-made sheets).

Accepts the short Hebrew labels used by the CSV exports ("בית עסק", "סכום")
and plain English labels. It is tried last, after every issuer template.
"""

from __future__ import annotations

from ...headers import CARD_HEADER_WINDOW, HeaderTemplate, marker, synonyms
from ...models import FieldRole, StatementFormat

TEMPLATE = HeaderTemplate(
    format=StatementFormat.CARD_GENERIC,
    roles=(
        synonyms(
            FieldRole.BILLING_DATE,
            "תאריך חיוב",
            "billing date",
            "charge date",
            "posting date",
        ),
        synonyms(FieldRole.TRANSACTION_DATE, "תאריך עסקה", "transaction date", "תאריך", "date"),
        synonyms(FieldRole.MERCHANT_NAME, "בית עסק", "merchant", "payee", "description", "תיאור"),
        synonyms(FieldRole.AMOUNT, "סכום חיוב", "סכום", "amount"),
        synonyms(FieldRole.CURRENCY, "מטבע", "currency"),
        synonyms(FieldRole.CARD_NUMBER, "כרטיס", "card"),
        synonyms(FieldRole.REFERENCE, "אסמכתא", "שובר", "reference"),
        synonyms(FieldRole.BRANCH, "ענף", "קטגוריה", "category"),
        synonyms(FieldRole.NOTES, "הערות", "notes", "memo"),
        synonyms(FieldRole.INSTALLMENTS, "תשלומים", "installments"),
        synonyms(FieldRole.ACTION_TYPE, "סוג", "type"),
    ),
    markers=(
        marker("תאריך עסקה / date", FieldRole.TRANSACTION_DATE),
        marker("בית עסק / merchant", FieldRole.MERCHANT_NAME),
        marker("סכום / amount", FieldRole.AMOUNT),
    ),
    window=CARD_HEADER_WINDOW,
)
