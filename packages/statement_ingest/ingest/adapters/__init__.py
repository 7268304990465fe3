"""Header templates for every supported export, in detection order."""

from __future__ import annotations

from . import cal, generic_csv, isracard, max_card
from .bank import EXTENDED_TEMPLATE, LEGACY_TEMPLATE

# Most specific vocabulary first: MAX's "בית העסק" also satisfies CAL's
# co-occurrence rule, and the generic template accepts almost anything.
CARD_TEMPLATES = (
    isracard.TEMPLATE,
    max_card.TEMPLATE,
    cal.TEMPLATE,
    generic_csv.TEMPLATE,
)

BANK_TEMPLATES = {
    LEGACY_TEMPLATE.format: LEGACY_TEMPLATE,
    EXTENDED_TEMPLATE.format: EXTENDED_TEMPLATE,
}

__all__ = ["BANK_TEMPLATES", "CARD_TEMPLATES", "EXTENDED_TEMPLATE", "LEGACY_TEMPLATE"]
