"""Card-number helpers: last-4 extraction and filename inference."""

from __future__ import annotations

import re
from pathlib import PurePath

# Tried in order against the filename stem; the first match wins.
FILENAME_CARD_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "...מ-1234" / "...ב 1234": issuer "ends with" marker
    re.compile(r"[מב]\s*-?\s*(\d{4})"),
    # "8354_12_2025", "8354-דצמבר"
    re.compile(r"^(\d{4})[_-]"),
    # digits after a card-brand word
    re.compile(r"(?:כרטיס|מאסטרקארד|ויזה|אמריקן|visa|mastercard|amex)\s*[-_]?\s*(\d{4})", re.I),
    # any standalone 4-digit token
    re.compile(r"(?<!\d)(\d{4})(?!\d)"),
)

_DIGITS_RE = re.compile(r"\d+")


def last4(value: object) -> str | None:
    """Return the rightmost four digits of a card-number cell (fewer if that is all there is)."""

    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    digits = "".join(_DIGITS_RE.findall(str(value)))
    if not digits:
        return None
    return digits[-4:]


def card_number_from_filename(filename: str | None) -> str | None:
    """Infer a card's last four digits from an upload's filename."""

    if not filename:
        return None
    stem = PurePath(filename).stem
    for pattern in FILENAME_CARD_PATTERNS:
        if m := pattern.search(stem):
            return m.group(1)
    return None


__all__ = ["FILENAME_CARD_PATTERNS", "card_number_from_filename", "last4"]
