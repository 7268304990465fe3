"""Header classification: map noisy, localized column labels to field roles.

Issuer exports label the same column in several ways ("תאריך עסקה",
"תאריך רכישה", a label truncated by a narrow column, a line break in the middle
of a phrase). Each template therefore declares an ordered synonym table; a
synonym is a tuple of phrases that must *all* occur in the normalized header
text, which covers both exact labels and co-occurrence rules such as
"תאריך" + "עסקה".

Lookup is first-match over roles, and within a role the synonym's position is
its rank: when several columns resolve to the same role, the best ranked column
wins (ties keep the leftmost column). This is how "סכום חיוב" is preferred
over "סכום עסקה" for the amount.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .errors import HeaderNotFoundError
from .logging_setup import get_logger
from .models import FieldRole, HeaderMap, RawCell, StatementFormat

logger = get_logger("statement_ingest.headers")

MIN_HEADER_CELLS = 4
CARD_HEADER_WINDOW = 15
BANK_HEADER_WINDOW = 10

_WS_RE = re.compile(r"\s+")


def normalize_header(text: str | None) -> str:
    """Collapse CR/LF and repeated whitespace, trim, and case-fold."""

    if not text:
        return ""
    return _WS_RE.sub(" ", text.replace("\r", " ").replace("\n", " ")).strip().casefold()


# ---------------------------------------------------------------------------
# Declarative tables
# ---------------------------------------------------------------------------

type Synonym = tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RoleSynonyms:
    role: FieldRole
    synonyms: tuple[Synonym, ...]


@dataclass(frozen=True, slots=True)
class MarkerGroup:
    """A mandatory header marker: satisfied by any one of ``roles``."""

    label: str
    roles: frozenset[FieldRole]


@dataclass(frozen=True, slots=True)
class HeaderTemplate:
    """Header vocabulary and predicate for one institutional template."""

    format: StatementFormat
    roles: tuple[RoleSynonyms, ...]
    markers: tuple[MarkerGroup, ...]
    window: int
    header_start: int = 0

    def missing_markers(self, header_map: Mapping[int, FieldRole]) -> list[str]:
        present = set(header_map.values())
        return [g.label for g in self.markers if not (g.roles & present)]


def synonyms(role: FieldRole, *variants: str | Synonym) -> RoleSynonyms:
    """Build a role entry; a plain string is a single-phrase synonym."""

    return RoleSynonyms(
        role=role,
        synonyms=tuple(
            tuple(normalize_header(p) for p in ((v,) if isinstance(v, str) else v))
            for v in variants
        ),
    )


def marker(label: str, *roles: FieldRole) -> MarkerGroup:
    return MarkerGroup(label=label, roles=frozenset(roles))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_ranked(text: str | None, template: HeaderTemplate) -> tuple[FieldRole, int] | None:
    norm = normalize_header(text)
    if not norm:
        return None
    for entry in template.roles:
        for rank, phrases in enumerate(entry.synonyms):
            if all(p in norm for p in phrases):
                return entry.role, rank
    return None


def classify(text: str | None, template: HeaderTemplate) -> FieldRole | None:
    """Return the role for a header label, or ``None`` when it is unknown."""

    hit = classify_ranked(text, template)
    return hit[0] if hit else None


def build_header_map(cells: Iterable[RawCell], template: HeaderTemplate) -> HeaderMap:
    """Classify one row of cells into a column → role map."""

    best: dict[FieldRole, tuple[int, int]] = {}
    for cell in sorted(cells, key=lambda c: c.col):
        hit = classify_ranked(cell.text, template)
        if hit is None:
            continue
        role, rank = hit
        current = best.get(role)
        if current is None or rank < current[1]:
            best[role] = (cell.col, rank)
    return {col: role for role, (col, _rank) in sorted(best.items(), key=lambda kv: kv[1][0])}


@dataclass(frozen=True, slots=True)
class HeaderMatch:
    row: int
    header_map: HeaderMap
    template: HeaderTemplate


def _populated(cells: Sequence[RawCell]) -> int:
    return sum(1 for c in cells if c.text)


def scan_header(
    rows: Mapping[int, Sequence[RawCell]], template: HeaderTemplate
) -> tuple[HeaderMatch | None, list[str]]:
    """Scan the template's window; return the match or the closest row's missing markers."""

    closest: list[str] = [g.label for g in template.markers]
    for r in range(template.header_start, template.window):
        cells = rows.get(r, ())
        if not cells:
            continue
        header_map = build_header_map(cells, template)
        missing = template.missing_markers(header_map)
        if not missing and _populated(cells) >= MIN_HEADER_CELLS:
            return HeaderMatch(row=r, header_map=header_map, template=template), []
        if header_map and len(missing) < len(closest):
            closest = missing
    return None, closest


def find_header_row(rows: Mapping[int, Sequence[RawCell]], template: HeaderTemplate) -> HeaderMatch:
    """Locate the header row for ``template`` or raise :class:`HeaderNotFoundError`.

    A row qualifies only if it carries every mandatory marker of the template
    and at least :data:`MIN_HEADER_CELLS` populated cells.
    """

    match, missing = scan_header(rows, template)
    if match is None:
        raise HeaderNotFoundError(
            missing, first_row=template.header_start, last_row=template.window - 1
        )
    logger.debug(
        "Header row %d matched template %s: %s",
        match.row,
        template.format,
        {c: str(r) for c, r in match.header_map.items()},
    )
    return match


__all__ = [
    "BANK_HEADER_WINDOW",
    "CARD_HEADER_WINDOW",
    "HeaderMatch",
    "HeaderTemplate",
    "MIN_HEADER_CELLS",
    "MarkerGroup",
    "RoleSynonyms",
    "build_header_map",
    "classify",
    "classify_ranked",
    "find_header_row",
    "marker",
    "normalize_header",
    "scan_header",
    "synonyms",
]
