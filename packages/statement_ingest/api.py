"""Upload entry points for the ingestion engine.

These functions are the stable import surface for any outer layer (the CLI in
this repository, an HTTP handler elsewhere). Each upload walks the state
machine ``Received → Detected → HeaderMapped → MonthResolved → RowsParsed →
Reconciled (Committed | RolledBack)``; every structural failure is raised
before ``RowsParsed`` and therefore before anything is written.

The preview functions run the exact same parser without persistence, so a
preview can never disagree with what an upload would store.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from .cards import card_number_from_filename
from .errors import IngestError, NoDataRowsError, UploadDeadlineExceeded
from .formats import detect_bank_format, detect_card_format, find_bank_header, read_statement_header
from .ingest.workbook import CARD_EXTENSIONS, EXCEL_EXTENSIONS, Sheet, load_sheet
from .logging_setup import get_logger
from .models import (
    BankStatement,
    BankStatementUploadResult,
    CanonicalRecord,
    MonthKey,
    ParseResult,
    SkippedRow,
    StatementFormat,
    StatementRow,
    UploadResult,
    UploadStage,
)
from .month_year import resolve_assigned_month
from .records import CSV_SOURCE, EXCEL_SOURCE, parse_bank_row, parse_card_rows
from .store import ReconciliationStore, batch_card_numbers, replacement_card_number

logger = get_logger("statement_ingest.api")

_clock = time.monotonic


class _UploadTracker:
    """Stage bookkeeping and the optional caller deadline for one upload."""

    def __init__(self, filename: str, deadline_seconds: float | None) -> None:
        self.filename = filename
        self.stage = UploadStage.RECEIVED
        self._budget = deadline_seconds
        self._started = _clock()
        logger.debug("%s: %s", filename, self.stage)

    def advance(self, stage: UploadStage) -> None:
        # The deadline only guards work that has not touched storage yet.
        if (
            self._budget is not None
            and stage is not UploadStage.COMMITTED
            and stage is not UploadStage.ROLLED_BACK
            and _clock() - self._started > self._budget
        ):
            raise UploadDeadlineExceeded(str(stage), self._budget)
        self.stage = stage
        logger.debug("%s: %s", self.filename, stage)


# ---------------------------------------------------------------------------
# Card / transaction files
# ---------------------------------------------------------------------------


def _parse_card_sheet(
    sheet: Sheet,
    filename: str,
    tracker: _UploadTracker,
    *,
    year: int | None,
    month: int | None,
) -> ParseResult:
    layout = detect_card_format(sheet)
    tracker.advance(UploadStage.DETECTED)
    tracker.advance(UploadStage.HEADER_MAPPED)

    assigned = resolve_assigned_month(sheet, year=year, month=month)
    tracker.advance(UploadStage.MONTH_RESOLVED)

    records, skipped, raw = parse_card_rows(
        list(sheet.iter_rows(layout.header_row + 1)),
        layout.header_map,
        card_number_from_filename(filename),
        assigned_month=assigned,
        source=CSV_SOURCE if sheet.kind == "csv" else EXCEL_SOURCE,
    )
    # An empty batch would wipe the month's stored records on reconcile.
    if not records:
        raise NoDataRowsError(
            f"No transactions found below the header in row {layout.header_row + 1} "
            f"({len(skipped)} row(s) skipped)"
        )
    tracker.advance(UploadStage.ROWS_PARSED)
    return ParseResult(
        format=layout.format,
        header_row=layout.header_row,
        header_map=layout.header_map,
        assigned_month=assigned,
        records=tuple(records),
        skipped=tuple(skipped),
        raw_row_count=raw,
    )


def preview_card_file(
    blob: bytes,
    filename: str,
    *,
    year: int | None = None,
    month: int | None = None,
) -> ParseResult:
    """Parse a card/transaction export without persisting anything."""

    tracker = _UploadTracker(filename, None)
    sheet = load_sheet(blob, filename, allowed=CARD_EXTENSIONS)
    return _parse_card_sheet(sheet, filename, tracker, year=year, month=month)


def _reconcile(
    records: Sequence[CanonicalRecord],
    *,
    user_id: int,
    assigned: MonthKey,
    store: ReconciliationStore,
    tracker: _UploadTracker,
    skipped: tuple[SkippedRow, ...] = (),
    result_format: StatementFormat | None = None,
) -> UploadResult:
    cards = batch_card_numbers(records)
    card = replacement_card_number(records)
    try:
        if len(cards) > 1:
            logger.info("Batch spans cards %s; replacing each card's records", cards)
            persisted = store.replace_cards(user_id, assigned, cards, records)
        else:
            persisted = store.replace(user_id, assigned, card, records)
    except Exception:
        tracker.advance(UploadStage.ROLLED_BACK)
        raise
    tracker.advance(UploadStage.COMMITTED)
    return UploadResult(
        records=tuple(persisted),
        assigned_month=assigned,
        card_number=card,
        format=result_format,
        total_parsed=len(records),
        skipped=skipped,
        card_numbers=tuple(c for c in cards if c),
    )


def upload_card_file(
    blob: bytes,
    filename: str,
    *,
    user_id: int,
    store: ReconciliationStore,
    year: int | None = None,
    month: int | None = None,
    deadline_seconds: float | None = None,
) -> UploadResult:
    """Parse a card/transaction export and atomically replace the month's records.

    Parameters
    ----------
    blob:
        The complete uploaded file (``.csv``, ``.xlsx`` or ``.xls``).
    filename:
        Original filename; selects the loader and may carry the card's last
        four digits when the rows do not.
    year, month:
        Optional accounting-month override, used as-is. Without it the billing
        month printed in the file is shifted back one month.
    deadline_seconds:
        Optional budget for everything before persistence.
    """

    tracker = _UploadTracker(filename, deadline_seconds)
    sheet = load_sheet(blob, filename, allowed=CARD_EXTENSIONS)
    parsed = _parse_card_sheet(sheet, filename, tracker, year=year, month=month)
    result = _reconcile(
        parsed.records,
        user_id=user_id,
        assigned=parsed.assigned_month,
        store=store,
        tracker=tracker,
        skipped=parsed.skipped,
        result_format=parsed.format,
    )
    logger.info(
        "Imported %s for user %s: %d parsed of %d rows, %d created (month %s, card %s)",
        filename,
        user_id,
        result.total_parsed,
        parsed.raw_row_count,
        result.total_created,
        result.assigned_month,
        ", ".join(result.card_numbers) or "*",
    )
    return result


def import_records(
    records: Sequence[CanonicalRecord],
    *,
    user_id: int,
    store: ReconciliationStore,
    year: int,
    month: int,
) -> UploadResult:
    """Reconcile records parsed elsewhere into an explicit accounting month."""

    if not records:
        raise NoDataRowsError("No transactions provided")
    tracker = _UploadTracker("<records>", None)
    assigned = MonthKey(year, month)
    first_day = assigned.first_day()
    moved = [r.model_copy(update={"assigned_month": first_day}) for r in records]
    tracker.advance(UploadStage.MONTH_RESOLVED)
    tracker.advance(UploadStage.ROWS_PARSED)
    return _reconcile(moved, user_id=user_id, assigned=assigned, store=store, tracker=tracker)


# ---------------------------------------------------------------------------
# Bank statements
# ---------------------------------------------------------------------------


def _parse_bank_sheet(sheet: Sheet, tracker: _UploadTracker) -> BankStatement:
    fmt = detect_bank_format(sheet)
    tracker.advance(UploadStage.DETECTED)
    match = find_bank_header(sheet, fmt)
    tracker.advance(UploadStage.HEADER_MAPPED)
    header = read_statement_header(sheet, fmt)
    # Bank statements have no accounting month; the state still passes through.
    tracker.advance(UploadStage.MONTH_RESOLVED)

    rows: list[StatementRow] = []
    skipped = 0
    for index, cells in sheet.iter_rows(match.row + 1):
        parsed = parse_bank_row(cells, match.header_map, row_index=index)
        if isinstance(parsed, SkippedRow):
            skipped += 1
            continue
        rows.append(parsed)
    if not rows:
        raise NoDataRowsError(
            f"No data rows found below the header in row {match.row + 1}"
        )
    tracker.advance(UploadStage.ROWS_PARSED)
    logger.info("Parsed %d statement rows (%d skipped) in format %s", len(rows), skipped, fmt)
    return BankStatement(format=fmt, header=header, rows=tuple(rows))


def parse_bank_statement(blob: bytes, filename: str) -> BankStatement:
    """Parse a bank statement (``.xlsx``/``.xls``) without persisting it."""

    tracker = _UploadTracker(filename, None)
    sheet = load_sheet(blob, filename, allowed=EXCEL_EXTENSIONS)
    return _parse_bank_sheet(sheet, tracker)


def upload_bank_statement(
    blob: bytes,
    filename: str,
    *,
    user_id: int,
    store: ReconciliationStore,
    deadline_seconds: float | None = None,
) -> BankStatementUploadResult:
    """Parse a bank statement and replace the user's stored statement wholesale."""

    tracker = _UploadTracker(filename, deadline_seconds)
    sheet = load_sheet(blob, filename, allowed=EXCEL_EXTENSIONS)
    statement = _parse_bank_sheet(sheet, tracker)
    try:
        statement_id = store.replace_statement(user_id, statement)
    except Exception:
        tracker.advance(UploadStage.ROLLED_BACK)
        raise
    tracker.advance(UploadStage.COMMITTED)
    return BankStatementUploadResult(statement_id=statement_id, statement=statement)


__all__ = [
    "IngestError",
    "import_records",
    "parse_bank_statement",
    "preview_card_file",
    "upload_bank_statement",
    "upload_card_file",
]
