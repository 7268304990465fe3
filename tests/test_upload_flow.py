"""End-to-end upload flows: file bytes in, reconciled records out."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

import statement_ingest.api as api_mod
from statement_ingest import (
    InMemoryReconciliationStore,
    MonthKey,
    StatementFormat,
    TransactionType,
    import_records,
    parse_bank_statement,
    preview_card_file,
    upload_bank_statement,
    upload_card_file,
)
from statement_ingest.errors import (
    DateParseError,
    EmptyFileError,
    HeaderNotFoundError,
    MonthYearNotFoundError,
    NoDataRowsError,
    UnsupportedFileTypeError,
    UploadDeadlineExceeded,
)

from tests.helpers.workbooks import (
    BANK_EXTENDED_HEADER,
    bank_extended_xlsx,
    bank_legacy_xlsx,
    cal_xlsx,
    generic_csv,
    max_xlsx,
    xlsx_bytes,
)

CAL_FILE = "8354_12_2025.xlsx"


def test_cal_upload_creates_records_in_previous_month(store):
    result = upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)

    assert result.format is StatementFormat.CARD_CAL
    assert result.assigned_month == MonthKey(2025, 10)
    assert result.card_number == "8354"
    assert result.counts() == {"totalParsed": 4, "totalCreated": 4}
    assert [s.reason for s in result.skipped] == ["missing transaction date"]

    by_merchant = {r.merchant_name: r for r in store.list_records(1, MonthKey(2025, 10))}
    assert set(by_merchant) == {"שופרסל דיל", "פז דלק", "איקאה", "החזר ביטוח"}
    ikea = by_merchant["איקאה"]
    assert ikea.amount == Decimal("400.00")
    assert ikea.installments == 3
    assert ikea.branch == "ריהוט"
    refund = by_merchant["החזר ביטוח"]
    assert refund.type is TransactionType.INCOME
    assert refund.amount == Decimal("150.00")
    for rec in by_merchant.values():
        assert rec.card_number == "8354"
        assert rec.assigned_month == datetime(2025, 10, 1, tzinfo=UTC)
        assert rec.source == "Excel Import"


def test_reupload_does_not_duplicate(store):
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    again = upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    assert again.total_created == 4
    assert len(store.list_records(1)) == 4


def test_corrected_file_replaces_previous_import(store):
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    fixed = cal_xlsx(data=[[datetime(2025, 10, 3), "שופרסל דיל", 99, 99, "רגילה", "מזון", None]])
    upload_card_file(fixed, CAL_FILE, user_id=1, store=store)
    (only,) = store.list_records(1, MonthKey(2025, 10))
    assert only.amount == Decimal("99.00")


def test_uploads_for_different_cards_coexist(store):
    upload_card_file(cal_xlsx(), "1111_11_2025.xlsx", user_id=1, store=store)
    upload_card_file(cal_xlsx(), "2222_11_2025.xlsx", user_id=1, store=store)
    cards = sorted({r.card_number for r in store.list_records(1)})
    assert cards == ["1111", "2222"]
    assert len(store.list_records(1)) == 8


def test_explicit_month_is_used_without_shift(store):
    result = upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store, year=2025, month=11)
    assert result.assigned_month == MonthKey(2025, 11)
    assert {r.assigned_month for r in result.records} == {datetime(2025, 11, 1, tzinfo=UTC)}


def test_generic_csv_upload():
    store = InMemoryReconciliationStore()
    result = upload_card_file(generic_csv(), "transactions.csv", user_id=3, store=store)

    assert result.format is StatementFormat.CARD_GENERIC
    assert result.assigned_month == MonthKey(2025, 10)
    assert result.card_number is None
    records = store.list_records(3)
    assert [(r.merchant_name, r.currency, r.type) for r in records] == [
        ("Coffee Bar", "ILS", TransactionType.EXPENSE),
        ("Online Store", "USD", TransactionType.EXPENSE),
        ("Refund Shop", "ILS", TransactionType.INCOME),
    ]
    assert {r.source for r in records} == {"CSV Import"}


def test_csv_encodings_and_delimiters_parse_identically():
    utf8 = preview_card_file(generic_csv(), "a.csv")
    cp1255 = preview_card_file(generic_csv(encoding="cp1255", delimiter=";"), "b.csv")
    assert utf8.records == cp1255.records


def test_preview_matches_upload():
    store = InMemoryReconciliationStore()
    preview = preview_card_file(cal_xlsx(), CAL_FILE)
    uploaded = upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    assert preview.total_parsed == uploaded.total_parsed
    assert preview.raw_row_count == 5
    assert [r.model_dump() for r in preview.records] == [
        r.model_dump(exclude={"id", "user_id"}) for r in uploaded.records
    ]
    assert store.list_records(2) == []


def test_missing_month_aborts_before_persisting():
    store = InMemoryReconciliationStore()
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    with pytest.raises(MonthYearNotFoundError):
        upload_card_file(cal_xlsx(billing_line=None), CAL_FILE, user_id=1, store=store)
    assert len(store.list_records(1)) == 4


def test_unreadable_date_aborts_the_whole_upload():
    store = InMemoryReconciliationStore()
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    bad = cal_xlsx(data=[["31/02/2025", "חנות", 10, 10, "רגילה", "שונות", None]])
    with pytest.raises(DateParseError) as ei:
        upload_card_file(bad, CAL_FILE, user_id=1, store=store)
    assert ei.value.cell == "A6"
    assert len(store.list_records(1)) == 4


def test_sheet_without_header_is_rejected():
    blob = xlsx_bytes([["פירוט"], [], ["10/11/2025"], ["תאריך עסקה", "שם בית עסק", "הערות"]])
    with pytest.raises(HeaderNotFoundError) as ei:
        preview_card_file(blob, CAL_FILE)
    assert "סכום חיוב" in str(ei.value)


def test_upload_rejects_empty_and_unsupported_files():
    store = InMemoryReconciliationStore()
    with pytest.raises(EmptyFileError):
        upload_card_file(b"", CAL_FILE, user_id=1, store=store)
    with pytest.raises(UnsupportedFileTypeError):
        upload_card_file(b"%PDF-1.7", "statement.pdf", user_id=1, store=store)


def test_deadline_is_checked_between_stages(monkeypatch: pytest.MonkeyPatch):
    ticks = iter(range(0, 1000, 10))
    monkeypatch.setattr(api_mod, "_clock", lambda: next(ticks))
    store = InMemoryReconciliationStore()
    with pytest.raises(UploadDeadlineExceeded):
        upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store, deadline_seconds=5)
    assert store.list_records(1) == []


def test_generous_deadline_does_not_interfere():
    store = InMemoryReconciliationStore()
    result = upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store, deadline_seconds=600)
    assert result.total_created == 4


def test_import_records_moves_records_to_the_given_month():
    store = InMemoryReconciliationStore()
    parsed = preview_card_file(cal_xlsx(), CAL_FILE)
    result = import_records(parsed.records, user_id=5, store=store, year=2025, month=9)
    assert result.assigned_month == MonthKey(2025, 9)
    assert result.card_number == "8354"
    assert {r.month_key for r in store.list_records(5)} == {MonthKey(2025, 9)}


# ---- bank statements --------------------------------------------------------


def test_extended_bank_statement_upload(store):
    result = upload_bank_statement(bank_extended_xlsx(), "bank.xlsx", user_id=1, store=store)

    statement = result.statement
    assert statement.format is StatementFormat.BANK_EXTENDED
    assert statement.header.account_number == "361645"
    assert statement.header.balance == Decimal("23120.10")
    assert result.total_rows == 2
    first, second = statement.rows
    assert first.credit == Decimal("10000")
    assert first.description == "משכורת"
    assert second.value_date == datetime(2025, 12, 17, tzinfo=UTC)
    assert second.date == datetime(2025, 12, 16, tzinfo=UTC)
    assert second.action_type == "חיוב"
    assert second.for_benefit_of == "כאל"

    stored = store.get_statement(1)
    assert stored is not None
    assert [r.description for r in stored.rows] == ["משכורת", "כרטיס אשראי"]


def test_legacy_bank_statement_parse():
    statement = parse_bank_statement(bank_legacy_xlsx(), "bank.xls")
    assert statement.format is StatementFormat.BANK_LEGACY
    assert statement.header.account_number == "036-606197"
    assert statement.header.statement_date == datetime(2025, 12, 11, tzinfo=UTC)
    assert [r.description for r in statement.rows] == ["ארנונה", "העברה מחשבון"]
    assert statement.rows[1].value_date == datetime(2025, 12, 4, tzinfo=UTC)
    assert statement.rows[1].credit == Decimal("1000")


def test_bank_reupload_replaces_statement(store):
    upload_bank_statement(bank_extended_xlsx(), "bank.xlsx", user_id=1, store=store)
    single = bank_extended_xlsx(
        data=[["01/12/2025", "01/12/2025", "עמלה", "עמלת ערוץ", "1", 5, None, 100, None, None]]
    )
    upload_bank_statement(single, "bank.xlsx", user_id=1, store=store)
    stored = store.get_statement(1)
    assert stored is not None
    assert [r.description for r in stored.rows] == ["עמלת ערוץ"]


def test_bank_statement_without_rows_is_rejected():
    store = InMemoryReconciliationStore()
    with pytest.raises(NoDataRowsError):
        upload_bank_statement(bank_extended_xlsx(data=[]), "bank.xlsx", user_id=1, store=store)
    assert store.get_statement(1) is None


def test_bank_upload_rejects_csv():
    rows = [[], [], [], ["מספר חשבון 1 תאריך הפקה 01.01.2025"], [], [], [], BANK_EXTENDED_HEADER]
    blob = "\n".join(",".join(str(c) for c in r) for r in rows).encode()
    with pytest.raises(UnsupportedFileTypeError):
        parse_bank_statement(blob, "bank.csv")

# ---- batch edges ------------------------------------------------------------


def test_card_file_without_transactions_keeps_stored_month(store):
    upload_card_file(cal_xlsx(), "1111_11_2025.xlsx", user_id=1, store=store)
    upload_card_file(cal_xlsx(), "2222_11_2025.xlsx", user_id=1, store=store)

    with pytest.raises(NoDataRowsError) as ei:
        upload_card_file(cal_xlsx(data=[]), "statement.xlsx", user_id=1, store=store)
    assert "No transactions found" in str(ei.value)
    assert len(store.list_records(1)) == 8


def test_card_file_with_only_skipped_rows_is_rejected(store):
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    undated = cal_xlsx(data=[[None, "חנות", 10, 10, "רגילה", "שונות", None]])
    with pytest.raises(NoDataRowsError) as ei:
        upload_card_file(undated, "statement.xlsx", user_id=1, store=store)
    # The undated row and the totals footer.
    assert "2 row(s) skipped" in str(ei.value)
    assert len(store.list_records(1)) == 4


def test_import_records_rejects_an_empty_batch(store):
    upload_card_file(cal_xlsx(), CAL_FILE, user_id=1, store=store)
    with pytest.raises(NoDataRowsError, match="No transactions provided"):
        import_records([], user_id=1, store=store, year=2025, month=10)
    assert len(store.list_records(1)) == 4


def test_multi_card_file_reupload_does_not_grow(store):
    first = upload_card_file(max_xlsx(), "max.xlsx", user_id=1, store=store)
    assert first.format is StatementFormat.CARD_MAX
    assert first.card_number is None
    assert first.card_numbers == ("1111", "2222")

    upload_card_file(max_xlsx(), "max.xlsx", user_id=1, store=store)
    records = store.list_records(1, MonthKey(2025, 10))
    assert len(records) == 3
    assert sorted(r.card_number for r in records) == ["1111", "1111", "2222"]


def test_multi_card_file_leaves_other_cards_alone(store):
    upload_card_file(cal_xlsx(), "3333_11_2025.xlsx", user_id=1, store=store)
    upload_card_file(max_xlsx(), "max.xlsx", user_id=1, store=store)
    one_card_left = max_xlsx(data=[[datetime(2025, 10, 4), "רמי לוי", "מזון", "1111", "רגילה", 99]])
    upload_card_file(one_card_left, "max.xlsx", user_id=1, store=store)

    by_card: dict[str | None, int] = {}
    for r in store.list_records(1):
        by_card[r.card_number] = by_card.get(r.card_number, 0) + 1
    # The single-card re-upload replaces only card 1111; 2222 keeps its earlier row.
    assert by_card == {"3333": 4, "1111": 1, "2222": 1}
