from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from statement_ingest.dates import (
    EXCEL_EPOCH,
    expand_two_digit_year,
    from_excel_serial,
    parse_date,
    parse_optional_date,
)
from statement_ingest.errors import DateParseError


def _utc(y: int, m: int, d: int) -> datetime:
    return datetime(y, m, d, tzinfo=UTC)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("03/04/2025", _utc(2025, 4, 3)),
        ("3/4/2025", _utc(2025, 4, 3)),
        ("15/06/24", _utc(2024, 6, 15)),
        ("15.06.24", _utc(2024, 6, 15)),
        ("16.12.2025", _utc(2025, 12, 16)),
        ("2025-12-16", _utc(2025, 12, 16)),
        ("16-12-2025", _utc(2025, 12, 16)),
        ("11/12/2025 17:02", _utc(2025, 12, 11)),
        ("  11/12/2025  ", _utc(2025, 12, 11)),
        ("2025-12-16T08:30:00", _utc(2025, 12, 16)),
        ("5 March 2025", _utc(2025, 3, 5)),
    ],
)
def test_parse_date_strings_are_day_first_utc_midnight(raw: str, expected: datetime):
    assert parse_date(raw) == expected


def test_two_digit_years_split_at_fifty():
    for yy in range(100):
        expected_year = 2000 + yy if yy < 50 else 1900 + yy
        assert expand_two_digit_year(yy) == expected_year
        assert parse_date(f"15/06/{yy:02d}") == _utc(expected_year, 6, 15)
        assert parse_date(f"15.06.{yy:02d}") == _utc(expected_year, 6, 15)


def test_excel_serials_count_from_1899_12_30():
    for serial in range(1, 73000, 7):
        expected = EXCEL_EPOCH + timedelta(days=serial)
        if not 1900 <= expected.year <= 2100:
            continue
        result = from_excel_serial(serial)
        assert result == _utc(expected.year, expected.month, expected.day)
        assert (result.hour, result.minute, result.tzinfo) == (0, 0, UTC)


def test_numeric_cells_are_excel_serials():
    # 45962 is 2025-11-01; the fractional part (time of day) is dropped.
    assert parse_date(45962) == _utc(2025, 11, 1)
    assert parse_date(45962.75) == _utc(2025, 11, 1)
    assert parse_date(Decimal("45962")) == _utc(2025, 11, 1)


def test_excel_serial_outside_supported_years_is_rejected():
    with pytest.raises(DateParseError):
        parse_date(80000)  # year 2119
    with pytest.raises(DateParseError):
        parse_date(-1000)


def test_native_values_keep_their_calendar_date():
    assert parse_date(datetime(2025, 3, 5, 17, 45)) == _utc(2025, 3, 5)
    assert parse_date(date(2025, 3, 5)) == _utc(2025, 3, 5)
    # An aware value is not converted to UTC first; the written date wins.
    tz_plus_two = timezone(timedelta(hours=2))
    assert parse_date(datetime(2025, 3, 5, 1, 0, tzinfo=tz_plus_two)) == _utc(2025, 3, 5)


@pytest.mark.parametrize("raw", ["31/02/2025", "12/25/2025", "00/01/2025"])
def test_impossible_day_first_dates_do_not_fall_back_to_month_first(raw: str):
    with pytest.raises(DateParseError) as ei:
        parse_date(raw)
    assert raw in str(ei.value)


@pytest.mark.parametrize("raw", [None, "", "   ", "not a date", True, ["01/01/2025"]])
def test_unreadable_values_raise(raw: object):
    with pytest.raises(DateParseError):
        parse_date(raw)


def test_years_outside_range_are_rejected():
    with pytest.raises(DateParseError):
        parse_date("01/01/2201")
    with pytest.raises(DateParseError):
        parse_date("01/01/1850")


def test_date_parse_error_is_located_by_at():
    err = DateParseError("xx", "unrecognized date").at("B7")
    assert err.cell == "B7"
    assert "B7" in str(err)
    assert isinstance(err, ValueError)


def test_optional_dates_fall_back_to_default():
    default = _utc(2025, 1, 1)
    assert parse_optional_date(None, default) == default
    assert parse_optional_date("  ", default) == default
    assert parse_optional_date("garbage", default) == default
    assert parse_optional_date("02/01/2025", default) == _utc(2025, 1, 2)
