"""Data models for statement ingestion.

Two families live here:

- small frozen dataclasses for values that never leave the process (cells,
  month keys, parse bookkeeping);
- pydantic models for records that cross the persistence/API boundary and
  whose invariants must be validated on construction.

Record invariants
-----------------
- ``amount`` is strictly positive and quantized to two decimals; the sign is
  carried by ``type`` (Income/Expense).
- every date is an aware ``datetime`` at UTC midnight;
- ``assigned_month`` is always the first day of its month;
- ``billing_date`` defaults to ``transaction_date``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .dates import utc_midnight
from .errors import InvalidMonthError

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FieldRole(StrEnum):
    """Canonical meaning of a statement column."""

    TRANSACTION_DATE = "TransactionDate"
    BILLING_DATE = "BillingDate"
    MERCHANT_NAME = "MerchantName"
    AMOUNT = "Amount"
    # Original-currency amount; only read when the charge amount is empty.
    TRANSACTION_AMOUNT = "TransactionAmount"
    CURRENCY = "Currency"
    CARD_NUMBER = "CardNumber"
    REFERENCE = "Reference"
    BRANCH = "Branch"
    NOTES = "Notes"
    INSTALLMENTS = "Installments"
    BALANCE = "Balance"
    VALUE_DATE = "ValueDate"
    DEBIT = "Debit"
    CREDIT = "Credit"
    DESCRIPTION = "Description"
    ACTION_TYPE = "ActionType"
    FOR_BENEFIT_OF = "ForBenefitOf"
    FOR = "For"


class StatementFormat(StrEnum):
    """Known institutional templates, resolved once per file."""

    CARD_ISRACARD = "card_isracard"
    CARD_MAX = "card_max"
    CARD_CAL = "card_cal"
    CARD_GENERIC = "card_generic"
    BANK_LEGACY = "bank_legacy"
    BANK_EXTENDED = "bank_extended"

    @property
    def is_bank(self) -> bool:
        return self in (StatementFormat.BANK_LEGACY, StatementFormat.BANK_EXTENDED)


class TransactionType(StrEnum):
    INCOME = "Income"
    EXPENSE = "Expense"


class UploadStage(StrEnum):
    """Per-upload state machine; every failure before ROWS_PARSED is side-effect free."""

    RECEIVED = "Received"
    DETECTED = "Detected"
    HEADER_MAPPED = "HeaderMapped"
    MONTH_RESOLVED = "MonthResolved"
    ROWS_PARSED = "RowsParsed"
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"


Currency = Literal["ILS", "USD", "EUR"]
type HeaderMap = dict[int, FieldRole]
"""Column index (0-based) → canonical role for one header row."""


# ---------------------------------------------------------------------------
# Cells and months
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawCell:
    """A single populated cell.

    ``value`` is the underlying value as stored by the workbook (``datetime``,
    ``float``, ``str``); ``display`` is the text a user sees in the cell. The
    two diverge for dates and currency-formatted numbers.
    """

    row: int
    col: int
    value: Any
    display: str

    @property
    def text(self) -> str:
        return self.display.strip()


MIN_ASSIGNED_YEAR = 2000
MAX_ASSIGNED_YEAR = 2100


@dataclass(frozen=True, slots=True, order=True)
class MonthKey:
    """A calendar month used for accounting attribution."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidMonthError(f"Invalid month: {self.month}")
        if not MIN_ASSIGNED_YEAR <= self.year <= MAX_ASSIGNED_YEAR:
            raise InvalidMonthError(f"Invalid year: {self.year}")

    def first_day(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=UTC)

    def previous(self) -> MonthKey:
        if self.month == 1:
            return MonthKey(self.year - 1, 12)
        return MonthKey(self.year, self.month - 1)

    @classmethod
    def of(cls, value: datetime) -> MonthKey:
        return cls(value.year, value.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True, slots=True)
class ReplacementKey:
    """Scope of one atomic delete+insert: (user, month, card or every card)."""

    user_id: int
    month: MonthKey
    card_number: str | None


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------

_CENT = Decimal("0.01")
_CARD_RE = re.compile(r"^\d{1,4}$")


def _ensure_utc_midnight(v: datetime) -> datetime:
    # Keep the calendar date as written; never shift across a day boundary.
    return utc_midnight(v)


class CanonicalRecord(BaseModel):
    """One card/bank transaction normalized for reconciliation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transaction_date: datetime
    billing_date: datetime
    assigned_month: datetime
    amount: Decimal
    merchant_name: str = Field(min_length=1)
    type: TransactionType = TransactionType.EXPENSE
    currency: Currency = "ILS"
    card_number: str | None = None
    reference_number: str | None = None
    branch: str | None = None
    notes: str | None = None
    installments: int | None = Field(default=None, ge=1)
    is_halves: bool = False
    source: str = "Excel Import"

    @model_validator(mode="before")
    @classmethod
    def _default_billing_date(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("billing_date") is None:
            return {**data, "billing_date": data.get("transaction_date")}
        return data

    @field_validator("transaction_date", "billing_date")
    @classmethod
    def _utc_dates(cls, v: datetime) -> datetime:
        return _ensure_utc_midnight(v)

    @field_validator("assigned_month")
    @classmethod
    def _first_of_month(cls, v: datetime) -> datetime:
        v = _ensure_utc_midnight(v)
        if v.day != 1:
            raise ValueError("assigned_month must be the first day of a month")
        return v

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return v.quantize(_CENT, rounding=ROUND_HALF_UP)

    @field_validator("card_number")
    @classmethod
    def _card_digits(cls, v: str | None) -> str | None:
        if v is not None and not _CARD_RE.match(v):
            raise ValueError("card_number must hold at most the last 4 digits")
        return v

    @property
    def month_key(self) -> MonthKey:
        return MonthKey.of(self.assigned_month)


class PersistedRecord(CanonicalRecord):
    """A canonical record after reconciliation, with its stored identity."""

    id: int
    user_id: int


class StatementRow(BaseModel):
    """One bank statement line. ``for_benefit_of`` and ``for_`` are display-only."""

    model_config = ConfigDict(frozen=True)

    value_date: datetime
    date: datetime
    balance: Decimal | None = None
    debit: Decimal | None = None
    credit: Decimal | None = None
    reference: str | None = None
    description: str | None = None
    action_type: str | None = None
    for_benefit_of: str | None = Field(default=None, exclude=True)
    for_: str | None = Field(default=None, exclude=True)

    @field_validator("value_date", "date")
    @classmethod
    def _utc_dates(cls, v: datetime) -> datetime:
        return _ensure_utc_midnight(v)


class StatementHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_number: str | None = None
    statement_date: datetime | None = None
    balance: Decimal | None = None


class BankStatement(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: StatementFormat
    header: StatementHeader
    rows: tuple[StatementRow, ...]


# ---------------------------------------------------------------------------
# Parse/upload results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SkippedRow:
    """A data row excluded from the batch (non-fatal)."""

    row_index: int
    reason: str


@dataclass(frozen=True, slots=True)
class ParseResult:
    format: StatementFormat
    header_row: int
    header_map: HeaderMap
    assigned_month: MonthKey
    records: tuple[CanonicalRecord, ...]
    skipped: tuple[SkippedRow, ...] = ()
    raw_row_count: int = 0

    @property
    def total_parsed(self) -> int:
        return len(self.records)


@dataclass(frozen=True, slots=True)
class UploadResult:
    records: tuple[PersistedRecord, ...]
    assigned_month: MonthKey
    card_number: str | None
    format: StatementFormat | None
    total_parsed: int
    skipped: tuple[SkippedRow, ...] = field(default=())
    card_numbers: tuple[str, ...] = field(default=())
    """Every card whose stored records this upload replaced."""

    @property
    def total_created(self) -> int:
        return len(self.records)

    def counts(self) -> dict[str, int]:
        return {"totalParsed": self.total_parsed, "totalCreated": self.total_created}


@dataclass(frozen=True, slots=True)
class BankStatementUploadResult:
    statement_id: int
    statement: BankStatement

    @property
    def total_rows(self) -> int:
        return len(self.statement.rows)


__all__ = [
    "BankStatement",
    "BankStatementUploadResult",
    "CanonicalRecord",
    "Currency",
    "FieldRole",
    "HeaderMap",
    "MonthKey",
    "ParseResult",
    "PersistedRecord",
    "RawCell",
    "ReplacementKey",
    "SkippedRow",
    "StatementFormat",
    "StatementHeader",
    "StatementRow",
    "TransactionType",
    "UploadResult",
    "UploadStage",
]
