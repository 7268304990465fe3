from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..types import UtcDateTime


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    # Integer (not BigInteger) keeps SQLite's rowid autoincrement in tests.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    billing_date: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    # Always the first of the month at 00:00 UTC; reconciliation filters on it.
    assigned_month: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    merchant_name: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'ILS'"))
    # Last four digits only; NULL when neither the row nor the filename named a card.
    card_number: Mapped[str | None] = mapped_column(String(4), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    installments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_halves: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
        CheckConstraint("type in ('Income','Expense')", name="ck_ledger_tx_type"),
        CheckConstraint("currency in ('ILS','USD','EUR')", name="ck_ledger_tx_currency"),
        Index("ix_ledger_tx_replacement_key", "user_id", "assigned_month", "card_number"),
    )


# ---------------------------
# Bank statements
# ---------------------------


class BankStatementRecord(Base):
    __tablename__ = "bank_statements"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    # One statement per user; a new upload replaces it wholesale.
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    statement_format: Mapped[str] = mapped_column(String(32), nullable=False)
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    statement_date: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=_utcnow)

    rows: Mapped[list[BankStatementRowRecord]] = relationship(
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="BankStatementRowRecord.position",
    )


class BankStatementRowRecord(Base):
    __tablename__ = "bank_statement_rows"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    statement_id: Mapped[int] = mapped_column(
        ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    value_date: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    date: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    debit: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    credit: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    statement: Mapped[BankStatementRecord] = relationship(back_populates="rows")
