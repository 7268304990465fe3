# ruff: noqa: I001
"""Reconciliation stores: the atomic delete-then-insert that makes imports idempotent.

A card upload supersedes whatever was stored for its replacement key
``(user, month, card)``; when no card number could be resolved the key covers
every card of that user for the month. A batch spanning several cards
replaces each of those card partitions together (``replace_cards``), so a
multi-card export is idempotent as well. Bank statements are replaced
wholesale per user. Two backends implement the same contract:

- :class:`SqlReconciliationStore` runs each replacement in one SQLAlchemy
  transaction (``db.client.session_scope``), serialized per user by a process
  lock and, on PostgreSQL, by ``pg_advisory_xact_lock``;
- :class:`InMemoryReconciliationStore` keeps state in dictionaries guarded by
  per-user locks and commits by swapping in fully built results, so a failure
  half-way leaves the previous state untouched.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol

from sqlalchemy import ColumnElement, delete, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from db.client import session_scope
from db.models.ledger import BankStatementRecord, BankStatementRowRecord, LedgerTransaction

from .errors import PersistenceError
from .logging_setup import get_logger
from .models import (
    BankStatement,
    CanonicalRecord,
    MonthKey,
    PersistedRecord,
    ReplacementKey,
    StatementFormat,
    StatementHeader,
    StatementRow,
)

logger = get_logger("statement_ingest.store")


class ReconciliationStore(Protocol):
    """Storage contract shared by every backend."""

    def replace(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_number: str | None,
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]: ...

    def replace_cards(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_numbers: Sequence[str | None],
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]: ...

    def list_records(
        self, user_id: int, assigned_month: MonthKey | None = None
    ) -> list[PersistedRecord]: ...

    def replace_statement(self, user_id: int, statement: BankStatement) -> int: ...

    def get_statement(self, user_id: int) -> BankStatement | None: ...


def batch_card_numbers(records: Sequence[CanonicalRecord]) -> tuple[str | None, ...]:
    """Distinct card numbers of a batch in row order; ``None`` stands for rows without one."""

    return tuple(dict.fromkeys(r.card_number for r in records))


def replacement_card_number(records: Sequence[CanonicalRecord]) -> str | None:
    """Single-card scope of a batch.

    Returns the card when every record carries the same one, ``None`` otherwise:
    either no record has a card (the whole month is replaced) or the batch spans
    several card partitions (see :func:`batch_card_numbers`).
    """

    cards = batch_card_numbers(records)
    return cards[0] if len(cards) == 1 else None


def matches_key(record: PersistedRecord, key: ReplacementKey) -> bool:
    return (
        record.user_id == key.user_id
        and record.month_key == key.month
        and (key.card_number is None or record.card_number == key.card_number)
    )


def _scope_label(card_numbers: Sequence[str | None]) -> str:
    return ", ".join(c or "none" for c in card_numbers)


class _UserLocks:
    """One lock per user id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(user_id, threading.Lock())
        with lock:
            yield


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryReconciliationStore:
    """Process-local store with incrementing identifiers."""

    def __init__(self) -> None:
        self._locks = _UserLocks()
        self._state = threading.Lock()
        self._ids = itertools.count(1)
        self._statement_ids = itertools.count(1)
        self._records: dict[int, PersistedRecord] = {}
        self._statements: dict[int, tuple[int, BankStatement]] = {}

    def _persist(self, record: CanonicalRecord, user_id: int) -> PersistedRecord:
        with self._state:
            record_id = next(self._ids)
        return PersistedRecord(**record.model_dump(), id=record_id, user_id=user_id)

    def _swap(
        self,
        user_id: int,
        is_stale: Callable[[PersistedRecord], bool],
        records: Sequence[CanonicalRecord],
    ) -> tuple[int, list[PersistedRecord]]:
        with self._locks.hold(user_id):
            fresh = [self._persist(r, user_id) for r in records]
            with self._state:
                stale = [rid for rid, r in self._records.items() if is_stale(r)]
                for rid in stale:
                    del self._records[rid]
                self._records.update((r.id, r) for r in fresh)
        return len(stale), fresh

    def replace(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_number: str | None,
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]:
        key = ReplacementKey(user_id, assigned_month, card_number)
        removed, fresh = self._swap(user_id, lambda r: matches_key(r, key), records)
        logger.info(
            "Replaced %d record(s) with %d for user %s month %s card %s",
            removed,
            len(fresh),
            user_id,
            assigned_month,
            card_number or "*",
        )
        return fresh

    def replace_cards(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_numbers: Sequence[str | None],
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]:
        """Replace several card partitions of one month in a single swap.

        ``None`` in ``card_numbers`` selects the records stored without a card,
        not the whole month.
        """

        scope = set(card_numbers)

        def is_stale(r: PersistedRecord) -> bool:
            return (
                r.user_id == user_id
                and r.month_key == assigned_month
                and r.card_number in scope
            )

        removed, fresh = self._swap(user_id, is_stale, records)
        logger.info(
            "Replaced %d record(s) with %d for user %s month %s cards %s",
            removed,
            len(fresh),
            user_id,
            assigned_month,
            _scope_label(card_numbers),
        )
        return fresh

    def list_records(
        self, user_id: int, assigned_month: MonthKey | None = None
    ) -> list[PersistedRecord]:
        with self._state:
            found = [
                r
                for r in self._records.values()
                if r.user_id == user_id
                and (assigned_month is None or r.month_key == assigned_month)
            ]
        return sorted(found, key=lambda r: (r.transaction_date, r.id))

    def replace_statement(self, user_id: int, statement: BankStatement) -> int:
        with self._locks.hold(user_id):
            with self._state:
                statement_id = next(self._statement_ids)
                self._statements[user_id] = (statement_id, statement)
        return statement_id

    def get_statement(self, user_id: int) -> BankStatement | None:
        with self._state:
            entry = self._statements.get(user_id)
        return entry[1] if entry else None


# ---------------------------------------------------------------------------
# SQLAlchemy backend
# ---------------------------------------------------------------------------


def _record_to_row(user_id: int, record: CanonicalRecord) -> LedgerTransaction:
    return LedgerTransaction(
        user_id=user_id,
        transaction_date=record.transaction_date,
        billing_date=record.billing_date,
        assigned_month=record.assigned_month,
        amount=record.amount,
        type=str(record.type),
        merchant_name=record.merchant_name,
        currency=record.currency,
        card_number=record.card_number,
        reference_number=record.reference_number,
        branch=record.branch,
        notes=record.notes,
        installments=record.installments,
        is_halves=record.is_halves,
        source=record.source,
    )


def _row_to_record(row: LedgerTransaction) -> PersistedRecord:
    return PersistedRecord(
        id=row.id,
        user_id=row.user_id,
        transaction_date=row.transaction_date,
        billing_date=row.billing_date,
        assigned_month=row.assigned_month,
        amount=row.amount,
        type=row.type,
        merchant_name=row.merchant_name,
        currency=row.currency,
        card_number=row.card_number,
        reference_number=row.reference_number,
        branch=row.branch,
        notes=row.notes,
        installments=row.installments,
        is_halves=row.is_halves,
        source=row.source,
    )


def _statement_from_rows(stored: BankStatementRecord) -> BankStatement:
    return BankStatement(
        format=StatementFormat(stored.statement_format),
        header=StatementHeader(
            account_number=stored.account_number,
            statement_date=stored.statement_date,
            balance=stored.balance,
        ),
        rows=tuple(
            StatementRow(
                value_date=r.value_date,
                date=r.date,
                balance=r.balance,
                debit=r.debit,
                credit=r.credit,
                reference=r.reference,
                description=r.description,
                action_type=r.action_type,
            )
            for r in stored.rows
        ),
    )


class SqlReconciliationStore:
    """Transactional store on the shared ``db`` library."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._locks = _UserLocks()

    @staticmethod
    def _lock_user(session: Session, user_id: int) -> None:
        # Cross-process serialization; released at commit/rollback.
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": user_id})

    def _swap(
        self,
        user_id: int,
        assigned_month: MonthKey,
        conditions: list[ColumnElement[bool]],
        records: Sequence[CanonicalRecord],
    ) -> tuple[int, list[PersistedRecord]]:
        scope = [
            LedgerTransaction.user_id == user_id,
            LedgerTransaction.assigned_month == assigned_month.first_day(),
            *conditions,
        ]
        try:
            with self._locks.hold(user_id), session_scope(database_url=self._database_url) as s:
                self._lock_user(s, user_id)
                deleted = s.execute(delete(LedgerTransaction).where(*scope)).rowcount
                rows = [_record_to_row(user_id, r) for r in records]
                s.add_all(rows)
                s.flush()
                persisted = [_row_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.error(
                "Reconciliation for user %s month %s rolled back: %s", user_id, assigned_month, exc
            )
            raise PersistenceError(
                "Saving the imported transactions failed; no changes were made."
            ) from exc
        return deleted, persisted

    def replace(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_number: str | None,
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]:
        conditions: list[ColumnElement[bool]] = []
        if card_number is not None:
            conditions.append(LedgerTransaction.card_number == card_number)
        deleted, persisted = self._swap(user_id, assigned_month, conditions, records)
        logger.info(
            "Replaced %d record(s) with %d for user %s month %s card %s",
            deleted,
            len(persisted),
            user_id,
            assigned_month,
            card_number or "*",
        )
        return persisted

    def replace_cards(
        self,
        user_id: int,
        assigned_month: MonthKey,
        card_numbers: Sequence[str | None],
        records: Sequence[CanonicalRecord],
    ) -> list[PersistedRecord]:
        named = [c for c in card_numbers if c is not None]
        partitions = [LedgerTransaction.card_number.in_(named)]
        if None in card_numbers:
            partitions.append(LedgerTransaction.card_number.is_(None))
        deleted, persisted = self._swap(user_id, assigned_month, [or_(*partitions)], records)
        logger.info(
            "Replaced %d record(s) with %d for user %s month %s cards %s",
            deleted,
            len(persisted),
            user_id,
            assigned_month,
            _scope_label(card_numbers),
        )
        return persisted

    def list_records(
        self, user_id: int, assigned_month: MonthKey | None = None
    ) -> list[PersistedRecord]:
        stmt = select(LedgerTransaction).where(LedgerTransaction.user_id == user_id)
        if assigned_month is not None:
            stmt = stmt.where(LedgerTransaction.assigned_month == assigned_month.first_day())
        stmt = stmt.order_by(LedgerTransaction.transaction_date, LedgerTransaction.id)
        with session_scope(database_url=self._database_url) as s:
            return [_row_to_record(row) for row in s.scalars(stmt)]

    def replace_statement(self, user_id: int, statement: BankStatement) -> int:
        try:
            with self._locks.hold(user_id), session_scope(database_url=self._database_url) as s:
                self._lock_user(s, user_id)
                existing = s.scalar(
                    select(BankStatementRecord).where(BankStatementRecord.user_id == user_id)
                )
                if existing is not None:
                    s.delete(existing)
                    s.flush()
                stored = BankStatementRecord(
                    user_id=user_id,
                    statement_format=str(statement.format),
                    account_number=statement.header.account_number,
                    statement_date=statement.header.statement_date,
                    balance=statement.header.balance,
                    rows=[
                        BankStatementRowRecord(
                            position=i,
                            value_date=row.value_date,
                            date=row.date,
                            balance=row.balance,
                            debit=row.debit,
                            credit=row.credit,
                            reference=row.reference,
                            description=row.description,
                            action_type=row.action_type,
                        )
                        for i, row in enumerate(statement.rows)
                    ],
                )
                s.add(stored)
                s.flush()
                statement_id = stored.id
        except SQLAlchemyError as exc:
            logger.error("Bank statement replacement for user %s rolled back: %s", user_id, exc)
            raise PersistenceError(
                "Saving the bank statement failed; the previous statement was kept."
            ) from exc
        logger.info(
            "Stored bank statement %s (%d rows) for user %s",
            statement_id,
            len(statement.rows),
            user_id,
        )
        return statement_id

    def get_statement(self, user_id: int) -> BankStatement | None:
        stmt = (
            select(BankStatementRecord)
            .where(BankStatementRecord.user_id == user_id)
            .options(selectinload(BankStatementRecord.rows))
        )
        with session_scope(database_url=self._database_url) as s:
            stored = s.scalar(stmt)
            return _statement_from_rows(stored) if stored is not None else None


__all__ = [
    "InMemoryReconciliationStore",
    "ReconciliationStore",
    "SqlReconciliationStore",
    "batch_card_numbers",
    "matches_key",
    "replacement_card_number",
]
