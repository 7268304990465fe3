# ruff: noqa: I001
"""Ledger transactions and bank statements.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2025-12-16
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("billing_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_month", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("merchant_name", sa.Text(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'ILS'")),
        sa.Column("card_number", sa.String(4), nullable=True),
        sa.Column("reference_number", sa.String(50), nullable=True),
        sa.Column("branch", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("installments", sa.Integer(), nullable=True),
        sa.Column("is_halves", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
        sa.CheckConstraint("type in ('Income','Expense')", name="ck_ledger_tx_type"),
        sa.CheckConstraint("currency in ('ILS','USD','EUR')", name="ck_ledger_tx_currency"),
    )
    op.create_index(
        "ix_ledger_tx_replacement_key",
        "ledger_transactions",
        ["user_id", "assigned_month", "card_number"],
    )

    op.create_table(
        "bank_statements",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("statement_format", sa.String(32), nullable=False),
        sa.Column("account_number", sa.String(50), nullable=True),
        sa.Column("statement_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("balance", sa.Numeric(18, 2), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "bank_statement_rows",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "statement_id",
            sa.BigInteger(),
            sa.ForeignKey("bank_statements.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("value_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("debit", sa.Numeric(18, 2), nullable=True),
        sa.Column("credit", sa.Numeric(18, 2), nullable=True),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("action_type", sa.String(100), nullable=True),
    )
    op.create_index(
        "ix_bank_statement_rows_statement_id", "bank_statement_rows", ["statement_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_bank_statement_rows_statement_id", table_name="bank_statement_rows")
    op.drop_table("bank_statement_rows")
    op.drop_table("bank_statements")
    op.drop_index("ix_ledger_tx_replacement_key", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
