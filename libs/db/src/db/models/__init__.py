"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``statement_ingest``.
"""

from .ledger import Base, BankStatementRecord, BankStatementRowRecord, LedgerTransaction

__all__ = [
    "Base",
    "BankStatementRecord",
    "BankStatementRowRecord",
    "LedgerTransaction",
]
