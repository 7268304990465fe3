"""Statement ingestion and reconciliation.

Turns bank and credit-card exports (``.xlsx``, ``.xls``, ``.csv``) into
canonical records and atomically replaces previously imported data for the
same (user, month, card), so re-uploading a file never duplicates records.

Public API
----------
- :func:`upload_card_file`, :func:`preview_card_file`, :func:`import_records`
- :func:`upload_bank_statement`, :func:`parse_bank_statement`
- stores: :class:`SqlReconciliationStore`, :class:`InMemoryReconciliationStore`
"""

from __future__ import annotations

from .api import (
    import_records,
    parse_bank_statement,
    preview_card_file,
    upload_bank_statement,
    upload_card_file,
)
from .errors import IngestError
from .models import (
    BankStatement,
    CanonicalRecord,
    MonthKey,
    ParseResult,
    PersistedRecord,
    StatementFormat,
    TransactionType,
    UploadResult,
)
from .store import InMemoryReconciliationStore, ReconciliationStore, SqlReconciliationStore

__all__ = [
    "BankStatement",
    "CanonicalRecord",
    "InMemoryReconciliationStore",
    "IngestError",
    "MonthKey",
    "ParseResult",
    "PersistedRecord",
    "ReconciliationStore",
    "SqlReconciliationStore",
    "StatementFormat",
    "TransactionType",
    "UploadResult",
    "import_records",
    "parse_bank_statement",
    "preview_card_file",
    "upload_bank_statement",
    "upload_card_file",
]
