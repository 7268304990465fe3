"""Pytest configuration for test isolation.

The workspace is not required to be installed: ``packages/`` and the shared
``db`` library are put on ``sys.path`` here, alongside the repo root so the
``tests.helpers`` modules import the same way everywhere.

Every test gets a clean environment (no ``DATABASE_URL`` or package settings
leaking in from the developer's shell) and the cached SQLAlchemy engines are
disposed afterwards, since each SQL test uses its own SQLite file.
"""

# ruff: noqa: E402, I001
from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

import pytest

from db.client import dispose_engines
from statement_ingest import logging_setup
from statement_ingest.store import InMemoryReconciliationStore, SqlReconciliationStore

from tests.helpers.db import bootstrap_sqlite_db

_ENV_VARS = (
    "DATABASE_URL",
    "STATEMENT_INGEST_LOG_LEVEL",
    "STATEMENT_INGEST_DEADLINE_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()


@pytest.fixture(autouse=True)
def _reset_package_logger(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Undo ``configure_logging`` (run by CLI tests) so caplog keeps seeing records."""

    pkg_logger = logging.getLogger("statement_ingest")
    handlers = list(pkg_logger.handlers)
    level = pkg_logger.level
    propagate = pkg_logger.propagate
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    yield
    pkg_logger.handlers[:] = handlers
    pkg_logger.setLevel(level)
    pkg_logger.propagate = propagate


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")


@pytest.fixture(params=["memory", "sql"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    """Both reconciliation backends behind the same contract."""

    if request.param == "memory":
        return InMemoryReconciliationStore()
    return SqlReconciliationStore(database_url=bootstrap_sqlite_db(tmp_path / "store.sqlite3"))
