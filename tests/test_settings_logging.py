from __future__ import annotations

import io
import logging

import pytest

from statement_ingest.logging_setup import configure_logging, get_logger
from statement_ingest.settings import load_settings


def test_settings_from_environment():
    settings = load_settings(
        {
            "DATABASE_URL": "sqlite+pysqlite:///ledger.db",
            "STATEMENT_INGEST_LOG_LEVEL": "DEBUG",
            "STATEMENT_INGEST_DEADLINE_SECONDS": "2.5",
        }
    )
    assert settings.database_url == "sqlite+pysqlite:///ledger.db"
    assert settings.log_level == "DEBUG"
    assert settings.deadline_seconds == 2.5


def test_blank_settings_are_unset():
    settings = load_settings({"DATABASE_URL": "", "STATEMENT_INGEST_DEADLINE_SECONDS": " "})
    assert settings.database_url is None
    assert settings.log_level is None
    assert settings.deadline_seconds is None


@pytest.mark.parametrize("raw", ["0", "-1", "soon"])
def test_deadline_must_be_a_positive_number(raw: str):
    with pytest.raises(ValueError):
        load_settings({"STATEMENT_INGEST_DEADLINE_SECONDS": raw})


def test_get_logger_is_silent_until_configured():
    get_logger("statement_ingest.test")
    handlers = logging.getLogger("statement_ingest").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_configure_logging_attaches_one_stream_handler(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", "WARNING")
    stream = io.StringIO()
    configure_logging(stream=stream, fmt="%(levelname)s %(message)s")
    configure_logging(level="DEBUG", stream=io.StringIO())  # no-op once configured

    pkg = logging.getLogger("statement_ingest")
    streams = [h for h in pkg.handlers if isinstance(h, logging.StreamHandler)]
    assert len(streams) == 1
    assert not any(isinstance(h, logging.NullHandler) for h in pkg.handlers)
    assert pkg.level == logging.WARNING

    log = get_logger("statement_ingest.records")
    log.info("hidden")
    log.warning("shown %d", 1)
    assert stream.getvalue() == "WARNING shown 1\n"


def test_explicit_level_wins_over_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", "ERROR")
    configure_logging(level="10", stream=io.StringIO())
    assert logging.getLogger("statement_ingest").level == logging.DEBUG


@pytest.mark.parametrize(
    "level, env, expected",
    [
        ("warning", None, logging.WARNING),
        ("verbose", "error", logging.ERROR),
        (None, "nonsense", logging.INFO),
    ],
)
def test_level_names_and_fallbacks(
    monkeypatch: pytest.MonkeyPatch, level: str | None, env: str | None, expected: int
):
    if env is not None:
        monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", env)
    configure_logging(level=level, stream=io.StringIO())
    assert logging.getLogger("statement_ingest").level == expected
