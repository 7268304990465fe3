"""Environment-driven settings for entrypoints.

Values are read from the process environment; the CLI loads a local ``.env``
with python-dotenv before calling :func:`load_settings`.

Variables
---------
``DATABASE_URL``
    SQLAlchemy URL for the SQL store (also read directly by ``db.client``).
``STATEMENT_INGEST_LOG_LEVEL``
    Log level name or number (see :mod:`statement_ingest.logging_setup`).
``STATEMENT_INGEST_DEADLINE_SECONDS``
    Optional upload budget in seconds; unset or empty disables it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None
    log_level: str | None
    deadline_seconds: float | None


def _positive_float(name: str, raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        database_url=env.get("DATABASE_URL") or None,
        log_level=env.get("STATEMENT_INGEST_LOG_LEVEL") or None,
        deadline_seconds=_positive_float(
            "STATEMENT_INGEST_DEADLINE_SECONDS", env.get("STATEMENT_INGEST_DEADLINE_SECONDS")
        ),
    )


__all__ = ["Settings", "load_settings"]
