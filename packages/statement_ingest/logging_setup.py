"""Log output for ``statement_ingest``.

Every module logs through ``get_logger("statement_ingest.<module>")``. Nothing
is printed until an entrypoint calls :func:`configure_logging`; the CLI does so
once at startup with the level from ``STATEMENT_INGEST_LOG_LEVEL``. Hosts that
embed the package can configure the ``statement_ingest`` logger themselves.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "statement_ingest"
LEVEL_ENV = "STATEMENT_INGEST_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_CONFIGURED = False


def _coerce_level(level: int | str | None) -> int | None:
    """``20``, ``"20"`` and ``"info"`` all mean INFO; anything else is ``None``."""

    if isinstance(level, int):
        return level
    if not isinstance(level, str):
        return None
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else None


def _resolve_level(level: int | str | None) -> int:
    for candidate in (level, os.getenv(LEVEL_ENV)):
        resolved = _coerce_level(candidate)
        if resolved is not None:
            return resolved
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send package logs to ``stream``; later calls are no-ops.

    Parameters
    ----------
    level:
        Level number or name. Falls back to ``STATEMENT_INGEST_LOG_LEVEL``,
        then INFO.
    fmt:
        Record format, ``DEFAULT_FORMAT`` when omitted.
    stream:
        Destination of the single stream handler.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    pkg.setLevel(resolved)
    pkg.addHandler(handler)
    # Records stop here; the root logger would print them a second time.
    pkg.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _CONFIGURED and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["DEFAULT_FORMAT", "LEVEL_ENV", "PACKAGE_LOGGER", "configure_logging", "get_logger"]
