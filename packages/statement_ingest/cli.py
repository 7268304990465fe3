# ruff: noqa: I001
"""CLI for the ``statement_ingest`` package.

Command handlers (``cmd_*``) are plain functions returning a process exit
code so they can be called directly; the Typer app below wraps them.
Environment variables (notably ``DATABASE_URL``) are loaded from a local
``.env`` using ``python-dotenv`` before any command runs. Business logic lives
in :mod:`statement_ingest.api`.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .errors import IngestError
from .logging_setup import configure_logging
from .settings import load_settings


def _read_upload(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
    except IsADirectoryError:
        print(f"Error: Not a file: {path}", file=sys.stderr)
    return None


def _sql_store(database_url: str | None):
    from .store import SqlReconciliationStore

    url = database_url or load_settings().database_url
    if not url:
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return None
    return SqlReconciliationStore(database_url=url)


def cmd_preview(path: Path, *, year: int | None = None, month: int | None = None) -> int:
    """Parse a card export and print one tab-separated line per record.

    Columns: transaction date, billing date, merchant, amount, currency, type,
    card. Nothing is persisted. A trailing summary goes to stderr.
    """

    from .api import preview_card_file

    blob = _read_upload(path)
    if blob is None:
        return 1
    try:
        result = preview_card_file(blob, path.name, year=year, month=month)
    except IngestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for r in result.records:
        print(
            "\t".join(
                [
                    r.transaction_date.date().isoformat(),
                    r.billing_date.date().isoformat(),
                    r.merchant_name,
                    f"{r.amount:.2f}",
                    r.currency,
                    str(r.type),
                    r.card_number or "",
                ]
            )
        )
    print(
        f"{result.format}: {result.total_parsed} of {result.raw_row_count} rows parsed "
        f"for {result.assigned_month}",
        file=sys.stderr,
    )
    return 0


def cmd_import_card(
    path: Path,
    *,
    user_id: int,
    year: int | None = None,
    month: int | None = None,
    database_url: str | None = None,
) -> int:
    """Import a card export for ``user_id``, replacing the month's records."""

    from .api import upload_card_file

    blob = _read_upload(path)
    if blob is None:
        return 1
    store = _sql_store(database_url)
    if store is None:
        return 1
    try:
        result = upload_card_file(
            blob,
            path.name,
            user_id=user_id,
            store=store,
            year=year,
            month=month,
            deadline_seconds=load_settings().deadline_seconds,
        )
    except (IngestError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(
        f"Imported {result.total_created} of {result.total_parsed} parsed transactions "
        f"into {result.assigned_month} (card {', '.join(result.card_numbers) or 'all'})"
    )
    return 0


def cmd_import_bank(path: Path, *, user_id: int, database_url: str | None = None) -> int:
    """Import a bank statement for ``user_id``, replacing the stored one."""

    from .api import upload_bank_statement

    blob = _read_upload(path)
    if blob is None:
        return 1
    store = _sql_store(database_url)
    if store is None:
        return 1
    try:
        result = upload_bank_statement(blob, path.name, user_id=user_id, store=store)
    except (IngestError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    header = result.statement.header
    print(
        f"Stored statement {result.statement_id} with {result.total_rows} rows "
        f"(account {header.account_number or 'unknown'})"
    )
    return 0


def cmd_show_month(
    *, user_id: int, year: int, month: int, database_url: str | None = None
) -> int:
    """Print the stored records of one accounting month."""

    from .models import MonthKey

    store = _sql_store(database_url)
    if store is None:
        return 1
    try:
        records = store.list_records(user_id, MonthKey(year, month))
    except IngestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for r in records:
        print(
            f"{r.id}\t{r.transaction_date.date().isoformat()}\t{r.merchant_name}\t"
            f"{r.amount:.2f}\t{r.currency}\t{r.type}\t{r.card_number or ''}"
        )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank and credit-card statements. Loads DATABASE_URL from a "
        "local .env before running."
    ),
)

# Module-level argument object to satisfy ruff B008 (no calls in defaults).
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement file (.xlsx, .xls or .csv)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("preview")
def preview_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    year: int | None = typer.Option(None, help="Accounting year override."),
    month: int | None = typer.Option(None, help="Accounting month override (1-12)."),
) -> None:
    """Parse a card export and print the records without saving them."""

    _exit(cmd_preview(path, year=year, month=month))


@app.command("import-card")
def import_card_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    user_id: int = typer.Option(..., help="Owner of the imported transactions."),
    year: int | None = typer.Option(None, help="Accounting year override."),
    month: int | None = typer.Option(None, help="Accounting month override (1-12)."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Import a credit-card export, replacing the month's records for its card."""

    _exit(
        cmd_import_card(
            path, user_id=user_id, year=year, month=month, database_url=database_url
        )
    )


@app.command("import-bank")
def import_bank_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    user_id: int = typer.Option(..., help="Owner of the statement."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Import a bank statement, replacing the user's previous statement."""

    _exit(cmd_import_bank(path, user_id=user_id, database_url=database_url))


@app.command("show-month")
def show_month_cmd(
    user_id: int = typer.Option(..., help="Owner of the transactions."),
    year: int = typer.Option(..., help="Accounting year."),
    month: int = typer.Option(..., help="Accounting month (1-12)."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """List the stored transactions of one accounting month."""

    _exit(cmd_show_month(user_id=user_id, year=year, month=month, database_url=database_url))


@app.callback()
def _root() -> None:
    """Load ``.env`` (without overriding set variables) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(load_settings().log_level)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
