# ruff: noqa: I001
"""CLI for the ``finance_tracker`` package.

A Typer-based console interface over :mod:`finance_tracker.api` and
:mod:`finance_tracker.queries`. Environment variables (``DATABASE_URL``,
``FT_ALLOWED_EMAIL``, ``AWS_*``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Commands print tables with ``rich``;
failures are reported as ``Error: ...`` on stderr with exit code 1.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typer.models import OptionInfo

from .logging_setup import configure_logging

console = Console()


# ---- Module-level option objects (no calls in parameter defaults) -----------

CSV_PATH_ARGUMENT = typer.Argument(
    ...,
    help="Path to a statement CSV (ledger or transfer layout).",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
EMAIL_OPTION: OptionInfo = typer.Option(
    None,
    "--email",
    envvar="FT_USER_EMAIL",
    help="Identity performing the operation (falls back to FT_USER_EMAIL).",
)
NAME_OPTION: OptionInfo = typer.Option(None, "--name", help="Display name stored on the user.")
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
ACCOUNT_OPTION: OptionInfo = typer.Option(
    ..., "--account", help="Account classification: CASH, SAVE, WISE or CORP."
)


# ---- Small helpers ------------------------------------------------------------


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    raise typer.Exit(1)


def _read_file(csv_path: Path) -> bytes:
    try:
        return csv_path.read_bytes()
    except FileNotFoundError:
        _fail(f"File not found: {csv_path}")
    except PermissionError:
        _fail(f"Permission denied: {csv_path}")
    except OSError as e:
        _fail(f"Unexpected failure reading '{csv_path}': {e}")


def _load_settings():
    from .settings import load_settings_from_env

    try:
        return load_settings_from_env()
    except ValueError as e:
        _fail(str(e))


def _make_store():
    """Build the S3-backed store from ``AWS_*`` variables."""

    from .storage import S3ObjectStore, load_object_store_config_from_env

    return S3ObjectStore(load_object_store_config_from_env())


def _money(value) -> str:
    return f"{value:.2f}"


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Ingest bank-ledger and money-transfer CSV statements into a single "
        "reporting currency, archive them and report on the stored transactions."
    ),
)


@app.command("parse")
def parse_cmd(csv_path: Annotated[Path, CSV_PATH_ARGUMENT]) -> None:
    """Normalize a local statement and print the resulting transactions."""

    from .errors import CsvFormatError
    from .normalizers import date_range_of, normalize_statement

    settings = _load_settings()
    raw = _read_file(csv_path)
    try:
        report = normalize_statement(raw, config=settings.exchange_rate)
    except CsvFormatError as e:
        _fail(str(e))

    table = Table(title=f"{csv_path.name} ({report.layout})")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Balance", justify="right")
    for rec in report.records:
        table.add_row(
            rec.date.date().isoformat(),
            rec.description,
            _money(rec.amount),
            _money(rec.balance) if rec.balance is not None else "",
        )
    console.print(table)

    date_range = date_range_of(raw)
    span = (
        f"{date_range.start_date.isoformat()} to {date_range.end_date.isoformat()}"
        if date_range
        else "n/a"
    )
    console.print(
        f"{len(report.records)} transactions, {len(report.skipped)} rows skipped, dates {span}"
    )


@app.command("upload")
def upload_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARGUMENT],
    *,
    account: str = ACCOUNT_OPTION,
    email: str | None = EMAIL_OPTION,
    name: str | None = NAME_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    content_type: str = typer.Option("text/csv", help="Content type recorded on the object."),
) -> None:
    """Archive a statement in object storage and store its transactions."""

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .api import upload_statement
    from .errors import CsvFormatError, InvalidAccountTypeError, UnauthorizedError
    from .storage import StorageError

    settings = _load_settings()
    raw = _read_file(csv_path)
    try:
        store = _make_store()
        with session_scope(database_url=database_url or settings.database_url) as session:
            result = upload_statement(
                email=email or "",
                name=name,
                account=account,
                filename=csv_path.name,
                body=raw,
                content_type=content_type,
                session=session,
                store=store,
                settings=settings,
            )
    except (UnauthorizedError, InvalidAccountTypeError, CsvFormatError, StorageError) as e:
        _fail(str(e))
    except RuntimeError as e:
        _fail(f"upload failed: {e}")
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    console.print(f"Uploaded to [cyan]{result.key}[/cyan]")
    console.print(
        f"{result.layout}: {result.parsed} parsed, {result.skipped} skipped, "
        f"{result.inserted} new transactions stored."
    )


@app.command("reprocess")
def reprocess_cmd(
    *,
    email: str | None = EMAIL_OPTION,
    name: str | None = NAME_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete stored transactions and rebuild them from every archived statement."""

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .api import reprocess_uploads
    from .errors import UnauthorizedError
    from .storage import StorageError

    settings = _load_settings()
    try:
        store = _make_store()
        with session_scope(database_url=database_url or settings.database_url) as session:
            result = reprocess_uploads(
                email=email or "", name=name, session=session, store=store, settings=settings
            )
    except (UnauthorizedError, StorageError) as e:
        _fail(str(e))
    except RuntimeError as e:
        _fail(f"reprocess failed: {e}")
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    console.print(f"Reprocessing complete. Processed {result.files_processed} files.")
    console.print(f"Inserted {result.inserted} transactions (deleted {result.deleted}).")
    for key in result.failed_keys:
        console.print(f"[yellow]Failed:[/yellow] {key}")


@app.command("transactions")
def transactions_cmd(
    *,
    email: str | None = EMAIL_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    page: int = typer.Option(1, min=1, help="Page number (1-based)."),
    limit: int = typer.Option(20, min=1, help="Rows per page."),
) -> None:
    """List stored transactions, newest first."""

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .auth import authorize
    from .errors import UnauthorizedError
    from .persistence import find_user
    from .queries import list_transactions

    settings = _load_settings()
    try:
        user_email = authorize(email, settings.allowed_email)
        with session_scope(database_url=database_url or settings.database_url) as session:
            user = find_user(session, user_email)
            if user is None:
                console.print("No transactions found.")
                return
            result = list_transactions(session, user.id, page=page, limit=limit)
    except UnauthorizedError as e:
        _fail(str(e))
    except (ValueError, RuntimeError) as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    table = Table(title=f"Transactions (page {result.page} of {result.total_pages})")
    table.add_column("Date")
    table.add_column("Account")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Balance", justify="right")
    for item in result.items:
        table.add_row(
            item.date.date().isoformat(),
            item.account_type,
            item.description,
            _money(item.amount),
            _money(item.balance) if item.balance is not None else "",
        )
    console.print(table)
    console.print(f"{result.total} transactions in total.")


@app.command("summary")
def summary_cmd(
    *,
    email: str | None = EMAIL_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show inflow and outflow per account with overall totals."""

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .auth import authorize
    from .errors import UnauthorizedError
    from .persistence import find_user
    from .queries import Summary, summarize

    settings = _load_settings()
    try:
        user_email = authorize(email, settings.allowed_email)
        with session_scope(database_url=database_url or settings.database_url) as session:
            user = find_user(session, user_email)
            summary = summarize(session, user.id) if user is not None else Summary()
    except UnauthorizedError as e:
        _fail(str(e))
    except RuntimeError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    table = Table(title="Summary")
    table.add_column("Account")
    table.add_column("Inflow", justify="right")
    table.add_column("Outflow", justify="right")
    for account_type, flow in summary.accounts.items():
        table.add_row(account_type.value, _money(flow.inflow), _money(flow.outflow))
    table.add_row("TOTAL", _money(summary.totals.inflow), _money(summary.totals.outflow))
    console.print(table)
    console.print(f"Net: {_money(summary.net)}")


@app.command("timeseries")
def timeseries_cmd(
    *,
    email: str | None = EMAIL_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    period: str = typer.Option("month", help="Bucket size: month, week or quarter."),
    accounts: str = typer.Option("ALL", help="ALL or a comma-separated list of accounts."),
) -> None:
    """Show inflow and outflow per period."""

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .auth import authorize
    from .errors import InvalidAccountTypeError, UnauthorizedError
    from .models import parse_account_selection
    from .persistence import find_user
    from .queries import timeseries

    settings = _load_settings()
    try:
        user_email = authorize(email, settings.allowed_email)
        selected = parse_account_selection(accounts)
        with session_scope(database_url=database_url or settings.database_url) as session:
            user = find_user(session, user_email)
            buckets = (
                timeseries(session, user.id, period=period, accounts=selected)
                if user is not None
                else []
            )
    except (UnauthorizedError, InvalidAccountTypeError) as e:
        _fail(str(e))
    except (ValueError, RuntimeError) as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    table = Table(title=f"Cash flow by {period} ({', '.join(a.value for a in selected)})")
    table.add_column("Period")
    table.add_column("Inflow", justify="right")
    table.add_column("Outflow", justify="right")
    for bucket in buckets:
        table.add_row(bucket.period, _money(bucket.inflow), _money(bucket.outflow))
    console.print(table)


@app.callback()
def _root(
    *,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override FINANCE_TRACKER_LOG_LEVEL (e.g. DEBUG)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging once.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m finance_tracker.cli`
    app()
