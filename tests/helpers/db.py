"""DB helpers for tests: bootstrap a temporary SQLite DB and seed transactions."""

from __future__ import annotations

import os
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from db.models.finance import FtAccount, FtTransaction, FtUser
from sqlalchemy import event
from sqlalchemy import text as sql_text
from sqlalchemy.orm import Session


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs so ON DELETE CASCADE behaves as on Postgres
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    Base.metadata.create_all(bind=engine)
    _assert_transactions_schema_in_sync(url)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def seed_transactions(
    session: Session,
    *,
    email: str,
    rows: Iterable[tuple[str, str, str, str]],
) -> FtUser:
    """Insert ``(account_type, iso_date, description, amount)`` rows for ``email``.

    Accounts are created on demand; the user is created when missing.
    """

    user = session.query(FtUser).filter(FtUser.email == email).one_or_none()
    if user is None:
        user = FtUser(email=email, name=None)
        session.add(user)
        session.flush()

    accounts: dict[str, FtAccount] = {}
    for account_type, iso_date, description, amount in rows:
        account = accounts.get(account_type)
        if account is None:
            account = FtAccount(user_id=user.id, type=account_type)
            session.add(account)
            session.flush()
            accounts[account_type] = account
        session.add(
            FtTransaction(
                user_id=user.id,
                account_id=account.id,
                account_type=account_type,
                date=datetime.fromisoformat(iso_date),
                description=description,
                amount=Decimal(amount),
                balance=None,
            )
        )
    session.flush()
    return user


def _assert_transactions_schema_in_sync(database_url: str) -> None:
    """Quick sanity check: ORM column set matches SQLite table column set."""

    expected = {c.name for c in FtTransaction.__table__.columns}
    with session_scope(database_url=database_url) as session:
        rows = session.execute(sql_text("PRAGMA table_info('ft_transactions')")).fetchall()
        got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
    missing = expected - got
    extra = got - expected
    assert not missing and not extra, (
        f"ft_transactions schema drift: missing={missing or '∅'}, extra={extra or '∅'}"
    )
