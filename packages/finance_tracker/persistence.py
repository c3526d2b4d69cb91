# ruff: noqa: I001
"""Persistence integration for finance_tracker.

Functions here write users, accounts and normalized transactions to the shared
database owned by ``libs/db``. They rely on SQLAlchemy ORM models defined in
``db.models.finance`` and a session provided by the caller (typically
``db.client.session_scope``). Commit is the caller's responsibility.

Scope:
- Get-or-create the single user and one account per classification.
- Bulk insert normalized transactions, skipping rows that collide with the
  natural key ``(user_id, account_id, date, description, amount)``.
- Delete every transaction of a user ahead of a full reprocess.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from db.models.finance import FtAccount, FtTransaction, FtUser
from .logging_setup import get_logger
from .models import AccountType, NormalizedTransaction

logger = get_logger("finance_tracker.persistence")

# Keeps each multi-row INSERT well below SQLite's bound-parameter limit.
INSERT_BATCH_SIZE = 500

_CENT = Decimal("0.01")


def _to_decimal_2(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _dialect_insert(session: Session) -> Any:
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"unsupported database dialect for duplicate-skip inserts: {name}")


def _batched(items: Sequence[dict[str, Any]], size: int) -> Iterator[Sequence[dict[str, Any]]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def get_or_create_user(session: Session, email: str, name: str | None = None) -> FtUser:
    """Return the user for ``email``, creating it (or refreshing its name)."""

    if not email:
        raise ValueError("Email is required to get or create user.")
    user = session.scalar(select(FtUser).where(FtUser.email == email))
    if user is None:
        user = FtUser(email=email, name=name)
        session.add(user)
        session.flush()
        logger.info("Created user %s (id=%s)", email, user.id)
    elif name and user.name != name:
        user.name = name
        user.updated_at = func.current_timestamp()
        session.flush()
    return user


def get_or_create_account(
    session: Session, user_id: int, account_type: AccountType
) -> FtAccount:
    """Return the account of ``account_type`` for the user, creating it if needed."""

    account = session.scalar(
        select(FtAccount).where(
            (FtAccount.user_id == user_id) & (FtAccount.type == account_type.value)
        )
    )
    if account is None:
        account = FtAccount(user_id=user_id, type=account_type.value)
        session.add(account)
        session.flush()
    return account


def insert_transactions(
    session: Session,
    *,
    user_id: int,
    account_id: int,
    account_type: AccountType,
    records: Iterable[NormalizedTransaction],
) -> int:
    """Insert normalized records, skipping natural-key duplicates.

    Returns the number of rows actually inserted (duplicates are not counted).
    """

    payloads: list[dict[str, Any]] = [
        {
            "user_id": user_id,
            "account_id": account_id,
            "account_type": account_type.value,
            "date": rec.date,
            "description": rec.description,
            "amount": _to_decimal_2(rec.amount),
            "balance": _to_decimal_2(rec.balance),
        }
        for rec in records
    ]
    if not payloads:
        return 0

    insert = _dialect_insert(session)
    inserted = 0
    for batch in _batched(payloads, INSERT_BATCH_SIZE):
        stmt = insert(FtTransaction).values(list(batch)).on_conflict_do_nothing()
        result = session.execute(stmt)
        inserted += max(result.rowcount or 0, 0)
    logger.info(
        "Inserted %d of %d transactions for account %s (%s)",
        inserted,
        len(payloads),
        account_id,
        account_type.value,
    )
    return inserted


def delete_transactions_for_user(session: Session, user_id: int) -> int:
    """Delete every stored transaction of ``user_id`` and return the count."""

    result = session.execute(delete(FtTransaction).where(FtTransaction.user_id == user_id))
    deleted = max(result.rowcount or 0, 0)
    logger.info("Deleted %d transactions for user %s", deleted, user_id)
    return deleted


def find_user(session: Session, email: str) -> FtUser | None:
    return session.scalar(select(FtUser).where(FtUser.email == email))


__all__ = [
    "INSERT_BATCH_SIZE",
    "delete_transactions_for_user",
    "find_user",
    "get_or_create_account",
    "get_or_create_user",
    "insert_transactions",
]
