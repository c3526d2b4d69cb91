# ruff: noqa: I001
"""Orchestration for statement uploads and full reprocessing.

These functions glue the pure normalizer to the auth gate, the object store
and the relational store. They take an open SQLAlchemy ``Session`` and leave
commit/rollback to the caller (``db.client.session_scope`` in the CLI).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from .auth import authorize
from .logging_setup import get_logger
from .models import AccountType, DateRange, parse_account_type
from .normalizers import date_range_of, normalize_statement
from .persistence import (
    delete_transactions_for_user,
    get_or_create_account,
    get_or_create_user,
    insert_transactions,
)
from .settings import Settings
from .storage import (
    ObjectStore,
    account_type_from_key,
    fallback_date_range,
    make_upload_key,
    user_prefix,
)

logger = get_logger("finance_tracker.api")


@dataclass(frozen=True, slots=True)
class UploadResult:
    key: str
    account_type: AccountType
    date_range: DateRange
    layout: str
    parsed: int
    skipped: int
    inserted: int


@dataclass(slots=True)
class ReprocessResult:
    deleted: int = 0
    files_processed: int = 0
    inserted: int = 0
    failed_keys: list[str] = field(default_factory=list)
    skipped_keys: list[str] = field(default_factory=list)


def upload_statement(
    *,
    email: str,
    name: str | None,
    account: str,
    filename: str,
    body: bytes,
    content_type: str,
    session: Session,
    store: ObjectStore,
    settings: Settings,
    today: date | None = None,
) -> UploadResult:
    """Archive a statement file and insert its normalized transactions.

    The file is stored before it is normalized, so a statement whose layout is
    not recognized is still archived (and will be retried by
    :func:`reprocess_uploads`) while the format error propagates to the caller.

    Raises
    ------
    UnauthorizedError
        ``email`` is not the allowed identity.
    InvalidAccountTypeError
        ``account`` is not one of the known classifications.
    StorageError
        The object store rejected the upload.
    CsvFormatError
        The layout is unrecognized or misses a required column.
    """

    user_email = authorize(email, settings.allowed_email)
    account_type = parse_account_type(account)

    date_range = date_range_of(body)
    if date_range is None:
        logger.warning("Falling back to upload date for object key generation.")
        date_range = fallback_date_range(today or date.today())

    key = make_upload_key(
        email=user_email, account_type=account_type, date_range=date_range, filename=filename
    )
    store.put(key, body, content_type)

    user = get_or_create_user(session, user_email, name)
    acct = get_or_create_account(session, user.id, account_type)
    try:
        report = normalize_statement(body, config=settings.exchange_rate)
    except Exception:
        logger.error("Processing failed after %s was archived", key)
        raise

    inserted = insert_transactions(
        session,
        user_id=user.id,
        account_id=acct.id,
        account_type=account_type,
        records=report.records,
    )
    logger.info(
        "Upload of %s complete: %d parsed, %d skipped, %d inserted",
        filename,
        len(report.records),
        len(report.skipped),
        inserted,
    )
    return UploadResult(
        key=key,
        account_type=account_type,
        date_range=date_range,
        layout=report.layout,
        parsed=len(report.records),
        skipped=len(report.skipped),
        inserted=inserted,
    )


def reprocess_uploads(
    *,
    email: str,
    name: str | None,
    session: Session,
    store: ObjectStore,
    settings: Settings,
) -> ReprocessResult:
    """Rebuild the user's transactions from every archived statement.

    Existing transactions are deleted first. Each ``.csv`` object under the
    user's prefix is downloaded, normalized and inserted under the account
    classification encoded in its key. A failure in one file is logged and the
    remaining files are still processed.
    """

    user_email = authorize(email, settings.allowed_email)
    user = get_or_create_user(session, user_email, name)

    result = ReprocessResult()
    result.deleted = delete_transactions_for_user(session, user.id)

    prefix = user_prefix(user_email)
    keys = store.list_keys(prefix)
    if not keys:
        logger.info("No files found under %s to reprocess.", prefix)
        return result

    for key in keys:
        if not key.lower().endswith(".csv"):
            logger.info("Skipping non-CSV key: %s", key)
            result.skipped_keys.append(key)
            continue
        result.files_processed += 1

        account_type = account_type_from_key(key)
        if account_type is None:
            logger.warning("Could not determine account type from key: %s. Skipping.", key)
            result.skipped_keys.append(key)
            continue

        try:
            body = store.get(key)
            report = normalize_statement(body, config=settings.exchange_rate)
            # Savepoint per file: a failed statement must not abort the
            # outer transaction holding the delete and earlier files.
            with session.begin_nested():
                acct = get_or_create_account(session, user.id, account_type)
                inserted = insert_transactions(
                    session,
                    user_id=user.id,
                    account_id=acct.id,
                    account_type=account_type,
                    records=report.records,
                )
        except Exception:
            logger.exception("Error processing file %s", key)
            result.failed_keys.append(key)
            continue
        logger.info("Inserted %d transactions from %s.", inserted, key)
        result.inserted += inserted

    logger.info(
        "Reprocessing finished. Processed %d files, inserted %d new transactions.",
        result.files_processed,
        result.inserted,
    )
    return result


__all__ = ["ReprocessResult", "UploadResult", "reprocess_uploads", "upload_statement"]
