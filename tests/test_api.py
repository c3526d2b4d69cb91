from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from db.models.finance import FtAccount, FtTransaction
from sqlalchemy import select

from finance_tracker import (
    AccountType,
    DateRange,
    InvalidAccountTypeError,
    UnauthorizedError,
    UnrecognizedFormatError,
    reprocess_uploads,
    upload_statement,
)
from finance_tracker.settings import Settings
from tests.helpers.store import FakeStore

EMAIL = "owner@example.com"

LEDGER_CSV = (
    b"date,description,amount,balance\n"
    b"2024-01-05,Coffee Shop,-4.50,1000.00\n"
    b"2024-01-06,Paycheck,2500.00,3500.00\n"
)

TRANSFER_CSV = (
    b"ID,Status,Direction,Created on,Source name,Source amount (after fees),Source currency,"
    b"Target name,Target amount (after fees),Target currency,Reference\n"
    b"T-1,COMPLETED,OUT,2024-02-01 10:15:00,Jane,100.00,USD,Acme,92.00,EUR,\n"
    b"T-2,CANCELLED,OUT,2024-02-03 10:15:00,Jane,5.00,USD,Acme,4.60,EUR,\n"
)


@pytest.fixture
def settings() -> Settings:
    return Settings(allowed_email=EMAIL)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


def _upload(session, store, settings, **overrides):
    kwargs = dict(
        email=EMAIL,
        name="Owner",
        account="cash",
        filename="jan.csv",
        body=LEDGER_CSV,
        content_type="text/csv",
        session=session,
        store=store,
        settings=settings,
        today=date(2024, 5, 17),
    )
    kwargs.update(overrides)
    return upload_statement(**kwargs)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


def test_upload_archives_and_inserts(session, store, settings):
    result = _upload(session, store, settings)

    assert result.key == "uploads/owner@example.com/CASH/2024-01-05_to_2024-01-06/jan.csv"
    assert result.account_type is AccountType.CASH
    assert result.date_range == DateRange(date(2024, 1, 5), date(2024, 1, 6))
    assert (result.layout, result.parsed, result.skipped, result.inserted) == ("ledger", 2, 0, 2)
    assert store.objects[result.key] == LEDGER_CSV
    assert store.content_types[result.key] == "text/csv"

    amounts = session.scalars(select(FtTransaction.amount).order_by(FtTransaction.date)).all()
    assert amounts == [Decimal("-4.50"), Decimal("2500.00")]


def test_reupload_inserts_nothing_new(session, store, settings):
    _upload(session, store, settings)
    again = _upload(session, store, settings)
    assert again.inserted == 0
    assert len(session.scalars(select(FtTransaction)).all()) == 2


def test_upload_transfer_statement(session, store, settings):
    result = _upload(session, store, settings, account="WISE", body=TRANSFER_CSV)

    assert result.layout == "transfer"
    assert (result.parsed, result.skipped, result.inserted) == (1, 1, 1)
    (row,) = session.scalars(select(FtTransaction)).all()
    assert row.amount == Decimal("-139.00")
    assert row.description == "Jane -> Acme"
    assert row.account_type == "WISE"


def test_upload_without_dates_uses_fallback_range(session, store, settings):
    body = b"date,description,amount\nsometime,Mystery,-1.00\n"
    result = _upload(session, store, settings, body=body)
    assert result.key == "uploads/owner@example.com/CASH/2024-05-01_to_2024-05-01/jan.csv"
    assert result.inserted == 0


def test_upload_rejects_unauthorized_identity(session, store, settings):
    with pytest.raises(UnauthorizedError):
        _upload(session, store, settings, email="intruder@example.com")
    assert store.objects == {}


def test_upload_rejects_invalid_account(session, store, settings):
    with pytest.raises(InvalidAccountTypeError):
        _upload(session, store, settings, account="brokerage")
    assert store.objects == {}


def test_unrecognized_statement_is_archived_then_raises(session, store, settings):
    with pytest.raises(UnrecognizedFormatError):
        _upload(session, store, settings, body=b"foo,bar\n1,2\n")
    assert list(store.objects) == [
        "uploads/owner@example.com/CASH/2024-05-01_to_2024-05-01/jan.csv"
    ]


# ---------------------------------------------------------------------------
# Reprocess
# ---------------------------------------------------------------------------


def test_reprocess_rebuilds_from_archive(session, store, settings):
    _upload(session, store, settings)
    _upload(session, store, settings, account="WISE", filename="feb.csv", body=TRANSFER_CSV)
    # Extra objects: not a CSV, an unknown account segment and a broken file.
    store.objects["uploads/owner@example.com/notes.txt"] = b"hello"
    store.objects["uploads/owner@example.com/BROKERAGE/r/x.csv"] = LEDGER_CSV
    store.objects["uploads/owner@example.com/SAVE/r/broken.csv"] = LEDGER_CSV
    store.broken.add("uploads/owner@example.com/SAVE/r/broken.csv")
    store.objects["uploads/other@example.com/CASH/r/theirs.csv"] = LEDGER_CSV

    result = reprocess_uploads(
        email=EMAIL, name="Owner", session=session, store=store, settings=settings
    )

    assert result.deleted == 3
    assert result.files_processed == 4
    assert result.inserted == 3
    assert result.failed_keys == ["uploads/owner@example.com/SAVE/r/broken.csv"]
    assert "uploads/owner@example.com/notes.txt" in result.skipped_keys
    assert "uploads/owner@example.com/BROKERAGE/r/x.csv" in result.skipped_keys

    types = session.scalars(select(FtTransaction.account_type)).all()
    assert sorted(types) == ["CASH", "CASH", "WISE"]


def test_reprocess_continues_past_bad_statement(session, store, settings):
    store.objects["uploads/owner@example.com/CASH/r/a.csv"] = b"foo,bar\n1,2\n"
    store.objects["uploads/owner@example.com/CORP/r/b.csv"] = LEDGER_CSV

    result = reprocess_uploads(
        email=EMAIL, name=None, session=session, store=store, settings=settings
    )

    assert result.failed_keys == ["uploads/owner@example.com/CASH/r/a.csv"]
    assert result.inserted == 2
    account_types = session.scalars(select(FtAccount.type)).all()
    assert "CORP" in account_types


def test_reprocess_with_empty_archive_clears_transactions(session, store, settings):
    _upload(session, store, settings)
    store.objects.clear()

    result = reprocess_uploads(
        email=EMAIL, name=None, session=session, store=store, settings=settings
    )

    assert (result.deleted, result.files_processed, result.inserted) == (2, 0, 0)
    assert session.scalars(select(FtTransaction)).all() == []


def test_reprocess_rejects_unauthorized_identity(session, store, settings):
    with pytest.raises(UnauthorizedError):
        reprocess_uploads(
            email="intruder@example.com", name=None, session=session, store=store,
            settings=settings,
        )


def test_reprocess_rolls_back_only_the_failing_file(session, store, settings, monkeypatch):
    import finance_tracker.api as api_mod
    from sqlalchemy.exc import DBAPIError

    store.objects["uploads/owner@example.com/CASH/r/a.csv"] = LEDGER_CSV
    store.objects["uploads/owner@example.com/SAVE/r/b.csv"] = LEDGER_CSV
    real_insert = api_mod.insert_transactions

    def failing_insert(session, **kwargs):
        inserted = real_insert(session, **kwargs)
        if kwargs["account_type"] is AccountType.SAVE:
            raise DBAPIError("INSERT INTO ft_transactions", {}, Exception("server gone"))
        return inserted

    monkeypatch.setattr(api_mod, "insert_transactions", failing_insert)

    result = reprocess_uploads(
        email=EMAIL, name=None, session=session, store=store, settings=settings
    )
    session.commit()

    assert result.failed_keys == ["uploads/owner@example.com/SAVE/r/b.csv"]
    assert result.inserted == 2
    types = session.scalars(select(FtTransaction.account_type)).all()
    assert types == ["CASH", "CASH"]
