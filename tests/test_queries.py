from __future__ import annotations

from decimal import Decimal

import pytest

from finance_tracker.models import AccountType
from finance_tracker.queries import list_transactions, summarize, timeseries
from tests.helpers.db import seed_transactions

EMAIL = "owner@example.com"

ROWS = [
    ("CASH", "2024-01-05", "Coffee Shop", "-4.50"),
    ("CASH", "2024-01-06", "Paycheck", "2500.00"),
    ("WISE", "2024-02-01 10:15:00", "Jane -> Acme", "-139.00"),
    ("SAVE", "2024-04-02", "Interest", "12.34"),
    ("CASH", "2024-04-03", "Zero fee", "0.00"),
]


@pytest.fixture
def user(session):
    return seed_transactions(session, email=EMAIL, rows=ROWS)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def test_list_transactions_newest_first_with_pagination(session, user):
    page1 = list_transactions(session, user.id, page=1, limit=2)
    page3 = list_transactions(session, user.id, page=3, limit=2)

    assert [t.description for t in page1.items] == ["Zero fee", "Interest"]
    assert [t.description for t in page3.items] == ["Coffee Shop"]
    assert page1.total == 5
    assert page1.total_pages == 3
    assert page3.items[0].amount == Decimal("-4.50")
    assert page3.items[0].account_type == "CASH"


def test_list_transactions_defaults_and_empty_user(session, user):
    page = list_transactions(session, user.id)
    assert (page.page, page.limit, len(page.items)) == (1, 20, 5)

    empty = list_transactions(session, user.id + 999)
    assert empty.items == []
    assert empty.total == 0
    assert empty.total_pages == 1


@pytest.mark.parametrize(("page", "limit"), [(0, 20), (1, 0), (-1, 5)])
def test_list_transactions_rejects_non_positive_paging(session, user, page, limit):
    with pytest.raises(ValueError):
        list_transactions(session, user.id, page=page, limit=limit)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def test_summarize_per_account_and_totals(session, user):
    summary = summarize(session, user.id)

    assert set(summary.accounts) == set(AccountType)
    cash = summary.accounts[AccountType.CASH]
    assert (cash.inflow, cash.outflow) == (Decimal("2500.00"), Decimal("4.50"))
    wise = summary.accounts[AccountType.WISE]
    assert (wise.inflow, wise.outflow) == (Decimal("0"), Decimal("139.00"))
    corp = summary.accounts[AccountType.CORP]
    assert (corp.inflow, corp.outflow) == (Decimal("0"), Decimal("0"))

    assert summary.totals.inflow == Decimal("2512.34")
    assert summary.totals.outflow == Decimal("143.50")
    assert summary.net == Decimal("2368.84")


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def test_timeseries_by_month(session, user):
    buckets = timeseries(session, user.id)

    assert [(b.period, b.inflow, b.outflow) for b in buckets] == [
        ("2024-01", Decimal("2500.00"), Decimal("4.50")),
        ("2024-02", Decimal("0"), Decimal("139.00")),
        ("2024-04", Decimal("12.34"), Decimal("0.00")),
    ]


def test_timeseries_by_quarter_filtered_to_accounts(session, user):
    buckets = timeseries(
        session, user.id, period="quarter", accounts=[AccountType.CASH, AccountType.SAVE]
    )
    assert [(b.period, b.inflow, b.outflow) for b in buckets] == [
        ("2024-Q1", Decimal("2500.00"), Decimal("4.50")),
        ("2024-Q2", Decimal("12.34"), Decimal("0.00")),
    ]


def test_timeseries_by_iso_week(session, user):
    buckets = timeseries(session, user.id, period="week", accounts=[AccountType.CASH])
    # 2024-01-05 (Fri) is ISO week 1, 2024-01-06 (Sat) too; 2024-04-03 is week 14.
    assert [b.period for b in buckets] == ["2024-W01", "2024-W14"]


def test_timeseries_rejects_unknown_period(session, user):
    with pytest.raises(ValueError, match="period"):
        timeseries(session, user.id, period="day")
