"""Read side: paginated listing, inflow/outflow summary and time series.

Aggregation is done in Python over the selected rows so results are identical
on PostgreSQL and SQLite. All money stays in ``Decimal``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.finance import FtTransaction

from .logging_setup import get_logger
from .models import AccountType

logger = get_logger("finance_tracker.queries")

DEFAULT_PAGE_SIZE = 20

type Period = Literal["month", "week", "quarter"]
PERIODS: tuple[str, ...] = ("month", "week", "quarter")

_ZERO = Decimal("0")

# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionRow:
    id: int
    account_type: str
    date: datetime
    description: str
    amount: Decimal
    balance: Decimal | None


@dataclass(frozen=True, slots=True)
class TransactionPage:
    items: list[TransactionRow]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit))


def list_transactions(
    session: Session, user_id: int, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE
) -> TransactionPage:
    """Return one page of the user's transactions, newest first."""

    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive integers")

    rows = session.scalars(
        select(FtTransaction)
        .where(FtTransaction.user_id == user_id)
        .order_by(FtTransaction.date.desc(), FtTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = session.scalar(
        select(func.count()).select_from(FtTransaction).where(FtTransaction.user_id == user_id)
    )
    logger.info("Found %d transactions for page %d. Total: %s", len(rows), page, total)
    return TransactionPage(
        items=[
            TransactionRow(
                id=r.id,
                account_type=r.account_type,
                date=r.date,
                description=r.description,
                amount=r.amount,
                balance=r.balance,
            )
            for r in rows
        ],
        page=page,
        limit=limit,
        total=int(total or 0),
    )


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Flow:
    inflow: Decimal = _ZERO
    outflow: Decimal = _ZERO

    def add(self, amount: Decimal) -> None:
        if amount > 0:
            self.inflow += amount
        else:
            # Outflows are stored negative; totals report their magnitude.
            self.outflow += abs(amount)


@dataclass(slots=True)
class Summary:
    accounts: dict[AccountType, Flow] = field(
        default_factory=lambda: {a: Flow() for a in AccountType}
    )
    totals: Flow = field(default_factory=Flow)

    @property
    def net(self) -> Decimal:
        return self.totals.inflow - self.totals.outflow


def summarize(session: Session, user_id: int) -> Summary:
    """Inflow/outflow per account classification plus overall totals."""

    summary = Summary()
    rows = session.execute(
        select(FtTransaction.account_type, FtTransaction.amount).where(
            FtTransaction.user_id == user_id
        )
    ).all()
    for account_type, amount in rows:
        summary.accounts[AccountType(account_type)].add(amount)
        summary.totals.add(amount)
    logger.info("Summary calculated over %d transactions", len(rows))
    return summary


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PeriodFlow:
    period: str
    inflow: Decimal
    outflow: Decimal


def _bucket(when: datetime, period: Period) -> tuple[tuple[int, int], str]:
    if period == "week":
        iso = when.isocalendar()
        return (iso.year, iso.week), f"{iso.year}-W{iso.week:02d}"
    if period == "quarter":
        quarter = (when.month - 1) // 3 + 1
        return (when.year, quarter), f"{when.year}-Q{quarter}"
    return (when.year, when.month), f"{when.year}-{when.month:02d}"


def timeseries(
    session: Session,
    user_id: int,
    *,
    period: str = "month",
    accounts: Sequence[AccountType] | None = None,
) -> list[PeriodFlow]:
    """Inflow/outflow per calendar bucket, oldest bucket first.

    ``period`` is one of ``month`` (``YYYY-MM``), ``week`` (ISO ``YYYY-Www``)
    or ``quarter`` (``YYYY-Qn``). ``accounts`` defaults to every account.
    """

    if period not in PERIODS:
        raise ValueError(f"period must be one of {', '.join(PERIODS)}, got {period!r}")
    selected = list(accounts) if accounts else list(AccountType)

    rows = session.execute(
        select(FtTransaction.date, FtTransaction.amount).where(
            (FtTransaction.user_id == user_id)
            & FtTransaction.account_type.in_([a.value for a in selected])
        )
    ).all()

    buckets: dict[tuple[int, int], tuple[str, Flow]] = {}
    for when, amount in rows:
        key, label = _bucket(when, period)  # type: ignore[arg-type]
        if key not in buckets:
            buckets[key] = (label, Flow())
        buckets[key][1].add(amount)

    logger.info("Found %d time periods.", len(buckets))
    return [
        PeriodFlow(period=label, inflow=flow.inflow, outflow=flow.outflow)
        for _, (label, flow) in sorted(buckets.items())
    ]


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "Flow",
    "PERIODS",
    "PeriodFlow",
    "Summary",
    "TransactionPage",
    "TransactionRow",
    "list_transactions",
    "summarize",
    "timeseries",
]
