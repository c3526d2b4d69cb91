from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Account classifications accepted by uploads. Mirrors
# ``finance_tracker.models.AccountType``; kept as a plain tuple here so the db
# library has no dependency on the application package.
ACCOUNT_TYPES: tuple[str, ...] = ("CASH", "SAVE", "WISE", "CORP")
_ACCOUNT_TYPES_SQL = ",".join(f"'{t}'" for t in ACCOUNT_TYPES)

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_PK_TYPE = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Identity: ft_users
# ---------------------------


class FtUser(Base):
    __tablename__ = "ft_users"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


# ---------------------------
# Identity: ft_accounts
# ---------------------------


class FtAccount(Base):
    __tablename__ = "ft_accounts"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ft_users.id", ondelete="CASCADE"), nullable=False
    )
    # One account per (user, classification); uploads for the same
    # classification always land in the same account.
    type: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        UniqueConstraint("user_id", "type", name="uq_ft_accounts_user_type"),
        CheckConstraint(
            f"type in ({_ACCOUNT_TYPES_SQL})",
            name="ck_ft_accounts_type",
        ),
    )


# ---------------------------
# Core: ft_transactions
# ---------------------------


class FtTransaction(Base):
    __tablename__ = "ft_transactions"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ft_users.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ft_accounts.id", ondelete="CASCADE"), nullable=False
    )
    # Denormalized copy of ft_accounts.type so summaries and time series can
    # group without a join.
    account_type: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Signed, reporting currency. Positive = inflow, negative = outflow.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        # Natural key for duplicate-skip inserts: re-uploading (or reprocessing)
        # the same statement must not create new rows.
        UniqueConstraint(
            "user_id",
            "account_id",
            "date",
            "description",
            "amount",
            name="uq_ft_tx_natural_key",
        ),
        CheckConstraint(
            f"account_type in ({_ACCOUNT_TYPES_SQL})",
            name="ck_ft_tx_account_type",
        ),
        # Listing is always "newest first" for one user.
        Index("ix_ft_transactions_user_date", "user_id", "date"),
    )


__all__ = [
    "ACCOUNT_TYPES",
    "Base",
    "FtAccount",
    "FtTransaction",
    "FtUser",
]
