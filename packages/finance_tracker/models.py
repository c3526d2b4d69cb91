"""Data models for ``finance_tracker``.

- :class:`NormalizedTransaction` is the output unit of the statement
  normalizer. It carries no identity; the caller attaches user, account and
  account classification before persistence.
- :class:`DateRange` is the min/max date of an upload, used only to build the
  object-store key.
- :class:`AccountType` enumerates the account classifications an upload can
  target.
- :class:`ExchangeRateConfig` is the injected conversion configuration for the
  transfer layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import InvalidAccountTypeError

# ---------------------------------------------------------------------------
# Normalizer output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A single statement row, normalized to the reporting currency.

    ``amount`` is signed (positive = inflow, negative = outflow) and never a
    float. ``balance`` is only ever set for the ledger layout.
    """

    date: datetime
    description: str
    amount: Decimal
    balance: Decimal | None = None


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar range covered by an upload."""

    start_date: date
    end_date: date

    def as_key_fragment(self) -> str:
        """Render as ``YYYY-MM-DD_to_YYYY-MM-DD`` for object-store keys."""

        return f"{self.start_date.isoformat()}_to_{self.end_date.isoformat()}"


# ---------------------------------------------------------------------------
# Account classification
# ---------------------------------------------------------------------------


class AccountType(StrEnum):
    CASH = "CASH"
    SAVE = "SAVE"
    WISE = "WISE"
    CORP = "CORP"


def parse_account_type(value: str | None) -> AccountType:
    """Parse an account classification case-insensitively.

    Raises :class:`~finance_tracker.errors.InvalidAccountTypeError` for empty
    or unknown values.
    """

    candidate = (value or "").strip().upper()
    try:
        return AccountType(candidate)
    except ValueError as exc:
        raise InvalidAccountTypeError(f"Invalid account type specified: {value!r}") from exc


def parse_account_selection(value: str | None) -> list[AccountType]:
    """Parse ``"ALL"`` or a comma-separated list of account classifications.

    Unknown entries are dropped; when nothing valid remains an
    :class:`InvalidAccountTypeError` is raised.
    """

    raw = (value or "ALL").strip()
    if raw.upper() == "ALL":
        return list(AccountType)
    selected: list[AccountType] = []
    for part in raw.split(","):
        candidate = part.strip().upper()
        if candidate in AccountType.__members__ and AccountType(candidate) not in selected:
            selected.append(AccountType(candidate))
    if not selected:
        raise InvalidAccountTypeError(f"No valid accounts selected: {value!r}")
    return selected


# ---------------------------------------------------------------------------
# Conversion configuration
# ---------------------------------------------------------------------------


class ExchangeRateConfig(BaseModel):
    """Fixed conversion used by the transfer layout.

    Only one foreign currency is convertible; every other non-reporting pair is
    dropped by the normalizer rather than guessed.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    reporting_currency: str = "CAD"
    foreign_currency: str = "USD"
    rate_to_reporting_currency: Decimal = Decimal("1.39")

    @field_validator("reporting_currency", "foreign_currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        code = v.upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"currency code must be three letters, got {v!r}")
        return code

    @field_validator("rate_to_reporting_currency")
    @classmethod
    def _positive_finite_rate(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v <= 0:
            raise ValueError("rate_to_reporting_currency must be a positive finite decimal")
        return v


__all__ = [
    "AccountType",
    "DateRange",
    "ExchangeRateConfig",
    "NormalizedTransaction",
    "parse_account_selection",
    "parse_account_type",
]
