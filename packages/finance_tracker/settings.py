"""Runtime configuration for ``finance_tracker``.

Values come from the process environment (the CLI loads a local ``.env`` with
``python-dotenv`` first, without overriding variables that are already set).

Recognized variables
--------------------
- ``DATABASE_URL``: SQLAlchemy URL for the relational store.
- ``FT_ALLOWED_EMAIL``: the single identity allowed to read or write data.
- ``FT_REPORTING_CURRENCY``: reporting currency code (default ``CAD``).
- ``FT_FOREIGN_CURRENCY``: the one convertible foreign currency (default ``USD``).
- ``FT_FOREIGN_RATE``: fixed rate from the foreign to the reporting currency
  (default ``1.39``).

Object-store variables are read separately by
:func:`finance_tracker.storage.load_object_store_config_from_env`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, ValidationError

from .models import ExchangeRateConfig


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    database_url: str | None = None
    allowed_email: str | None = None
    exchange_rate: ExchangeRateConfig = ExchangeRateConfig()


def load_settings_from_env(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    Raises ``ValueError`` naming the offending variable(s) when the conversion
    configuration is invalid.
    """

    env = os.environ if environ is None else environ

    rate_fields: dict[str, str] = {}
    for var, field_name in (
        ("FT_REPORTING_CURRENCY", "reporting_currency"),
        ("FT_FOREIGN_CURRENCY", "foreign_currency"),
        ("FT_FOREIGN_RATE", "rate_to_reporting_currency"),
    ):
        value = env.get(var)
        if value:
            rate_fields[field_name] = value

    try:
        exchange_rate = ExchangeRateConfig(**rate_fields)
    except ValidationError as exc:
        names = ", ".join(
            var
            for var in ("FT_REPORTING_CURRENCY", "FT_FOREIGN_CURRENCY", "FT_FOREIGN_RATE")
            if var in env
        )
        raise ValueError(f"Invalid exchange-rate configuration ({names}): {exc}") from exc

    return Settings(
        database_url=env.get("DATABASE_URL") or None,
        allowed_email=env.get("FT_ALLOWED_EMAIL") or None,
        exchange_rate=exchange_rate,
    )


__all__ = ["Settings", "load_settings_from_env"]
