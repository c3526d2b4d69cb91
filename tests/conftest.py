"""Pytest configuration for test isolation.

Settings, the object store and the DB client all read the process
environment. A developer's shell (or a local ``.env``) may already export
``DATABASE_URL``, ``FT_*`` or ``AWS_*`` variables, which would leak into tests
and point them at real infrastructure. An autouse fixture clears them, and a
``database_url`` fixture bootstraps a throwaway SQLite file per test.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines, session_scope
from sqlalchemy.orm import Session

from finance_tracker.logging_setup import reset_logging
from tests.helpers.db import bootstrap_sqlite_db

_ENV_VARS = (
    "DATABASE_URL",
    "FT_ALLOWED_EMAIL",
    "FT_USER_EMAIL",
    "FT_REPORTING_CURRENCY",
    "FT_FOREIGN_CURRENCY",
    "FT_FOREIGN_RATE",
    "FINANCE_TRACKER_LOG_LEVEL",
    "FINANCE_TRACKER_LOG_FORMAT",
    "AWS_BUCKET",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_ENDPOINT_URL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
    reset_logging()


@pytest.fixture
def database_url(tmp_path: Path) -> Iterator[str]:
    url = bootstrap_sqlite_db(tmp_path / "db" / "test.sqlite3")
    yield url
    dispose_engines()


@pytest.fixture
def session(database_url: str) -> Iterator[Session]:
    with session_scope(database_url=database_url) as s:
        yield s
