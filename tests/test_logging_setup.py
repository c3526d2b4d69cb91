from __future__ import annotations

import io
import logging

from finance_tracker.logging_setup import configure_logging, get_logger, reset_logging


def test_package_is_silent_until_configured():
    get_logger("finance_tracker.test")
    pkg = logging.getLogger("finance_tracker")
    assert any(isinstance(h, logging.NullHandler) for h in pkg.handlers)


def test_configure_logging_once_with_env_level(monkeypatch):
    monkeypatch.setenv("FINANCE_TRACKER_LOG_LEVEL", "warning")
    monkeypatch.setenv("FINANCE_TRACKER_LOG_FORMAT", "%(levelname)s|%(message)s")
    buf = io.StringIO()

    handler = configure_logging(stream=buf)
    assert configure_logging(level="DEBUG", stream=io.StringIO()) is handler

    log = get_logger("finance_tracker.normalizers")
    log.info("hidden")
    log.warning("shown %d", 1)

    assert buf.getvalue() == "WARNING|shown 1\n"
    assert logging.getLogger("botocore").level == logging.WARNING


def test_explicit_level_and_reset():
    buf = io.StringIO()
    configure_logging(level="10", fmt="%(name)s %(message)s", stream=buf)
    get_logger("finance_tracker.storage").debug("put")
    assert buf.getvalue() == "finance_tracker.storage put\n"

    reset_logging()
    other = io.StringIO()
    configure_logging(level=logging.ERROR, stream=other)
    get_logger("finance_tracker.storage").warning("dropped")
    assert other.getvalue() == ""
    assert buf.getvalue() == "finance_tracker.storage put\n"
