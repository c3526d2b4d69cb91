"""Logging for ``finance_tracker``.

All modules log through children of the ``"finance_tracker"`` logger obtained
with :func:`get_logger`. Only an application entrypoint (the CLI) calls
:func:`configure_logging`, which installs one ``StreamHandler``; until then the
package stays silent behind a ``NullHandler``.

Environment
-----------
- ``FINANCE_TRACKER_LOG_LEVEL``: level name or number (default ``INFO``).
- ``FINANCE_TRACKER_LOG_FORMAT``: ``logging.Formatter`` format string.

The AWS SDK and SQLAlchemy engine loggers are capped at ``WARNING`` so that
object-store and database chatter does not drown statement processing logs.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "finance_tracker"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "sqlalchemy.engine")

_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("FINANCE_TRACKER_LOG_LEVEL") or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    resolved = logging.getLevelNamesMapping().get(name)
    return resolved if resolved is not None else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Attach the package handler once and return it.

    Parameters
    ----------
    level:
        ``int`` or level name. ``None`` reads ``FINANCE_TRACKER_LOG_LEVEL``.
    fmt:
        Format string; falls back to ``FINANCE_TRACKER_LOG_FORMAT`` and then to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Destination for log records (``sys.stderr`` when omitted).

    Repeated calls return the existing handler unchanged.
    """

    global _handler
    if _handler is not None:
        return _handler

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or os.getenv("FINANCE_TRACKER_LOG_FORMAT") or _DEFAULT_FORMAT)
    )
    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    _handler = handler
    return handler


def reset_logging() -> None:
    """Detach the package handler so :func:`configure_logging` can run again."""

    global _handler
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        pkg_logger.removeHandler(_handler)
        _handler = None
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]
