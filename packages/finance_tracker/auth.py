"""Single-identity auth gate.

Every read and write goes through :func:`authorize` first. Exactly one email
address (``FT_ALLOWED_EMAIL``) is accepted; with no allow-list configured,
everyone is rejected.
"""

from __future__ import annotations

from .errors import UnauthorizedError
from .logging_setup import get_logger

logger = get_logger("finance_tracker.auth")


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def authorize(email: str | None, allowed_email: str | None) -> str:
    """Return the normalized email when it is the allowed identity.

    Raises :class:`~finance_tracker.errors.UnauthorizedError` otherwise.
    """

    candidate = _normalize_email(email)
    allowed = _normalize_email(allowed_email)
    if not candidate or not allowed or candidate != allowed:
        logger.error("Unauthorized access attempt by %r", email)
        raise UnauthorizedError("Unauthorized")
    return candidate


__all__ = ["authorize"]
