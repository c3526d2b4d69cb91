"""Exception taxonomy for ``finance_tracker``.

Structural CSV problems (:class:`UnrecognizedFormatError`,
:class:`MissingColumnError`) abort a whole upload before any row is processed.
Row-level problems are never raised; the normalizer logs and skips them.
"""

from __future__ import annotations

from collections.abc import Sequence

# ---------------------------------------------------------------------------
# CSV format errors
# ---------------------------------------------------------------------------


class CsvFormatError(ValueError):
    """Base error for statement files whose structure cannot be processed."""


class UnrecognizedFormatError(CsvFormatError):
    """The header row matches neither the ledger nor the transfer layout."""

    def __init__(self, headers: Sequence[str]) -> None:
        self.headers: tuple[str, ...] = tuple(headers)
        super().__init__(
            "Unknown or unsupported CSV format. Headers: "
            + (", ".join(repr(h) for h in self.headers) or "<none>")
        )


class MissingColumnError(CsvFormatError):
    """A layout was detected but a column needed for extraction is absent."""

    def __init__(self, layout: str, missing: Sequence[str], headers: Sequence[str]) -> None:
        self.layout = layout
        self.missing: tuple[str, ...] = tuple(missing)
        self.headers: tuple[str, ...] = tuple(headers)
        super().__init__(
            f"Missing required headers for {layout} format processing: "
            + ", ".join(self.missing)
        )


# ---------------------------------------------------------------------------
# Request-level errors
# ---------------------------------------------------------------------------


class UnauthorizedError(PermissionError):
    """The caller's identity is not the single allowed identity."""


class InvalidAccountTypeError(ValueError):
    """An account classification outside ``CASH``/``SAVE``/``WISE``/``CORP``."""


__all__ = [
    "CsvFormatError",
    "InvalidAccountTypeError",
    "MissingColumnError",
    "UnauthorizedError",
    "UnrecognizedFormatError",
]
