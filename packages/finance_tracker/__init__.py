"""Public interface for the ``finance_tracker`` package.

This module exposes the statement normalizer, the orchestration entry points
and the public models/types as the stable import surface. There is no runtime
logic here, only symbol re-exports.
"""

from .api import ReprocessResult, UploadResult, reprocess_uploads, upload_statement
from .errors import (
    CsvFormatError,
    InvalidAccountTypeError,
    MissingColumnError,
    UnauthorizedError,
    UnrecognizedFormatError,
)
from .models import AccountType, DateRange, ExchangeRateConfig, NormalizedTransaction
from .normalizers import date_range_of, normalize_statement, normalize_transactions

__all__ = [
    # Normalizer
    "normalize_transactions",
    "normalize_statement",
    "date_range_of",
    # Orchestration
    "upload_statement",
    "reprocess_uploads",
    "UploadResult",
    "ReprocessResult",
    # Models / types
    "AccountType",
    "DateRange",
    "ExchangeRateConfig",
    "NormalizedTransaction",
    # Errors
    "CsvFormatError",
    "UnrecognizedFormatError",
    "MissingColumnError",
    "UnauthorizedError",
    "InvalidAccountTypeError",
]
