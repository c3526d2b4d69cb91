"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance tracker models used by ``finance_tracker``.
"""

from .finance import ACCOUNT_TYPES, Base, FtAccount, FtTransaction, FtUser

__all__ = [
    "ACCOUNT_TYPES",
    "Base",
    "FtAccount",
    "FtTransaction",
    "FtUser",
]
