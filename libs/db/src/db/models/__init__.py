"""Shared SQLAlchemy models registry for the workspace database.

Holds the statement-import and ledger models used by ``ledger_import``.
"""

from .ledger import (
    Account,
    Base,
    CategorizationRule,
    Category,
    ImportBatch,
    Ledger,
    OpeningBalance,
    Transaction,
)

__all__ = [
    "Account",
    "Base",
    "CategorizationRule",
    "Category",
    "ImportBatch",
    "Ledger",
    "OpeningBalance",
    "Transaction",
]
