"""Exception hierarchy for ``ledger_import``.

Row-level parse problems are not exceptions; they are collected as
``ParsedRowError`` values. The classes below cover batch-level and service
level failures that callers are expected to handle explicitly.
"""

from __future__ import annotations


class LedgerImportError(Exception):
    """Base class for every error raised by ``ledger_import`` services."""


class LockedPeriodError(LedgerImportError):
    """Raised when a write targets a locked ledger period."""


class OpeningBalanceLockedError(LedgerImportError):
    """Raised when a locked opening balance would be modified."""


class NotFoundError(LedgerImportError):
    """Raised when an account, ledger, rule, category or transaction is unknown."""


class InvalidRuleError(LedgerImportError):
    """Raised when categorization rule input fails validation."""


class MissingOpeningBalanceError(LedgerImportError):
    """No opening balance exists on or before the start of the period."""

    def __init__(self, message: str, *, account_id: int, year: int, month: int) -> None:
        super().__init__(message)
        self.account_id = account_id
        self.year = year
        self.month = month


class LedgerMismatchError(LedgerImportError):
    """The computed closing balance differs from the statement beyond tolerance."""

    def __init__(
        self,
        message: str,
        *,
        account_id: int,
        year: int,
        month: int,
        difference_minor: int,
        computed_minor: int,
        statement_minor: int,
    ) -> None:
        super().__init__(message)
        self.account_id = account_id
        self.year = year
        self.month = month
        self.difference_minor = difference_minor
        self.computed_minor = computed_minor
        self.statement_minor = statement_minor


__all__ = [
    "InvalidRuleError",
    "LedgerImportError",
    "LedgerMismatchError",
    "LockedPeriodError",
    "MissingOpeningBalanceError",
    "NotFoundError",
    "OpeningBalanceLockedError",
]
