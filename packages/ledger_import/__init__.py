"""Public interface for the ``ledger_import`` package.

Bank statement ingestion for a bookkeeping ledger: parse ING CSV exports and
the initial-load spreadsheet, drop duplicates, categorize each row, store it
in its monthly ledger and reconcile the result against the statement balance.

This module only re-exports the stable import surface.
"""

from .config import Settings
from .errors import (
    InvalidRuleError,
    LedgerImportError,
    LedgerMismatchError,
    LockedPeriodError,
    MissingOpeningBalanceError,
    NotFoundError,
    OpeningBalanceLockedError,
)
from .importer import import_parsed, import_statement
from .models import (
    ImportRowError,
    ImportSummary,
    NormalizedTransaction,
    ParsedRowError,
    ParsedRowSuccess,
    ParseResult,
    ReconciliationResult,
    RuleInput,
    RuleUpdate,
)
from .parsers import parse_ing_csv, parse_initial_workbook, parse_statement
from .persistence import SqlRepository
from .reconciliation import reconcile, validate_ledger_balance
from .repository import Repository

__all__ = [
    "ImportRowError",
    "ImportSummary",
    "InvalidRuleError",
    "LedgerImportError",
    "LedgerMismatchError",
    "LockedPeriodError",
    "MissingOpeningBalanceError",
    "NormalizedTransaction",
    "NotFoundError",
    "OpeningBalanceLockedError",
    "ParseResult",
    "ParsedRowError",
    "ParsedRowSuccess",
    "ReconciliationResult",
    "Repository",
    "RuleInput",
    "RuleUpdate",
    "Settings",
    "SqlRepository",
    "import_parsed",
    "import_statement",
    "parse_ing_csv",
    "parse_initial_workbook",
    "parse_statement",
    "reconcile",
    "validate_ledger_balance",
]
