"""Data models and type aliases for ``ledger_import``.

Two families live here:

- frozen dataclasses for values flowing through the pipeline
  (``NormalizedTransaction``, parse results, categorization decisions);
- pydantic models for the output contracts handed to callers
  (``ImportSummary``, ``ReconciliationResult``) and for validated rule input
  (``RuleInput`` / ``RuleUpdate``).

Money is always an ``int`` of minor units (cents for EUR); no floats.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Literal vocabularies
# ---------------------------------------------------------------------------

type ImportFormat = Literal["csv_ing", "xlsx_initial"]
type Direction = Literal["credit", "debit"]
type ClassificationSource = Literal["manual", "rule", "history", "import"]
type Confidence = Literal["exact", "description", "account", "overall", "review"]
type MatchType = Literal["contains", "startsWith", "endsWith", "regex"]
type MatchField = Literal["description", "counterparty", "reference", "source"]
type ReconciliationStatus = Literal["balanced", "unreconciled", "unknown"]

MATCH_TYPES: tuple[str, ...] = ("contains", "startsWith", "endsWith", "regex")
MATCH_FIELDS: tuple[str, ...] = ("description", "counterparty", "reference", "source")

# An opaque row as read from the source file (header -> cell value).
type RawRow = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A statement row converted into typed domain values.

    ``amount_minor`` carries the real cash direction: credits are ``>= 0`` and
    debits ``< 0`` once the debit/credit marker has been applied.
    """

    account_identifier: str
    account_name: str | None
    currency: str
    date: dt.date
    description: str
    normalized_description: str
    counterparty: str | None
    amount_minor: int
    reference: str | None
    source: str
    raw: RawRow = field(default_factory=dict)

    @property
    def direction(self) -> Direction:
        return "credit" if self.amount_minor >= 0 else "debit"


@dataclass(frozen=True, slots=True)
class ParsedRowSuccess:
    row_number: int
    transaction: NormalizedTransaction


@dataclass(frozen=True, slots=True)
class ParsedRowError:
    row_number: int
    message: str
    raw: RawRow | None = None


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Output of every statement parser: one entry per non-blank input row."""

    successes: list[ParsedRowSuccess]
    errors: list[ParsedRowError]
    format: ImportFormat

    @property
    def total_rows(self) -> int:
        return len(self.successes) + len(self.errors)


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Classification:
    """Category decision for one incoming transaction."""

    category_id: int | None
    source: ClassificationSource
    rule_id: int | None = None
    confidence: Confidence | None = None

    @property
    def needs_review(self) -> bool:
        return self.category_id is None or self.confidence == "review"


# ---------------------------------------------------------------------------
# Output contracts
# ---------------------------------------------------------------------------


class ImportRowError(BaseModel):
    model_config = ConfigDict(frozen=True)

    row_number: int
    message: str


class ImportSummary(BaseModel):
    """Result of one import batch, returned even when nothing was imported."""

    model_config = ConfigDict(frozen=True)

    filename: str
    format: ImportFormat
    total_rows: int
    imported_count: int
    duplicate_count: int
    error_count: int
    auto_categorized_count: int
    pending_review_count: int
    batch_id: int
    errors: list[ImportRowError]


class AccountRef(BaseModel):
    id: int
    name: str
    identifier: str
    currency: str


class PeriodRef(BaseModel):
    start: dt.date
    end: dt.date
    month: int
    year: int


class LedgerRef(BaseModel):
    id: int | None
    locked_at: str | None
    locked_by: str | None


class OpeningBalanceRef(BaseModel):
    amount_minor: str
    effective_date: dt.date | None


class Totals(BaseModel):
    credit_minor: str
    debit_minor: str


class DuplicateIndicator(BaseModel):
    date: dt.date
    description: str
    amount_minor: str
    occurrences: int


class TrailEntry(BaseModel):
    id: int
    date: dt.date
    description: str
    amount_minor: str
    running_balance_minor: str
    currency: str
    reference: str | None


class ReconciliationResult(BaseModel):
    """Reconciliation report for one account and period.

    Balance figures are decimal strings of integer minor units so they survive
    JSON serialization without precision loss. The unsuffixed properties give
    back the integers.
    """

    account: AccountRef
    period: PeriodRef
    ledger: LedgerRef
    opening_balance: OpeningBalanceRef
    computed_end_balance_minor: str
    statement_end_balance_minor: str | None
    difference_minor: str | None
    status: ReconciliationStatus
    totals: Totals
    missing_dates: list[dt.date]
    duplicate_indicators: list[DuplicateIndicator]
    transactions: list[TrailEntry]

    @property
    def computed_end_balance(self) -> int:
        return int(self.computed_end_balance_minor)

    @property
    def statement_end_balance(self) -> int | None:
        if self.statement_end_balance_minor is None:
            return None
        return int(self.statement_end_balance_minor)

    @property
    def difference(self) -> int | None:
        if self.difference_minor is None:
            return None
        return int(self.difference_minor)


# ---------------------------------------------------------------------------
# Rule input
# ---------------------------------------------------------------------------


class RuleInput(BaseModel):
    """Validated input for creating a categorization rule."""

    model_config = ConfigDict(extra="forbid")

    label: str
    pattern: str
    category_id: int
    match_type: MatchType = "regex"
    match_field: MatchField = "description"
    priority: int = 100
    is_active: bool = True

    @field_validator("label", "pattern")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("must not be empty")
        return s


class RuleUpdate(BaseModel):
    """Partial update for a categorization rule; ``None`` leaves a field as-is."""

    model_config = ConfigDict(extra="forbid")

    label: str | None = None
    pattern: str | None = None
    category_id: int | None = None
    match_type: MatchType | None = None
    match_field: MatchField | None = None
    priority: int | None = None
    is_active: bool | None = None

    @field_validator("label", "pattern")
    @classmethod
    def _strip_optional(cls, v: str | None) -> str | None:
        if v is None:
            return None
        s = v.strip()
        if not s:
            raise ValueError("must not be empty")
        return s


__all__ = [
    "MATCH_FIELDS",
    "MATCH_TYPES",
    "AccountRef",
    "Classification",
    "ClassificationSource",
    "Confidence",
    "Direction",
    "DuplicateIndicator",
    "ImportFormat",
    "ImportRowError",
    "ImportSummary",
    "LedgerRef",
    "MatchField",
    "MatchType",
    "NormalizedTransaction",
    "OpeningBalanceRef",
    "ParseResult",
    "ParsedRowError",
    "ParsedRowSuccess",
    "PeriodRef",
    "RawRow",
    "ReconciliationResult",
    "ReconciliationStatus",
    "RuleInput",
    "RuleUpdate",
    "Totals",
    "TrailEntry",
]
