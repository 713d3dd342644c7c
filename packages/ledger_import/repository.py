"""Storage contract required by the ledger import services.

Services receive a ``Repository`` instance instead of reaching for a global
database client. ``ledger_import.persistence.SqlRepository`` implements it on
top of a SQLAlchemy session; the records it returns are the ORM rows from
``db.models.ledger``.

The repository never decides business rules (locks, precedence, counts). It
reads and writes rows inside the caller's transaction; committing is the
caller's job (see ``db.client.session_scope``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from db.models.ledger import (
    Account,
    CategorizationRule,
    Category,
    ImportBatch,
    Ledger,
    OpeningBalance,
    Transaction,
)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A prior manually classified transaction, as fed to the suggestion index."""

    account_id: int
    amount_minor: int
    normalized_description: str
    category_id: int


class Repository(Protocol):
    # ---- accounts ---------------------------------------------------------
    def upsert_account(
        self, user_id: str, identifier: str, *, name: str, currency: str
    ) -> Account: ...

    def get_account(self, user_id: str, account_id: int) -> Account | None: ...

    def list_accounts(self, user_id: str) -> list[Account]: ...

    # ---- ledgers ----------------------------------------------------------
    def get_ledger(self, user_id: str, year: int, month: int) -> Ledger | None: ...

    def create_ledger(self, user_id: str, year: int, month: int) -> Ledger: ...

    def save_ledger_lock(
        self,
        ledger: Ledger,
        *,
        locked_at: datetime | None,
        locked_by: str | None,
        note: str | None,
    ) -> Ledger: ...

    # ---- opening balances -------------------------------------------------
    def latest_opening_balance(
        self, account_id: int, on_or_before: date
    ) -> OpeningBalance | None: ...

    def get_opening_balance(self, account_id: int, effective_date: date) -> OpeningBalance | None: ...

    def save_opening_balance(
        self, account_id: int, effective_date: date, amount_minor: int
    ) -> OpeningBalance: ...

    def save_opening_balance_lock(
        self, balance: OpeningBalance, *, locked_at: datetime, locked_by: str
    ) -> OpeningBalance: ...

    # ---- transactions -----------------------------------------------------
    def existing_hashes(self, user_id: str, hashes: Iterable[str]) -> set[str]: ...

    def insert_transactions(self, rows: Sequence[Mapping[str, Any]]) -> None: ...

    def count_batch_transactions(self, batch_id: int) -> int: ...

    def manual_history(self, user_id: str) -> list[HistoryEntry]: ...

    def find_history_match(
        self,
        user_id: str,
        *,
        account_id: int,
        normalized_description: str,
        amount_minor: int,
        threshold_minor: int,
    ) -> int | None: ...

    def transactions_for_account(
        self, account_id: int, start: date, end: date
    ) -> list[Transaction]: ...

    def get_transaction(self, user_id: str, transaction_id: int) -> Transaction | None: ...

    def save_transaction_category(
        self,
        tx: Transaction,
        *,
        category_id: int,
        classification_source: str,
        rule_id: int | None,
        confidence: str | None,
    ) -> Transaction: ...

    def review_queue(
        self, user_id: str, *, review_category_id: int | None, limit: int
    ) -> list[Transaction]: ...

    # ---- rules ------------------------------------------------------------
    def list_rules(self, user_id: str, *, active_only: bool = False) -> list[CategorizationRule]: ...

    def get_rule(self, user_id: str, rule_id: int) -> CategorizationRule | None: ...

    def add_rule(self, user_id: str, values: Mapping[str, Any]) -> CategorizationRule: ...

    def save_rule(self, rule: CategorizationRule, changes: Mapping[str, Any]) -> CategorizationRule: ...

    def remove_rule(self, rule: CategorizationRule) -> None: ...

    def touch_rule(self, rule_id: int, matched_at: datetime) -> None: ...

    def mark_rule_invalid(self, rule_id: int, reason: str) -> None: ...

    # ---- categories -------------------------------------------------------
    def get_category(self, user_id: str, category_id: int) -> Category | None: ...

    def get_category_by_name(self, user_id: str, name: str) -> Category | None: ...

    def create_category(self, user_id: str, name: str, *, parent_id: int | None = None) -> Category: ...

    def list_categories(self, user_id: str) -> list[Category]: ...

    # ---- import batches ---------------------------------------------------
    def create_import_batch(
        self,
        user_id: str,
        *,
        filename: str,
        format: str,
        total_rows: int,
        error_rows: int,
    ) -> ImportBatch: ...

    def finalize_import_batch(
        self,
        batch: ImportBatch,
        *,
        imported_rows: int,
        duplicate_rows: int,
        error_rows: int,
        auto_categorized_rows: int,
        completed_at: datetime,
    ) -> ImportBatch: ...


__all__ = ["HistoryEntry", "Repository"]
