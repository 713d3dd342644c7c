# ruff: noqa: I001
"""SQLAlchemy implementation of the ``Repository`` contract.

``SqlRepository`` wraps a ``Session`` owned by the caller (normally obtained
from ``db.client.session_scope``) and reads/writes the ORM models defined in
``db.models.ledger``. It flushes so generated ids are available immediately
but never commits; the surrounding scope decides whether a batch lands.

Bulk transaction inserts use the dialect's ``ON CONFLICT DO NOTHING`` on
``(user_id, hash)`` (Postgres and SQLite) so a hash that slipped past the
in-memory partition is skipped rather than failing the batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.models.ledger import (
    Account,
    CategorizationRule,
    Category,
    ImportBatch,
    Ledger,
    OpeningBalance,
    Transaction,
)
from .repository import HistoryEntry

# Bound the size of IN (...) lists when probing existing hashes.
_HASH_LOOKUP_CHUNK = 500


def _now() -> datetime:
    return datetime.now(UTC)


class SqlRepository:
    """Repository backed by a SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ---- accounts ---------------------------------------------------------

    def upsert_account(self, user_id: str, identifier: str, *, name: str, currency: str) -> Account:
        existing = self.session.scalars(
            select(Account).where(Account.user_id == user_id, Account.identifier == identifier)
        ).one_or_none()
        if existing is not None:
            # The latest statement names the account.
            if existing.name != name:
                existing.name = name
                self.session.flush()
            return existing
        account = Account(user_id=user_id, identifier=identifier, name=name, currency=currency)
        self.session.add(account)
        self.session.flush()
        return account

    def get_account(self, user_id: str, account_id: int) -> Account | None:
        return self.session.scalars(
            select(Account).where(Account.user_id == user_id, Account.id == account_id)
        ).one_or_none()

    def list_accounts(self, user_id: str) -> list[Account]:
        return list(
            self.session.scalars(
                select(Account).where(Account.user_id == user_id).order_by(Account.name, Account.id)
            )
        )

    # ---- ledgers ----------------------------------------------------------

    def get_ledger(self, user_id: str, year: int, month: int) -> Ledger | None:
        return self.session.scalars(
            select(Ledger).where(
                Ledger.user_id == user_id, Ledger.year == year, Ledger.month == month
            )
        ).one_or_none()

    def create_ledger(self, user_id: str, year: int, month: int) -> Ledger:
        existing = self.get_ledger(user_id, year, month)
        if existing is not None:
            return existing
        ledger = Ledger(user_id=user_id, year=year, month=month)
        self.session.add(ledger)
        self.session.flush()
        return ledger

    def save_ledger_lock(
        self,
        ledger: Ledger,
        *,
        locked_at: datetime | None,
        locked_by: str | None,
        note: str | None,
    ) -> Ledger:
        ledger.locked_at = locked_at
        ledger.locked_by = locked_by
        ledger.lock_note = note
        ledger.updated_at = _now()
        self.session.flush()
        return ledger

    # ---- opening balances -------------------------------------------------

    def latest_opening_balance(self, account_id: int, on_or_before: date) -> OpeningBalance | None:
        return self.session.scalars(
            select(OpeningBalance)
            .where(
                OpeningBalance.account_id == account_id,
                OpeningBalance.effective_date <= on_or_before,
            )
            .order_by(OpeningBalance.effective_date.desc())
            .limit(1)
        ).one_or_none()

    def get_opening_balance(self, account_id: int, effective_date: date) -> OpeningBalance | None:
        return self.session.scalars(
            select(OpeningBalance).where(
                OpeningBalance.account_id == account_id,
                OpeningBalance.effective_date == effective_date,
            )
        ).one_or_none()

    def save_opening_balance(
        self, account_id: int, effective_date: date, amount_minor: int
    ) -> OpeningBalance:
        balance = self.get_opening_balance(account_id, effective_date)
        if balance is None:
            balance = OpeningBalance(
                account_id=account_id,
                effective_date=effective_date,
                amount_minor=amount_minor,
            )
            self.session.add(balance)
        else:
            balance.amount_minor = amount_minor
            balance.updated_at = _now()
        self.session.flush()
        return balance

    def save_opening_balance_lock(
        self, balance: OpeningBalance, *, locked_at: datetime, locked_by: str
    ) -> OpeningBalance:
        balance.locked_at = locked_at
        balance.locked_by = locked_by
        balance.updated_at = _now()
        self.session.flush()
        return balance

    # ---- transactions -----------------------------------------------------

    def existing_hashes(self, user_id: str, hashes: Iterable[str]) -> set[str]:
        wanted = list(dict.fromkeys(hashes))
        found: set[str] = set()
        for i in range(0, len(wanted), _HASH_LOOKUP_CHUNK):
            chunk = wanted[i : i + _HASH_LOOKUP_CHUNK]
            found.update(
                self.session.scalars(
                    select(Transaction.hash).where(
                        Transaction.user_id == user_id, Transaction.hash.in_(chunk)
                    )
                )
            )
        return found

    def insert_transactions(self, rows: Sequence[Mapping[str, Any]]) -> None:
        if not rows:
            return
        dialect = self.session.get_bind().dialect.name
        table = Transaction.__table__
        if dialect == "postgresql":
            stmt = pg_insert(table).on_conflict_do_nothing(index_elements=["user_id", "hash"])
        elif dialect == "sqlite":
            stmt = sqlite_insert(table).on_conflict_do_nothing(index_elements=["user_id", "hash"])
        else:
            stmt = insert(table)
        self.session.execute(stmt, [dict(r) for r in rows])

    def count_batch_transactions(self, batch_id: int) -> int:
        return self.session.execute(
            select(func.count()).select_from(Transaction).where(Transaction.import_batch_id == batch_id)
        ).scalar_one()

    def manual_history(self, user_id: str) -> list[HistoryEntry]:
        rows = self.session.execute(
            select(
                Transaction.account_id,
                Transaction.amount_minor,
                Transaction.normalized_description,
                Transaction.category_id,
            )
            .where(
                Transaction.user_id == user_id,
                Transaction.classification_source == "manual",
                Transaction.category_id.is_not(None),
            )
            .order_by(Transaction.date, Transaction.id)
        ).all()
        return [
            HistoryEntry(
                account_id=r.account_id,
                amount_minor=r.amount_minor,
                normalized_description=r.normalized_description,
                category_id=r.category_id,
            )
            for r in rows
        ]

    def find_history_match(
        self,
        user_id: str,
        *,
        account_id: int,
        normalized_description: str,
        amount_minor: int,
        threshold_minor: int,
    ) -> int | None:
        return self.session.scalars(
            select(Transaction.category_id)
            .where(
                Transaction.user_id == user_id,
                Transaction.account_id == account_id,
                Transaction.normalized_description == normalized_description,
                Transaction.amount_minor >= amount_minor - threshold_minor,
                Transaction.amount_minor <= amount_minor + threshold_minor,
                Transaction.classification_source == "manual",
                Transaction.category_id.is_not(None),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(1)
        ).one_or_none()

    def transactions_for_account(self, account_id: int, start: date, end: date) -> list[Transaction]:
        return list(
            self.session.scalars(
                select(Transaction)
                .where(
                    Transaction.account_id == account_id,
                    Transaction.date >= start,
                    Transaction.date <= end,
                )
                .order_by(Transaction.date, Transaction.id)
            )
        )

    def get_transaction(self, user_id: str, transaction_id: int) -> Transaction | None:
        return self.session.scalars(
            select(Transaction).where(
                Transaction.user_id == user_id, Transaction.id == transaction_id
            )
        ).one_or_none()

    def save_transaction_category(
        self,
        tx: Transaction,
        *,
        category_id: int,
        classification_source: str,
        rule_id: int | None,
        confidence: str | None,
    ) -> Transaction:
        tx.category_id = category_id
        tx.classification_source = classification_source
        tx.classification_rule_id = rule_id
        tx.suggestion_confidence = confidence
        tx.updated_at = _now()
        self.session.flush()
        return tx

    def review_queue(
        self, user_id: str, *, review_category_id: int | None, limit: int
    ) -> list[Transaction]:
        pending = [Transaction.category_id.is_(None)]
        if review_category_id is not None:
            pending.append(Transaction.category_id == review_category_id)
        return list(
            self.session.scalars(
                select(Transaction)
                .where(Transaction.user_id == user_id, or_(*pending))
                .order_by(Transaction.date.desc(), Transaction.id.desc())
                .limit(limit)
            )
        )

    # ---- rules ------------------------------------------------------------

    def list_rules(self, user_id: str, *, active_only: bool = False) -> list[CategorizationRule]:
        stmt = select(CategorizationRule).where(CategorizationRule.user_id == user_id)
        if active_only:
            stmt = stmt.where(CategorizationRule.is_active.is_(True))
        stmt = stmt.order_by(
            CategorizationRule.priority.desc(),
            CategorizationRule.updated_at.desc(),
            CategorizationRule.created_at.desc(),
            CategorizationRule.id.desc(),
        )
        return list(self.session.scalars(stmt))

    def get_rule(self, user_id: str, rule_id: int) -> CategorizationRule | None:
        return self.session.scalars(
            select(CategorizationRule).where(
                CategorizationRule.user_id == user_id, CategorizationRule.id == rule_id
            )
        ).one_or_none()

    def add_rule(self, user_id: str, values: Mapping[str, Any]) -> CategorizationRule:
        now = _now()
        rule = CategorizationRule(user_id=user_id, created_at=now, updated_at=now, **values)
        self.session.add(rule)
        self.session.flush()
        return rule

    def save_rule(self, rule: CategorizationRule, changes: Mapping[str, Any]) -> CategorizationRule:
        for key, value in changes.items():
            setattr(rule, key, value)
        rule.updated_at = _now()
        self.session.flush()
        return rule

    def remove_rule(self, rule: CategorizationRule) -> None:
        self.session.delete(rule)
        self.session.flush()

    def touch_rule(self, rule_id: int, matched_at: datetime) -> None:
        self.session.execute(
            update(CategorizationRule)
            .where(CategorizationRule.id == rule_id)
            .values(last_matched_at=matched_at)
        )

    def mark_rule_invalid(self, rule_id: int, reason: str) -> None:
        self.session.execute(
            update(CategorizationRule)
            .where(CategorizationRule.id == rule_id)
            .values(invalid_reason=reason)
        )

    # ---- categories -------------------------------------------------------

    def get_category(self, user_id: str, category_id: int) -> Category | None:
        return self.session.scalars(
            select(Category).where(Category.user_id == user_id, Category.id == category_id)
        ).one_or_none()

    def get_category_by_name(self, user_id: str, name: str) -> Category | None:
        return self.session.scalars(
            select(Category).where(Category.user_id == user_id, Category.name == name)
        ).one_or_none()

    def create_category(self, user_id: str, name: str, *, parent_id: int | None = None) -> Category:
        category = Category(user_id=user_id, name=name, parent_id=parent_id)
        self.session.add(category)
        self.session.flush()
        return category

    def list_categories(self, user_id: str) -> list[Category]:
        return list(
            self.session.scalars(
                select(Category).where(Category.user_id == user_id).order_by(Category.name)
            )
        )

    # ---- import batches ---------------------------------------------------

    def create_import_batch(
        self,
        user_id: str,
        *,
        filename: str,
        format: str,
        total_rows: int,
        error_rows: int,
    ) -> ImportBatch:
        batch = ImportBatch(
            user_id=user_id,
            filename=filename,
            format=format,
            status="pending",
            total_rows=total_rows,
            error_rows=error_rows,
            started_at=_now(),
        )
        self.session.add(batch)
        self.session.flush()
        return batch

    def finalize_import_batch(
        self,
        batch: ImportBatch,
        *,
        imported_rows: int,
        duplicate_rows: int,
        error_rows: int,
        auto_categorized_rows: int,
        completed_at: datetime,
    ) -> ImportBatch:
        batch.status = "completed"
        batch.imported_rows = imported_rows
        batch.duplicate_rows = duplicate_rows
        batch.error_rows = error_rows
        batch.auto_categorized_rows = auto_categorized_rows
        batch.completed_at = completed_at
        self.session.flush()
        return batch


__all__ = ["SqlRepository"]
