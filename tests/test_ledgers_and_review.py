from datetime import date

import pytest
from db.client import session_scope
from db.models.ledger import Transaction
from ledger_import.accounts import (
    list_accounts,
    lock_opening_balance,
    set_opening_balance,
)
from ledger_import.categories import ensure_category, list_categories, split_category_name
from ledger_import.config import Settings
from ledger_import.errors import LockedPeriodError, NotFoundError, OpeningBalanceLockedError
from ledger_import.importer import import_statement
from ledger_import.ledgers import LedgerResolver, lock_ledger, unlock_ledger
from ledger_import.persistence import SqlRepository
from ledger_import.review import get_review_queue, update_transaction_category
from sqlalchemy import select

from tests.helpers.db import seed_account

IBAN = "NL89INGB0006369960"
LOCKS_ON = Settings()
LOCKS_OFF = Settings(locks_enabled=False)


# ---- ledgers -----------------------------------------------------------------


def test_lock_is_idempotent_and_unlock_clears(db_url):
    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        first = lock_ledger(repo, LOCKS_ON, "u1", year=2025, month=3, note="jaarafsluiting")
        locked_at = first.locked_at
        again = lock_ledger(repo, LOCKS_ON, "u1", year=2025, month=3, note="other")
        assert again.id == first.id
        assert again.locked_at == locked_at
        assert again.lock_note == "jaarafsluiting"

        with pytest.raises(LockedPeriodError):
            LedgerResolver(repo, LOCKS_ON, "u1").ensure(date(2025, 3, 9))
        assert LedgerResolver(repo, LOCKS_OFF, "u1").ensure(date(2025, 3, 9)) == first.id

        cleared = unlock_ledger(repo, LOCKS_ON, "u1", year=2025, month=3)
        assert (cleared.locked_at, cleared.locked_by, cleared.lock_note) == (None, None, None)
        assert LedgerResolver(repo, LOCKS_ON, "u1").ensure(date(2025, 3, 9)) == first.id


def test_lock_is_noop_when_locks_disabled(db_url):
    with session_scope(database_url=db_url) as session:
        ledger = lock_ledger(SqlRepository(session), LOCKS_OFF, "u1", year=2025, month=4)
        assert ledger.locked_at is None


def test_resolver_creates_one_ledger_per_month(db_url):
    with session_scope(database_url=db_url) as session:
        resolver = LedgerResolver(SqlRepository(session), LOCKS_ON, "u1")
        jan = resolver.ensure(date(2025, 1, 1))
        assert resolver.ensure(date(2025, 1, 31)) == jan
        assert resolver.ensure(date(2025, 2, 1)) != jan


# ---- accounts and opening balances -------------------------------------------


def test_opening_balance_lifecycle(db_url):
    account_id = seed_account(database_url=db_url, user_id="u1", identifier=IBAN, name="Betaalrekening")

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        set_opening_balance(
            repo, LOCKS_ON, "u1", account_id, effective_date=date(2025, 1, 1), amount_minor=10000
        )
        set_opening_balance(
            repo, LOCKS_ON, "u1", account_id, effective_date=date(2025, 1, 1), amount_minor=12500
        )
        set_opening_balance(
            repo, LOCKS_ON, "u1", account_id, effective_date=date(2025, 7, 1), amount_minor=1
        )

        (view,) = list_accounts(repo, "u1", as_of=date(2025, 3, 1))
        assert view["name"] == "Betaalrekening"
        assert view["opening_balance"]["amount_minor"] == "12500"
        assert view["opening_balance"]["effective_date"] == "2025-01-01"

        locked = lock_opening_balance(repo, LOCKS_ON, "u1", account_id, effective_date=date(2025, 1, 1))
        assert locked.locked_at is not None
        with pytest.raises(OpeningBalanceLockedError):
            set_opening_balance(
                repo, LOCKS_ON, "u1", account_id, effective_date=date(2025, 1, 1), amount_minor=0
            )
        set_opening_balance(
            repo, LOCKS_OFF, "u1", account_id, effective_date=date(2025, 1, 1), amount_minor=0
        )

        with pytest.raises(NotFoundError):
            set_opening_balance(
                repo, LOCKS_ON, "u2", account_id, effective_date=date(2025, 1, 1), amount_minor=0
            )


# ---- categories --------------------------------------------------------------


def test_ensure_category_creates_main_group(db_url):
    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        sub = ensure_category(repo, "u1", "  Kantoor   —  Porto ")
        assert sub.name == "Kantoor — Porto"
        assert ensure_category(repo, "u1", "Kantoor — Porto").id == sub.id
        main = repo.get_category_by_name("u1", "Kantoor")
        assert sub.parent_id == main.id
        with pytest.raises(ValueError):
            ensure_category(repo, "u1", "Kantoor — ")
        with pytest.raises(ValueError):
            ensure_category(repo, "u1", "   ")

        names = [(c["main"], c["sub"]) for c in list_categories(repo, "u1")]
        assert names == [("Kantoor", None), ("Kantoor", "Porto")]

    assert split_category_name("Overig") == ("Overig", None)


# ---- review -----------------------------------------------------------------


def _import_two_rows(db_url: str) -> None:
    data = (
        "Account;Date;Name / Description;Amount (EUR);Debit/credit\n"
        f"{IBAN};20250102;Albert Heijn;12,50;Debit\n"
        f"{IBAN};20250203;Drukkerij;99,95;Debit\n"
    ).encode()
    with session_scope(database_url=db_url) as session:
        import_statement(SqlRepository(session), LOCKS_ON, "u1", filename="s.csv", data=data)


def test_review_queue_and_manual_categorization(db_url):
    _import_two_rows(db_url)

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        queue = get_review_queue(repo, LOCKS_ON, "u1")
        assert [item["description"] for item in queue] == ["Drukkerij", "Albert Heijn"]
        assert queue[0]["amount_minor"] == "-9995"
        assert queue[0]["suggestion_confidence"] == "review"

        tx = update_transaction_category(
            repo, LOCKS_ON, "u1", queue[0]["id"], category_name="Kantoor — Drukwerk"
        )
        assert tx.classification_source == "manual"
        assert tx.suggestion_confidence is None
        assert tx.classification_rule_id is None

        assert [item["description"] for item in get_review_queue(repo, LOCKS_ON, "u1")] == [
            "Albert Heijn"
        ]
        with pytest.raises(ValueError):
            update_transaction_category(repo, LOCKS_ON, "u1", queue[1]["id"])
        with pytest.raises(NotFoundError):
            update_transaction_category(repo, LOCKS_ON, "u1", 9999, category_name="Overig")
        with pytest.raises(NotFoundError):
            update_transaction_category(repo, LOCKS_ON, "u1", queue[1]["id"], category_id=9999)


def test_manual_categorization_respects_locks(db_url):
    _import_two_rows(db_url)

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        lock_ledger(repo, LOCKS_ON, "u1", year=2025, month=1)
        jan = session.scalars(
            select(Transaction).where(Transaction.description == "Albert Heijn")
        ).one()
        with pytest.raises(LockedPeriodError):
            update_transaction_category(repo, LOCKS_ON, "u1", jan.id, category_name="Boodschappen")
        tx = update_transaction_category(repo, LOCKS_OFF, "u1", jan.id, category_name="Boodschappen")
        assert tx.classification_source == "manual"
