from datetime import date

import pytest
from db.client import session_scope
from db.models.ledger import Transaction
from ledger_import.errors import LedgerMismatchError, MissingOpeningBalanceError, NotFoundError
from ledger_import.persistence import SqlRepository
from ledger_import.reconciliation import (
    extract_statement_balance,
    reconcile,
    resolve_period,
    validate_ledger_balance,
)

from tests.helpers.db import seed_account

IBAN = "NL89INGB0006369960"


def _add(
    db_url: str,
    account_id: int,
    day: date,
    amount: int,
    description: str,
    *,
    balance: str | None = None,
    reference: str | None = None,
) -> None:
    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        ledger = repo.create_ledger("u1", day.year, day.month)
        raw = {"Date": day.isoformat()}
        if balance is not None:
            raw["Resulting balance"] = balance
        session.add(
            Transaction(
                user_id="u1",
                account_id=account_id,
                ledger_id=ledger.id,
                hash=f"{day.isoformat()}-{description}-{amount}-{reference}".ljust(64, "0")[:64],
                date=day,
                description=description,
                normalized_description=description.lower(),
                reference=reference,
                amount_minor=amount,
                currency="EUR",
                direction="credit" if amount >= 0 else "debit",
                source="ing_csv",
                raw=raw,
                classification_source="import",
            )
        )


@pytest.fixture()
def account_id(db_url) -> int:
    return seed_account(
        database_url=db_url,
        user_id="u1",
        identifier=IBAN,
        opening_minor=10000,
        opening_date=date(2025, 1, 1),
    )


def test_balanced_month(db_url, account_id):
    _add(db_url, account_id, date(2025, 1, 5), 5000, "Donatie", balance="150,00")
    _add(db_url, account_id, date(2025, 1, 10), -2000, "Porto", balance="130,00")

    with session_scope(database_url=db_url) as session:
        result = reconcile(SqlRepository(session), "u1", account_id, month=1, year=2025)

    assert result.status == "balanced"
    assert result.computed_end_balance == 13000
    assert result.statement_end_balance == 13000
    assert result.difference == 0
    assert (result.totals.credit_minor, result.totals.debit_minor) == ("5000", "2000")
    assert result.opening_balance.amount_minor == "10000"
    assert result.opening_balance.effective_date == date(2025, 1, 1)
    assert [t.running_balance_minor for t in result.transactions] == ["15000", "13000"]
    assert (result.period.start, result.period.end) == (date(2025, 1, 1), date(2025, 1, 31))
    assert len(result.missing_dates) == 29
    assert date(2025, 1, 5) not in result.missing_dates
    assert result.account.identifier == IBAN
    assert result.ledger.locked_at is None


def test_unreconciled_and_unknown(db_url, account_id):
    _add(db_url, account_id, date(2025, 1, 5), 5000, "Donatie", balance="120,00")
    _add(db_url, account_id, date(2025, 2, 5), 5000, "Donatie")

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        january = reconcile(repo, "u1", account_id, month=1, year=2025)
        february = reconcile(repo, "u1", account_id, month=2, year=2025)

    assert january.status == "unreconciled"
    assert january.difference == 3000
    assert february.status == "unknown"
    assert february.statement_end_balance is None
    assert february.difference is None


def test_computed_balance_equals_opening_plus_credits_minus_debits(db_url, account_id):
    amounts = [1234, -99, -5000, 777, 0, -1]
    for i, amount in enumerate(amounts, start=1):
        _add(db_url, account_id, date(2025, 3, i), amount, f"Regel {i}")

    with session_scope(database_url=db_url) as session:
        result = reconcile(SqlRepository(session), "u1", account_id, month=3, year=2025)

    credits = int(result.totals.credit_minor)
    debits = int(result.totals.debit_minor)
    assert result.computed_end_balance == 10000 + credits - debits == 10000 + sum(amounts)
    assert result.transactions[-1].running_balance_minor == result.computed_end_balance_minor


def test_duplicate_indicators(db_url, account_id):
    _add(db_url, account_id, date(2025, 1, 5), -1250, "Albert Heijn", reference="a")
    _add(db_url, account_id, date(2025, 1, 5), -1250, "Albert Heijn", reference="b")
    _add(db_url, account_id, date(2025, 1, 5), -1300, "Albert Heijn", reference="c")

    with session_scope(database_url=db_url) as session:
        result = reconcile(SqlRepository(session), "u1", account_id, month=1, year=2025)

    assert len(result.duplicate_indicators) == 1
    dup = result.duplicate_indicators[0]
    assert (dup.date, dup.amount_minor, dup.occurrences) == (date(2025, 1, 5), "-1250", 2)


def test_explicit_period_and_unknown_account(db_url, account_id):
    _add(db_url, account_id, date(2025, 1, 5), 5000, "Donatie")
    _add(db_url, account_id, date(2025, 1, 20), 5000, "Donatie later")

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        result = reconcile(repo, "u1", account_id, start=date(2025, 1, 1), end=date(2025, 1, 10))
        assert len(result.transactions) == 1
        assert result.computed_end_balance == 15000
        with pytest.raises(NotFoundError):
            reconcile(repo, "u2", account_id, month=1, year=2025)


def test_resolve_period():
    assert resolve_period(month=2, year=2024).end == date(2024, 2, 29)
    assert resolve_period(today=date(2025, 7, 14)).start == date(2025, 7, 1)
    assert resolve_period(start=date(2025, 1, 10)).end == date(2025, 1, 31)
    with pytest.raises(ValueError):
        resolve_period(start=date(2025, 1, 10), end=date(2025, 1, 1))
    with pytest.raises(ValueError):
        resolve_period(month=13, year=2025)


def test_extract_statement_balance():
    assert extract_statement_balance({"Resulting balance": "1.234,56"}) == 123456
    assert extract_statement_balance({"Saldo": 12.5}) == 1250
    assert extract_statement_balance({"Resulting balance": "", "Balance": "-3,00"}) == -300
    assert extract_statement_balance({"Other": "1"}) is None
    assert extract_statement_balance(None) is None


def test_validate_ledger_balance(db_url, account_id):
    other = seed_account(database_url=db_url, user_id="u1", identifier="NL11RABO0123456789")
    _add(db_url, account_id, date(2025, 1, 5), 5000, "Donatie", balance="120,00")

    with session_scope(database_url=db_url) as session:
        repo = SqlRepository(session)
        with pytest.raises(LedgerMismatchError) as exc:
            validate_ledger_balance(repo, "u1", account_id, year=2025, month=1)
        assert exc.value.difference_minor == 3000
        assert exc.value.statement_minor == 12000

        assert validate_ledger_balance(
            repo, "u1", account_id, year=2025, month=1, tolerance_minor=3000
        ).status == "unreconciled"

        with pytest.raises(MissingOpeningBalanceError):
            validate_ledger_balance(repo, "u1", other, year=2025, month=1)
