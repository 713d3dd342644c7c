"""DB helpers for tests: bootstrap a temporary SQLite DB and seed reference rows."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from db.models.ledger import Account, Category, OpeningBalance
from sqlalchemy import inspect


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_schema_in_sync(url)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def _assert_schema_in_sync(database_url: str) -> None:
    """Quick sanity check: every ORM table exists with its full column set."""

    engine = get_engine(database_url=database_url)
    insp = inspect(engine)
    for table in Base.metadata.sorted_tables:
        got = {c["name"] for c in insp.get_columns(table.name)}
        expected = {c.name for c in table.columns}
        assert got == expected, f"{table.name} schema drift: {expected ^ got}"


def seed_account(
    *,
    database_url: str,
    user_id: str,
    identifier: str,
    name: str = "Main account",
    opening_minor: int | None = None,
    opening_date: date | None = None,
) -> int:
    """Insert an account (and optionally its opening balance); return its id."""

    with session_scope(database_url=database_url) as session:
        account = Account(user_id=user_id, identifier=identifier, name=name, currency="EUR")
        session.add(account)
        session.flush()
        if opening_minor is not None:
            session.add(
                OpeningBalance(
                    account_id=account.id,
                    effective_date=opening_date or date(2000, 1, 1),
                    amount_minor=opening_minor,
                )
            )
        return account.id


def seed_category(*, database_url: str, user_id: str, name: str) -> int:
    with session_scope(database_url=database_url) as session:
        category = Category(user_id=user_id, name=name)
        session.add(category)
        session.flush()
        return category.id
