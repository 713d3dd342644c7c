"""Pytest configuration for test isolation.

Settings are read from the environment, so a developer's shell (or a local
``.env``) could flip locks off or widen the history amount threshold and make
assertions flaky. An autouse fixture pins those variables for every test and
drops cached engines afterwards so each test's SQLite file is released.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Force default settings regardless of the invoking shell."""

    monkeypatch.setenv("RECONCILIATION_LOCKS_ENABLED", "true")
    monkeypatch.setenv("AMOUNT_MATCH_THRESHOLD", "0.01")
    for name in ("LEDGER_IMPORT_CHUNK_SIZE", "LEDGER_IMPORT_XLSX_SHEET", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    """A fresh, fully migrated SQLite database for one test."""

    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
