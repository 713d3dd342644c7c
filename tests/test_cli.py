import json
from pathlib import Path

from ledger_import.cli import app, cmd_set_ledger_lock, cmd_set_opening_balance
from typer.testing import CliRunner

IBAN = "NL89INGB0006369960"

runner = CliRunner()


def _write_statement(tmp_path: Path) -> Path:
    path = tmp_path / "januari.csv"
    path.write_text(
        "Account;Date;Name / Description;Amount (EUR);Debit/credit;Resulting balance\n"
        f"{IBAN};20250105;Donatie;50,00;Credit;150,00\n"
        f"{IBAN};20250110;Porto;20,00;Debit;130,00\n",
        encoding="utf-8",
    )
    return path


def test_import_then_reconcile_via_cli(db_url, tmp_path):
    statement = _write_statement(tmp_path)

    result = runner.invoke(
        app, ["import-statement", str(statement), "--user", "u1", "--database-url", db_url]
    )
    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["imported_count"] == 2
    assert summary["format"] == "csv_ing"

    result = runner.invoke(app, ["accounts", "--user", "u1", "--database-url", db_url])
    assert result.exit_code == 0, result.output
    (account,) = json.loads(result.stdout)
    assert account["identifier"] == IBAN
    assert account["opening_balance"] is None

    result = runner.invoke(
        app,
        [
            "set-opening-balance",
            "--user",
            "u1",
            "--account-id",
            str(account["id"]),
            "--date",
            "2025-01-01",
            "--amount",
            "100,00",
            "--database-url",
            db_url,
        ],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["amount_minor"] == "10000"

    result = runner.invoke(
        app,
        [
            "reconcile",
            "--user",
            "u1",
            "--account-id",
            str(account["id"]),
            "--month",
            "1",
            "--year",
            "2025",
            "--database-url",
            db_url,
        ],
    )
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["status"] == "balanced"
    assert report["computed_end_balance_minor"] == "13000"


def test_rules_and_review_commands(db_url, tmp_path):
    statement = _write_statement(tmp_path)
    runner.invoke(app, ["import-statement", str(statement), "--user", "u1", "--database-url", db_url])

    result = runner.invoke(
        app,
        [
            "rules-add",
            "--user",
            "u1",
            "--label",
            "Porto",
            "--pattern",
            "porto",
            "--category",
            "Kantoor — Porto",
            "--match-type",
            "contains",
            "--database-url",
            db_url,
        ],
    )
    assert result.exit_code == 0, result.output
    rule = json.loads(result.stdout)
    assert rule["match_type"] == "contains"

    listed = json.loads(
        runner.invoke(app, ["rules-list", "--user", "u1", "--database-url", db_url]).stdout
    )
    assert [r["id"] for r in listed] == [rule["id"]]

    queue = json.loads(
        runner.invoke(app, ["review-queue", "--user", "u1", "--database-url", db_url]).stdout
    )
    assert len(queue) == 2

    result = runner.invoke(
        app,
        [
            "categorize",
            "--user",
            "u1",
            "--transaction-id",
            str(queue[0]["id"]),
            "--category-name",
            "Kantoor — Porto",
            "--database-url",
            db_url,
        ],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["classification_source"] == "manual"

    result = runner.invoke(
        app, ["rules-delete", "--user", "u1", "--rule-id", "999", "--database-url", db_url]
    )
    assert result.exit_code == 1


def test_lock_commands_and_missing_file(db_url, tmp_path):
    result = runner.invoke(
        app,
        ["lock-ledger", "--user", "u1", "--year", "2025", "--month", "1", "--database-url", db_url],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["locked_by"] == "u1"

    statement = _write_statement(tmp_path)
    result = runner.invoke(
        app, ["import-statement", str(statement), "--user", "u1", "--database-url", db_url]
    )
    assert result.exit_code == 1

    result = runner.invoke(
        app,
        ["unlock-ledger", "--user", "u1", "--year", "2025", "--month", "1", "--database-url", db_url],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["locked_at"] is None

    result = runner.invoke(
        app,
        ["import-statement", str(tmp_path / "missing.csv"), "--user", "u1", "--database-url", db_url],
    )
    assert result.exit_code == 1


def test_lock_command_notes_when_locks_are_disabled(db_url, monkeypatch, capsys):
    monkeypatch.setenv("RECONCILIATION_LOCKS_ENABLED", "false")

    rc = cmd_set_ledger_lock(user_id="u1", year=2025, month=1, locked=True, database_url=db_url)

    captured = capsys.readouterr()
    assert rc == 0
    assert json.loads(captured.out)["locked_at"] is None
    assert "RECONCILIATION_LOCKS_ENABLED=false" in captured.err


def test_opening_balance_requires_a_date(db_url, capsys):
    rc = cmd_set_opening_balance(
        user_id="u1", account_id=1, effective_date=None, amount="1,00", database_url=db_url
    )

    assert rc == 1
    assert "--date is required" in capsys.readouterr().err
