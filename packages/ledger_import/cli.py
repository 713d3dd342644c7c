# ruff: noqa: I001
"""CLI for the ``ledger_import`` package.

Callable command handlers (``cmd_*``) return an exit status and print results
as JSON on stdout; errors go to stderr. The Typer application wires them to
sub-commands. Environment variables (``DATABASE_URL``,
``RECONCILIATION_LOCKS_ENABLED``, ``AMOUNT_MATCH_THRESHOLD`` ...) are loaded
from a local ``.env`` with ``python-dotenv`` before any command runs.

Every command runs inside one ``session_scope``: a command either commits all
of its writes or none.
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from db.client import session_scope

from .config import Settings
from .errors import LedgerImportError
from .logging_setup import configure_logging
from .persistence import SqlRepository


# ---- Small module-level helpers used by CLI commands -------------------------


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _note_locks_disabled(settings: Settings) -> None:
    if not settings.locks_enabled:
        print(
            "Note: RECONCILIATION_LOCKS_ENABLED=false; lock state was left unchanged.",
            file=sys.stderr,
        )


def _parse_day(value: str | None, *, option: str) -> date | None:
    if value is None:
        return None
    from .normalizers import parse_date

    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"{option}: unrecognized date {value!r}")
    return parsed


# ---- Command handlers ----------------------------------------------------------


def cmd_import_statement(
    path: str,
    *,
    user_id: str,
    database_url: str | None = None,
    sheet_name: str | None = None,
) -> int:
    """Import a CSV/XLSX statement and print the ``ImportSummary`` as JSON."""

    from .importer import import_statement

    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return _fail(f"File not found: {path}")
    except PermissionError:
        return _fail(f"Permission denied: {path}")

    settings = Settings.from_env()
    try:
        with session_scope(database_url=database_url) as session:
            summary = import_statement(
                SqlRepository(session),
                settings,
                user_id,
                filename=Path(path).name,
                data=data,
                sheet_name=sheet_name,
            )
    except LedgerImportError as e:
        return _fail(f"import failed: {e}")

    print(summary.model_dump_json(indent=2))
    return 0


def cmd_reconcile(
    *,
    user_id: str,
    account_id: int,
    month: int | None = None,
    year: int | None = None,
    start: str | None = None,
    end: str | None = None,
    database_url: str | None = None,
) -> int:
    from .reconciliation import reconcile

    try:
        start_d = _parse_day(start, option="--start")
        end_d = _parse_day(end, option="--end")
        with session_scope(database_url=database_url) as session:
            result = reconcile(
                SqlRepository(session),
                user_id,
                account_id,
                start=start_d,
                end=end_d,
                month=month,
                year=year,
            )
    except (LedgerImportError, ValueError) as e:
        return _fail(str(e))

    print(result.model_dump_json(indent=2))
    return 0


def cmd_set_ledger_lock(
    *,
    user_id: str,
    year: int,
    month: int,
    locked: bool,
    note: str | None = None,
    database_url: str | None = None,
) -> int:
    from .ledgers import lock_ledger, unlock_ledger

    settings = Settings.from_env()
    _note_locks_disabled(settings)
    with session_scope(database_url=database_url) as session:
        repo = SqlRepository(session)
        if locked:
            ledger = lock_ledger(repo, settings, user_id, year=year, month=month, note=note)
        else:
            ledger = unlock_ledger(repo, settings, user_id, year=year, month=month)
        _emit(
            {
                "id": ledger.id,
                "year": ledger.year,
                "month": ledger.month,
                "locked_at": ledger.locked_at,
                "locked_by": ledger.locked_by,
                "lock_note": ledger.lock_note,
            }
        )
    return 0


def cmd_set_opening_balance(
    *,
    user_id: str,
    account_id: int,
    effective_date: str,
    amount: str,
    lock: bool = False,
    database_url: str | None = None,
) -> int:
    from .accounts import lock_opening_balance, set_opening_balance
    from .normalizers import to_minor_units

    amount_minor = to_minor_units(amount)
    if amount_minor is None:
        return _fail(f"--amount: unrecognized amount {amount!r}")
    settings = Settings.from_env()
    try:
        day = _parse_day(effective_date, option="--date")
        if day is None:
            raise ValueError("--date is required")
        with session_scope(database_url=database_url) as session:
            repo = SqlRepository(session)
            balance = set_opening_balance(
                repo, settings, user_id, account_id, effective_date=day, amount_minor=amount_minor
            )
            if lock:
                _note_locks_disabled(settings)
                balance = lock_opening_balance(
                    repo, settings, user_id, account_id, effective_date=day
                )
            _emit(
                {
                    "account_id": balance.account_id,
                    "effective_date": balance.effective_date,
                    "amount_minor": str(balance.amount_minor),
                    "locked_at": balance.locked_at,
                }
            )
    except (LedgerImportError, ValueError) as e:
        return _fail(str(e))
    return 0


def cmd_accounts(*, user_id: str, database_url: str | None = None) -> int:
    from .accounts import list_accounts

    with session_scope(database_url=database_url) as session:
        _emit(list_accounts(SqlRepository(session), user_id))
    return 0


def cmd_categories(*, user_id: str, database_url: str | None = None) -> int:
    from .categories import list_categories

    with session_scope(database_url=database_url) as session:
        _emit(list_categories(SqlRepository(session), user_id))
    return 0


def _rule_view(rule: Any) -> dict[str, Any]:
    return {
        "id": rule.id,
        "label": rule.label,
        "pattern": rule.pattern,
        "match_type": rule.match_type,
        "match_field": rule.match_field,
        "category_id": rule.category_id,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "last_matched_at": rule.last_matched_at,
        "invalid_reason": rule.invalid_reason,
    }


def cmd_rules_list(*, user_id: str, database_url: str | None = None) -> int:
    from .rules import list_rules

    with session_scope(database_url=database_url) as session:
        _emit([_rule_view(r) for r in list_rules(SqlRepository(session), user_id)])
    return 0


def cmd_rules_add(
    *,
    user_id: str,
    label: str,
    pattern: str,
    category: str,
    match_type: str = "regex",
    match_field: str = "description",
    priority: int = 100,
    database_url: str | None = None,
) -> int:
    from .categories import ensure_category
    from .rules import create_rule

    try:
        with session_scope(database_url=database_url) as session:
            repo = SqlRepository(session)
            target = ensure_category(repo, user_id, category)
            rule = create_rule(
                repo,
                user_id,
                {
                    "label": label,
                    "pattern": pattern,
                    "category_id": target.id,
                    "match_type": match_type,
                    "match_field": match_field,
                    "priority": priority,
                },
            )
            _emit(_rule_view(rule))
    except (LedgerImportError, ValueError) as e:
        return _fail(str(e))
    return 0


def cmd_rules_delete(*, user_id: str, rule_id: int, database_url: str | None = None) -> int:
    from .rules import delete_rule

    try:
        with session_scope(database_url=database_url) as session:
            delete_rule(SqlRepository(session), user_id, rule_id)
    except LedgerImportError as e:
        return _fail(str(e))
    return 0


def cmd_review_queue(*, user_id: str, limit: int = 200, database_url: str | None = None) -> int:
    from .review import get_review_queue

    settings = Settings.from_env()
    with session_scope(database_url=database_url) as session:
        _emit(get_review_queue(SqlRepository(session), settings, user_id, limit=limit))
    return 0


def cmd_categorize(
    *,
    user_id: str,
    transaction_id: int,
    category_id: int | None = None,
    category_name: str | None = None,
    database_url: str | None = None,
) -> int:
    from .review import update_transaction_category

    settings = Settings.from_env()
    try:
        with session_scope(database_url=database_url) as session:
            tx = update_transaction_category(
                SqlRepository(session),
                settings,
                user_id,
                transaction_id,
                category_id=category_id,
                category_name=category_name,
            )
            _emit(
                {
                    "id": tx.id,
                    "category_id": tx.category_id,
                    "classification_source": tx.classification_source,
                }
            )
    except (LedgerImportError, ValueError) as e:
        return _fail(str(e))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (ING CSV / initial XLSX) into monthly ledgers, "
        "categorize them and reconcile balances. Loads .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in defaults).
USER_OPTION: OptionInfo = typer.Option(..., "--user", help="Owner (tenant) of the ledger data.")
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
STATEMENT_PATH_ARGUMENT = typer.Argument(
    ..., dir_okay=False, file_okay=True, help="Path to the CSV or XLSX statement."
)


@app.command("import-statement")
def import_statement_cmd(
    path: Annotated[Path, STATEMENT_PATH_ARGUMENT],
    user_id: Annotated[str, USER_OPTION],
    database_url: str | None = DATABASE_URL_OPTION,
    sheet: str | None = typer.Option(None, help="Worksheet name for XLSX imports."),
) -> None:
    """Import one statement file in a single transaction."""

    raise typer.Exit(
        cmd_import_statement(
            str(path), user_id=user_id, database_url=database_url, sheet_name=sheet
        )
    )


@app.command("reconcile")
def reconcile_cmd(
    user_id: Annotated[str, USER_OPTION],
    account_id: int = typer.Option(..., "--account-id"),
    month: int | None = typer.Option(None, min=1, max=12),
    year: int | None = typer.Option(None),
    start: str | None = typer.Option(None, help="Explicit period start (overrides month/year)."),
    end: str | None = typer.Option(None, help="Explicit period end."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print the reconciliation report for an account and period as JSON."""

    raise typer.Exit(
        cmd_reconcile(
            user_id=user_id,
            account_id=account_id,
            month=month,
            year=year,
            start=start,
            end=end,
            database_url=database_url,
        )
    )


@app.command("lock-ledger")
def lock_ledger_cmd(
    user_id: Annotated[str, USER_OPTION],
    year: int = typer.Option(...),
    month: int = typer.Option(..., min=1, max=12),
    note: str | None = typer.Option(None),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_set_ledger_lock(
            user_id=user_id,
            year=year,
            month=month,
            locked=True,
            note=note,
            database_url=database_url,
        )
    )


@app.command("unlock-ledger")
def unlock_ledger_cmd(
    user_id: Annotated[str, USER_OPTION],
    year: int = typer.Option(...),
    month: int = typer.Option(..., min=1, max=12),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_set_ledger_lock(
            user_id=user_id, year=year, month=month, locked=False, database_url=database_url
        )
    )


@app.command("set-opening-balance")
def set_opening_balance_cmd(
    user_id: Annotated[str, USER_OPTION],
    account_id: int = typer.Option(..., "--account-id"),
    effective_date: str = typer.Option(..., "--date", help="Effective date, e.g. 2025-01-01."),
    amount: str = typer.Option(..., help="Balance in currency units, e.g. 1.234,56."),
    lock: bool = typer.Option(False, help="Lock the balance after saving it."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_set_opening_balance(
            user_id=user_id,
            account_id=account_id,
            effective_date=effective_date,
            amount=amount,
            lock=lock,
            database_url=database_url,
        )
    )


@app.command("accounts")
def accounts_cmd(
    user_id: Annotated[str, USER_OPTION],
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_accounts(user_id=user_id, database_url=database_url))


@app.command("categories")
def categories_cmd(
    user_id: Annotated[str, USER_OPTION],
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_categories(user_id=user_id, database_url=database_url))


@app.command("rules-list")
def rules_list_cmd(
    user_id: Annotated[str, USER_OPTION],
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_rules_list(user_id=user_id, database_url=database_url))


@app.command("rules-add")
def rules_add_cmd(
    user_id: Annotated[str, USER_OPTION],
    label: str = typer.Option(...),
    pattern: str = typer.Option(...),
    category: str = typer.Option(..., help="Category name, 'Main' or 'Main — Sub'."),
    match_type: str = typer.Option("regex", help="contains | startsWith | endsWith | regex"),
    match_field: str = typer.Option(
        "description", help="description | counterparty | reference | source"
    ),
    priority: int = typer.Option(100),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_rules_add(
            user_id=user_id,
            label=label,
            pattern=pattern,
            category=category,
            match_type=match_type,
            match_field=match_field,
            priority=priority,
            database_url=database_url,
        )
    )


@app.command("rules-delete")
def rules_delete_cmd(
    user_id: Annotated[str, USER_OPTION],
    rule_id: int = typer.Option(..., "--rule-id"),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_rules_delete(user_id=user_id, rule_id=rule_id, database_url=database_url))


@app.command("review-queue")
def review_queue_cmd(
    user_id: Annotated[str, USER_OPTION],
    limit: int = typer.Option(200, min=1),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_review_queue(user_id=user_id, limit=limit, database_url=database_url))


@app.command("categorize")
def categorize_cmd(
    user_id: Annotated[str, USER_OPTION],
    transaction_id: int = typer.Option(..., "--transaction-id"),
    category_id: int | None = typer.Option(None, "--category-id"),
    category_name: str | None = typer.Option(None, "--category-name"),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Manually assign a category to one transaction."""

    raise typer.Exit(
        cmd_categorize(
            user_id=user_id,
            transaction_id=transaction_id,
            category_id=category_id,
            category_name=category_name,
            database_url=database_url,
        )
    )


@app.callback()
def _root() -> None:
    """Load ``.env`` (without overriding the environment) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    app()
