"""Accounts and their opening balances.

An opening balance is keyed by ``(account, effective_date)``; the one in force
on a given day is the latest with ``effective_date <= day``. Locked balances
are immutable while locks are enabled.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TypedDict

from db.models.ledger import OpeningBalance

from .config import Settings
from .errors import NotFoundError, OpeningBalanceLockedError
from .logging_setup import get_logger
from .normalizers import normalize_whitespace
from .repository import Repository

logger = get_logger("ledger_import.accounts")

UNKNOWN_ACCOUNT_NAME = "Unknown account"


def account_display_name(account_name: str | None, identifier: str) -> str:
    """Account name taken from the latest statement: its name, else the identifier."""

    name = normalize_whitespace(account_name or identifier or "")
    return name or UNKNOWN_ACCOUNT_NAME


class OpeningBalanceView(TypedDict):
    amount_minor: str
    effective_date: str
    locked_at: str | None


class AccountView(TypedDict):
    id: int
    name: str
    identifier: str
    currency: str
    opening_balance: OpeningBalanceView | None


def _balance_view(balance: OpeningBalance | None) -> OpeningBalanceView | None:
    if balance is None:
        return None
    return {
        "amount_minor": str(balance.amount_minor),
        "effective_date": balance.effective_date.isoformat(),
        "locked_at": balance.locked_at.isoformat() if balance.locked_at else None,
    }


def list_accounts(repo: Repository, user_id: str, *, as_of: date | None = None) -> list[AccountView]:
    """Return the user's accounts with the opening balance in force on ``as_of``."""

    day = as_of or date.max
    return [
        {
            "id": a.id,
            "name": a.name,
            "identifier": a.identifier,
            "currency": a.currency,
            "opening_balance": _balance_view(repo.latest_opening_balance(a.id, day)),
        }
        for a in repo.list_accounts(user_id)
    ]


def _require_account(repo: Repository, user_id: str, account_id: int) -> None:
    if repo.get_account(user_id, account_id) is None:
        raise NotFoundError(f"Account {account_id} not found")


def set_opening_balance(
    repo: Repository,
    settings: Settings,
    user_id: str,
    account_id: int,
    *,
    effective_date: date | datetime,
    amount_minor: int,
) -> OpeningBalance:
    """Create or replace the opening balance of ``account_id`` on ``effective_date``."""

    _require_account(repo, user_id, account_id)
    day = effective_date.date() if isinstance(effective_date, datetime) else effective_date
    existing = repo.get_opening_balance(account_id, day)
    if existing is not None and existing.locked_at is not None and settings.locks_enabled:
        raise OpeningBalanceLockedError(
            f"Opening balance of {day.isoformat()} is locked and cannot be changed"
        )
    balance = repo.save_opening_balance(account_id, day, amount_minor)
    logger.info(
        "accounts:opening_balance account_id=%s date=%s amount_minor=%d",
        account_id,
        day,
        amount_minor,
    )
    return balance


def lock_opening_balance(
    repo: Repository,
    settings: Settings,
    user_id: str,
    account_id: int,
    *,
    effective_date: date,
) -> OpeningBalance:
    _require_account(repo, user_id, account_id)
    balance = repo.get_opening_balance(account_id, effective_date)
    if balance is None:
        raise NotFoundError(
            f"No opening balance for account {account_id} on {effective_date.isoformat()}"
        )
    if not settings.locks_enabled or balance.locked_at is not None:
        return balance
    return repo.save_opening_balance_lock(balance, locked_at=datetime.now(UTC), locked_by=user_id)


__all__ = [
    "UNKNOWN_ACCOUNT_NAME",
    "AccountView",
    "OpeningBalanceView",
    "account_display_name",
    "list_accounts",
    "lock_opening_balance",
    "set_opening_balance",
]
