"""Monthly ledger periods and their locks.

Every transaction belongs to the ledger of its ``(year, month)``; ledgers are
created lazily on first use. A locked ledger rejects new transactions and
manual re-categorization unless locks are disabled through
``Settings.locks_enabled`` (``RECONCILIATION_LOCKS_ENABLED=false``).
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from db.models.ledger import Ledger

from .config import Settings
from .errors import LockedPeriodError
from .logging_setup import get_logger, log_event
from .repository import Repository

logger = get_logger("ledger_import.ledgers")

AUTO_LOCK_NOTE = "Auto-locked after reconciliation"


def period_for(day: date) -> tuple[int, int]:
    """Return the ``(year, month)`` ledger key for a transaction date."""

    return day.year, day.month


def _locked_message(year: int, month: int) -> str:
    return f"Ledger {year}-{month} is locked"


def assert_period_unlocked(ledger: Ledger | None, settings: Settings) -> None:
    if ledger is not None and settings.locks_enabled and ledger.locked_at is not None:
        raise LockedPeriodError(_locked_message(ledger.year, ledger.month))


class LedgerResolver:
    """Resolve (and create) ledger ids for one import, caching per period."""

    def __init__(self, repo: Repository, settings: Settings, user_id: str) -> None:
        self.repo = repo
        self.settings = settings
        self.user_id = user_id
        self._cache: dict[tuple[int, int], int] = {}

    def ensure(self, day: date) -> int:
        """Return the ledger id for ``day``.

        Raises ``LockedPeriodError`` when the period already exists and is
        locked (locks enabled).
        """

        key = period_for(day)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        year, month = key
        ledger = self.repo.get_ledger(self.user_id, year, month)
        if ledger is not None:
            assert_period_unlocked(ledger, self.settings)
        else:
            ledger = self.repo.create_ledger(self.user_id, year, month)
            logger.debug("ledgers:create user_id=%s period=%d-%02d", self.user_id, year, month)
        self._cache[key] = ledger.id
        return ledger.id


def get_or_create_ledger(repo: Repository, user_id: str, year: int, month: int) -> Ledger:
    return repo.get_ledger(user_id, year, month) or repo.create_ledger(user_id, year, month)


def lock_ledger(
    repo: Repository,
    settings: Settings,
    user_id: str,
    *,
    year: int,
    month: int,
    note: str | None = None,
    locked_by: str | None = None,
) -> Ledger:
    """Lock a period; idempotent (an already locked ledger is returned unchanged)."""

    ledger = get_or_create_ledger(repo, user_id, year, month)
    if not settings.locks_enabled or ledger.locked_at is not None:
        return ledger
    repo.save_ledger_lock(
        ledger, locked_at=datetime.now(UTC), locked_by=locked_by or user_id, note=note
    )
    log_event(logger, "ledgers", "lock", user_id=user_id, period=f"{year}-{month:02d}")
    return ledger


def unlock_ledger(
    repo: Repository,
    settings: Settings,
    user_id: str,
    *,
    year: int,
    month: int,
) -> Ledger:
    """Clear the lock fields of a period."""

    ledger = get_or_create_ledger(repo, user_id, year, month)
    if not settings.locks_enabled or ledger.locked_at is None:
        return ledger
    repo.save_ledger_lock(ledger, locked_at=None, locked_by=None, note=None)
    log_event(logger, "ledgers", "unlock", user_id=user_id, period=f"{year}-{month:02d}")
    return ledger


def auto_lock_ledger(
    repo: Repository, settings: Settings, user_id: str, *, year: int, month: int
) -> bool:
    """Lock a reconciled period with the system note; ``True`` when a lock was added."""

    if not settings.locks_enabled:
        return False
    ledger = repo.get_ledger(user_id, year, month)
    if ledger is None or ledger.locked_at is not None:
        return False
    repo.save_ledger_lock(
        ledger, locked_at=datetime.now(UTC), locked_by=user_id, note=AUTO_LOCK_NOTE
    )
    log_event(logger, "ledgers", "auto_lock", user_id=user_id, period=f"{year}-{month:02d}")
    return True


__all__ = [
    "AUTO_LOCK_NOTE",
    "LedgerResolver",
    "assert_period_unlocked",
    "auto_lock_ledger",
    "get_or_create_ledger",
    "lock_ledger",
    "period_for",
    "unlock_ledger",
]
