"""Running-balance reconciliation of an account against its bank statement.

For an account and period the engine:

- takes the latest opening balance effective on or before the period start
  (0 when none exists);
- walks the period's transactions in date order accumulating the running
  balance and separate credit/debit totals;
- reads the bank's own closing balance from the raw rows (``Resulting
  balance``/``Saldo``/``Balance`` columns; the last row carrying one wins,
  being the latest balance of the period);
- lists calendar days without transactions and groups that look duplicated
  (same date, normalized description and amount).

Status is ``balanced`` when a statement balance was found and equals the
computed closing balance, ``unreconciled`` when it differs and ``unknown``
when no statement balance was found. All figures are integer minor units.
"""

from __future__ import annotations

import calendar
from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from typing import Any

from .errors import LedgerMismatchError, MissingOpeningBalanceError, NotFoundError
from .logging_setup import get_logger
from .models import (
    AccountRef,
    DuplicateIndicator,
    LedgerRef,
    OpeningBalanceRef,
    PeriodRef,
    ReconciliationResult,
    ReconciliationStatus,
    Totals,
    TrailEntry,
)
from .normalizers import to_minor_units
from .repository import Repository

logger = get_logger("ledger_import.reconciliation")

STATEMENT_BALANCE_FIELDS = ("Resulting balance", "resulting balance", "Saldo", "Balance")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def resolve_period(
    *,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    month: int | None = None,
    year: int | None = None,
    today: date | None = None,
) -> PeriodRef:
    """Resolve the reconciliation window.

    An explicit ``start`` wins (``end`` defaults to the end of that month);
    otherwise ``month``/``year`` select a calendar month, with missing parts
    taken from ``today`` (UTC). Month and year of the result follow ``start``.
    """

    if start is not None:
        start_d = _as_date(start)
        end_d = _as_date(end) if end is not None else month_bounds(start_d.year, start_d.month)[1]
        if end_d < start_d:
            raise ValueError("Period end must not be before its start")
        return PeriodRef(start=start_d, end=end_d, month=start_d.month, year=start_d.year)

    ref = today or datetime.now(UTC).date()
    y = year if year is not None else ref.year
    m = month if month is not None else ref.month
    if not 1 <= m <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {m}")
    first, last = month_bounds(y, m)
    return PeriodRef(start=first, end=last, month=m, year=y)


def extract_statement_balance(raw: Mapping[str, Any] | None) -> int | None:
    """Return the statement-declared balance stored in a raw row, if any."""

    if not raw:
        return None
    for name in STATEMENT_BALANCE_FIELDS:
        value = raw.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        minor = to_minor_units(value)
        if minor is not None:
            return minor
    return None


def _status(difference: int | None) -> ReconciliationStatus:
    if difference is None:
        return "unknown"
    return "balanced" if difference == 0 else "unreconciled"


def reconcile(
    repo: Repository,
    user_id: str,
    account_id: int,
    *,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    month: int | None = None,
    year: int | None = None,
    today: date | None = None,
) -> ReconciliationResult:
    account = repo.get_account(user_id, account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    period = resolve_period(start=start, end=end, month=month, year=year, today=today)

    opening = repo.latest_opening_balance(account.id, period.start)
    opening_minor = opening.amount_minor if opening is not None else 0
    ledger = repo.get_ledger(user_id, period.year, period.month)
    transactions = repo.transactions_for_account(account.id, period.start, period.end)

    running = opening_minor
    credit_total = 0
    debit_total = 0
    statement: int | None = None
    trail: list[TrailEntry] = []
    groups: dict[tuple[date, str, int], list[Any]] = {}
    seen_days: set[date] = set()

    for tx in transactions:
        running += tx.amount_minor
        if tx.amount_minor >= 0:
            credit_total += tx.amount_minor
        else:
            debit_total += -tx.amount_minor
        candidate = extract_statement_balance(tx.raw)
        if candidate is not None:
            statement = candidate
        seen_days.add(tx.date)
        key = (tx.date, tx.normalized_description or tx.description.lower(), tx.amount_minor)
        groups.setdefault(key, []).append(tx)
        trail.append(
            TrailEntry(
                id=tx.id,
                date=tx.date,
                description=tx.description,
                amount_minor=str(tx.amount_minor),
                running_balance_minor=str(running),
                currency=tx.currency,
                reference=tx.reference,
            )
        )

    computed = opening_minor + credit_total - debit_total
    difference = computed - statement if statement is not None else None

    missing: list[date] = []
    day = period.start
    while day <= period.end:
        if day not in seen_days:
            missing.append(day)
        day += timedelta(days=1)

    duplicates = [
        DuplicateIndicator(
            date=key[0],
            description=members[0].description,
            amount_minor=str(key[2]),
            occurrences=len(members),
        )
        for key, members in groups.items()
        if len(members) > 1
    ]

    status = _status(difference)
    logger.debug(
        "reconcile:done account_id=%s period=%s..%s status=%s computed=%d statement=%s",
        account.id,
        period.start,
        period.end,
        status,
        computed,
        statement,
    )
    return ReconciliationResult(
        account=AccountRef(
            id=account.id,
            name=account.name,
            identifier=account.identifier,
            currency=account.currency,
        ),
        period=period,
        ledger=LedgerRef(
            id=ledger.id if ledger is not None else None,
            locked_at=ledger.locked_at.isoformat() if ledger and ledger.locked_at else None,
            locked_by=ledger.locked_by if ledger is not None else None,
        ),
        opening_balance=OpeningBalanceRef(
            amount_minor=str(opening_minor),
            effective_date=opening.effective_date if opening is not None else None,
        ),
        computed_end_balance_minor=str(computed),
        statement_end_balance_minor=str(statement) if statement is not None else None,
        difference_minor=str(difference) if difference is not None else None,
        status=status,
        totals=Totals(credit_minor=str(credit_total), debit_minor=str(debit_total)),
        missing_dates=missing,
        duplicate_indicators=duplicates,
        transactions=trail,
    )


def validate_ledger_balance(
    repo: Repository,
    user_id: str,
    account_id: int,
    *,
    year: int,
    month: int,
    tolerance_minor: int = 0,
) -> ReconciliationResult:
    """Reconcile a calendar month for the auto-lock decision.

    Raises ``MissingOpeningBalanceError`` when no opening balance applies and
    ``LedgerMismatchError`` when a statement balance exists and differs by more
    than ``tolerance_minor``. Otherwise returns the reconciliation result;
    only ``status == "balanced"`` qualifies the period for locking.
    """

    start, _end = month_bounds(year, month)
    if repo.latest_opening_balance(account_id, start) is None:
        raise MissingOpeningBalanceError(
            "Opening balance required before the ledger can be reconciled",
            account_id=account_id,
            year=year,
            month=month,
        )

    result = reconcile(repo, user_id, account_id, month=month, year=year)
    difference = result.difference
    if difference is not None and abs(difference) > tolerance_minor:
        raise LedgerMismatchError(
            "Ledger balance does not match bank statement",
            account_id=account_id,
            year=year,
            month=month,
            difference_minor=difference,
            computed_minor=result.computed_end_balance,
            statement_minor=result.statement_end_balance or 0,
        )
    return result


__all__ = [
    "STATEMENT_BALANCE_FIELDS",
    "extract_statement_balance",
    "month_bounds",
    "reconcile",
    "resolve_period",
    "validate_ledger_balance",
]
