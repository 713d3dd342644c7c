"""Parser for ING semicolon-delimited CSV exports.

CSV header (keys are trimmed before lookup):
Account; Date; Name / Description; Counterparty; Amount (EUR); Debit/credit;
Notifications (or Notification); optionally Resulting balance and others.

Each non-blank data row becomes exactly one ``ParsedRowSuccess`` or
``ParsedRowError``. Row numbers count CSV records with the header as row 1,
so the first data row is row 2 and skipped blank rows still use a number.
"""

from __future__ import annotations

import csv
from collections.abc import Mapping
from dataclasses import dataclass
from io import StringIO

from ..models import ParsedRowError, ParsedRowSuccess, ParseResult
from ..normalizers import RowValidationError, build_normalized_transaction, extract_reference

SOURCE = "ing_csv"
FORMAT = "csv_ing"
REQUIRED_COLUMNS = ("Account", "Date", "Name / Description", "Amount (EUR)")


@dataclass(frozen=True, slots=True)
class IngCsvRow:
    """Flat view of one ING export row; absent columns are ``None``."""

    account: str | None
    date: str | None
    description: str | None
    counterparty: str | None
    amount: str | None
    debit_credit: str | None
    notifications: str | None

    @classmethod
    def from_mapping(cls, row: Mapping[str, str]) -> IngCsvRow:
        notifications = row.get("Notifications")
        if notifications is None:
            notifications = row.get("Notification")
        return cls(
            account=row.get("Account"),
            date=row.get("Date"),
            description=row.get("Name / Description"),
            counterparty=row.get("Counterparty"),
            amount=row.get("Amount (EUR)"),
            debit_credit=row.get("Debit/credit"),
            notifications=notifications,
        )


def _is_blank(values: list[str]) -> bool:
    return all(not v.strip() for v in values)


def parse_ing_csv(text: str, *, delimiter: str = ";") -> ParseResult:
    """Parse ING CSV ``text`` into a ``ParseResult``.

    A header lacking any of ``REQUIRED_COLUMNS`` produces a single row-0
    error instead of one error per row.
    """

    successes: list[ParsedRowSuccess] = []
    errors: list[ParsedRowError] = []

    with StringIO(text) as f:
        reader = csv.reader(f, delimiter=delimiter)
        header: list[str] | None = None
        for line_no, values in enumerate(reader, start=1):
            if header is None:
                if _is_blank(values):
                    continue
                header = [h.strip() for h in values]
                missing = [c for c in REQUIRED_COLUMNS if c not in header]
                if missing:
                    errors.append(
                        ParsedRowError(
                            row_number=0,
                            message="CSV header is missing required columns: "
                            + ", ".join(missing),
                        )
                    )
                    return ParseResult(successes=[], errors=errors, format=FORMAT)
                continue
            if not values or _is_blank(values):
                continue

            raw = {
                name: (values[i].strip() if i < len(values) else "")
                for i, name in enumerate(header)
                if name
            }
            row = IngCsvRow.from_mapping(raw)
            try:
                tx = build_normalized_transaction(
                    account_identifier=row.account,
                    account_name=row.account,
                    date=row.date,
                    description=row.description,
                    counterparty=row.counterparty,
                    amount=row.amount,
                    debit_credit=row.debit_credit,
                    reference=extract_reference(row.notifications),
                    source=SOURCE,
                    raw=raw,
                )
            except RowValidationError as exc:
                errors.append(ParsedRowError(row_number=line_no, message=str(exc), raw=raw))
                continue
            successes.append(ParsedRowSuccess(row_number=line_no, transaction=tx))

    return ParseResult(successes=successes, errors=errors, format=FORMAT)


__all__ = ["FORMAT", "REQUIRED_COLUMNS", "SOURCE", "IngCsvRow", "parse_ing_csv"]
