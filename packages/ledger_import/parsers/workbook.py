"""Parser for the initial-load spreadsheet (one worksheet of bank rows).

The workbook carries the same columns as the ING CSV export on a worksheet
named ``"transacties 2025"`` by default. When the sheet is absent the whole
parse fails with a single synthetic row-0 error.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from io import BytesIO
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..config import DEFAULT_XLSX_SHEET
from ..models import ParsedRowError, ParsedRowSuccess, ParseResult
from ..normalizers import RowValidationError, build_normalized_transaction, extract_reference

SOURCE = "xlsx_initial"
FORMAT = "xlsx_initial"


@dataclass(frozen=True, slots=True)
class WorkbookRow:
    """Flat view of one worksheet row; cells keep their spreadsheet types."""

    account: Any
    date: Any
    description: Any
    counterparty: Any
    amount: Any
    debit_credit: Any
    notifications: Any

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> WorkbookRow:
        return cls(
            account=row.get("Account"),
            date=row.get("Date"),
            description=row.get("Name / Description"),
            counterparty=row.get("Counterparty"),
            amount=row.get("Amount (EUR)"),
            debit_credit=row.get("Debit/credit"),
            notifications=row.get("Notifications"),
        )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _jsonable(value: Any) -> Any:
    # Raw rows are persisted to a JSON column.
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def parse_initial_workbook(data: bytes, *, sheet_name: str = DEFAULT_XLSX_SHEET) -> ParseResult:
    """Parse spreadsheet bytes into a ``ParseResult``.

    The first row of the sheet is the header; data row ``i`` (0-based) is
    reported as row ``i + 2``.
    """

    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError) as exc:
        return ParseResult(
            successes=[],
            errors=[ParsedRowError(row_number=0, message=f"Unreadable workbook: {exc}")],
            format=FORMAT,
        )
    try:
        if sheet_name not in wb.sheetnames:
            return ParseResult(
                successes=[],
                errors=[
                    ParsedRowError(row_number=0, message=f'Sheet "{sheet_name}" not found')
                ],
                format=FORMAT,
            )

        rows = wb[sheet_name].iter_rows(values_only=True)
        header_cells = next(rows, None)
        if header_cells is None:
            return ParseResult(successes=[], errors=[], format=FORMAT)
        header = [str(c).strip() if c is not None else "" for c in header_cells]

        successes: list[ParsedRowSuccess] = []
        errors: list[ParsedRowError] = []
        for index, cells in enumerate(rows):
            row_number = index + 2
            if all(_is_blank(c) for c in cells):
                continue
            values = {
                name: (cells[i] if i < len(cells) else None)
                for i, name in enumerate(header)
                if name
            }
            raw = {k: _jsonable(v) for k, v in values.items()}
            row = WorkbookRow.from_mapping(values)
            notifications = row.notifications if isinstance(row.notifications, str) else None
            try:
                tx = build_normalized_transaction(
                    account_identifier=row.account,
                    account_name=row.account if isinstance(row.account, str) else None,
                    date=row.date,
                    description=row.description,
                    counterparty=row.counterparty,
                    amount=row.amount,
                    debit_credit=row.debit_credit,
                    reference=extract_reference(notifications),
                    source=SOURCE,
                    raw=raw,
                )
            except RowValidationError as exc:
                errors.append(ParsedRowError(row_number=row_number, message=str(exc), raw=raw))
                continue
            successes.append(ParsedRowSuccess(row_number=row_number, transaction=tx))
    finally:
        wb.close()

    return ParseResult(successes=successes, errors=errors, format=FORMAT)


__all__ = ["FORMAT", "SOURCE", "WorkbookRow", "parse_initial_workbook"]
