"""Statement parsers and format detection.

``parse_statement`` is the single entry point used by the importer: it picks
the parser from the filename extension and returns a ``ParseResult``.
"""

from __future__ import annotations

from pathlib import PurePath

from ..config import DEFAULT_XLSX_SHEET
from ..logging_setup import get_logger
from ..models import ImportFormat, ParseResult
from .ing_csv import parse_ing_csv
from .workbook import parse_initial_workbook

logger = get_logger("ledger_import.parsers")

_SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xlsm", ".xls"})


def detect_format(filename: str) -> ImportFormat:
    """Spreadsheet extensions route to the workbook parser; everything else is CSV."""

    if PurePath(filename).suffix.lower() in _SPREADSHEET_EXTENSIONS:
        return "xlsx_initial"
    return "csv_ing"


def decode_csv_bytes(data: bytes) -> str:
    """Decode a CSV export, falling back to Windows-1252 for legacy bank exports."""

    # utf-8-sig drops the BOM some banking portals prepend.
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.info("parsers:decode fallback=cp1252 offset=%d", exc.start)
    # cp1252 leaves five bytes undefined; those become U+FFFD.
    return data.decode("cp1252", errors="replace")


def parse_statement(
    filename: str,
    data: bytes,
    *,
    sheet_name: str = DEFAULT_XLSX_SHEET,
) -> ParseResult:
    if detect_format(filename) == "xlsx_initial":
        return parse_initial_workbook(data, sheet_name=sheet_name)
    return parse_ing_csv(decode_csv_bytes(data))


__all__ = [
    "decode_csv_bytes",
    "detect_format",
    "parse_ing_csv",
    "parse_initial_workbook",
    "parse_statement",
]
