"""Runtime settings read from the environment.

The CLI loads ``.env`` with ``python-dotenv`` before calling
``Settings.from_env()``; library callers may also construct ``Settings``
directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

DEFAULT_CHUNK_SIZE = 250
DEFAULT_REVIEW_CATEGORY = "Needs Review"
DEFAULT_XLSX_SHEET = "transacties 2025"


def _threshold_minor(raw: str | None) -> int:
    """Convert a currency-unit threshold (e.g. ``"0.01"``) to minor units, minimum 1."""

    if raw is None or not raw.strip():
        return 1
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"AMOUNT_MATCH_THRESHOLD is not a number: {raw!r}") from exc
    minor = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(1, minor)


def _positive_int(raw: str | None, default: int, *, name: str) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer: {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive: {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    locks_enabled: bool = True
    amount_match_threshold_minor: int = 1
    chunk_size: int = DEFAULT_CHUNK_SIZE
    review_category_name: str = DEFAULT_REVIEW_CATEGORY
    xlsx_sheet_name: str = DEFAULT_XLSX_SHEET

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        - ``RECONCILIATION_LOCKS_ENABLED``: locks stay on unless set to ``false``.
        - ``AMOUNT_MATCH_THRESHOLD``: history amount tolerance in currency units.
        - ``LEDGER_IMPORT_CHUNK_SIZE``: rows per persistence call.
        - ``LEDGER_IMPORT_XLSX_SHEET``: worksheet read by the spreadsheet parser.
        """

        locks_raw = os.getenv("RECONCILIATION_LOCKS_ENABLED")
        return cls(
            locks_enabled=(locks_raw or "").strip().lower() != "false",
            amount_match_threshold_minor=_threshold_minor(os.getenv("AMOUNT_MATCH_THRESHOLD")),
            chunk_size=_positive_int(
                os.getenv("LEDGER_IMPORT_CHUNK_SIZE"),
                DEFAULT_CHUNK_SIZE,
                name="LEDGER_IMPORT_CHUNK_SIZE",
            ),
            xlsx_sheet_name=os.getenv("LEDGER_IMPORT_XLSX_SHEET") or DEFAULT_XLSX_SHEET,
        )


__all__ = ["DEFAULT_REVIEW_CATEGORY", "DEFAULT_XLSX_SHEET", "Settings"]
