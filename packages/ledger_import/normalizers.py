"""Pure value normalizers shared by every statement parser.

Everything here is side-effect free: raw cell values in, typed domain values
out. Amounts are returned as ``int`` minor units and dates as
``datetime.date`` (UTC calendar day, no time component).

``build_normalized_transaction`` combines the helpers and raises
``RowValidationError`` with a user-facing message for the first mandatory
field that is missing or unparseable; parsers turn that into a
``ParsedRowError``.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from .models import Direction, NormalizedTransaction

DEFAULT_CURRENCY = "EUR"

_WS_RE = re.compile(r"\s+")
_NON_ALNUM_SPACE_RE = re.compile(r"[^a-z0-9\s]")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_REFERENCE_RE = re.compile(r"Reference:\s*([^;]+)", re.IGNORECASE)
_COMPACT_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DAY_FIRST_RE = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
# Tried in order after the explicit shapes above and ``fromisoformat``.
_FALLBACK_DATE_FORMATS = ("%d.%m.%Y", "%Y/%m/%d", "%d %b %Y", "%d %B %Y", "%b %d, %Y")


class RowValidationError(ValueError):
    """A statement row cannot become a transaction; ``str(exc)`` is user-facing."""


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def normalize_whitespace(value: str) -> str:
    """Collapse whitespace runs (tabs/newlines included) to one space and trim."""

    return _WS_RE.sub(" ", value).strip()


def normalize_description(value: str) -> str:
    """Return the fuzzy match key for a description.

    Lower-cased, punctuation removed, whitespace collapsed. Used for
    duplicate/history matching only; never displayed.
    """

    lowered = normalize_whitespace(value).lower()
    stripped = _NON_ALNUM_SPACE_RE.sub("", lowered)
    return normalize_whitespace(stripped)


def normalize_counterparty(value: str | None) -> str | None:
    if value is None:
        return None
    s = normalize_whitespace(value)
    return s or None


def normalize_account_identifier(value: str) -> str:
    """Canonicalize an IBAN/account number so equivalent spellings compare equal.

    >>> normalize_account_identifier("NL89 ingb 0006 369960")
    'NL89INGB0006369960'
    """

    decomposed = unicodedata.normalize("NFD", value)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub("", without_marks).upper()


def ensure_string(value: Any) -> str | None:
    """Return a trimmed string for text/number cells; ``None`` for blanks and others."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        s = value.strip()
        return s or None
    if isinstance(value, int | float | Decimal):
        return str(value)
    return None


def extract_reference(value: str | None) -> str | None:
    """Pull the ``Reference: ...`` token (up to the next ``;``) out of a memo field."""

    if not value:
        return None
    match = _REFERENCE_RE.search(value)
    if not match:
        return None
    ref = normalize_whitespace(match.group(1))
    return ref or None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    """Parse a statement date cell into a calendar day.

    Accepted shapes, in order: ``date``/``datetime`` objects (aware datetimes
    are converted to UTC first), 8-digit ``YYYYMMDD`` (int or str),
    ``DD/MM/YYYY`` or ``DD-MM-YYYY``, ISO ``YYYY-MM-DD``, then a generic
    fallback. Anything else, including impossible calendar dates, is ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    m = _COMPACT_DATE_RE.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _DAY_FIRST_RE.match(s)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    m = _ISO_DATE_RE.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    try:
        return parse_date(datetime.fromisoformat(s))
    except ValueError:
        pass
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def _digits(s: str) -> str:
    return "".join(ch for ch in s if ch.isdigit())


def to_minor_units(value: Any, decimals: int = 2) -> int | None:
    """Convert an amount cell to a signed integer of minor units.

    String handling:

    - whitespace is removed and a leading ``-`` sets the sign;
    - with both ``.`` and ``,`` present, ``.`` is a thousands separator and
      ``,`` the decimal point (``"1.234,56"`` -> ``123456``);
    - a lone separator occurring once and followed by 1..``decimals`` digits is
      the decimal point (``"1234.56"``, ``"-12,3"``); otherwise it groups
      thousands (``"1.234"`` -> ``123400``);
    - extra fraction digits beyond ``decimals`` are truncated.

    Numbers are scaled exactly (floats via the ``Decimal`` of their shortest
    ``repr``, so ``1e-05`` is ``0`` and ``1e16`` keeps its magnitude). Values
    without any digits yield ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    scale = 10**decimals
    if isinstance(value, int):
        return value * scale
    if isinstance(value, float):
        value = Decimal(repr(value))
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return int(value.scaleb(decimals))
    if not isinstance(value, str):
        return None

    s = _WS_RE.sub("", value)
    if not s:
        return None

    negative = s.startswith("-")
    s = s.lstrip("+-")

    has_dot = "." in s
    has_comma = "," in s
    int_part, frac_part = s, ""
    if has_dot and has_comma:
        s = s.replace(".", "")
        int_part, _, frac_part = s.partition(",")
    elif has_dot or has_comma:
        sep = "." if has_dot else ","
        head, _, tail = s.partition(sep)
        tail_digits = _digits(tail)
        if s.count(sep) == 1 and 1 <= len(tail_digits) <= decimals:
            int_part, frac_part = head, tail
        else:
            int_part = s.replace(sep, "")

    int_digits = _digits(int_part)
    frac_digits = _digits(frac_part)[:decimals]
    if not int_digits and not frac_digits:
        return None

    minor = int(int_digits or "0") * scale + int(frac_digits.ljust(decimals, "0") or "0")
    return -minor if negative else minor


def apply_debit_credit(amount_minor: int | None, marker: str | None) -> int | None:
    """Force the sign implied by a ``Debit``/``Credit`` marker column.

    A missing or unknown marker trusts the already-signed amount.
    """

    if amount_minor is None:
        return None
    if not marker:
        return amount_minor
    m = marker.strip().lower()
    if m == "debit" and amount_minor > 0:
        return -amount_minor
    if m == "credit" and amount_minor < 0:
        return -amount_minor
    return amount_minor


def derive_direction(amount_minor: int) -> Direction:
    return "credit" if amount_minor >= 0 else "debit"


# ---------------------------------------------------------------------------
# Transaction assembly
# ---------------------------------------------------------------------------


def build_normalized_transaction(
    *,
    account_identifier: Any,
    account_name: Any,
    date: Any,
    description: Any,
    amount: Any,
    debit_credit: Any = None,
    counterparty: Any = None,
    reference: str | None = None,
    currency: Any = DEFAULT_CURRENCY,
    source: str,
    raw: Mapping[str, Any] | None = None,
) -> NormalizedTransaction:
    """Assemble a ``NormalizedTransaction`` or raise ``RowValidationError``.

    Checks run in a fixed order and the first failure wins: account
    identifier, date, description, amount (after debit/credit correction),
    then the normalized description.
    """

    identifier_raw = ensure_string(account_identifier)
    identifier = normalize_account_identifier(identifier_raw) if identifier_raw else ""
    if not identifier:
        raise RowValidationError("Missing account identifier")

    tx_date = parse_date(date)
    if tx_date is None:
        raise RowValidationError("Invalid or missing transaction date")

    description_raw = ensure_string(description)
    if description_raw is None:
        raise RowValidationError("Missing description")

    amount_minor = apply_debit_credit(to_minor_units(amount), ensure_string(debit_credit))
    if amount_minor is None:
        raise RowValidationError("Invalid or missing amount")

    normalized = normalize_description(description_raw)
    if not normalized:
        raise RowValidationError("Description could not be normalized")

    counterparty_raw = ensure_string(counterparty)
    return NormalizedTransaction(
        account_identifier=identifier,
        account_name=ensure_string(account_name),
        currency=(ensure_string(currency) or DEFAULT_CURRENCY).upper(),
        date=tx_date,
        description=normalize_whitespace(description_raw),
        normalized_description=normalized,
        counterparty=normalize_counterparty(counterparty_raw),
        amount_minor=amount_minor,
        reference=normalize_counterparty(reference),
        source=source,
        raw=dict(raw or {}),
    )


__all__ = [
    "DEFAULT_CURRENCY",
    "RowValidationError",
    "apply_debit_credit",
    "build_normalized_transaction",
    "derive_direction",
    "ensure_string",
    "extract_reference",
    "normalize_account_identifier",
    "normalize_counterparty",
    "normalize_description",
    "normalize_whitespace",
    "parse_date",
    "to_minor_units",
]
