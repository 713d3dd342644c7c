"""Content-addressed duplicate detection for imported transactions.

The hash covers the fields that identify a bank movement regardless of which
file (CSV or spreadsheet) it arrived in:

``user_id | account_identifier.lower() | date ISO | normalized_description |
amount_minor | reference.lower() or ""``

Re-importing a file therefore yields only duplicates.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass

from .models import NormalizedTransaction, ParsedRowSuccess


@dataclass(frozen=True, slots=True)
class HashedRow:
    row_number: int
    transaction: NormalizedTransaction
    hash: str


def compute_transaction_hash(user_id: str, tx: NormalizedTransaction) -> str:
    """Return the SHA-256 hex digest identifying ``tx`` for ``user_id``."""

    parts = (
        user_id,
        tx.account_identifier.lower(),
        tx.date.isoformat(),
        tx.normalized_description,
        str(tx.amount_minor),
        (tx.reference or "").lower(),
    )
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def attach_hashes(user_id: str, successes: Iterable[ParsedRowSuccess]) -> list[HashedRow]:
    return [
        HashedRow(
            row_number=s.row_number,
            transaction=s.transaction,
            hash=compute_transaction_hash(user_id, s.transaction),
        )
        for s in successes
    ]


def partition_duplicates(
    rows: Iterable[HashedRow],
    existing_hashes: Iterable[str],
) -> tuple[list[HashedRow], list[HashedRow]]:
    """Split ``rows`` into ``(uniques, duplicates)`` preserving input order.

    A row is a duplicate when its hash is already persisted or appeared
    earlier in the same batch; the first occurrence is kept.
    """

    seen = set(existing_hashes)
    uniques: list[HashedRow] = []
    duplicates: list[HashedRow] = []
    for row in rows:
        if row.hash in seen:
            duplicates.append(row)
            continue
        seen.add(row.hash)
        uniques.append(row)
    return uniques, duplicates


__all__ = ["HashedRow", "attach_hashes", "compute_transaction_hash", "partition_duplicates"]
