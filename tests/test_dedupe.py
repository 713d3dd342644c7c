from dataclasses import replace
from datetime import date

from ledger_import.dedupe import attach_hashes, compute_transaction_hash, partition_duplicates
from ledger_import.models import NormalizedTransaction, ParsedRowSuccess


def _tx(**overrides) -> NormalizedTransaction:
    base = NormalizedTransaction(
        account_identifier="NL89INGB0006369960",
        account_name=None,
        currency="EUR",
        date=date(2025, 1, 2),
        description="Albert Heijn",
        normalized_description="albert heijn",
        counterparty=None,
        amount_minor=-1250,
        reference="AH-1",
        source="ing_csv",
    )
    return replace(base, **overrides)


def test_hash_is_stable_across_sources_and_display_fields():
    a = _tx()
    b = _tx(source="xlsx_initial", description="ALBERT  HEIJN", counterparty="x", reference="ah-1")

    assert compute_transaction_hash("u1", a) == compute_transaction_hash("u1", b)
    assert len(compute_transaction_hash("u1", a)) == 64


def test_hash_changes_with_identifying_fields():
    base = compute_transaction_hash("u1", _tx())

    assert compute_transaction_hash("u2", _tx()) != base
    assert compute_transaction_hash("u1", _tx(amount_minor=-1251)) != base
    assert compute_transaction_hash("u1", _tx(date=date(2025, 1, 3))) != base
    assert compute_transaction_hash("u1", _tx(normalized_description="jumbo")) != base
    assert compute_transaction_hash("u1", _tx(reference=None)) != base
    assert compute_transaction_hash("u1", _tx(account_identifier="NL11RABO0123456789")) != base


def test_partition_keeps_first_occurrence_and_drops_existing():
    rows = attach_hashes(
        "u1",
        [
            ParsedRowSuccess(row_number=2, transaction=_tx()),
            ParsedRowSuccess(row_number=3, transaction=_tx(amount_minor=500)),
            ParsedRowSuccess(row_number=4, transaction=_tx()),
            ParsedRowSuccess(row_number=5, transaction=_tx(amount_minor=700)),
        ],
    )
    existing = {rows[3].hash}

    uniques, duplicates = partition_duplicates(rows, existing)

    assert [r.row_number for r in uniques] == [2, 3]
    assert [r.row_number for r in duplicates] == [4, 5]
