"""Import orchestrator: parse, deduplicate, categorize, persist, reconcile.

``import_statement`` runs the whole pipeline against one ``Repository``. The
caller provides the transaction boundary (``db.client.session_scope``), so a
fatal error (a locked period, a storage failure) rolls back every write of the
batch, including the ``ImportBatch`` row.

Row-level problems never abort: they are returned in ``ImportSummary.errors``.
After persisting, every ``(account, year, month)`` touched is validated against
its statement balance and auto-locked when it balances exactly; a missing
opening balance or a mismatch only skips the lock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from typing import Any

from db.models.ledger import ImportBatch

from .accounts import account_display_name
from .categorization import Categorizer
from .config import Settings
from .dedupe import HashedRow, attach_hashes, partition_duplicates
from .errors import LedgerMismatchError, MissingOpeningBalanceError
from .ledgers import LedgerResolver, auto_lock_ledger, period_for
from .logging_setup import get_logger, log_event
from .models import ImportRowError, ImportSummary, ParseResult
from .parsers import parse_statement
from .reconciliation import validate_ledger_balance
from .repository import Repository
from .rules import report_invalid_patterns

logger = get_logger("ledger_import.importer")


def _chunks(rows: Sequence[HashedRow], size: int) -> Iterator[Sequence[HashedRow]]:
    for i in range(0, len(rows), size):
        yield rows[i : i + size]


def _summary(
    *,
    filename: str,
    parsed: ParseResult,
    batch: ImportBatch,
    imported: int,
    duplicates: int,
    auto_categorized: int,
) -> ImportSummary:
    return ImportSummary(
        filename=filename,
        format=parsed.format,
        total_rows=parsed.total_rows,
        imported_count=imported,
        duplicate_count=duplicates,
        error_count=len(parsed.errors),
        auto_categorized_count=auto_categorized,
        pending_review_count=imported - auto_categorized,
        batch_id=batch.id,
        errors=[ImportRowError(row_number=e.row_number, message=e.message) for e in parsed.errors],
    )


def import_statement(
    repo: Repository,
    settings: Settings,
    user_id: str,
    *,
    filename: str,
    data: bytes,
    sheet_name: str | None = None,
) -> ImportSummary:
    """Parse ``data`` according to ``filename``'s extension and import it."""

    parsed = parse_statement(filename, data, sheet_name=sheet_name or settings.xlsx_sheet_name)
    return import_parsed(repo, settings, user_id, filename=filename, parsed=parsed)


def import_parsed(
    repo: Repository,
    settings: Settings,
    user_id: str,
    *,
    filename: str,
    parsed: ParseResult,
) -> ImportSummary:
    log_event(
        logger,
        "import_statement",
        "start",
        user_id=user_id,
        filename=filename,
        format=parsed.format,
        rows=parsed.total_rows,
        errors=len(parsed.errors),
    )
    batch = repo.create_import_batch(
        user_id,
        filename=filename,
        format=parsed.format,
        total_rows=parsed.total_rows,
        error_rows=len(parsed.errors),
    )

    if not parsed.successes:
        repo.finalize_import_batch(
            batch,
            imported_rows=0,
            duplicate_rows=0,
            error_rows=len(parsed.errors),
            auto_categorized_rows=0,
            completed_at=datetime.now(UTC),
        )
        log_event(logger, "import_statement", "empty", batch_id=batch.id, errors=len(parsed.errors))
        return _summary(
            filename=filename,
            parsed=parsed,
            batch=batch,
            imported=0,
            duplicates=0,
            auto_categorized=0,
        )

    # ---- dedupe --------------------------------------------------------------
    hashed = attach_hashes(user_id, parsed.successes)
    existing = repo.existing_hashes(user_id, (r.hash for r in hashed))
    uniques, duplicates = partition_duplicates(hashed, existing)

    # ---- accounts ------------------------------------------------------------
    account_ids: dict[str, int] = {}
    for row in uniques:
        tx = row.transaction
        if tx.account_identifier in account_ids:
            continue
        account = repo.upsert_account(
            user_id,
            tx.account_identifier,
            name=account_display_name(tx.account_name, tx.account_identifier),
            currency=tx.currency,
        )
        account_ids[tx.account_identifier] = account.id

    # ---- categorize + persist ---------------------------------------------
    categorizer = Categorizer.for_user(repo, settings, user_id)
    ledgers = LedgerResolver(repo, settings, user_id)
    targets: dict[tuple[int, int, int], None] = {}

    for chunk_index, chunk in enumerate(_chunks(uniques, settings.chunk_size)):
        now = datetime.now(UTC)
        payload: list[dict[str, Any]] = []
        for row in chunk:
            tx = row.transaction
            account_id = account_ids[tx.account_identifier]
            ledger_id = ledgers.ensure(tx.date)
            decision = categorizer.classify(account_id, tx)
            year, month = period_for(tx.date)
            targets.setdefault((account_id, year, month), None)
            payload.append(
                {
                    "user_id": user_id,
                    "account_id": account_id,
                    "ledger_id": ledger_id,
                    "import_batch_id": batch.id,
                    "hash": row.hash,
                    "date": tx.date,
                    "description": tx.description,
                    "normalized_description": tx.normalized_description,
                    "counterparty": tx.counterparty,
                    "reference": tx.reference,
                    "amount_minor": tx.amount_minor,
                    "currency": tx.currency,
                    "direction": tx.direction,
                    "source": tx.source,
                    "source_file": filename,
                    "raw": dict(tx.raw),
                    "category_id": decision.category_id,
                    "classification_source": decision.source,
                    "classification_rule_id": decision.rule_id,
                    "suggestion_confidence": decision.confidence,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        repo.insert_transactions(payload)
        logger.debug(
            "import_statement:chunk_done batch_id=%s chunk_index=%d rows=%d",
            batch.id,
            chunk_index,
            len(payload),
        )

    report_invalid_patterns(repo, categorizer.stats.invalid_patterns)

    imported = repo.count_batch_transactions(batch.id)
    auto_categorized = min(categorizer.stats.auto_categorized, imported)
    duplicate_count = len(duplicates) + (len(uniques) - imported)

    # ---- reconcile + auto-lock ---------------------------------------------
    for account_id, year, month in targets:
        try:
            result = validate_ledger_balance(repo, user_id, account_id, year=year, month=month)
        except MissingOpeningBalanceError:
            log_event(
                logger,
                "import_statement",
                "auto_lock_skipped",
                reason="no_opening_balance",
                account_id=account_id,
                period=f"{year}-{month:02d}",
            )
            continue
        except LedgerMismatchError as exc:
            log_event(
                logger,
                "import_statement",
                "auto_lock_skipped",
                level=logging.WARNING,
                reason="mismatch",
                account_id=account_id,
                period=f"{year}-{month:02d}",
                difference_minor=exc.difference_minor,
            )
            continue
        if result.status == "balanced":
            auto_lock_ledger(repo, settings, user_id, year=year, month=month)

    repo.finalize_import_batch(
        batch,
        imported_rows=imported,
        duplicate_rows=duplicate_count,
        error_rows=len(parsed.errors),
        auto_categorized_rows=auto_categorized,
        completed_at=datetime.now(UTC),
    )
    log_event(
        logger,
        "import_statement",
        "done",
        batch_id=batch.id,
        imported=imported,
        duplicates=duplicate_count,
        errors=len(parsed.errors),
        auto_categorized=auto_categorized,
        pending_review=imported - auto_categorized,
    )
    return _summary(
        filename=filename,
        parsed=parsed,
        batch=batch,
        imported=imported,
        duplicates=duplicate_count,
        auto_categorized=auto_categorized,
    )


__all__ = ["import_parsed", "import_statement"]
