"""Manual review: the queue of uncategorized rows and manual category updates.

A manual update is the only path that sets ``classification_source="manual"``;
it clears any rule reference and suggestion tag. Rows in a locked period
cannot be re-categorized while locks are enabled.
"""

from __future__ import annotations

from typing import TypedDict

from db.models.ledger import Transaction

from .categories import ensure_category, split_category_name
from .config import Settings
from .errors import NotFoundError
from .ledgers import assert_period_unlocked, period_for
from .logging_setup import get_logger
from .repository import Repository

logger = get_logger("ledger_import.review")


class ReviewItem(TypedDict):
    id: int
    date: str
    description: str
    counterparty: str | None
    amount_minor: str
    currency: str
    account_id: int
    category_id: int | None
    suggestion_confidence: str | None


def _to_item(tx: Transaction) -> ReviewItem:
    return {
        "id": tx.id,
        "date": tx.date.isoformat(),
        "description": tx.description,
        "counterparty": tx.counterparty,
        "amount_minor": str(tx.amount_minor),
        "currency": tx.currency,
        "account_id": tx.account_id,
        "category_id": tx.category_id,
        "suggestion_confidence": tx.suggestion_confidence,
    }


def get_review_queue(
    repo: Repository, settings: Settings, user_id: str, *, limit: int = 200
) -> list[ReviewItem]:
    """Transactions with no category or parked in the review category, newest first."""

    review = repo.get_category_by_name(user_id, settings.review_category_name)
    rows = repo.review_queue(
        user_id, review_category_id=review.id if review is not None else None, limit=limit
    )
    return [_to_item(tx) for tx in rows]


def update_transaction_category(
    repo: Repository,
    settings: Settings,
    user_id: str,
    transaction_id: int,
    *,
    category_id: int | None = None,
    category_name: str | None = None,
) -> Transaction:
    """Assign a category chosen by a person.

    ``category_name`` (``"Main"`` or ``"Main — Sub"``) is created on demand;
    otherwise ``category_id`` must reference one of the user's categories.
    """

    tx = repo.get_transaction(user_id, transaction_id)
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")

    year, month = period_for(tx.date)
    assert_period_unlocked(repo.get_ledger(user_id, year, month), settings)

    if category_name is not None and category_name.strip():
        category = ensure_category(repo, user_id, category_name)
    elif category_id is not None:
        category = repo.get_category(user_id, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
    else:
        raise ValueError("Either category_id or category_name is required")

    repo.save_transaction_category(
        tx,
        category_id=category.id,
        classification_source="manual",
        rule_id=None,
        confidence=None,
    )
    main, sub = split_category_name(category.name)
    logger.info(
        "review:categorize transaction_id=%s category_id=%s main=%r sub=%r",
        tx.id,
        category.id,
        main,
        sub,
    )
    return tx


__all__ = ["ReviewItem", "get_review_queue", "update_transaction_category"]
