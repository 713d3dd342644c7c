"""Category assignment for incoming transactions.

Precedence per transaction, evaluated in parse order:

1. the first matching active rule (``classification_source="rule"``);
2. an exact history match: a manually classified transaction on the same
   account with the same normalized description and an amount within the
   configured threshold (``"history"``);
3. the batch suggestion index (``"import"`` with an ``exact``/``description``/
   ``account``/``overall`` confidence tag);
4. the reserved review category (``"import"``, confidence ``review``).

Every non-review decision is registered into the suggestion index right away.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from db.models.ledger import CategorizationRule

from .categories import ensure_category
from .config import Settings
from .logging_setup import get_logger
from .models import Classification, NormalizedTransaction
from .repository import Repository
from .rules import (
    InvalidPattern,
    RuleCandidate,
    fetch_active_rules,
    find_matching_rule,
    touch_rule_match,
)
from .suggestions import SuggestionIndex

logger = get_logger("ledger_import.categorization")


@dataclass(slots=True)
class CategorizationStats:
    rule: int = 0
    history: int = 0
    suggested: int = 0
    review: int = 0
    invalid_patterns: list[InvalidPattern] = field(default_factory=list)

    @property
    def auto_categorized(self) -> int:
        return self.rule + self.history + self.suggested


class Categorizer:
    """Stateful categorizer for one import batch."""

    def __init__(
        self,
        repo: Repository,
        *,
        user_id: str,
        rules: list[CategorizationRule],
        index: SuggestionIndex,
        review_category_id: int,
        amount_threshold_minor: int = 1,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.rules = rules
        self.index = index
        self.review_category_id = review_category_id
        self.amount_threshold_minor = amount_threshold_minor
        self.stats = CategorizationStats()

    @classmethod
    def for_user(cls, repo: Repository, settings: Settings, user_id: str) -> Categorizer:
        """Load active rules and manual history and ensure the review category exists."""

        rules = fetch_active_rules(repo, user_id)
        history = repo.manual_history(user_id)
        review = ensure_category(repo, user_id, settings.review_category_name)
        logger.debug(
            "categorizer:init user_id=%s rules=%d history=%d", user_id, len(rules), len(history)
        )
        return cls(
            repo,
            user_id=user_id,
            rules=rules,
            index=SuggestionIndex.from_history(history),
            review_category_id=review.id,
            amount_threshold_minor=settings.amount_match_threshold_minor,
        )

    def classify(self, account_id: int, tx: NormalizedTransaction) -> Classification:
        result = self._decide(account_id, tx)
        if result.confidence != "review" and result.category_id is not None:
            self.index.register(
                account_id=account_id,
                amount_minor=tx.amount_minor,
                normalized_description=tx.normalized_description,
                category_id=result.category_id,
            )
        return result

    def _decide(self, account_id: int, tx: NormalizedTransaction) -> Classification:
        evaluation = find_matching_rule(
            self.rules,
            RuleCandidate(
                description=tx.description,
                counterparty=tx.counterparty,
                reference=tx.reference,
                source=tx.source,
            ),
        )
        if evaluation.invalid:
            self.stats.invalid_patterns.extend(evaluation.invalid)
            # A broken pattern stays broken for the rest of the batch.
            broken = {item.rule_id for item in evaluation.invalid}
            self.rules = [rule for rule in self.rules if rule.id not in broken]
        if evaluation.rule is not None:
            touch_rule_match(self.repo, evaluation.rule.id)
            self.stats.rule += 1
            return Classification(
                category_id=evaluation.rule.category_id,
                source="rule",
                rule_id=evaluation.rule.id,
            )

        history_category = self.repo.find_history_match(
            self.user_id,
            account_id=account_id,
            normalized_description=tx.normalized_description,
            amount_minor=tx.amount_minor,
            threshold_minor=self.amount_threshold_minor,
        )
        if history_category is not None:
            self.stats.history += 1
            return Classification(category_id=history_category, source="history")

        suggestion = self.index.suggest(
            account_id=account_id,
            amount_minor=tx.amount_minor,
            normalized_description=tx.normalized_description,
        )
        if suggestion is not None:
            self.stats.suggested += 1
            return Classification(
                category_id=suggestion.category_id,
                source="import",
                confidence=suggestion.confidence,
            )

        self.stats.review += 1
        return Classification(
            category_id=self.review_category_id,
            source="import",
            confidence="review",
        )


__all__ = ["CategorizationStats", "Categorizer"]
