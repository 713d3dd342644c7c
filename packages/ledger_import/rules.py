"""User-defined categorization rules: evaluation and CRUD.

Evaluation order is priority (desc), then most recently updated, then most
recently created; the first rule whose ``match_field`` value satisfies its
``match_type`` wins. ``contains``/``startsWith``/``endsWith`` compare
case-insensitively; ``regex`` uses a case-insensitive ``re`` search.

A regex that fails to compile never aborts categorization. The rule is
skipped and reported in ``RuleEvaluation.invalid``; the importer records the
reason on the rule (``invalid_reason``) so its owner can fix it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from db.models.ledger import CategorizationRule
from pydantic import ValidationError

from .errors import InvalidRuleError, NotFoundError
from .logging_setup import get_logger
from .models import RuleInput, RuleUpdate
from .repository import Repository

logger = get_logger("ledger_import.rules")


@dataclass(frozen=True, slots=True)
class RuleCandidate:
    """Fields of an incoming transaction that rules may inspect."""

    description: str
    counterparty: str | None = None
    reference: str | None = None
    source: str | None = None


@dataclass(frozen=True, slots=True)
class InvalidPattern:
    rule_id: int
    reason: str


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    rule: CategorizationRule | None
    invalid: list[InvalidPattern] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return 0.0
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def order_rules(rules: Iterable[CategorizationRule]) -> list[CategorizationRule]:
    """Return rules in evaluation order: priority, then update and creation recency."""

    return sorted(
        rules,
        key=lambda r: (-r.priority, -_timestamp(r.updated_at), -_timestamp(r.created_at)),
    )


def _field_value(rule: CategorizationRule, candidate: RuleCandidate) -> str | None:
    match rule.match_field:
        case "counterparty":
            return candidate.counterparty
        case "reference":
            return candidate.reference
        case "source":
            return candidate.source
        case _:
            return candidate.description


def evaluate_rule(rule: CategorizationRule, candidate: RuleCandidate) -> bool:
    """Return whether ``rule`` matches ``candidate``.

    Raises ``re.error`` when a regex rule's pattern does not compile.
    """

    pattern = (rule.pattern or "").strip()
    haystack = _field_value(rule, candidate)
    if not pattern or not haystack:
        return False

    if rule.match_type == "regex":
        return _compile(pattern).search(haystack) is not None

    needle = pattern.lower()
    value = haystack.lower()
    match rule.match_type:
        case "contains":
            return needle in value
        case "startsWith":
            return value.startswith(needle)
        case "endsWith":
            return value.endswith(needle)
        case _:
            return False


def find_matching_rule(
    rules: Sequence[CategorizationRule] | None,
    candidate: RuleCandidate,
) -> RuleEvaluation:
    """Return the first matching active rule plus any rules with broken patterns.

    ``rules`` must already be in evaluation order (see ``order_rules``).
    """

    invalid: list[InvalidPattern] = []
    for rule in rules or ():
        if not rule.is_active:
            continue
        try:
            matched = evaluate_rule(rule, candidate)
        except re.error as exc:
            logger.warning(
                "rules:invalid_pattern rule_id=%s pattern=%r error=%s", rule.id, rule.pattern, exc
            )
            invalid.append(InvalidPattern(rule_id=rule.id, reason=f"Invalid pattern: {exc}"))
            continue
        if matched:
            return RuleEvaluation(rule=rule, invalid=invalid)
    return RuleEvaluation(rule=None, invalid=invalid)


# ---------------------------------------------------------------------------
# Persistence-facing operations
# ---------------------------------------------------------------------------


def fetch_active_rules(repo: Repository, user_id: str) -> list[CategorizationRule]:
    return order_rules(repo.list_rules(user_id, active_only=True))


def list_rules(repo: Repository, user_id: str) -> list[CategorizationRule]:
    return order_rules(repo.list_rules(user_id))


def touch_rule_match(repo: Repository, rule_id: int, *, when: datetime | None = None) -> None:
    repo.touch_rule(rule_id, when or datetime.now(UTC))


def report_invalid_patterns(repo: Repository, invalid: Iterable[InvalidPattern]) -> None:
    """Persist the failure reason on each rule with a broken pattern (once per rule)."""

    seen: set[int] = set()
    for item in invalid:
        if item.rule_id in seen:
            continue
        seen.add(item.rule_id)
        repo.mark_rule_invalid(item.rule_id, item.reason)


def _check_regex(pattern: str, match_type: str) -> None:
    if match_type != "regex":
        return
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise InvalidRuleError(f"Invalid regular expression {pattern!r}: {exc}") from exc


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _require_category(repo: Repository, user_id: str, category_id: int) -> None:
    if repo.get_category(user_id, category_id) is None:
        raise NotFoundError(f"Category {category_id} not found")


def create_rule(
    repo: Repository,
    user_id: str,
    data: RuleInput | Mapping[str, Any],
    *,
    created_by: str | None = None,
) -> CategorizationRule:
    """Validate and store a new rule.

    Label and pattern are trimmed; defaults are ``match_type="regex"``,
    ``match_field="description"``, ``priority=100`` and ``is_active=True``.
    """

    try:
        payload = data if isinstance(data, RuleInput) else RuleInput.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidRuleError(_validation_message(exc)) from exc
    _check_regex(payload.pattern, payload.match_type)
    _require_category(repo, user_id, payload.category_id)

    rule = repo.add_rule(
        user_id,
        {**payload.model_dump(), "created_by": created_by or user_id},
    )
    logger.info(
        "rules:create rule_id=%s match_type=%s match_field=%s priority=%d",
        rule.id,
        rule.match_type,
        rule.match_field,
        rule.priority,
    )
    return rule


def update_rule(
    repo: Repository,
    user_id: str,
    rule_id: int,
    changes: RuleUpdate | Mapping[str, Any],
) -> CategorizationRule:
    """Apply a partial update; any edit clears a previously recorded invalid pattern."""

    rule = repo.get_rule(user_id, rule_id)
    if rule is None:
        raise NotFoundError(f"Rule {rule_id} not found")
    try:
        payload = (
            changes if isinstance(changes, RuleUpdate) else RuleUpdate.model_validate(dict(changes))
        )
    except ValidationError as exc:
        raise InvalidRuleError(_validation_message(exc)) from exc

    values = payload.model_dump(exclude_none=True)
    _check_regex(values.get("pattern", rule.pattern), values.get("match_type", rule.match_type))
    if "category_id" in values:
        _require_category(repo, user_id, values["category_id"])
    values["invalid_reason"] = None
    return repo.save_rule(rule, values)


def delete_rule(repo: Repository, user_id: str, rule_id: int) -> None:
    rule = repo.get_rule(user_id, rule_id)
    if rule is None:
        raise NotFoundError(f"Rule {rule_id} not found")
    repo.remove_rule(rule)
    logger.info("rules:delete rule_id=%s", rule_id)


__all__ = [
    "InvalidPattern",
    "RuleCandidate",
    "RuleEvaluation",
    "create_rule",
    "delete_rule",
    "evaluate_rule",
    "fetch_active_rules",
    "find_matching_rule",
    "list_rules",
    "order_rules",
    "report_invalid_patterns",
    "touch_rule_match",
    "update_rule",
]
