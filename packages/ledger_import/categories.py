"""Category helpers: naming convention, validation and idempotent creation.

Categories are flat, name-keyed rows per user. Grouping is encoded in the
name as ``"Main — Sub"`` and split at read time; when a sub-category is
created the ``Main`` row is ensured too and linked through ``parent_id``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TypedDict

from db.models.ledger import Category

from .logging_setup import get_logger
from .repository import Repository

logger = get_logger("ledger_import.categories")

GROUP_SEPARATOR = " — "
_SPLIT_RE = re.compile(r"\s+—\s+")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name`` (case kept)."""

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 128) -> NameValidation:
    s = normalize_name(name)
    if len(s) < min_len:
        return NameValidation(False, "Category name is required")
    if len(s) > max_len:
        return NameValidation(False, f"Category name must be at most {max_len} characters")
    main, sub = split_category_name(s)
    if not main or (GROUP_SEPARATOR.strip() in s and not sub):
        return NameValidation(False, "Use 'Main — Sub' with both parts filled in")
    return NameValidation(True)


def split_category_name(name: str) -> tuple[str, str | None]:
    """Split ``"Main — Sub"`` into ``("Main", "Sub")``; plain names have no sub."""

    parts = _SPLIT_RE.split(normalize_name(name), maxsplit=1)
    if len(parts) == 2:
        return parts[0].strip(), (parts[1].strip() or None)
    return parts[0].strip(), None


def join_category_name(main: str, sub: str | None = None) -> str:
    main_n = normalize_name(main)
    return f"{main_n}{GROUP_SEPARATOR}{normalize_name(sub)}" if sub else main_n


class CategoryView(TypedDict):
    id: int
    name: str
    main: str
    sub: str | None
    parent_id: int | None


def to_view(category: Category) -> CategoryView:
    main, sub = split_category_name(category.name)
    return {
        "id": category.id,
        "name": category.name,
        "main": main,
        "sub": sub,
        "parent_id": category.parent_id,
    }


def ensure_category(repo: Repository, user_id: str, name: str) -> Category:
    """Return the category called ``name``, creating it (and its main group) if needed.

    Raises ``ValueError`` when the name fails ``validate_name``.
    """

    check = validate_name(name)
    if not check.ok:
        raise ValueError(check.reason)
    main, sub = split_category_name(name)
    full = join_category_name(main, sub)

    existing = repo.get_category_by_name(user_id, full)
    if existing is not None:
        return existing

    parent_id = None
    if sub is not None:
        parent = repo.get_category_by_name(user_id, main) or repo.create_category(user_id, main)
        parent_id = parent.id
    created = repo.create_category(user_id, full, parent_id=parent_id)
    logger.info("categories:create category_id=%s name=%r", created.id, full)
    return created


def list_categories(repo: Repository, user_id: str) -> list[CategoryView]:
    return [to_view(c) for c in repo.list_categories(user_id)]


__all__ = [
    "GROUP_SEPARATOR",
    "CategoryView",
    "NameValidation",
    "ensure_category",
    "join_category_name",
    "list_categories",
    "normalize_name",
    "split_category_name",
    "to_view",
    "validate_name",
]
