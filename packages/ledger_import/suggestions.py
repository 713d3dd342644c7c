"""Batch-scoped category suggestion index.

Built once per import from the user's manually classified history and updated
after every classified row, so later rows in the same file learn from earlier
ones (parse order, not date order).

Lookups fall through four frequency buckets, most specific first:

1. ``exact``: same account, amount and normalized description
2. ``description``: same normalized description on any account
3. ``account``: anything seen on the same account
4. ``overall``: everything, but only once a category has been seen
   ``min_overall_count`` times

Within a bucket the most frequent category wins. Equal counts resolve to the
category registered first; suggestions are advisory and the user can always
override them in review.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass

from .models import Confidence
from .repository import HistoryEntry

DEFAULT_MIN_OVERALL_COUNT = 3


@dataclass(frozen=True, slots=True)
class Suggestion:
    category_id: int
    confidence: Confidence
    occurrences: int


class _Bucket:
    """Category frequency table; dict insertion order records first registration."""

    __slots__ = ("counts",)

    def __init__(self) -> None:
        self.counts: dict[int, int] = {}

    def add(self, category_id: int) -> None:
        self.counts[category_id] = self.counts.get(category_id, 0) + 1

    def best(self) -> tuple[int, int] | None:
        winner: tuple[int, int] | None = None
        for category_id, count in self.counts.items():
            # Strictly greater keeps the earliest registered category on ties.
            if winner is None or count > winner[1]:
                winner = (category_id, count)
        return winner


class SuggestionIndex:
    def __init__(self, *, min_overall_count: int = DEFAULT_MIN_OVERALL_COUNT) -> None:
        self.min_overall_count = min_overall_count
        self._exact: dict[Hashable, _Bucket] = {}
        self._description: dict[str, _Bucket] = {}
        self._account: dict[int, _Bucket] = {}
        self._overall = _Bucket()
        self.size = 0

    @classmethod
    def from_history(
        cls,
        entries: Iterable[HistoryEntry],
        *,
        min_overall_count: int = DEFAULT_MIN_OVERALL_COUNT,
    ) -> SuggestionIndex:
        index = cls(min_overall_count=min_overall_count)
        for e in entries:
            index.register(
                account_id=e.account_id,
                amount_minor=e.amount_minor,
                normalized_description=e.normalized_description,
                category_id=e.category_id,
            )
        return index

    def register(
        self,
        *,
        account_id: int,
        amount_minor: int,
        normalized_description: str,
        category_id: int,
    ) -> None:
        exact_key = (account_id, amount_minor, normalized_description)
        self._exact.setdefault(exact_key, _Bucket()).add(category_id)
        self._description.setdefault(normalized_description, _Bucket()).add(category_id)
        self._account.setdefault(account_id, _Bucket()).add(category_id)
        self._overall.add(category_id)
        self.size += 1

    def suggest(
        self,
        *,
        account_id: int,
        amount_minor: int,
        normalized_description: str,
    ) -> Suggestion | None:
        lookups: list[tuple[Confidence, _Bucket | None]] = [
            ("exact", self._exact.get((account_id, amount_minor, normalized_description))),
            ("description", self._description.get(normalized_description)),
            ("account", self._account.get(account_id)),
        ]
        for confidence, bucket in lookups:
            if bucket is None:
                continue
            best = bucket.best()
            if best is not None:
                return Suggestion(category_id=best[0], confidence=confidence, occurrences=best[1])

        best = self._overall.best()
        if best is not None and best[1] >= self.min_overall_count:
            return Suggestion(category_id=best[0], confidence="overall", occurrences=best[1])
        return None


__all__ = ["DEFAULT_MIN_OVERALL_COUNT", "Suggestion", "SuggestionIndex"]
