from ledger_import.repository import HistoryEntry
from ledger_import.suggestions import SuggestionIndex


def _register(index: SuggestionIndex, account_id: int, amount: int, desc: str, category: int):
    index.register(
        account_id=account_id,
        amount_minor=amount,
        normalized_description=desc,
        category_id=category,
    )


def test_buckets_fall_through_from_most_specific():
    index = SuggestionIndex()
    _register(index, 1, -1250, "albert heijn", 10)
    _register(index, 2, -999, "albert heijn", 20)
    _register(index, 2, -999, "albert heijn", 20)
    _register(index, 1, -500, "rent", 30)

    exact = index.suggest(account_id=1, amount_minor=-1250, normalized_description="albert heijn")
    assert (exact.category_id, exact.confidence) == (10, "exact")

    by_desc = index.suggest(account_id=3, amount_minor=-1, normalized_description="albert heijn")
    assert (by_desc.category_id, by_desc.confidence, by_desc.occurrences) == (20, "description", 2)

    by_account = index.suggest(account_id=1, amount_minor=-1, normalized_description="unknown")
    assert by_account.confidence == "account"
    assert by_account.category_id == 10


def test_ties_resolve_to_first_registered_category():
    index = SuggestionIndex()
    _register(index, 1, 100, "gift", 7)
    _register(index, 1, 200, "gift", 8)

    suggestion = index.suggest(account_id=9, amount_minor=1, normalized_description="gift")

    assert suggestion.category_id == 7


def test_overall_bucket_requires_minimum_count():
    index = SuggestionIndex(min_overall_count=3)
    _register(index, 1, 100, "a", 5)
    _register(index, 1, 200, "b", 5)

    assert index.suggest(account_id=2, amount_minor=1, normalized_description="z") is None

    _register(index, 1, 300, "c", 5)
    overall = index.suggest(account_id=2, amount_minor=1, normalized_description="z")
    assert (overall.category_id, overall.confidence, overall.occurrences) == (5, "overall", 3)


def test_from_history():
    index = SuggestionIndex.from_history(
        [
            HistoryEntry(account_id=1, amount_minor=-500, normalized_description="rent", category_id=3),
            HistoryEntry(account_id=1, amount_minor=-500, normalized_description="rent", category_id=4),
            HistoryEntry(account_id=1, amount_minor=-500, normalized_description="rent", category_id=4),
        ]
    )

    assert index.size == 3
    hit = index.suggest(account_id=1, amount_minor=-500, normalized_description="rent")
    assert (hit.category_id, hit.confidence) == (4, "exact")
