import asyncio

import pytest

from models.models import MatchCandidate
from services.condition_matcher import ConditionMatcher, extract_keywords
from services.errors import CatalogUnavailableError


class StubCatalog:
    def __init__(self, conditions, relevant=None, relevance_error=None, all_error=None):
        self.conditions = list(conditions)
        self.relevant = relevant or []
        self.relevance_error = relevance_error
        self.all_error = all_error
        self.find_all_calls = 0

    async def find_by_relevance(self, query, limit):
        if self.relevance_error:
            raise self.relevance_error
        return self.relevant[:limit]

    async def find_all(self):
        self.find_all_calls += 1
        if self.all_error:
            raise self.all_error
        return self.conditions

    async def count(self):
        return len(self.conditions)


def test_extract_keywords_keeps_words_longer_than_three():
    assert extract_keywords("I Have bad THROBBING pain") == ["have", "throbbing"]


def test_primary_search_is_capped_at_five(catalog):
    matcher = ConditionMatcher(catalog)
    results = asyncio.run(matcher.match("Fatigue, nausea, headache, cough and sneezing"))
    assert len(results) == 5


def test_fallback_not_used_when_primary_finds_something(seed_conditions):
    migraine = next(c for c in seed_conditions if c.name == "Migraine")
    stub = StubCatalog(seed_conditions, relevant=[MatchCandidate(condition=migraine, score=3.2)])
    results = asyncio.run(ConditionMatcher(stub).match("throbbing headache"))
    assert [r.condition.name for r in results] == ["Migraine"]
    assert stub.find_all_calls == 0


def test_keyword_fallback_when_primary_is_empty(seed_conditions):
    stub = StubCatalog(seed_conditions)
    results = asyncio.run(ConditionMatcher(stub).match("I keep getting throbbing"))
    assert [r.condition.name for r in results] == ["Migraine"]
    assert all(r.score == 0 for r in results)
    assert stub.find_all_calls == 1


def test_keyword_fallback_is_uncapped(seed_conditions):
    stub = StubCatalog(seed_conditions)
    results = asyncio.run(ConditionMatcher(stub).match("fatigue nausea"))
    # every condition mentioning either word, in catalog order
    expected = [
        c.name for c in seed_conditions
        if any("fatigue" in s or "nausea" in s for s in c.symptoms)
    ]
    assert len(expected) > 5
    assert [r.condition.name for r in results] == expected


def test_short_words_never_reach_the_fallback(seed_conditions):
    stub = StubCatalog(seed_conditions)
    assert asyncio.run(ConditionMatcher(stub).match("flu ow")) == []
    assert stub.find_all_calls == 0


def test_search_outage_falls_back_to_keywords(seed_conditions):
    stub = StubCatalog(seed_conditions, relevance_error=CatalogUnavailableError("view missing"))
    results = asyncio.run(ConditionMatcher(stub).match("postnasal drip"))
    assert [r.condition.name for r in results] == ["Seasonal Allergies (Hay Fever)"]


def test_full_outage_yields_no_candidates(seed_conditions):
    stub = StubCatalog(
        seed_conditions,
        relevance_error=CatalogUnavailableError("down"),
        all_error=CatalogUnavailableError("down"),
    )
    assert asyncio.run(ConditionMatcher(stub).match("postnasal drip")) == []


@pytest.mark.parametrize("limit", [1, 3])
def test_custom_limit(catalog, limit):
    results = asyncio.run(ConditionMatcher(catalog, limit=limit).match("fatigue and headache"))
    assert len(results) == limit
