import asyncio

from sources import ProviderRegistry
from sources.base import Candidate

from chapterscout_app.search.deduplicator import SearchDeduplicator, search_manga

from conftest import FakeConnector


def _candidate(title, source, **kwargs):
    return Candidate(id=f"{source}-{title}", title=title, url=f"https://{source}/{title}", source_name=source, **kwargs)


def test_same_work_from_two_sources_is_grouped():
    results = [
        _candidate("The Solo Leveling", "MangaHere"),
        _candidate("Solo Leveling", "MangaDex", cover_url="https://cover"),
        _candidate("Berserk", "MangaHere"),
    ]

    unified = SearchDeduplicator().deduplicate(results)

    assert [u.title for u in unified] == ["Solo Leveling", "Berserk"]
    solo = unified[0]
    assert solo.primary_source == "MangaDex"
    assert [s.source_name for s in solo.sources] == ["MangaDex", "MangaHere"]
    assert solo.alt_titles == ["The Solo Leveling"]
    assert solo.cover_url == "https://cover"


def test_normalize_title_drops_articles_and_punctuation():
    assert SearchDeduplicator.normalize_title("The Boxer!") == "boxer"
    assert SearchDeduplicator.normalize_title("A  Sign of Affection") == "sign of affection"


def test_distinct_titles_stay_apart():
    unified = SearchDeduplicator().deduplicate([
        _candidate("Vinland Saga", "MangaDex"),
        _candidate("Monster", "MangaDex"),
    ])

    assert len(unified) == 2


def test_empty_input():
    assert SearchDeduplicator().deduplicate([]) == []


def test_search_manga_groups_across_providers():
    registry = ProviderRegistry([
        FakeConnector("MangaDex", results={"berserk": ["Berserk"]}),
        FakeConnector("MangaHere", results={"berserk": ["Berserk", "Vinland Saga"]}),
    ])

    unified = asyncio.run(search_manga(registry, "berserk", limit=10))

    assert unified[0].title == "Berserk"
    assert [s.source_name for s in unified[0].sources] == ["MangaDex", "MangaHere"]
    assert unified[0].to_dict()["primarySource"] == "MangaDex"
    assert [u.title for u in unified] == ["Berserk", "Vinland Saga"]


def test_match_confidence_is_lowest_similarity_in_group():
    unified = SearchDeduplicator().deduplicate([
        _candidate("Solo Leveling", "MangaDex"),
        _candidate("The Solo Leveling", "MangaHere"),
        _candidate("Solo Levelling", "MangaHere"),
        _candidate("Berserk", "MangaDex"),
    ])

    solo, berserk = unified
    assert len(solo.sources) == 3
    assert 85 <= solo.match_confidence < 100
    assert solo.to_dict()["matchConfidence"] == solo.match_confidence
    assert berserk.match_confidence == 100


def test_metadata_only_providers_are_not_searched():
    comick = FakeConnector("Comick", results={"berserk": ["Berserk"]}, metadata_only=True)
    registry = ProviderRegistry([comick, FakeConnector("MangaHere", results={"berserk": ["Berserk"]})])

    unified = asyncio.run(search_manga(registry, "berserk"))

    assert [s.source_name for s in unified[0].sources] == ["MangaHere"]
    assert comick.search_calls == []
    assert "Comick" not in SearchDeduplicator.SOURCE_PRIORITY
