import asyncio

import pytest

from sources import ProviderNotFound, ProviderRegistry, UnsupportedOperation
from sources.base import MangaDetails

from conftest import FakeConnector


def _registry(*connectors):
    return ProviderRegistry(list(connectors))


def test_search_all_isolates_failing_provider():
    good = FakeConnector("Good", results={"berserk": ["Berserk", "Berserk Deluxe"]})
    bad = FakeConnector("Bad", fail_search=True)
    registry = _registry(bad, good)

    results = asyncio.run(registry.search_all("berserk"))

    assert [r.title for r in results] == ["Berserk", "Berserk Deluxe"]
    assert bad.search_calls == ["berserk"]


def test_search_all_truncates_per_provider_and_keeps_order():
    a = FakeConnector("A", results={"q": ["a1", "a2", "a3"]})
    b = FakeConnector("B", results={"q": ["b1", "b2"]})
    registry = _registry(a, b)

    results = asyncio.run(registry.search_all("q", per_provider_limit=2))

    assert [r.title for r in results] == ["a1", "a2", "b1", "b2"]


def test_search_all_skips_metadata_only_providers():
    meta = FakeConnector("Meta", results={"q": ["m1"]}, metadata_only=True)
    reader = FakeConnector("Reader", results={"q": ["r1"]})
    registry = _registry(meta, reader)

    results = asyncio.run(registry.search_all("q"))

    assert [r.source_name for r in results] == ["Reader"]
    assert meta.search_calls == []


def test_search_enabled_falls_back_to_metadata_provider():
    meta = FakeConnector("Meta", results={"q": ["m1"]}, metadata_only=True)
    reader = FakeConnector("Reader", results={"q": ["r1"]})
    registry = _registry(meta, reader)

    assert [r.title for r in asyncio.run(registry.search_enabled("q", ["Reader"]))] == ["r1"]
    assert [r.title for r in asyncio.run(registry.search_enabled("q", ["Nope"]))] == ["m1"]


def test_dispatch_returns_provider_result_unchanged():
    reader = FakeConnector("Reader", chapters={"u": ["1", "2"]})
    registry = _registry(reader)

    chapters = asyncio.run(registry.dispatch("Reader", "get_chapters", "u"))
    assert [c.number for c in chapters] == ["1", "2"]

    empty = asyncio.run(registry.dispatch("Reader", "get_chapters", "missing"))
    assert empty == []


def test_dispatch_unknown_provider_raises():
    registry = _registry(FakeConnector("Reader"))

    with pytest.raises(ProviderNotFound):
        asyncio.run(registry.dispatch("reader", "get_chapters", "u"))


def test_dispatch_unknown_operation_raises():
    registry = _registry(FakeConnector("Reader"))

    with pytest.raises(UnsupportedOperation):
        asyncio.run(registry.dispatch("Reader", "delete_everything"))


def test_optional_capabilities_degrade():
    details = MangaDetails(title="Berserk", all_titles=["Berserk"])
    plain = FakeConnector("Plain")
    rich = FakeConnector("Rich", details=details)
    registry = _registry(plain, rich)

    assert asyncio.run(registry.dispatch("Plain", "get_manga_details", "u")) is None
    assert asyncio.run(registry.dispatch("Rich", "get_manga_details", "u")) is details
    assert asyncio.run(registry.resolve_page_url("https://x/1", "Plain")) == "https://x/1"
    assert asyncio.run(registry.resolve_page_url("https://x/1", "Missing")) == "https://x/1"


def test_provider_for_url_and_listing():
    comick = FakeConnector("Comick", url_pattern=r"comick\.io/comic/([a-z0-9-]+)")
    registry = _registry(comick, FakeConnector("Reader"))

    assert registry.provider_for_url("https://comick.io/comic/solo-leveling") is comick
    assert registry.provider_for_url("https://elsewhere.example/x") is None
    assert registry.provider_for_url(None) is None
    assert registry.list_providers() == [
        {"name": "Comick", "baseUrl": "https://fake.example"},
        {"name": "Reader", "baseUrl": "https://fake.example"},
    ]


def test_default_registry_has_one_metadata_provider():
    registry = ProviderRegistry()

    names = [p.name for p in registry.providers]
    assert names == ["Comick", "MangaDex", "MangaHere"]
    assert registry.metadata_provider.name == "Comick"
    assert "Comick" not in [p.name for p in registry.search_providers()]
