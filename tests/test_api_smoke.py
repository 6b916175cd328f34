import pytest

from sources import ProviderRegistry

from chapterscout_app import create_app
from chapterscout_app.models import FollowedWork
from chapterscout_app.storage import MemoryStore

from conftest import FakeConnector, numbered

READER_URL = "https://fake.example/reader/0"


@pytest.fixture
def store():
    return MemoryStore([FollowedWork(id="m1", source="Reader", title="Berserk", last_known_chapter=90)])


class PagedReader(FakeConnector):
    supports_page_resolution = True

    async def get_page_url(self, url):
        return f"{url}/image.jpg"


@pytest.fixture
def client(store):
    # Keep tests offline: one in-memory provider
    reader = PagedReader("Reader", results={"Berserk": ["Berserk"]}, chapters={READER_URL: numbered(100)})
    app = create_app(registry=ProviderRegistry([reader]), store=store)
    with app.test_client() as client:
        yield client


def test_sources_listing(client):
    resp = client.get("/api/sources")
    assert resp.status_code == 200
    assert resp.get_json() == {"sources": [{"name": "Reader", "baseUrl": "https://fake.example"}]}


def test_sources_health(client):
    resp = client.get("/api/sources/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert "sources" in data
    assert data["total_count"] == 1


def test_search_requires_query(client):
    resp = client.get("/api/search")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "missing_query"


def test_search_returns_unified_results(client):
    resp = client.get("/api/search?q=Berserk&limit=5")
    assert resp.status_code == 200
    results = resp.get_json()["results"]
    assert results[0]["title"] == "Berserk"
    assert results[0]["primarySource"] == "Reader"


def test_resolve(client):
    resp = client.post("/api/resolve", json={"title": "Berserk"})
    assert resp.status_code == 200
    candidate = resp.get_json()["candidates"][0]
    assert candidate["providerName"] == "Reader"
    assert candidate["relevanceScore"] == 100
    assert candidate["url"] == READER_URL


def test_resolve_validates_payload(client):
    assert client.post("/api/resolve", json={}).status_code == 400
    assert client.post("/api/resolve", json={"title": 5}).status_code == 400
    assert client.post("/api/resolve", json={"title": "Berserk", "enabled_sources": "Reader"}).status_code == 400


def test_consensus_endpoints(client):
    resp = client.post("/api/consensus", json={"title": "Berserk"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert (data["count"], data["confidence"]) == (100, 100)
    assert data["sources"] == [{"sourceName": "Reader", "url": READER_URL, "count": 100}]

    resp = client.post("/api/consensus/quick", json={"title": "Berserk"})
    assert resp.get_json() == {"count": 100}


def test_validate_endpoint(client):
    resp = client.post("/api/consensus/validate", json={"title": "Berserk", "reported_count": 98})
    assert resp.status_code == 200
    assert resp.get_json() == {"isReasonable": True, "suggestedCount": 100, "confidence": 100}

    resp = client.post("/api/consensus/validate", json={"title": "Berserk", "reported_count": "98"})
    assert resp.status_code == 400


def test_chapters_unknown_provider_is_404(client):
    resp = client.post("/api/chapters", json={"source": "Nope", "url": READER_URL})
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "provider_not_found"

    resp = client.post("/api/chapters", json={"source": "Reader", "url": READER_URL})
    assert resp.get_json()["count"] == 100


def test_update_check_and_notifications(client, store):
    resp = client.post("/api/updates/check", json={"force": True})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["skipped"] is False
    assert (data["checked"], data["newChapters"], data["errors"]) == (1, 1, 0)
    assert data["notifications"][0]["nextChapterToRead"] == 91

    # Cooldown now applies
    assert client.post("/api/updates/check").get_json() == {"skipped": True, "reason": "cooldown"}

    resp = client.get("/api/notifications?unread=true")
    assert resp.get_json()["unread"] == 1
    assert store.get_follows()[0].last_known_chapter == 100


def test_logs_drain(client):
    resp = client.get("/api/logs")
    assert resp.status_code == 200
    assert isinstance(resp.get_json()["logs"], list)


def test_search_by_source(client):
    resp = client.post("/api/search/sources", json={"query": "Berserk", "sources": ["Reader"]})
    assert resp.status_code == 200
    assert [r["sourceName"] for r in resp.get_json()["results"]] == ["Reader"]

    resp = client.post("/api/search/sources", json={"query": "Berserk", "sources": "Reader"})
    assert resp.status_code == 400


def test_page_resolution(client):
    resp = client.post("/api/pages/resolve", json={"source": "Reader", "url": f"{READER_URL}/1"})
    assert resp.get_json() == {"source": "Reader", "url": f"{READER_URL}/1/image.jpg"}

    resp = client.post("/api/pages/resolve", json={"source": "Nope", "url": READER_URL})
    assert resp.status_code == 404


def test_follow_and_unfollow(client, store):
    assert [f["id"] for f in client.get("/api/library").get_json()["follows"]] == ["m1"]

    work = {"id": "m2", "source": "Reader", "title": "Vinland Saga", "lastKnownChapter": 200}
    resp = client.post("/api/library/follow", json=work)
    assert resp.status_code == 201
    assert resp.get_json()["follow"]["lastKnownChapter"] == 200
    assert client.post("/api/library/follow", json=work).status_code == 409
    assert client.post("/api/library/follow", json={"id": "m3", "source": "Reader"}).status_code == 400

    assert [f.id for f in store.get_follows()] == ["m1", "m2"]

    assert client.post("/api/library/unfollow", json={"id": "m2", "source": "Reader"}).status_code == 200
    resp = client.post("/api/library/unfollow", json={"id": "m2", "source": "Reader"})
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "follow_not_found"
    assert [f.id for f in store.get_follows()] == ["m1"]


def test_reading_progress_feeds_update_check(client):
    resp = client.post("/api/library/update_progress", json={"id": "m1", "source": "Reader", "chapterNumber": "95"})
    assert resp.get_json()["progress"] == {"mangaId": "m1", "source": "Reader", "chapterNumber": "95"}

    bad = {"id": "m1", "source": "Reader", "chapterNumber": True}
    assert client.post("/api/library/update_progress", json=bad).status_code == 400

    notification = client.post("/api/updates/check", json={"force": True}).get_json()["notifications"][0]
    assert (notification["oldChapter"], notification["nextChapterToRead"]) == (95, 96)


def test_notification_settings(client):
    assert client.get("/api/library/settings").get_json() == {
        "enabledSources": None, "checkOnlySourceManga": False,
    }

    resp = client.post("/api/library/settings", json={"enabledSources": "Reader", "checkOnlySourceManga": True})
    assert resp.status_code == 400
    assert client.get("/api/library/settings").get_json()["checkOnlySourceManga"] is False

    resp = client.post("/api/library/settings", json={"enabledSources": ["Elsewhere"]})
    assert resp.get_json() == {"enabledSources": ["Elsewhere"], "checkOnlySourceManga": False}

    # No enabled source carries the work, so nothing is found
    data = client.post("/api/updates/check", json={"force": True}).get_json()
    assert (data["checked"], data["newChapters"]) == (1, 0)


def test_notification_read_and_clear(client):
    notification = client.post("/api/updates/check", json={"force": True}).get_json()["notifications"][0]

    resp = client.post(f"/api/notifications/{notification['id']}/read")
    assert resp.get_json() == {"status": "ok", "unread": 0}

    resp = client.post("/api/notifications/missing/read")
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "notification_not_found"

    assert client.post("/api/notifications/read_all").get_json()["unread"] == 0
    assert client.post("/api/notifications/clear").status_code == 200
    assert client.get("/api/notifications").get_json() == {"notifications": [], "unread": 0}


def test_requests_emit_debug_events(client, monkeypatch):
    events = []
    monkeypatch.setattr("chapterscout_app.debug_log_event", events.append)

    client.get("/api/sources")

    assert events[-1]["event"] == "request"
    assert (events[-1]["path"], events[-1]["status"]) == ("/api/sources", 200)
    assert events[-1]["request_id"]
