import asyncio

from sources import ProviderRegistry

from chapterscout_app.config import CheckSettings
from chapterscout_app.models import FollowedWork, Notification
from chapterscout_app.storage import MemoryStore
from chapterscout_app.tasks import updates
from chapterscout_app.tasks.updates import UpdateChecker, run_scheduled_check

from conftest import FakeConnector, numbered

A_URL = "https://fake.example/a/0"
B_URL = "https://fake.example/b/0"

SETTINGS = CheckSettings(batch_delay=0)


def _reader(name="A", title="Berserk", count=105, **kwargs):
    url = f"https://fake.example/{name.lower()}/0"
    return FakeConnector(name, results={title: [title]}, chapters={url: numbered(count)}, **kwargs)


def _work(manga_id="m1", title="Berserk", last_known=100, **kwargs):
    return FollowedWork(id=manga_id, source="Comick", title=title, last_known_chapter=last_known, **kwargs)


def _check(connectors, store, works=None, settings=SETTINGS, callback=None):
    checker = UpdateChecker(ProviderRegistry(connectors), store)
    return asyncio.run(checker.check_for_updates(works or store.get_follows(), settings, callback))


def test_new_chapter_creates_notification_and_updates_count():
    store = MemoryStore([_work()])

    result = _check([_reader()], store)

    assert (result.checked, result.new_chapters, result.errors) == (1, 1, 0)
    notification = result.notifications[0]
    assert notification.old_chapter == 100
    assert notification.new_chapter == 105
    assert notification.next_chapter_to_read == 101
    assert notification.source == "A"
    assert notification.source_url == A_URL
    assert store.get_follows()[0].last_known_chapter == 105
    assert store.get_unread_notification_count() == 1


def test_no_notification_when_caught_up():
    store = MemoryStore([_work(last_known=105)])

    result = _check([_reader()], store)

    assert (result.checked, result.new_chapters) == (1, 0)
    assert store.get_notifications() == []


def test_reading_progress_takes_precedence():
    store = MemoryStore([_work(imported_reading_progress={"chapterNumber": "102"})])
    store.set_reading_progress("m1", "Comick", "103.5")

    notification = _check([_reader()], store).notifications[0]

    assert notification.old_chapter == 103.5
    assert notification.next_chapter_to_read == 104


def test_imported_progress_used_when_progress_is_zero():
    store = MemoryStore([_work(imported_reading_progress={"chapterNumber": "102"})])
    store.set_reading_progress("m1", "Comick", "0")

    notification = _check([_reader()], store).notifications[0]

    assert notification.old_chapter == 102


def test_duplicate_notification_is_not_counted():
    store = MemoryStore([_work()])
    store.add_notification(Notification(
        manga_id="m1", title="Berserk", old_chapter=100, new_chapter=105,
        next_chapter_to_read=101, source="A", source_url=A_URL, created_at="earlier",
    ))

    result = _check([_reader()], store)

    assert result.new_chapters == 0
    assert result.notifications == []
    assert len(store.get_notifications()) == 1


def test_highest_latest_wins_and_ties_keep_rank():
    store = MemoryStore([_work()])
    a = _reader("A", count=105)
    b = _reader("B", count=110)

    assert _check([a, b], store).notifications[0].source == "B"

    store = MemoryStore([_work()])
    a = _reader("A", count=110)
    b = _reader("B", count=110)
    assert _check([a, b], store).notifications[0].source == "A"


def test_only_top_three_candidates_are_checked():
    readers = [_reader(name) for name in ("A", "B", "C", "D")]
    store = MemoryStore([_work()])

    _check(readers, store)

    assert [len(r.chapter_calls) for r in readers] == [1, 1, 1, 0]


def test_check_only_source_manga_skips_resolution():
    reader = _reader("A")
    work = FollowedWork(id="m1", source="A", title="Berserk", url=A_URL, last_known_chapter=100)
    store = MemoryStore([work])

    result = _check([reader], store, settings=CheckSettings(batch_delay=0, check_only_source_manga=True))

    assert reader.search_calls == []
    assert reader.chapter_calls == [A_URL]
    assert result.notifications[0].source == "A"


def test_failing_chapter_source_is_isolated():
    broken = _reader("A", fail_chapters=True)
    store = MemoryStore([_work()])

    result = _check([broken, _reader("B")], store)

    assert result.errors == 0
    assert result.notifications[0].source_url == B_URL


class ExplodingStore(MemoryStore):
    def update_manga_chapter_count(self, manga_id, source, chapter):
        if manga_id == "boom":
            raise RuntimeError("disk full")
        super().update_manga_chapter_count(manga_id, source, chapter)


def test_one_work_failing_does_not_stop_the_run():
    store = ExplodingStore([_work("boom"), _work("m2")])

    result = _check([_reader()], store)

    assert (result.checked, result.new_chapters, result.errors) == (2, 1, 1)
    assert result.notifications[0].manga_id == "m2"


def test_progress_reported_per_work_and_on_completion():
    works = [_work(f"m{i}") for i in range(4)]
    store = MemoryStore(works)
    events = []

    _check([_reader()], store, callback=events.append)

    assert len(events) == 5
    assert [e.current for e in events[:4]] == [1, 2, 3, 4]
    assert events[-1].completed is True
    assert events[-1].to_dict() == {
        "current": 4, "total": 4, "status": "Update check completed", "completed": True,
    }


def test_work_without_candidates_is_skipped():
    store = MemoryStore([_work(title="Unknown Title")])

    result = _check([_reader()], store)

    assert (result.checked, result.new_chapters, result.errors) == (1, 0, 0)


def test_scheduled_check_honours_cooldown():
    registry = ProviderRegistry([_reader()])
    store = MemoryStore([_work()])
    store.set_next_notification_check()

    assert asyncio.run(run_scheduled_check(store, registry=registry)) is None

    result = asyncio.run(run_scheduled_check(store, force=True, registry=registry))
    assert result.new_chapters == 1


def test_scheduled_check_uses_store_settings():
    a = _reader("A")
    b = _reader("B")
    store = MemoryStore([_work()])
    store.set_enabled_notification_sources(["B"])

    result = asyncio.run(run_scheduled_check(store, registry=ProviderRegistry([a, b])))

    assert a.search_calls == []
    assert result.notifications[0].source == "B"
    assert store.should_check_for_notifications() is False


_real_sleep = asyncio.sleep


class SlowReader(FakeConnector):
    """Holds each chapter fetch open briefly and records the peak overlap."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.in_flight = 0
        self.peak = 0

    async def get_chapters(self, url):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await _real_sleep(0.05)
            return await super().get_chapters(url)
        finally:
            self.in_flight -= 1


def test_works_are_checked_in_batches_of_three(monkeypatch):
    reader = SlowReader("A", results={"Berserk": ["Berserk"]}, chapters={A_URL: numbered(105)})
    store = MemoryStore([_work(f"m{i}") for i in range(7)])
    pauses = []

    async def fake_sleep(delay, *args, **kwargs):
        pauses.append((delay, reader.in_flight))
        await _real_sleep(0)

    monkeypatch.setattr(updates.asyncio, "sleep", fake_sleep)

    result = _check([reader], store, settings=CheckSettings(batch_size=3, batch_delay=0.3))

    assert result.checked == 7
    assert len(reader.chapter_calls) == 7
    assert reader.peak == 3
    # One pause between each pair of batches, none after the last
    assert pauses == [(0.3, 0), (0.3, 0)]
