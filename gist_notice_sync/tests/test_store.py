import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from gist_notice_sync.errors import PersistenceError
from gist_notice_sync.store import JsonNoticeStore

SEOUL = ZoneInfo("Asia/Seoul")


def _notice(store, title, published_at, tags=("academic",), deadline=None):
    user = store.find_or_create_temp_user("학사팀 (학사)")
    return store.create_notice(
        title=title,
        body_html="<p>body</p>",
        tags=tags,
        author_uuid=user.uuid,
        published_at=published_at,
        deadline=deadline,
    )


def test_find_or_create_tags_is_idempotent(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")

    first = store.find_or_create_tags(["academic", "학적"])
    second = store.find_or_create_tags([" Academic ", "학적", "장학"])

    assert [t.name for t in first] == ["academic", "학적"]
    assert [t.id for t in second[:2]] == [t.id for t in first]
    assert second[2].name == "장학"


def test_find_or_create_temp_user_reuses_display_name(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")

    first = store.find_or_create_temp_user("학사지원팀 (학적)")
    again = store.find_or_create_temp_user("학사지원팀 (학적)")
    other = store.find_or_create_temp_user("학사지원팀 (수업)")

    assert first == again
    assert first.is_temp is True
    assert other.uuid != first.uuid


def test_state_survives_reload(tmp_path):
    path = tmp_path / "store.json"
    store = JsonNoticeStore(path)
    created = _notice(store, "휴학 안내", datetime(2024, 5, 2, tzinfo=SEOUL))

    reloaded = JsonNoticeStore(path)

    notice = reloaded.get_notice(created.id)
    assert notice.title == "휴학 안내"
    assert notice.published_at == datetime(2024, 5, 2, tzinfo=SEOUL)
    assert json.loads(path.read_text(encoding="utf-8"))["notices"][0]["tags"] == ["academic"]


def test_find_most_recent_by_tag(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")
    assert store.find_most_recent_by_tag("academic") is None

    _notice(store, "older", datetime(2024, 5, 1, tzinfo=SEOUL))
    _notice(store, "newer", datetime(2024, 5, 2, tzinfo=SEOUL))
    _notice(store, "same day, later id", datetime(2024, 5, 2, tzinfo=SEOUL))
    _notice(store, "other tag", datetime(2024, 6, 1, tzinfo=SEOUL), tags=("general",))

    assert store.find_most_recent_by_tag("academic").title == "same day, later id"


def test_create_notice_requires_aware_timestamp(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")

    with pytest.raises(PersistenceError):
        _notice(store, "naive", datetime(2024, 5, 1))


def test_create_notice_rejects_unknown_author(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")

    with pytest.raises(PersistenceError):
        store.create_notice("t", "b", ["academic"], "missing", datetime.now(timezone.utc))


def test_corrupt_store_file_raises(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonNoticeStore(path)


def test_find_notices_with_deadline_on_uses_calendar_day(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")
    today = date(2024, 5, 10)
    published = datetime(2024, 5, 1, tzinfo=SEOUL)

    _notice(store, "past", published, deadline=datetime(2024, 5, 9, 23, 0, tzinfo=SEOUL))
    _notice(store, "today", published, deadline=datetime(2024, 5, 10, 0, 30, tzinfo=SEOUL))
    # 2024-05-09 16:00 UTC == 2024-05-10 01:00 in Seoul
    _notice(store, "today utc", published, deadline=datetime(2024, 5, 9, 16, 0, tzinfo=timezone.utc))
    _notice(store, "later", published, deadline=datetime(2024, 5, 13, tzinfo=SEOUL))
    _notice(store, "no deadline", published)

    found = store.find_notices_with_deadline_on(today, SEOUL)

    assert [n.title for n in found] == ["today", "today utc", "later"]


def test_device_tokens_follow_reminders(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")
    notice = _notice(store, "t", datetime(2024, 5, 1, tzinfo=SEOUL))
    alice = store.create_user("alice")
    bob = store.create_user("bob")
    store.register_device_token(alice.uuid, "a-1")
    store.register_device_token(alice.uuid, "a-2")
    store.register_device_token(bob.uuid, "shared")

    store.add_reminder(notice.id, alice.uuid)
    store.add_reminder(notice.id, bob.uuid)
    store.add_reminder(notice.id, bob.uuid)

    assert store.get_device_tokens_for_notice(notice.id) == ["a-1", "a-2", "shared"]
    assert sorted(store.get_all_device_tokens()) == ["a-1", "a-2", "shared"]

    store.remove_reminder(notice.id, alice.uuid)
    assert store.get_device_tokens_for_notice(notice.id) == ["shared"]


def test_set_deadline_updates_notice(tmp_path):
    store = JsonNoticeStore(tmp_path / "store.json")
    notice = _notice(store, "t", datetime(2024, 5, 1, tzinfo=SEOUL))
    deadline = datetime(2024, 5, 1, tzinfo=SEOUL) + timedelta(days=3)

    updated = store.set_deadline(notice.id, deadline)

    assert updated.current_deadline == deadline
    assert updated.published_at == notice.published_at


def test_failed_write_leaves_state_untouched(tmp_path, monkeypatch):
    path = tmp_path / "store.json"
    store = JsonNoticeStore(path)
    author = store.find_or_create_temp_user("학사팀 (학사)")
    store.find_or_create_tags(["academic"])
    before = path.read_text(encoding="utf-8")

    def broken_write(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(Path, "write_text", broken_write)

    with pytest.raises(PersistenceError):
        store.create_notice("A", "", ["academic"], author.uuid, datetime(2024, 5, 1, tzinfo=SEOUL))
    with pytest.raises(PersistenceError):
        store.find_or_create_tags(["academic", "장학"])
    with pytest.raises(PersistenceError):
        store.find_or_create_temp_user("장학팀 (장학)")

    assert store.find_most_recent_by_tag("academic") is None
    assert store.list_notices() == []
    monkeypatch.undo()

    assert path.read_text(encoding="utf-8") == before
    assert [t.name for t in store.find_or_create_tags(["장학"])] == ["장학"]
    created = store.create_notice("B", "", ["academic"], author.uuid, datetime(2024, 5, 2, tzinfo=SEOUL))
    assert created.id == 1
    assert [n.title for n in JsonNoticeStore(path).list_notices()] == ["B"]
