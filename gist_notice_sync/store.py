# store.py
"""공지/태그/임시 사용자/알림 구독을 보관하는 저장소 모듈."""

from __future__ import annotations

import copy
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol

from .errors import PersistenceError
from .models import StoredNotice, Tag, UserRef

LOGGER = logging.getLogger(__name__)


class NoticeStore(Protocol):
    """Persistence operations the sync jobs rely on."""

    def find_most_recent_by_tag(self, tag: str) -> Optional[StoredNotice]: ...

    def create_notice(
        self,
        title: str,
        body_html: str,
        tags: Iterable[str],
        author_uuid: str,
        published_at: datetime,
        deadline: Optional[datetime] = None,
        image_keys: Iterable[str] = (),
    ) -> StoredNotice: ...

    def find_notices_with_deadline_on(self, day: date, tz: tzinfo) -> List[StoredNotice]: ...

    def get_device_tokens_for_notice(self, notice_id: int) -> List[str]: ...

    def get_all_device_tokens(self) -> List[str]: ...

    def find_or_create_tags(self, labels: Iterable[str]) -> List[Tag]: ...

    def find_or_create_temp_user(self, display_name: str) -> UserRef: ...


def normalize_tag(label: str) -> str:
    return label.strip().lower()


def _empty_state() -> dict:
    return {
        "next_ids": {"notice": 1, "tag": 1},
        "notices": [],
        "tags": [],
        "users": [],
    }


def _dump_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_notice(raw: dict) -> StoredNotice:
    return StoredNotice(
        id=raw["id"],
        title=raw["title"],
        body_html=raw["body_html"],
        tags=list(raw.get("tags", [])),
        author_uuid=raw["author_uuid"],
        published_at=_load_dt(raw["published_at"]),
        current_deadline=_load_dt(raw.get("current_deadline")),
        image_keys=list(raw.get("image_keys", [])),
        reminder_user_uuids=list(raw.get("reminder_user_uuids", [])),
    )


def _next_id(state: dict, kind: str) -> int:
    value = state["next_ids"][kind]
    state["next_ids"][kind] = value + 1
    return value


def _raw_notice(state: dict, notice_id: int) -> dict:
    for raw in state["notices"]:
        if raw["id"] == notice_id:
            return raw
    raise PersistenceError(f"Notice {notice_id} does not exist")


def _raw_user(state: dict, user_uuid: str) -> dict:
    for raw in state["users"]:
        if raw["uuid"] == user_uuid:
            return raw
    raise PersistenceError(f"User {user_uuid} does not exist")


class JsonNoticeStore:
    """JSON 파일 하나에 전체 상태를 저장하는 NoticeStore 구현.

    모든 조회/변경은 하나의 락 안에서 이루어지므로 find-or-create 계열
    연산은 읽고-쓰기 사이에 다른 스레드가 끼어들 수 없습니다. 변경은 상태
    사본에 적용한 뒤 파일 쓰기가 성공했을 때만 메모리 상태로 반영됩니다.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._state = self._load()

    def _load(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.info("%s 없음 -> 빈 저장소로 시작", self.path.name)
            return _empty_state()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt store file {self.path}: {exc}") from exc

        state = _empty_state()
        state.update(data)
        return state

    def _write(self, state: dict) -> None:
        try:
            self.path.write_text(
                json.dumps(state, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[dict]:
        """Yield a draft of the state; it replaces the live state once written to disk."""
        with self._lock:
            draft = copy.deepcopy(self._state)
            yield draft
            self._write(draft)
            self._state = draft

    # 공지

    def get_notice(self, notice_id: int) -> StoredNotice:
        with self._lock:
            return _to_notice(_raw_notice(self._state, notice_id))

    def list_notices(self) -> List[StoredNotice]:
        with self._lock:
            return [_to_notice(raw) for raw in self._state["notices"]]

    def find_most_recent_by_tag(self, tag: str) -> Optional[StoredNotice]:
        wanted = normalize_tag(tag)
        with self._lock:
            tagged = [raw for raw in self._state["notices"] if wanted in raw.get("tags", [])]
            if not tagged:
                return None
            latest = max(tagged, key=lambda raw: (_load_dt(raw["published_at"]), raw["id"]))
            return _to_notice(latest)

    def create_notice(
        self,
        title: str,
        body_html: str,
        tags: Iterable[str],
        author_uuid: str,
        published_at: datetime,
        deadline: Optional[datetime] = None,
        image_keys: Iterable[str] = (),
    ) -> StoredNotice:
        if published_at.tzinfo is None:
            raise PersistenceError("published_at must be timezone-aware")
        with self._transaction() as state:
            _raw_user(state, author_uuid)
            raw = {
                "id": _next_id(state, "notice"),
                "title": title,
                "body_html": body_html,
                "tags": [normalize_tag(t) for t in tags],
                "author_uuid": author_uuid,
                "published_at": _dump_dt(published_at),
                "current_deadline": _dump_dt(deadline),
                "image_keys": list(image_keys),
                "reminder_user_uuids": [],
            }
            state["notices"].append(raw)
        LOGGER.debug("공지 %d 저장: %s", raw["id"], title)
        return _to_notice(raw)

    def set_deadline(self, notice_id: int, deadline: Optional[datetime]) -> StoredNotice:
        with self._transaction() as state:
            raw = _raw_notice(state, notice_id)
            raw["current_deadline"] = _dump_dt(deadline)
        return _to_notice(raw)

    def find_notices_with_deadline_on(self, day: date, tz: tzinfo) -> List[StoredNotice]:
        """Notices whose deadline falls on ``day`` or later, in ``tz``."""
        with self._lock:
            notices = [_to_notice(raw) for raw in self._state["notices"]]

        result = []
        for notice in notices:
            deadline = notice.current_deadline
            if deadline is None:
                continue
            if deadline.tzinfo is None:
                deadline = deadline.replace(tzinfo=tz)
            if deadline.astimezone(tz).date() >= day:
                result.append(notice)
        return result

    # 리마인더 / 디바이스 토큰

    def add_reminder(self, notice_id: int, user_uuid: str) -> None:
        with self._lock:
            _raw_user(self._state, user_uuid)
            if user_uuid in _raw_notice(self._state, notice_id)["reminder_user_uuids"]:
                return
            with self._transaction() as state:
                _raw_notice(state, notice_id)["reminder_user_uuids"].append(user_uuid)

    def remove_reminder(self, notice_id: int, user_uuid: str) -> None:
        with self._lock:
            if user_uuid not in _raw_notice(self._state, notice_id)["reminder_user_uuids"]:
                return
            with self._transaction() as state:
                _raw_notice(state, notice_id)["reminder_user_uuids"].remove(user_uuid)

    def register_device_token(self, user_uuid: str, token: str) -> None:
        with self._lock:
            if token in _raw_user(self._state, user_uuid).get("fcm_tokens", []):
                return
            with self._transaction() as state:
                _raw_user(state, user_uuid).setdefault("fcm_tokens", []).append(token)

    def get_device_tokens_for_notice(self, notice_id: int) -> List[str]:
        with self._lock:
            raw = _raw_notice(self._state, notice_id)
            users = {u["uuid"]: u for u in self._state["users"]}
            return [
                token
                for user_uuid in raw["reminder_user_uuids"]
                for token in users.get(user_uuid, {}).get("fcm_tokens", [])
            ]

    def get_all_device_tokens(self) -> List[str]:
        with self._lock:
            return [t for u in self._state["users"] for t in u.get("fcm_tokens", [])]

    # 태그 / 사용자 upsert

    def find_or_create_tags(self, labels: Iterable[str]) -> List[Tag]:
        names = list(dict.fromkeys(normalize_tag(label) for label in labels if label.strip()))
        with self._lock:
            existing = {raw["name"]: raw["id"] for raw in self._state["tags"]}
            missing = [name for name in names if name not in existing]
            if missing:
                with self._transaction() as state:
                    for name in missing:
                        tag_id = _next_id(state, "tag")
                        state["tags"].append({"id": tag_id, "name": name})
                        existing[name] = tag_id
            return [Tag(id=existing[n], name=n) for n in names]

    def create_user(self, name: str) -> UserRef:
        with self._transaction() as state:
            raw = {"uuid": str(uuid.uuid4()), "name": name, "is_temp": False, "fcm_tokens": []}
            state["users"].append(raw)
        return UserRef(uuid=raw["uuid"], name=name, is_temp=False)

    def find_or_create_temp_user(self, display_name: str) -> UserRef:
        with self._lock:
            for raw in self._state["users"]:
                if raw.get("is_temp") and raw["name"] == display_name:
                    return UserRef(uuid=raw["uuid"], name=raw["name"], is_temp=True)

            with self._transaction() as state:
                raw = {"uuid": str(uuid.uuid4()), "name": display_name, "is_temp": True, "fcm_tokens": []}
                state["users"].append(raw)
            LOGGER.info("임시 사용자 생성: %s", display_name)
            return UserRef(uuid=raw["uuid"], name=display_name, is_temp=True)
