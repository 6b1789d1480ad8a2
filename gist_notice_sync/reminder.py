"""Daily deadline reminders for subscribed users."""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from typing import Optional

from .config import Settings
from .models import PushPayload, StoredNotice
from .notifier import NotificationDispatcher
from .store import NoticeStore

LOGGER = logging.getLogger(__name__)


def days_remaining(today: date, deadline: datetime, tz: tzinfo) -> int:
    """Calendar days from ``today`` to the deadline's date in ``tz``."""
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=tz)
    return (deadline.astimezone(tz).date() - today).days


def article_path(notice_id: int) -> str:
    return f"/root/article?id={notice_id}"


def build_reminder_payload(notice: StoredNotice, left: int, image_base_url: str = "") -> PushPayload:
    image_url = f"{image_base_url}{notice.image_keys[0]}" if notice.image_keys else None
    return PushPayload(
        title=f"[Reminder] {left} day(s) left",
        body=f"{notice.title} deadline is in {left} day(s)",
        image_url=image_url,
    )


def run_reminder_cycle(
    store: NoticeStore,
    dispatcher: NotificationDispatcher,
    settings: Settings,
    today: Optional[date] = None,
) -> int:
    """Push a reminder for every notice with an upcoming deadline.

    Returns the number of notices a push was handed off for.
    """
    tz = settings.tz
    today = today or datetime.now(tz).date()

    notices = store.find_notices_with_deadline_on(today, tz)
    LOGGER.info("Reminder cycle for %s: %d notices with upcoming deadlines", today, len(notices))

    dispatched = 0
    for notice in notices:
        try:
            left = days_remaining(today, notice.current_deadline, tz)
            tokens = store.get_device_tokens_for_notice(notice.id)
            if not tokens:
                LOGGER.debug("공지 %d: 리마인더 구독자 없음", notice.id)
                continue
            payload = build_reminder_payload(notice, left, settings.image_base_url)
            dispatcher.send(payload, tokens, {"path": article_path(notice.id)})
        except Exception:  # noqa: BLE001
            LOGGER.exception("Reminder for notice %d failed", notice.id)
            continue
        dispatched += 1

    LOGGER.info("Reminder cycle done, %d notices dispatched", dispatched)
    return dispatched
