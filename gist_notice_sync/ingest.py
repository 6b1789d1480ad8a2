"""Incremental crawl-and-ingest of GIST academic notices."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from itertools import takewhile
from typing import Callable, List, Optional, Sequence

from .config import Settings
from .content import assemble_body
from .crawler import fetch_notice_detail, fetch_notice_list
from .errors import FetchError, NoticeSyncError
from .models import RemoteDetail, RemoteStubEntry
from .store import NoticeStore

LOGGER = logging.getLogger(__name__)

ACADEMIC_TAG = "academic"
PUBLISHED_FORMATS = ("%Y.%m.%d", "%Y.%m.%d %H:%M", "%Y-%m-%d", "%Y-%m-%d %H:%M")

ListFetcher = Callable[[str, int], List[RemoteStubEntry]]
DetailFetcher = Callable[[str, str, int], RemoteDetail]


def select_new_entries(
    entries: Sequence[RemoteStubEntry], anchor_title: Optional[str]
) -> List[RemoteStubEntry]:
    """Entries newer than the anchor, oldest first.

    ``entries`` is newest first, as on the board. Scanning stops at the first
    entry whose title equals the anchor; without an anchor every entry is new.
    """
    if anchor_title is None:
        newer = list(entries)
    else:
        newer = list(takewhile(lambda e: e.title != anchor_title, entries))
    newer.reverse()
    return newer


def parse_published_label(label: str, tz: tzinfo) -> datetime:
    """Parse the board's date column as a date in ``tz``; four-digit years only."""
    text = " ".join(label.split())
    for fmt in PUBLISHED_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=tz)
    raise ValueError(f"Unexpected date format: {label}")


def author_display_name(entry: RemoteStubEntry) -> str:
    return f"{entry.author_name} ({entry.category_label})"


def ingest_entry(
    entry: RemoteStubEntry,
    store: NoticeStore,
    settings: Settings,
    detail_fetcher: DetailFetcher = fetch_notice_detail,
) -> int:
    """Fetch, assemble and persist one remote entry. Returns the new notice id."""
    detail = detail_fetcher(entry.detail_link, settings.notice_list_url, settings.request_timeout)
    body = assemble_body(detail)
    published_at = parse_published_label(entry.published_label, settings.tz)

    tags = store.find_or_create_tags([ACADEMIC_TAG, entry.category_label])
    user = store.find_or_create_temp_user(author_display_name(entry))

    notice = store.create_notice(
        title=entry.title,
        body_html=body,
        tags=[tag.name for tag in tags],
        author_uuid=user.uuid,
        published_at=published_at,
        image_keys=[],
    )
    return notice.id


def run_ingestion_cycle(
    store: NoticeStore,
    settings: Settings,
    *,
    list_fetcher: ListFetcher = fetch_notice_list,
    detail_fetcher: DetailFetcher = fetch_notice_detail,
) -> int:
    """Run one crawl cycle and return the number of notices created."""
    LOGGER.info("Academic notice crawling start")
    try:
        entries = list_fetcher(settings.notice_list_url, settings.request_timeout)
    except FetchError as exc:
        LOGGER.error("Failed to fetch notice list: %s", exc)
        return 0
    LOGGER.info("Academic notice crawling end (%d notices)", len(entries))

    anchor = store.find_most_recent_by_tag(ACADEMIC_TAG)
    anchor_title = anchor.title if anchor is not None else None
    if anchor_title is None:
        LOGGER.info("No stored academic notice, treating every entry as new")

    new_entries = select_new_entries(entries, anchor_title)
    if not new_entries:
        LOGGER.info("새 공지 0개, 아무것도 안 함")
        return 0

    LOGGER.info("Creating %d academic notices", len(new_entries))
    created = 0
    # 순서대로 하나씩 저장해야 다음 사이클의 기준 제목이 유지됨
    for entry in new_entries:
        try:
            notice_id = ingest_entry(entry, store, settings, detail_fetcher)
        except (NoticeSyncError, ValueError) as exc:
            LOGGER.warning("Skipping notice %d (%s): %s", entry.sequence_id, entry.title, exc)
            continue
        created += 1
        LOGGER.info("Created notice %d from remote no. %d (%s)", notice_id, entry.sequence_id, entry.title)

    LOGGER.info("Academic notice ingestion done, %d/%d created", created, len(new_entries))
    return created
