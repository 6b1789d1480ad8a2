"""Fetch and parse notices from the GIST academic notice board."""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .errors import (
    ContentBlockMissingError,
    FetchError,
    FetchHttpError,
    FetchTimeoutError,
    RowParseError,
)
from .models import Attachment, AttachmentKind, RemoteDetail, RemoteStubEntry

LOGGER = logging.getLogger(__name__)

# 상단 고정 공지 행에 붙는 클래스
PINNED_ROW_CLASS = "lstNtc"

COL_SEQUENCE = 0
COL_CATEGORY = 1
COL_TITLE = 2
COL_AUTHOR = 3
COL_PUBLISHED = 5


def fetch_html(url: str, timeout: int = 10) -> str:
    """Retrieve the HTML contents of the given URL."""
    headers = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/118.0.0.0 Safari/537.36"
        )
    }
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
    except requests.Timeout as exc:
        raise FetchTimeoutError(f"No response from {url} within {timeout}s") from exc
    except requests.RequestException as exc:
        raise FetchError(f"Request to {url} failed: {exc}") from exc

    if not response.ok:
        raise FetchHttpError(url, response.status_code)
    return response.text


def _is_pinned(row) -> bool:
    classes = row.get("class", []) or []
    return any(PINNED_ROW_CLASS in cls for cls in classes)


def _parse_row(row, base_url: str) -> RemoteStubEntry:
    cells = row.find_all("td")
    if len(cells) <= COL_PUBLISHED:
        raise RowParseError(f"Expected at least {COL_PUBLISHED + 1} cells, got {len(cells)}")

    sequence_text = cells[COL_SEQUENCE].get_text(strip=True)
    if not sequence_text.isdigit():
        raise RowParseError(f"Sequence id is not a number: {sequence_text!r}")

    title_cell = cells[COL_TITLE]
    link = title_cell.find("a", href=True)
    if link is None:
        raise RowParseError(f"Title cell has no link (no. {sequence_text})")

    title = title_cell.get_text(strip=True)
    published = cells[COL_PUBLISHED].get_text(strip=True)
    if not title or not published:
        raise RowParseError(f"Empty title or date (no. {sequence_text})")

    return RemoteStubEntry(
        sequence_id=int(sequence_text),
        title=title,
        detail_link=urljoin(base_url, link["href"].strip()),
        author_name=cells[COL_AUTHOR].get_text(strip=True),
        category_label=cells[COL_CATEGORY].get_text(strip=True),
        published_label=published,
    )


def parse_notice_list(html: str, base_url: str) -> List[RemoteStubEntry]:
    """Parse the index page into stub entries, newest first.

    Pinned rows are dropped. A malformed row is logged and skipped so the
    rest of the page still comes through.
    """
    soup = BeautifulSoup(html, "html.parser")

    entries: list[RemoteStubEntry] = []
    for row in soup.select("table > tbody > tr"):
        if _is_pinned(row):
            LOGGER.debug("Skipping pinned row: %s", row.get_text(" ", strip=True)[:40])
            continue
        try:
            entries.append(_parse_row(row, base_url))
        except RowParseError as exc:
            LOGGER.warning("Skipping malformed notice row: %s", exc)

    return entries


def _attachment_kind(classes) -> AttachmentKind:
    for cls in classes or []:
        try:
            return AttachmentKind(cls)
        except ValueError:
            continue
    return AttachmentKind.ETC


def parse_notice_detail(html: str, base_url: str) -> RemoteDetail:
    """Parse a detail page into its attachment list and content body."""
    soup = BeautifulSoup(html, "html.parser")

    attachments = tuple(
        Attachment(
            href=urljoin(base_url, (a.get("href") or "").strip()),
            display_name=a.get_text(strip=True),
            kind=_attachment_kind(a.get("class")),
        )
        for a in soup.select(".bd_detail_file > ul > li > a")
    )

    content = soup.select_one(".bd_detail_content")
    if content is None:
        raise ContentBlockMissingError("Detail page has no .bd_detail_content block")

    return RemoteDetail(attachments=attachments, body_html=content.decode_contents().strip())


def fetch_notice_list(list_url: str, timeout: int = 10) -> List[RemoteStubEntry]:
    """Fetch and parse the first page of the notice list."""
    html = fetch_html(list_url, timeout=timeout)
    return parse_notice_list(html, list_url)


def fetch_notice_detail(link: str, base_url: str, timeout: int = 10) -> RemoteDetail:
    """Fetch and parse a single notice's detail page."""
    html = fetch_html(link, timeout=timeout)
    return parse_notice_detail(html, base_url)
