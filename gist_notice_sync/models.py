"""Data models for the GIST notice sync."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class AttachmentKind(str, Enum):
    """File type marker used by the remote board's attachment list."""

    DOC = "doc"
    HWP = "hwp"
    PDF = "pdf"
    IMGS = "imgs"
    XLS = "xls"
    ETC = "etc"


@dataclass(frozen=True)
class RemoteStubEntry:
    """One row of the remote notice index."""

    sequence_id: int
    title: str
    detail_link: str
    author_name: str
    category_label: str
    published_label: str


@dataclass(frozen=True)
class Attachment:
    href: str
    display_name: str
    kind: AttachmentKind


@dataclass(frozen=True)
class RemoteDetail:
    """Attachments and content body scraped from a detail page."""

    attachments: Tuple[Attachment, ...]
    body_html: str


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


@dataclass(frozen=True)
class UserRef:
    uuid: str
    name: str
    is_temp: bool = False


@dataclass
class StoredNotice:
    """A notice as held by the notice store."""

    id: int
    title: str
    body_html: str
    tags: List[str]
    author_uuid: str
    published_at: datetime
    current_deadline: Optional[datetime] = None
    image_keys: List[str] = field(default_factory=list)
    reminder_user_uuids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PushPayload:
    title: str
    body: str
    image_url: Optional[str] = None
