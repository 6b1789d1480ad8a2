"""Configuration handling for the notice sync service."""

import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


DEFAULT_NOTICE_LIST_URL = "https://www.gist.ac.kr/kr/html/sub05/050209.html"
DEFAULT_REQUEST_TIMEOUT = 10
DEFAULT_TIMEZONE = "Asia/Seoul"
DEFAULT_STORE_PATH = Path(__file__).resolve().parent.parent / "notice_store.json"
DEFAULT_INGEST_INTERVAL_MINUTES = 10
DEFAULT_REMINDER_TIME = "09:00"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    notice_list_url: str = DEFAULT_NOTICE_LIST_URL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    timezone: str = DEFAULT_TIMEZONE
    store_path: Path = DEFAULT_STORE_PATH
    ingest_interval_minutes: int = DEFAULT_INGEST_INTERVAL_MINUTES
    reminder_time: time = time(9, 0)
    fcm_credentials_path: str = ""
    image_base_url: str = ""

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_time(raw: str) -> time:
    hour, sep, minute = raw.strip().partition(":")
    try:
        return time(int(hour), int(minute) if sep else 0)
    except ValueError as exc:
        raise ValueError("REMINDER_TIME must look like HH:MM") from exc


def get_settings() -> Settings:
    """Load settings from environment variables (and a local .env file)."""
    load_dotenv()

    timezone = os.getenv("NOTICE_TIMEZONE", DEFAULT_TIMEZONE).strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"NOTICE_TIMEZONE is not a known timezone: {timezone}") from exc

    return Settings(
        notice_list_url=os.getenv("NOTICE_LIST_URL", DEFAULT_NOTICE_LIST_URL).strip(),
        request_timeout=_int_env("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        timezone=timezone,
        store_path=Path(os.getenv("STORE_PATH", str(DEFAULT_STORE_PATH))),
        ingest_interval_minutes=_int_env(
            "INGEST_INTERVAL_MINUTES", DEFAULT_INGEST_INTERVAL_MINUTES
        ),
        reminder_time=_parse_time(os.getenv("REMINDER_TIME", DEFAULT_REMINDER_TIME)),
        fcm_credentials_path=os.getenv("FCM_CREDENTIALS_PATH", "").strip(),
        image_base_url=os.getenv("IMAGE_BASE_URL", "").strip(),
    )
