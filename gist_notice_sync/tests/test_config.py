from datetime import time
from pathlib import Path

import pytest

from gist_notice_sync import config
from gist_notice_sync.config import get_settings


ENV_VARS = (
    "NOTICE_LIST_URL",
    "REQUEST_TIMEOUT",
    "NOTICE_TIMEZONE",
    "STORE_PATH",
    "INGEST_INTERVAL_MINUTES",
    "REMINDER_TIME",
    "FCM_CREDENTIALS_PATH",
    "IMAGE_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda: None)


def test_defaults():
    settings = get_settings()

    assert settings.notice_list_url == config.DEFAULT_NOTICE_LIST_URL
    assert settings.request_timeout == 10
    assert settings.timezone == "Asia/Seoul"
    assert settings.ingest_interval_minutes == 10
    assert settings.reminder_time == time(9, 0)
    assert settings.fcm_credentials_path == ""


def test_values_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("STORE_PATH", str(tmp_path / "s.json"))
    monkeypatch.setenv("REMINDER_TIME", "07:45")
    monkeypatch.setenv("FCM_CREDENTIALS_PATH", " /etc/fcm.json ")

    settings = get_settings()

    assert settings.request_timeout == 5
    assert settings.store_path == Path(tmp_path / "s.json")
    assert settings.reminder_time == time(7, 45)
    assert settings.fcm_credentials_path == "/etc/fcm.json"


@pytest.mark.parametrize(
    "name, value",
    [
        ("REQUEST_TIMEOUT", "ten"),
        ("INGEST_INTERVAL_MINUTES", "0"),
        ("REMINDER_TIME", "25:00"),
        ("NOTICE_TIMEZONE", "Mars/Olympus"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError) as excinfo:
        get_settings()

    assert name in str(excinfo.value)
