import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from telegram_notifier.common.models import Notification


class DummyRequests:
    def __init__(self, status_code: int = 200, exc: Exception | None = None):
        self.calls = []
        self.status_code = status_code
        self.exc = exc

    def post(self, url, data=None, timeout=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        status_code = self.status_code

        class R:
            text = "" if status_code == 200 else '{"ok":false}'

        R.status_code = status_code
        return R()


@pytest.fixture
def schema_path() -> Path:
    path = REPO_ROOT / "config" / "schema.json"
    assert path.exists()
    return path


@pytest.fixture
def dummy_requests(monkeypatch) -> DummyRequests:
    dummy = DummyRequests()
    monkeypatch.setattr("telegram_notifier.delivery.dispatcher.requests", dummy)
    return dummy


@pytest.fixture
def base_settings() -> dict:
    return {
        "config_version": "1",
        "app_log_path": "logs/app.log",
        "log_level": "INFO",
        "log_verbosity": 2,
        "telegram": {"token": "TEST_TOKEN", "chat_id": "42"},
        "default_message": None,
        "devices": [],
        "forward_all": True,
        "collect_default_messages": False,
        "flush_times": "08:00,20:00",
        "flush_timezone": "UTC",
    }


def make_payload(source="dev1", dev="Door", value="open", timestamp=100, level="device-info"):
    return {
        "level": level,
        "source": source,
        "timestamp": timestamp,
        "message": {"dev": dev, "l": value},
    }


def make_notification(**kwargs) -> Notification:
    return Notification.from_payload(make_payload(**kwargs))
