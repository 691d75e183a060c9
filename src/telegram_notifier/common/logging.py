from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

LOGGER_NAME = "telegram_notifier"

# Extras that carry a Telegram message body.
BODY_FIELDS = ("text",)
BODY_PREVIEW_CHARS = 200

_RESERVED = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields merged in.

    Message bodies are reduced to their length on ERROR and above so failed
    deliveries don't copy chat content into the log file. Below ERROR they
    are cut to ``preview_chars``.
    """

    def __init__(self, preview_chars: int = BODY_PREVIEW_CHARS) -> None:
        super().__init__()
        self.preview_chars = preview_chars

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED:
                continue
            if key in BODY_FIELDS and isinstance(value, str):
                self._add_body(payload, key, value, record.levelno)
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _add_body(self, payload: dict[str, Any], key: str, value: str, levelno: int) -> None:
        payload[f"{key}_chars"] = len(value)
        if levelno >= logging.ERROR:
            return
        if len(value) > self.preview_chars:
            value = value[: self.preview_chars] + "..."
        payload[key] = value


def setup_logging(app_log_path: str, level: str) -> logging.Logger:
    log_path = Path(app_log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = StructuredFormatter()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    logger.addHandler(stream_handler)
    logger.addHandler(file_handler)
    logger.propagate = False

    return logger
