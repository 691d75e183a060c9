from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


NOTIFICATION_EVENT = "notifications.push"


class Disposition(str, Enum):
    NORMAL = "normal"
    COLLECT = "collect"
    IGNORE = "ignore"

    @staticmethod
    def parse(raw: Optional[str]) -> Optional["Disposition"]:
        if raw is None or raw == "":
            return None
        try:
            return Disposition(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown disposition: {raw!r}") from None


@dataclass(frozen=True)
class RoutingRule:
    device_id: Optional[str] = None
    value: Optional[str] = None
    message: Optional[str] = None
    disposition: Optional[Disposition] = None

    @property
    def is_catch_all(self) -> bool:
        return not self.device_id and not self.value


@dataclass(frozen=True)
class Notification:
    level: str
    source: str
    timestamp: int
    device_name: str
    value: str

    @property
    def is_device_event(self) -> bool:
        return "device" in self.level

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "Notification":
        if not isinstance(payload, Mapping):
            raise ValueError(f"Notification payload must be a mapping, got {type(payload).__name__}")
        message = payload.get("message")
        if not isinstance(message, Mapping):
            message = {}
        try:
            timestamp = int(payload.get("timestamp") or 0)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid notification timestamp: {payload.get('timestamp')!r}") from None
        value = message.get("l")
        return Notification(
            level=str(payload.get("level") or ""),
            source=str(payload.get("source") or ""),
            timestamp=timestamp,
            device_name=str(message.get("dev") or ""),
            value="" if value is None else str(value),
        )


@dataclass(frozen=True)
class BatchEntry:
    time: int
    message: str
