from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram_notifier.common.models import Disposition, RoutingRule
from telegram_notifier.common.settings import ConfigurationError
from telegram_notifier.delivery.dispatcher import DEFAULT_BASE_URL, VERBOSITY_ERRORS
from telegram_notifier.routing.decider import Policy
from telegram_notifier.routing.matcher import sort_rules

TOKEN_ENV = "TELEGRAM_BOT_TOKEN"
CHAT_ID_ENV = "TELEGRAM_CHAT_ID"


@dataclass(frozen=True)
class TelegramConfig:
    token: str
    chat_id: str
    base_url: str = DEFAULT_BASE_URL
    timeout_sec: float = 10.0


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text != "" else None


def _parse_rule(raw: Dict[str, Any], index: int) -> RoutingRule:
    try:
        disposition = Disposition.parse(raw.get("disposition"))
    except ValueError as exc:
        raise ConfigurationError(f"devices[{index}]: {exc}") from None
    # YAML reads bare on/off/yes/no as booleans
    if isinstance(raw.get("value"), bool):
        raise ConfigurationError(
            f"devices[{index}].value must be quoted, got boolean {raw['value']!r}"
        )
    return RoutingRule(
        device_id=_optional_str(raw.get("device_id")),
        value=_optional_str(raw.get("value")),
        message=_optional_str(raw.get("message")),
        disposition=disposition,
    )


def _parse_timezone(name: Optional[str]) -> Optional[tzinfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown flush_timezone: {name!r}") from None


@dataclass(frozen=True)
class NotifierConfig:
    telegram: TelegramConfig
    rules: Tuple[RoutingRule, ...] = ()
    policy: Policy = field(default_factory=Policy)
    flush_times: Optional[str] = None
    flush_timezone: Optional[tzinfo] = None
    log_verbosity: int = VERBOSITY_ERRORS

    @property
    def collection_enabled(self) -> bool:
        if self.policy.collect_default_messages:
            return True
        return any(rule.disposition is Disposition.COLLECT for rule in self.rules)

    @staticmethod
    def from_settings(settings: Dict[str, Any]) -> "NotifierConfig":
        telegram_raw = settings.get("telegram", {}) or {}
        token = _optional_str(telegram_raw.get("token")) or os.getenv(TOKEN_ENV, "")
        chat_id = _optional_str(telegram_raw.get("chat_id")) or os.getenv(CHAT_ID_ENV, "")
        if not token:
            raise ConfigurationError(f"telegram.token (or {TOKEN_ENV}) is required")
        if not chat_id:
            raise ConfigurationError(f"telegram.chat_id (or {CHAT_ID_ENV}) is required")

        devices = settings.get("devices", []) or []
        rules = sort_rules(_parse_rule(raw or {}, index) for index, raw in enumerate(devices))

        verbosity = int(settings.get("log_verbosity", VERBOSITY_ERRORS))
        if verbosity not in (0, 1, 2):
            raise ConfigurationError(f"log_verbosity must be 0, 1 or 2, got {verbosity}")

        return NotifierConfig(
            telegram=TelegramConfig(
                token=token,
                chat_id=chat_id,
                base_url=str(telegram_raw.get("base_url", DEFAULT_BASE_URL)),
                timeout_sec=float(telegram_raw.get("timeout_sec", 10.0)),
            ),
            rules=rules,
            policy=Policy(
                forward_all=bool(settings.get("forward_all", True)),
                collect_default_messages=bool(settings.get("collect_default_messages", False)),
                default_message=_optional_str(settings.get("default_message")),
            ),
            flush_times=_optional_str(settings.get("flush_times")),
            flush_timezone=_parse_timezone(_optional_str(settings.get("flush_timezone"))),
            log_verbosity=verbosity,
        )
