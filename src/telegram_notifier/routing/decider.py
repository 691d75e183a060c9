from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from telegram_notifier.common.models import Disposition, Notification, RoutingRule
from telegram_notifier.routing.composer import compose


@dataclass(frozen=True)
class Policy:
    forward_all: bool = True
    collect_default_messages: bool = False
    default_message: Optional[str] = None


@dataclass(frozen=True)
class SendNow:
    text: str


@dataclass(frozen=True)
class Collect:
    text: str


@dataclass(frozen=True)
class Suppress:
    reason: str


Action = Union[SendNow, Collect, Suppress]

REASON_RULE_IGNORE = "RULE_IGNORE"
REASON_NO_RULE = "NO_MATCHING_RULE"


def decide(
    match: Optional[RoutingRule], notification: Notification, policy: Policy
) -> Action:
    if match is None:
        if not policy.forward_all:
            return Suppress(REASON_NO_RULE)
        text = compose(policy.default_message, notification)
        if policy.collect_default_messages:
            return Collect(text)
        return SendNow(text)

    if match.disposition is Disposition.IGNORE:
        return Suppress(REASON_RULE_IGNORE)

    text = compose(match.message or policy.default_message, notification)
    if match.disposition is Disposition.COLLECT:
        return Collect(text)
    if (
        match.disposition is None
        and match.is_catch_all
        and policy.collect_default_messages
    ):
        return Collect(text)
    return SendNow(text)
