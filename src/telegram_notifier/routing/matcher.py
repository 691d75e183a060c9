from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from telegram_notifier.common.models import Notification, RoutingRule


def _priority(rule: RoutingRule) -> int:
    if rule.device_id and rule.value:
        return 0
    if rule.device_id:
        return 1
    return 2


def sort_rules(rules: Iterable[RoutingRule]) -> Tuple[RoutingRule, ...]:
    """Order rules so a first-match scan honours device+value > device > catch-all.

    The sort is stable, so rules of equal priority keep their configured order.
    """
    return tuple(sorted(rules, key=_priority))


def _matches(rule: RoutingRule, notification: Notification) -> bool:
    if rule.device_id:
        if rule.device_id != notification.source:
            return False
        return not rule.value or rule.value == notification.value
    # value without device never matches
    return not rule.value


def match_rule(
    catalog: Sequence[RoutingRule], notification: Notification
) -> Optional[RoutingRule]:
    for rule in catalog:
        if _matches(rule, notification):
            return rule
    return None
