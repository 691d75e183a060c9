from __future__ import annotations

import re
from typing import Optional

from telegram_notifier.common.models import Notification


_PLACEHOLDER = re.compile(r"\$(TIME|DEVICE|VALUE)")


def fallback_text(notification: Notification) -> str:
    return f"{notification.device_name}: {notification.value}"


def compose(template: Optional[str], notification: Notification) -> str:
    """Render a message template for a notification.

    Every occurrence of ``$TIME``, ``$DEVICE`` and ``$VALUE`` is substituted in
    a single pass, so placeholder-like text inside the substituted values is
    left alone. Without a template the text falls back to ``"<device>: <value>"``.
    """
    if not template:
        return fallback_text(notification)
    replacements = {
        "TIME": str(notification.timestamp),
        "DEVICE": notification.device_name,
        "VALUE": notification.value,
    }
    return _PLACEHOLDER.sub(lambda match: replacements[match.group(1)], template)
