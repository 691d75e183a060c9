from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

Handler = Callable[[Any], None]


class EventBus:
    """In-process stand-in for the controller's event system.

    Handlers run synchronously, one after another, in subscription order.
    A handler raising does not stop delivery to the remaining handlers.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.logger = logger or logging.getLogger(__name__)

    def on(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def off(self, event_name: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_name)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return

    def emit(self, event_name: str, payload: Any) -> int:
        delivered = 0
        for handler in list(self._handlers.get(event_name, ())):
            try:
                handler(payload)
            except Exception as exc:
                self.logger.error(
                    "event_handler_failed", extra={"event": event_name}, exc_info=exc
                )
                continue
            delivered += 1
        return delivered

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, ()))
