"""
Telegram Bot API dispatcher.

Each send is a fire-and-forget task: the blocking POST runs in a worker thread
so the event loop keeps serving notifications, and a completion callback logs
the outcome according to the configured verbosity. Failed sends are not retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

import requests

DEFAULT_BASE_URL = "https://api.telegram.org"

VERBOSITY_NONE = 0
VERBOSITY_ERRORS = 1
VERBOSITY_ALL = 2


@dataclass(frozen=True)
class DeliveryOutcome:
    ok: bool
    text: str
    status: Optional[int] = None
    error: Optional[str] = None


def build_send_url(token: str, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/bot{token}/sendMessage"


class TelegramDispatcher:
    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_sec: float = 10.0,
        verbosity: int = VERBOSITY_ERRORS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = build_send_url(token, base_url)
        self._token = token
        self.chat_id = chat_id
        self.timeout_sec = timeout_sec
        self.verbosity = verbosity
        self.logger = logger or logging.getLogger(__name__)
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def send(self, text: str) -> asyncio.Task:
        """Schedule a send on the running loop and return without awaiting it."""
        task = asyncio.get_running_loop().create_task(self.deliver(text), name="telegram_send")
        self._in_flight.add(task)
        task.add_done_callback(self._on_complete)
        return task

    async def deliver(self, text: str) -> DeliveryOutcome:
        data = {"chat_id": self.chat_id, "text": text}
        try:
            resp = await asyncio.to_thread(
                requests.post, self.url, data=data, timeout=self.timeout_sec
            )
        except Exception as exc:
            return DeliveryOutcome(
                ok=False, text=text, error=self._redact(f"{type(exc).__name__}: {exc}")
            )
        status = int(resp.status_code)
        if status == 200:
            return DeliveryOutcome(ok=True, text=text, status=status)
        return DeliveryOutcome(
            ok=False, text=text, status=status, error=getattr(resp, "text", "") or None
        )

    async def drain(self) -> None:
        """Wait for every in-flight send to complete."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _redact(self, value: str) -> str:
        if not self._token:
            return value
        return value.replace(self._token, "***REDACTED***")

    def _on_complete(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            outcome = DeliveryOutcome(
                ok=False, text="", error=self._redact(f"{type(exc).__name__}: {exc}")
            )
        else:
            outcome = task.result()
        self.log_outcome(outcome)

    def log_outcome(self, outcome: DeliveryOutcome) -> None:
        if outcome.ok:
            if self.verbosity >= VERBOSITY_ALL:
                self.logger.info(
                    "notification_sent",
                    extra={"status": outcome.status, "text": outcome.text},
                )
            return
        if self.verbosity >= VERBOSITY_ERRORS:
            self.logger.error(
                "notification_send_failed",
                extra={"status": outcome.status, "error": outcome.error, "text": outcome.text},
            )
