from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from telegram_notifier.batching.collector import PendingBatch, render_batch
from telegram_notifier.batching.scheduler import (
    FlushSchedule,
    FlushScheduler,
    NowProvider,
    SleepFunc,
    local_now,
    parse_flush_times,
)
from telegram_notifier.common.models import NOTIFICATION_EVENT, Notification
from telegram_notifier.common.settings import ConfigurationError
from telegram_notifier.delivery.dispatcher import TelegramDispatcher
from telegram_notifier.notifier.config import NotifierConfig
from telegram_notifier.routing.decider import Collect, Suppress, decide
from telegram_notifier.routing.matcher import match_rule


class NotificationSource(Protocol):
    def on(self, event_name: str, handler: Any) -> None: ...

    def off(self, event_name: str, handler: Any) -> None: ...


class NotifierModule:
    """Routes host notifications to Telegram, immediately or in batches.

    The module subscribes to ``notifications.push`` on ``start`` and, when any
    rule collects, runs a flush timer until ``stop``. All batch and schedule
    state lives on the instance; send completions only log.
    """

    def __init__(
        self,
        config: NotifierConfig,
        bus: NotificationSource,
        *,
        dispatcher: Optional[TelegramDispatcher] = None,
        now_provider: NowProvider = local_now,
        sleep: Optional[SleepFunc] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.bus = bus
        self.logger = logger or logging.getLogger(__name__)
        self.dispatcher = dispatcher or TelegramDispatcher(
            config.telegram.token,
            config.telegram.chat_id,
            base_url=config.telegram.base_url,
            timeout_sec=config.telegram.timeout_sec,
            verbosity=config.log_verbosity,
            logger=self.logger,
        )
        self.batch = PendingBatch()
        self.now_provider = now_provider
        self._sleep = sleep
        self.scheduler: Optional[FlushScheduler] = None
        self.collection_available = False
        self._subscribed = False

    def build_schedule(self) -> FlushSchedule:
        times = parse_flush_times(self.config.flush_times)
        return FlushSchedule(times, tz=self.config.flush_timezone)

    def start(self) -> None:
        if self._subscribed:
            return
        if self.config.collection_enabled:
            self._start_collection()
        self.bus.on(NOTIFICATION_EVENT, self.on_notification)
        self._subscribed = True
        self.logger.info(
            "notifier_started",
            extra={
                "rules": len(self.config.rules),
                "collection": self.collection_available,
            },
        )

    def _start_collection(self) -> None:
        try:
            schedule = self.build_schedule()
        except ConfigurationError as exc:
            self.logger.error("flush_schedule_invalid", extra={"error": str(exc)})
            self.collection_available = False
            return
        kwargs = {"now_provider": self.now_provider, "logger": self.logger}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        self.scheduler = FlushScheduler(schedule, self.flush, **kwargs)
        self.scheduler.start()
        self.collection_available = True

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
            self.scheduler = None
        if self._subscribed:
            self.bus.off(NOTIFICATION_EVENT, self.on_notification)
            self._subscribed = False
        pending = len(self.batch)
        if pending:
            self.logger.warning("notifier_stopped_with_pending", extra={"pending": pending})
        else:
            self.logger.info("notifier_stopped")

    def on_notification(self, payload: Any) -> None:
        try:
            notification = Notification.from_payload(payload)
        except ValueError as exc:
            self.logger.warning("notification_malformed", extra={"error": str(exc)})
            return
        if not notification.is_device_event:
            return

        rule = match_rule(self.config.rules, notification)
        action = decide(rule, notification, self.config.policy)

        if isinstance(action, Suppress):
            self.logger.debug(
                "notification_suppressed",
                extra={"source": notification.source, "reason": action.reason},
            )
            return
        if isinstance(action, Collect) and self.collection_available:
            self.batch.collect(notification, action.text)
            self.logger.debug(
                "notification_collected",
                extra={"source": notification.source, "device": notification.device_name},
            )
            return
        # collect without a usable schedule degrades to an immediate send
        self.dispatcher.send(action.text)

    def flush(self) -> int:
        snapshot = self.batch.drain()
        bodies = render_batch(snapshot)
        for body in bodies:
            self.dispatcher.send(body)
        if bodies:
            self.logger.info(
                "batch_flushed",
                extra={
                    "devices": len(snapshot),
                    "entries": sum(len(entries) for entries in snapshot.values()),
                    "messages": len(bodies),
                },
            )
        return len(bodies)
