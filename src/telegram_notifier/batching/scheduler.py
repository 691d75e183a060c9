"""
Flush scheduling for collected notifications.

A schedule is a list of daily wall-clock times ("08:00,20:00"). After every
flush the next occurrence of each configured time is recomputed from the
current clock, so a late wake-up drains once and moves on to the next future
point instead of replaying the ones it missed.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Awaitable, Callable, List, Optional, Sequence

from telegram_notifier.common.settings import ConfigurationError

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

NowProvider = Callable[[], datetime]
SleepFunc = Callable[[float], Awaitable[None]]
FlushCallback = Callable[[], None]


def parse_flush_times(raw: Optional[str]) -> List[time]:
    if raw is None or not str(raw).strip():
        raise ConfigurationError("flush_times must list at least one HH:MM time")
    parsed = set()
    for item in str(raw).split(","):
        item = item.strip()
        if not item:
            continue
        match = _TIME_PATTERN.match(item)
        if not match:
            raise ConfigurationError(f"Invalid flush time {item!r}, expected HH:MM")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ConfigurationError(f"Invalid flush time {item!r}, out of range")
        parsed.add(time(hour=hour, minute=minute))
    if not parsed:
        raise ConfigurationError("flush_times must list at least one HH:MM time")
    return sorted(parsed)


def local_now() -> datetime:
    return datetime.now().astimezone()


class FlushSchedule:
    def __init__(self, times: Sequence[time], tz: Optional[tzinfo] = None) -> None:
        if not times:
            raise ConfigurationError("Flush schedule requires at least one time")
        self.times = sorted(set(times))
        self.tz = tz
        self.points: List[datetime] = []

    def _at(self, day: date, at: time) -> datetime:
        naive = datetime.combine(day, at)
        if self.tz is None:
            # naive datetimes are interpreted as system local time
            return naive.astimezone()
        return naive.replace(tzinfo=self.tz)

    def next_flush(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            now = now.astimezone()
        today = now.astimezone(self.tz).date()
        points = []
        for at in self.times:
            candidate = self._at(today, at)
            if candidate <= now:
                candidate = self._at(today + timedelta(days=1), at)
            points.append(candidate)
        points.sort()
        self.points = points
        return points[0]


class FlushScheduler:
    """Self re-arming timer that calls ``on_flush`` at every schedule point."""

    def __init__(
        self,
        schedule: FlushSchedule,
        on_flush: FlushCallback,
        *,
        now_provider: NowProvider = local_now,
        sleep: SleepFunc = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.schedule = schedule
        self.on_flush = on_flush
        self.now_provider = now_provider
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.next_point: Optional[datetime] = None
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stopped.clear()
        self._task = asyncio.create_task(self.run(), name="flush_scheduler")
        return self._task

    async def run(self) -> None:
        while not self._stopped.is_set():
            now = self.now_provider()
            target = self.schedule.next_flush(now)
            self.next_point = target
            delay = max((target - now).total_seconds(), 0.0)
            self.logger.debug(
                "flush_scheduled",
                extra={"next_flush": target.isoformat(), "delay_sec": delay},
            )
            await self.sleep(delay)
            if self._stopped.is_set():
                break
            if self.now_provider() < target:
                # woke up early, re-arm for the same point
                continue
            try:
                self.on_flush()
            except Exception as exc:
                self.logger.error("flush_failed", exc_info=exc)

    def stop(self) -> None:
        self._stopped.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
