"""
Telegram notifier entrypoint.

Bootstrap sequence:
1) Load .env and YAML settings, validate against config/schema.json.
2) Build the typed notifier config (rule catalog, policy, flush schedule).
3) Start the notifier module on an in-process event bus.
4) Feed newline-delimited JSON notifications from stdin or a file onto the bus
   until EOF (with --exit-on-eof) or SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys
import threading
from pathlib import Path
from typing import IO, Optional

from dotenv import load_dotenv

from telegram_notifier.batching.scheduler import parse_flush_times
from telegram_notifier.common.logging import setup_logging
from telegram_notifier.common.models import NOTIFICATION_EVENT
from telegram_notifier.common.settings import (
    ConfigurationError,
    Settings,
    compute_config_hash,
    load_settings,
)
from telegram_notifier.host.bus import EventBus
from telegram_notifier.notifier.config import NotifierConfig
from telegram_notifier.notifier.module import NotifierModule


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Forward home-automation notifications to Telegram")
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--schema",
        default="config/schema.json",
        help="Path to settings JSON schema (default: config/schema.json)",
    )
    parser.add_argument(
        "--input",
        default="-",
        help="File with one JSON notification per line ('-' for stdin)",
    )
    parser.add_argument(
        "--exit-on-eof",
        action="store_true",
        help="Stop once the input is exhausted instead of waiting for a signal",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate settings and flush schedule, print OK and exit",
    )
    return parser.parse_args(argv)


def _start_reader(stream: IO[str], loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> threading.Thread:
    # daemon thread so a blocked readline never holds up shutdown
    def _read() -> None:
        for line in stream:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(queue.put_nowait, line)
        if not loop.is_closed():
            loop.call_soon_threadsafe(queue.put_nowait, None)

    thread = threading.Thread(target=_read, name="input_reader", daemon=True)
    thread.start()
    return thread


async def _feed(stream: IO[str], bus: EventBus, logger) -> int:
    queue: asyncio.Queue = asyncio.Queue()
    _start_reader(stream, asyncio.get_running_loop(), queue)
    count = 0
    while True:
        line = await queue.get()
        if line is None:
            return count
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("input_line_invalid_json", extra={"error": str(exc)})
            continue
        bus.emit(NOTIFICATION_EVENT, payload)
        count += 1


async def run(settings: Settings, config: NotifierConfig, stream: IO[str], *, exit_on_eof: bool) -> None:
    logger = setup_logging(settings.app_log_path, settings.log_level)
    logger.info(
        "boot_start",
        extra={
            "config_version": settings.config_version,
            "config_hash": compute_config_hash(settings.config_path),
        },
    )
    bus = EventBus(logger=logger)
    module = NotifierModule(config, bus, logger=logger)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    module.start()
    feeder = asyncio.create_task(_feed(stream, bus, logger), name="input_feeder")
    stop_waiter = asyncio.create_task(stop_event.wait(), name="stop_event_wait")
    try:
        done, _ = await asyncio.wait({feeder, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        if feeder in done:
            logger.info("input_exhausted", extra={"notifications": feeder.result()})
            if not exit_on_eof:
                await stop_waiter
    finally:
        module.stop()
        for task in (feeder, stop_waiter):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await module.dispatcher.drain()
        logger.info("shutdown_complete")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    settings = load_settings(Path(args.config), Path(args.schema))
    try:
        config = NotifierConfig.from_settings(settings.raw)
        if args.check_config and config.collection_enabled:
            parse_flush_times(config.flush_times)
    except ConfigurationError as exc:
        print(f"[ERROR] invalid configuration: {exc}", file=sys.stderr)
        return 2
    if args.check_config:
        print("OK")
        return 0

    if args.input == "-":
        asyncio.run(run(settings, config, sys.stdin, exit_on_eof=args.exit_on_eof))
        return 0
    with open(args.input, "r", encoding="utf-8") as stream:
        asyncio.run(run(settings, config, stream, exit_on_eof=args.exit_on_eof))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
