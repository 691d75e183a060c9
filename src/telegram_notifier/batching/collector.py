from __future__ import annotations

from typing import Dict, List

from telegram_notifier.common.models import BatchEntry, Notification

TELEGRAM_MAX_MESSAGE_LENGTH = 4096

BatchSnapshot = Dict[str, List[BatchEntry]]


class PendingBatch:
    """Messages waiting for the next flush, grouped by device name."""

    def __init__(self) -> None:
        self._entries: BatchSnapshot = {}

    def collect(self, notification: Notification, text: str) -> None:
        entry = BatchEntry(time=notification.timestamp, message=text)
        self._entries.setdefault(notification.device_name, []).append(entry)

    def drain(self) -> BatchSnapshot:
        # swap instead of clear so a collect racing the flush lands in the new batch
        snapshot, self._entries = self._entries, {}
        return snapshot

    def snapshot(self) -> BatchSnapshot:
        return {device: list(entries) for device, entries in self._entries.items()}

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __bool__(self) -> bool:
        return bool(self._entries)


def _split_long_line(line: str, max_length: int) -> List[str]:
    return [line[i : i + max_length] for i in range(0, len(line), max_length)] or [""]


def render_batch(
    snapshot: BatchSnapshot, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
) -> List[str]:
    """Render a drained batch into message bodies no longer than ``max_length``.

    Each device gets a ``<device>:`` header followed by one line per collected
    message, in collection order. Devices are separated by a blank line.
    """
    if max_length < 1:
        raise ValueError("max_length must be >= 1")
    lines: List[str] = []
    for device, entries in snapshot.items():
        if not entries:
            continue
        if lines:
            lines.append("")
        lines.append(f"{device}:")
        lines.extend(entry.message for entry in entries)
    if not lines:
        return []

    bodies: List[str] = []
    current = ""
    for line in lines:
        for chunk in _split_long_line(line, max_length):
            candidate = f"{current}\n{chunk}" if current else chunk
            if len(candidate) <= max_length:
                current = candidate
                continue
            if current.strip():
                bodies.append(current)
            current = chunk
    if current.strip():
        bodies.append(current)
    return bodies
