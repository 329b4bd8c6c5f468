"""Timestamps for rows, object paths and conversation durations."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Epoch milliseconds; prefixes object paths and stamps storage probes."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    """Row timestamp. Microseconds keep messages written back to back ordered."""
    return utc_now().isoformat(timespec="microseconds")


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_seconds(start_iso: str | None, end: datetime) -> int:
    """Whole seconds from an ISO timestamp to ``end``; 0 without a start or when negative."""
    if not start_iso:
        return 0
    return max(0, int((end - parse_iso(start_iso)).total_seconds()))
