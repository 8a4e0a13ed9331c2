"""Parsing of raw punch rows and per-day partitioning."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any

from attendance_payroll.attendance.types import ClockEvent, Direction

logger = logging.getLogger(__name__)

_DIRECTION_ALIASES = {
    "entry": Direction.ENTRY,
    "in": Direction.ENTRY,
    "e": Direction.ENTRY,
    "exit": Direction.EXIT,
    "out": Direction.EXIT,
    "s": Direction.EXIT,
}


def parse_timestamp(value: Any, local_tz: tzinfo) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are read as local time."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_tz)
    return parsed


def parse_clock_event(row: Mapping[str, Any], local_tz: tzinfo) -> ClockEvent | None:
    """Build a ClockEvent from a raw row, or drop it when malformed."""
    try:
        direction = row["direction"]
        if not isinstance(direction, Direction):
            direction = _DIRECTION_ALIASES[str(direction).strip().lower()]
        timestamp = parse_timestamp(row["timestamp"], local_tz)
        employee_id = int(row["employee_id"])
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Dropping malformed clock event %r: %s", dict(row), exc)
        return None
    device = row.get("device_id")
    return ClockEvent(
        timestamp=timestamp,
        employee_id=employee_id,
        direction=direction,
        device_id=str(device) if device is not None else None,
    )


def parse_clock_events(rows: Iterable[Mapping[str, Any]], local_tz: tzinfo) -> list[ClockEvent]:
    """Parse many rows, keeping only the valid events in time order."""
    events = [e for e in (parse_clock_event(row, local_tz) for row in rows) if e is not None]
    return sort_events(events)


def sort_events(events: Iterable[ClockEvent]) -> list[ClockEvent]:
    return sorted(events, key=lambda e: (e.timestamp, e.direction.value))


@dataclass
class DayPunches:
    """Entries and exits of one civil day, as local datetimes in time order."""

    day: date
    entries: list[datetime] = field(default_factory=list)
    exits: list[datetime] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries and not self.exits


def partition_by_day(events: Iterable[ClockEvent], local_tz: tzinfo) -> dict[date, DayPunches]:
    """Group events by the civil day they happened on in `local_tz`."""
    days: dict[date, DayPunches] = {}
    for event in sort_events(events):
        local = event.timestamp.astimezone(local_tz)
        bucket = days.setdefault(local.date(), DayPunches(local.date()))
        if event.direction is Direction.ENTRY:
            bucket.entries.append(local)
        else:
            bucket.exits.append(local)
    return days
