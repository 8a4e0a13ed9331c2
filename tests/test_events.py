"""Tests for raw punch parsing and day partitioning."""

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from attendance_payroll.attendance.events import (
    parse_clock_event,
    parse_clock_events,
    parse_timestamp,
    partition_by_day,
)
from attendance_payroll.attendance.types import ClockEvent, Direction

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


class TestParseTimestamp:
    """Timestamp parsing."""

    def test_z_suffix_is_utc(self):
        parsed = parse_timestamp("2024-05-07T09:00:00Z", TZ)
        assert parsed.utcoffset().total_seconds() == 0
        assert parsed.astimezone(TZ).hour == 6

    def test_naive_is_local(self):
        parsed = parse_timestamp("2024-05-07T06:00:00", TZ)
        assert parsed.tzinfo is TZ
        assert parsed.hour == 6

    def test_explicit_offset_kept(self):
        parsed = parse_timestamp("2024-05-07T06:00:00-03:00", TZ)
        assert parsed.astimezone(timezone.utc).hour == 9

    def test_datetime_passes_through(self):
        value = datetime(2024, 5, 7, 6, 0, tzinfo=timezone.utc)
        assert parse_timestamp(value, TZ) is value


class TestParseClockEvent:
    """Row parsing and malformed-row handling."""

    def test_valid_row(self):
        event = parse_clock_event(
            {"employee_id": "7", "timestamp": "2024-05-07T06:00:00", "direction": "IN", "device_id": 3},
            TZ,
        )
        assert event.employee_id == 7
        assert event.direction is Direction.ENTRY
        assert event.device_id == "3"

    def test_exit_aliases(self):
        for alias in ("exit", "out", "S"):
            event = parse_clock_event(
                {"employee_id": 1, "timestamp": "2024-05-07T14:00:00", "direction": alias},
                TZ,
            )
            assert event.direction is Direction.EXIT

    def test_malformed_timestamp_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            event = parse_clock_event(
                {"employee_id": 1, "timestamp": "yesterday", "direction": "entry"}, TZ
            )
        assert event is None
        assert "malformed clock event" in caplog.text

    def test_unknown_direction_is_dropped(self):
        event = parse_clock_event(
            {"employee_id": 1, "timestamp": "2024-05-07T06:00:00", "direction": "sideways"},
            TZ,
        )
        assert event is None

    def test_missing_field_is_dropped(self):
        assert parse_clock_event({"employee_id": 1, "direction": "entry"}, TZ) is None

    def test_parse_many_keeps_valid_sorted(self):
        rows = [
            {"employee_id": 1, "timestamp": "2024-05-07T14:00:00", "direction": "exit"},
            {"employee_id": 1, "timestamp": "", "direction": "entry"},
            {"employee_id": 1, "timestamp": "2024-05-07T06:00:00", "direction": "entry"},
        ]
        events = parse_clock_events(rows, TZ)
        assert [e.direction for e in events] == [Direction.ENTRY, Direction.EXIT]


class TestPartitionByDay:
    """Days are local civil days."""

    def test_utc_event_lands_on_local_day(self):
        # 01:30 UTC on the 8th is 22:30 local on the 7th.
        event = ClockEvent(
            timestamp=datetime(2024, 5, 8, 1, 30, tzinfo=timezone.utc),
            employee_id=1,
            direction=Direction.ENTRY,
        )
        days = partition_by_day([event], TZ)
        assert list(days) == [date(2024, 5, 7)]
        assert days[date(2024, 5, 7)].entries[0].hour == 22

    def test_entries_and_exits_split(self):
        events = [
            ClockEvent(datetime(2024, 5, 7, 14, tzinfo=TZ), 1, Direction.EXIT),
            ClockEvent(datetime(2024, 5, 7, 6, tzinfo=TZ), 1, Direction.ENTRY),
        ]
        bucket = partition_by_day(events, TZ)[date(2024, 5, 7)]
        assert len(bucket.entries) == 1
        assert len(bucket.exits) == 1
        assert bucket.is_empty is False
