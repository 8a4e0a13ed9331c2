"""Duration arithmetic: hour quantization, night overlap and overtime blocks."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from attendance_payroll.attendance.shifts import SATURDAY, SUNDAY

HOURS_PRECISION = Decimal("0.0001")
SECONDS_PER_HOUR = Decimal("3600")
HALF_HOUR = Decimal("0.5")


def to_hours(delta: timedelta) -> Decimal:
    """Convert a duration to hours at internal precision."""
    seconds = Decimal(int(delta.total_seconds()))
    return (seconds / SECONDS_PER_HOUR).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)


def worked_duration(entry: datetime, exit_: datetime) -> timedelta:
    """Elapsed time between operator-entered punches.

    Punches typed on the same date with the exit before the entry describe
    a night shift, so a negative span wraps past midnight. Clock sessions
    are always ordered and never need this.
    """
    delta = exit_ - entry
    if delta < timedelta(0):
        delta += timedelta(hours=24)
    return delta


def night_overlap(
    start: datetime,
    end: datetime,
    window_start: time,
    window_end: time,
) -> timedelta:
    """Time of [start, end] that falls inside the nightly window.

    Both datetimes must carry the local timezone; the window is evaluated
    for every night that could intersect the span.
    """
    if end <= start:
        return timedelta(0)
    tz = start.tzinfo
    total = timedelta(0)
    day = start.date() - timedelta(days=1)
    while day <= end.date():
        night_start = datetime.combine(day, window_start, tzinfo=tz)
        night_end = datetime.combine(day + timedelta(days=1), window_end, tzinfo=tz)
        lo = max(start, night_start)
        hi = min(end, night_end)
        if hi > lo:
            total += hi - lo
        day += timedelta(days=1)
    return total


def _next_slot(moment: datetime, block: timedelta) -> datetime:
    """Align a moment to the next block boundary within its hour."""
    aligned = moment.replace(second=0, microsecond=0)
    if aligned < moment:
        aligned += timedelta(minutes=1)
    block_minutes = int(block.total_seconds() // 60)
    remainder = aligned.minute % block_minutes
    if remainder:
        aligned += timedelta(minutes=block_minutes - remainder)
    return aligned


def overtime_blocks(
    entry: datetime,
    exit_: datetime,
    baseline_hours: Decimal,
    block_minutes: int = 30,
) -> list[datetime]:
    """Start times of the full blocks worked after the expected hours.

    A block only counts when the employee was present for all of it.
    """
    block = timedelta(minutes=block_minutes)
    regular_end = entry + timedelta(hours=float(baseline_hours))
    if exit_ <= regular_end:
        return []
    blocks = []
    slot = _next_slot(regular_end, block)
    while slot + block <= exit_:
        blocks.append(slot)
        slot += block
    return blocks


def classify_block(block_start: datetime, is_holiday: bool) -> int:
    """Return the overtime surcharge (50 or 100) for a block."""
    weekday = block_start.weekday()
    if is_holiday or weekday == SUNDAY:
        return 100
    if weekday == SATURDAY and block_start.hour >= 13:
        return 100
    return 50


def suggest_overtime(
    entry: datetime,
    exit_: datetime,
    baseline_hours: Decimal,
    anchor: date,
    holidays: frozenset[date],
    block_minutes: int = 30,
) -> tuple[Decimal, Decimal]:
    """Advisory overtime split as (hours at 50%, hours at 100%)."""
    block_hours = Decimal(block_minutes) / Decimal(60)
    ot50 = Decimal("0")
    ot100 = Decimal("0")
    for start in overtime_blocks(entry, exit_, baseline_hours, block_minutes):
        is_holiday = anchor in holidays or start.date() in holidays
        if classify_block(start, is_holiday) == 100:
            ot100 += block_hours
        else:
            ot50 += block_hours
    return ot50.quantize(HOURS_PRECISION), ot100.quantize(HOURS_PRECISION)
