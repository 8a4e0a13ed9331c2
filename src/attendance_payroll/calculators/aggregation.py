"""Pure aggregation of Jornadas into period hour buckets."""

from __future__ import annotations

from collections.abc import Iterable

from attendance_payroll.attendance.shifts import SUNDAY, ShiftCatalog
from attendance_payroll.attendance.types import AbsenceKind, Jornada, ShiftName
from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.calculators.types import HourBuckets

_ABSENCE_HOUR_FIELD = {
    AbsenceKind.SICK: "sick_hours",
    AbsenceKind.ACCIDENT: "accident_hours",
    AbsenceKind.LEAVE: "leave_hours",
}


def aggregate_jornadas(
    jornadas: Iterable[Jornada],
    period: LiquidationPeriod,
    catalog: ShiftCatalog | None = None,
) -> HourBuckets:
    """Fold an employee's Jornadas into hour buckets.

    Always recomputed from the full Jornada set; Jornadas outside the
    period are ignored. Paid absence days count the baseline hours of
    that weekday.
    """
    catalog = catalog or ShiftCatalog()
    buckets = HourBuckets()
    for jornada in sorted(jornadas, key=lambda j: j.date):
        if not period.contains(jornada.date):
            continue
        status = jornada.employee_status
        if status is not None:
            buckets.absence_days[status] = buckets.absence_days.get(status, 0) + 1
            field_name = _ABSENCE_HOUR_FIELD.get(status)
            if field_name is not None and jornada.date.weekday() != SUNDAY:
                hours = catalog.baseline_hours(jornada.date, None)
                setattr(buckets, field_name, getattr(buckets, field_name) + hours)
            continue
        buckets.day_hours += jornada.day_hours
        buckets.night_hours += jornada.night_hours
        buckets.overtime_50 += jornada.overtime_50
        buckets.overtime_100 += jornada.overtime_100
        if jornada.shift is ShiftName.NIGHT:
            buckets.holiday_night_hours += jornada.holiday_hours
        else:
            buckets.holiday_hours += jornada.holiday_hours
    return buckets
