"""Shift catalog: named shifts, Saturday variant and entry-hour classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from attendance_payroll.attendance.types import ShiftName
from attendance_payroll.config import AgreementParameters

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class ShiftDefinition:
    """A named shift window with its punctuality tolerance."""

    name: ShiftName
    start: time
    end: time
    baseline_hours: Decimal
    early_tolerance: timedelta = timedelta(minutes=30)
    late_tolerance: timedelta = timedelta(minutes=30)

    @property
    def crosses_midnight(self) -> bool:
        return self.end <= self.start

    def entry_window(self, day: date, tzinfo) -> tuple[datetime, datetime]:
        """Accepted entry range around the official start on `day`."""
        official = datetime.combine(day, self.start, tzinfo=tzinfo)
        return official - self.early_tolerance, official + self.late_tolerance


class ShiftCatalog:
    """Static shift definitions plus per-weekday variants.

    Weekdays run Morning 06:00-14:00, Afternoon 14:00-22:00 and
    Night 22:00-06:00. Saturdays only run a shortened morning shift.
    """

    def __init__(self, params: AgreementParameters | None = None):
        self.params = params or AgreementParameters()
        weekday_hours = self.params.weekday_baseline_hours
        self._weekday = {
            ShiftName.MORNING: ShiftDefinition(
                ShiftName.MORNING, time(6, 0), time(14, 0), weekday_hours
            ),
            ShiftName.AFTERNOON: ShiftDefinition(
                ShiftName.AFTERNOON, time(14, 0), time(22, 0), weekday_hours
            ),
            ShiftName.NIGHT: ShiftDefinition(
                ShiftName.NIGHT, time(22, 0), time(6, 0), weekday_hours
            ),
        }
        self._saturday = ShiftDefinition(
            ShiftName.MORNING,
            time(6, 0),
            time(13, 0),
            self.params.saturday_baseline_hours,
            late_tolerance=timedelta(hours=1),
        )

    def definition_for(self, shift: ShiftName | None, day: date) -> ShiftDefinition | None:
        """Return the definition that applies to `shift` on `day`."""
        if shift is None or shift is ShiftName.FLEXIBLE:
            return None
        if day.weekday() == SATURDAY and shift is ShiftName.MORNING:
            return self._saturday
        return self._weekday[shift]

    def definitions(self) -> list[ShiftDefinition]:
        return [*self._weekday.values(), self._saturday]

    @staticmethod
    def classify_entry(entry: datetime, day: date) -> ShiftName | None:
        """Guess the shift from the local entry hour.

        Saturdays only have a morning shift, so any entry before midday
        counts as Morning; later entries use the weekday bands. Hours
        outside the three bands are ambiguous.
        """
        hour = entry.hour
        if day.weekday() == SATURDAY and 3 <= hour < 12:
            return ShiftName.MORNING
        if hour >= 20 or hour < 3:
            return ShiftName.NIGHT
        if 4 <= hour < 10:
            return ShiftName.MORNING
        if 12 <= hour < 18:
            return ShiftName.AFTERNOON
        return None

    def baseline_hours(self, day: date, shift: ShiftName | None) -> Decimal:
        """Expected regular hours; Flexible employees have no baseline."""
        if shift is ShiftName.FLEXIBLE:
            return Decimal("0")
        if day.weekday() == SATURDAY and shift is not ShiftName.NIGHT:
            return self.params.saturday_baseline_hours
        return self.params.weekday_baseline_hours

    def is_anomalous_entry(self, entry: datetime, shift: ShiftName | None, day: date) -> bool:
        """True when the entry falls outside the shift's tolerance window.

        `day` is the civil day the shift starts on, which for a night
        session anchored on its exit day is the day before the anchor.
        """
        definition = self.definition_for(shift, day)
        if definition is None:
            return False
        earliest, latest = definition.entry_window(day, entry.tzinfo)
        return not (earliest <= entry <= latest)
