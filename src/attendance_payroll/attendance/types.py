"""Type definitions for the attendance reconciliation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from attendance_payroll.errors import JornadaInvariantError

ZERO = Decimal("0")


class Direction(str, Enum):
    """Punch direction reported by the clock."""

    ENTRY = "entry"
    EXIT = "exit"


class ShiftName(str, Enum):
    """Named shifts. A missing or ambiguous shift is represented by None."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"
    FLEXIBLE = "flexible"


class AbsenceKind(str, Enum):
    """Employee status codes that replace a worked day."""

    VACATION = "vacation"
    SICK = "sick"
    ACCIDENT = "accident"
    LEAVE = "leave"
    UNEXCUSED = "unexcused"


class InconsistencyKind(str, Enum):
    """Punch gaps detected by the reconciler."""

    NONE = "none"
    MISSING_EXIT = "missing_exit"
    MISSING_ENTRY = "missing_entry"
    NO_PUNCHES = "no_punches"


class Origin(str, Enum):
    """Where a Jornada's data came from."""

    CLOCK = "clock"
    MANUAL = "manual"
    MIXED = "mixed"


class BargainingStatus(str, Enum):
    """Whether the employee is covered by the collective agreement."""

    COVERED = "covered"
    EXCLUDED = "excluded"


class DayKind(str, Enum):
    """The single state a Jornada is in."""

    STATUS = "status"
    WORKED = "worked"
    EMPTY = "empty"


@dataclass(frozen=True)
class ClockEvent:
    """An immutable punch. Timestamps are always timezone-aware."""

    timestamp: datetime
    employee_id: int
    direction: Direction
    device_id: str | None = None


@dataclass(frozen=True)
class Absence:
    """An absence record covering an inclusive date range."""

    kind: AbsenceKind
    date_from: date
    date_to: date

    def covers(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to


@dataclass
class Jornada:
    """One reconciled work session, absence day or empty day."""

    employee_id: int
    date: date
    assigned_shift: ShiftName | None = None
    shift: ShiftName | None = None
    actual_entry: datetime | None = None
    actual_exit: datetime | None = None
    worked_hours: Decimal | None = None
    day_hours: Decimal = ZERO
    night_hours: Decimal = ZERO
    overtime_50: Decimal = ZERO
    overtime_100: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    origin: Origin = Origin.CLOCK
    employee_status: AbsenceKind | None = None
    has_inconsistency: bool = False
    inconsistency_kind: InconsistencyKind = InconsistencyKind.NONE
    inconsistency_resolved: bool = False
    resolved_by: str | None = None
    suspected_overtime: bool = False
    schedule_anomaly: bool = False
    suggested_overtime_50: Decimal = ZERO
    suggested_overtime_100: Decimal = ZERO
    notes: str | None = None

    HOUR_FIELDS = (
        "day_hours",
        "night_hours",
        "overtime_50",
        "overtime_100",
        "holiday_hours",
        "suggested_overtime_50",
        "suggested_overtime_100",
    )

    @property
    def day_kind(self) -> DayKind:
        if self.employee_status is not None:
            return DayKind.STATUS
        if self.actual_entry is not None or self.actual_exit is not None:
            return DayKind.WORKED
        return DayKind.EMPTY

    @property
    def has_manual_overtime(self) -> bool:
        return self.overtime_50 > 0 or self.overtime_100 > 0

    def validate(self) -> None:
        """Reject states that would corrupt downstream aggregation."""
        def fail(reason: str) -> None:
            raise JornadaInvariantError(self.employee_id, self.date, reason)

        if self.worked_hours is not None and self.worked_hours < 0:
            fail("worked_hours is negative")
        for name in self.HOUR_FIELDS:
            if getattr(self, name) < 0:
                fail(f"{name} is negative")

        if self.employee_status is not None:
            if self.worked_hours not in (None, ZERO):
                fail("employee_status set together with worked hours")
            if self.assigned_shift is not None or self.shift is not None:
                fail("employee_status set together with a shift")
            if self.actual_entry is not None or self.actual_exit is not None:
                fail("employee_status set together with punches")
            if any(getattr(self, name) for name in self.HOUR_FIELDS):
                fail("employee_status set together with hour buckets")

        if self.has_inconsistency != (
            self.inconsistency_kind is not InconsistencyKind.NONE
        ):
            fail("has_inconsistency disagrees with inconsistency_kind")

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        def enum_value(value: Enum | None) -> str | None:
            return value.value if value is not None else None

        def stamp(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        data: dict[str, Any] = {
            "employee_id": self.employee_id,
            "date": self.date.isoformat(),
            "assigned_shift": enum_value(self.assigned_shift),
            "shift": enum_value(self.shift),
            "actual_entry": stamp(self.actual_entry),
            "actual_exit": stamp(self.actual_exit),
            "worked_hours": str(self.worked_hours) if self.worked_hours is not None else None,
            "origin": self.origin.value,
            "employee_status": enum_value(self.employee_status),
            "has_inconsistency": self.has_inconsistency,
            "inconsistency_kind": self.inconsistency_kind.value,
            "inconsistency_resolved": self.inconsistency_resolved,
            "resolved_by": self.resolved_by,
            "suspected_overtime": self.suspected_overtime,
            "schedule_anomaly": self.schedule_anomaly,
            "notes": self.notes,
        }
        for name in self.HOUR_FIELDS:
            data[name] = str(getattr(self, name))
        return data


@dataclass
class ReconcileContext:
    """Everything the reconciler needs besides the punches themselves.

    `as_of` is the current civil date supplied by the caller; the
    reconciler never reads a clock.
    """

    employee_id: int
    as_of: date
    bargaining_status: BargainingStatus = BargainingStatus.COVERED
    assigned_shifts: dict[date, ShiftName] = field(default_factory=dict)
    absences: list[Absence] = field(default_factory=list)
    holidays: frozenset[date] = frozenset()
    recorded_overtime: dict[date, tuple[Decimal, Decimal]] = field(default_factory=dict)

    def absence_on(self, day: date) -> Absence | None:
        for absence in self.absences:
            if absence.covers(day):
                return absence
        return None

    @property
    def is_flexible(self) -> bool:
        return self.bargaining_status is BargainingStatus.EXCLUDED


@dataclass
class ReconcileOutcome:
    """Result for one target day.

    `adjacent` carries a night session that starts on the target day but
    is anchored on the following day.
    """

    target_date: date
    jornada: Jornada | None = None
    adjacent: Jornada | None = None
