"""Tests for the session reconciler."""

from datetime import date
from decimal import Decimal

from attendance_payroll.attendance.reconciler import SessionReconciler
from attendance_payroll.attendance.types import (
    Absence,
    AbsenceKind,
    BargainingStatus,
    InconsistencyKind,
    Origin,
    ShiftName,
)

MONDAY = date(2024, 5, 6)
TUESDAY = date(2024, 5, 7)
WEDNESDAY = date(2024, 5, 8)
FRIDAY = date(2024, 5, 10)
SATURDAY = date(2024, 5, 11)
SUNDAY = date(2024, 5, 12)
MAY_DAY = date(2024, 5, 1)  # Wednesday, national holiday


def reconciler() -> SessionReconciler:
    return SessionReconciler("America/Argentina/Buenos_Aires")


class TestNightSessions:
    """Night sessions are anchored on the day they end."""

    def test_night_session_anchors_on_exit_day(self, punch, context):
        """21:45 Monday to 05:50 Tuesday is one Jornada on Tuesday."""
        events = [punch(MONDAY, 21, 45, "entry"), punch(TUESDAY, 5, 50, "exit")]

        jornadas = reconciler().reconcile_range(events, MONDAY, TUESDAY, context(FRIDAY))

        assert len(jornadas) == 1
        jornada = jornadas[0]
        assert jornada.date == TUESDAY
        assert jornada.shift is ShiftName.NIGHT
        assert jornada.worked_hours == Decimal("8.0833")
        assert jornada.night_hours == Decimal("8")
        assert jornada.day_hours == Decimal("0")
        assert jornada.has_inconsistency is False
        assert jornada.suspected_overtime is False
        assert jornada.schedule_anomaly is False

    def test_start_day_returns_adjacent_jornada(self, punch, context):
        """Reconciling the start day hands the night session to the next day."""
        events = [punch(MONDAY, 21, 45, "entry"), punch(TUESDAY, 5, 50, "exit")]

        outcome = reconciler().reconcile_day(events, MONDAY, context(FRIDAY))

        assert outcome.jornada is None
        assert outcome.adjacent is not None
        assert outcome.adjacent.date == TUESDAY

    def test_day_session_before_night_session(self, punch, context):
        """A morning session and a night session starting the same day stay apart."""
        events = [
            punch(MONDAY, 6, 0, "entry"),
            punch(MONDAY, 14, 0, "exit"),
            punch(MONDAY, 22, 0, "entry"),
            punch(TUESDAY, 6, 0, "exit"),
        ]

        jornadas = reconciler().reconcile_range(events, MONDAY, TUESDAY, context(FRIDAY))

        assert [j.date for j in jornadas] == [MONDAY, TUESDAY]
        assert jornadas[0].shift is ShiftName.MORNING
        assert jornadas[0].worked_hours == Decimal("8")
        assert jornadas[1].shift is ShiftName.NIGHT
        assert jornadas[1].night_hours == Decimal("8")

    def test_open_night_session_waits_one_day(self, punch, context):
        """An open night session is only missing its exit after the next day."""
        events = [punch(TUESDAY, 22, 0, "entry")]

        pending = reconciler().reconcile_day(events, TUESDAY, context(WEDNESDAY))
        overdue = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY))

        assert pending.jornada.has_inconsistency is False
        assert overdue.jornada.inconsistency_kind is InconsistencyKind.MISSING_EXIT
        assert overdue.jornada.worked_hours is None

    def test_closed_evening_session_is_not_a_night_start(self, punch, context):
        """An evening session and the next morning session stay two Jornadas."""
        events = [
            punch(MONDAY, 18, 30, "entry"),
            punch(MONDAY, 23, 30, "exit"),
            punch(TUESDAY, 6, 0, "entry"),
            punch(TUESDAY, 11, 0, "exit"),
        ]

        jornadas = reconciler().reconcile_range(events, MONDAY, TUESDAY, context(FRIDAY))

        assert [(j.date, j.actual_entry.hour, j.actual_exit.hour) for j in jornadas] == [
            (MONDAY, 18, 23),
            (TUESDAY, 6, 11),
        ]
        assert [j.worked_hours for j in jornadas] == [Decimal("5"), Decimal("5")]

    def test_morning_entry_blocks_night_pairing(self, punch, context):
        """A forgotten night exit never swallows the next morning session."""
        events = [
            punch(MONDAY, 22, 0, "entry"),
            punch(TUESDAY, 6, 0, "entry"),
            punch(TUESDAY, 11, 0, "exit"),
        ]

        monday, tuesday = reconciler().reconcile_range(events, MONDAY, TUESDAY, context(FRIDAY))

        assert monday.date == MONDAY
        assert monday.inconsistency_kind is InconsistencyKind.MISSING_EXIT
        assert tuesday.actual_entry.hour == 6
        assert tuesday.worked_hours == Decimal("5")

    def test_overlong_night_pair_is_rejected(self, punch, context):
        """18:00 to 10:30 the next day exceeds the maximum session length."""
        events = [punch(MONDAY, 18, 0, "entry"), punch(TUESDAY, 10, 30, "exit")]

        monday, tuesday = reconciler().reconcile_range(events, MONDAY, TUESDAY, context(FRIDAY))

        assert monday.inconsistency_kind is InconsistencyKind.MISSING_EXIT
        assert tuesday.inconsistency_kind is InconsistencyKind.MISSING_ENTRY
        assert monday.worked_hours is None
        assert tuesday.worked_hours is None

    def test_saturday_night_session(self, punch, context):
        events = [punch(SATURDAY, 22, 0, "entry"), punch(SUNDAY, 6, 0, "exit")]

        jornadas = reconciler().reconcile_range(events, SATURDAY, SUNDAY, context(date(2024, 5, 14)))

        assert len(jornadas) == 1
        jornada = jornadas[0]
        assert jornada.date == SUNDAY
        assert jornada.shift is ShiftName.NIGHT
        assert jornada.night_hours == Decimal("8")
        assert jornada.schedule_anomaly is False
        assert jornada.suspected_overtime is False


class TestDaySessions:
    """Day sessions, baselines and shift classification."""

    def test_saturday_short_shift(self, punch, context):
        """Saturday 06:05-13:10 is a Morning session without overtime."""
        events = [punch(SATURDAY, 6, 5, "entry"), punch(SATURDAY, 13, 10, "exit")]

        jornada = reconciler().reconcile_day(events, SATURDAY, context(SUNDAY)).jornada

        assert jornada.shift is ShiftName.MORNING
        assert jornada.worked_hours == Decimal("7.0833")
        assert jornada.day_hours == Decimal("7")
        assert jornada.suspected_overtime is False
        assert jornada.schedule_anomaly is False

    def test_assigned_shift_wins_over_entry_hour(self, punch, context):
        events = [punch(TUESDAY, 12, 30, "entry"), punch(TUESDAY, 20, 30, "exit")]
        ctx = context(FRIDAY, assigned_shifts={TUESDAY: ShiftName.MORNING})

        jornada = reconciler().reconcile_day(events, TUESDAY, ctx).jornada

        assert jornada.assigned_shift is ShiftName.MORNING
        assert jornada.shift is ShiftName.MORNING
        assert jornada.schedule_anomaly is True

    def test_ambiguous_entry_hour_leaves_shift_empty(self, punch, context):
        events = [punch(TUESDAY, 10, 30, "entry"), punch(TUESDAY, 18, 30, "exit")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.shift is None
        assert jornada.worked_hours == Decimal("8")

    def test_afternoon_session_counts_night_overlap(self, punch, context):
        """Regular time after 21:00 is nocturnal even on a day shift."""
        events = [punch(TUESDAY, 14, 0, "entry"), punch(TUESDAY, 22, 0, "exit")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.shift is ShiftName.AFTERNOON
        assert jornada.night_hours == Decimal("1")
        assert jornada.day_hours == Decimal("7")

    def test_first_entry_and_last_exit_are_paired(self, punch, context):
        events = [
            punch(TUESDAY, 6, 0, "entry"),
            punch(TUESDAY, 10, 0, "exit"),
            punch(TUESDAY, 10, 30, "entry"),
            punch(TUESDAY, 14, 0, "exit"),
        ]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.actual_entry.hour == 6
        assert jornada.actual_exit.hour == 14
        assert jornada.worked_hours == Decimal("8")

    def test_other_employees_events_are_ignored(self, punch, context):
        events = [
            punch(TUESDAY, 6, 0, "entry", employee_id=2),
            punch(TUESDAY, 14, 0, "exit", employee_id=2),
        ]

        outcome = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY))

        assert outcome.jornada is None


class TestInconsistencies:
    """Gaps in the punches are flagged, never raised."""

    def test_planned_day_without_punches(self, context):
        ctx = context(FRIDAY, assigned_shifts={TUESDAY: ShiftName.MORNING})

        jornada = reconciler().reconcile_day([], TUESDAY, ctx).jornada

        assert jornada.assigned_shift is ShiftName.MORNING
        assert jornada.has_inconsistency is True
        assert jornada.inconsistency_kind is InconsistencyKind.NO_PUNCHES
        assert jornada.worked_hours is None

    def test_future_planned_day_is_not_flagged(self, context):
        ctx = context(MONDAY, assigned_shifts={TUESDAY: ShiftName.MORNING})

        jornada = reconciler().reconcile_day([], TUESDAY, ctx).jornada

        assert jornada.has_inconsistency is False

    def test_unplanned_day_without_punches_yields_nothing(self, context):
        assert reconciler().reconcile_day([], TUESDAY, context(FRIDAY)).jornada is None

    def test_holiday_without_punches_is_not_flagged(self, context):
        ctx = context(
            FRIDAY,
            assigned_shifts={MAY_DAY: ShiftName.MORNING},
            holidays=frozenset({MAY_DAY}),
        )

        jornada = reconciler().reconcile_day([], MAY_DAY, ctx).jornada

        assert jornada.has_inconsistency is False

    def test_missing_exit(self, punch, context):
        events = [punch(TUESDAY, 6, 0, "entry")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.inconsistency_kind is InconsistencyKind.MISSING_EXIT
        assert jornada.worked_hours is None

    def test_missing_exit_not_flagged_on_the_same_day(self, punch, context):
        events = [punch(TUESDAY, 6, 0, "entry")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(TUESDAY)).jornada

        assert jornada.has_inconsistency is False

    def test_missing_entry(self, punch, context):
        events = [punch(TUESDAY, 14, 0, "exit")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.inconsistency_kind is InconsistencyKind.MISSING_ENTRY
        assert jornada.shift is None

    def test_exit_before_entry_is_never_paired(self, punch, context):
        """An orphan morning exit and an unclosed entry are not a 17h session."""
        events = [punch(TUESDAY, 7, 0, "exit"), punch(TUESDAY, 14, 0, "entry")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.actual_entry.hour == 14
        assert jornada.actual_exit is None
        assert jornada.worked_hours is None
        assert jornada.inconsistency_kind is InconsistencyKind.MISSING_EXIT
        assert jornada.suspected_overtime is False

    def test_session_longer_than_maximum_stays_open(self, punch, context):
        events = [punch(TUESDAY, 4, 0, "entry"), punch(TUESDAY, 19, 0, "exit")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.actual_exit is None
        assert jornada.inconsistency_kind is InconsistencyKind.MISSING_EXIT


class TestAbsences:
    """Absences take precedence over punches."""

    def test_absence_overrides_punches(self, punch, context):
        events = [punch(TUESDAY, 6, 0, "entry"), punch(TUESDAY, 14, 0, "exit")]
        ctx = context(
            FRIDAY,
            absences=[Absence(AbsenceKind.SICK, TUESDAY, WEDNESDAY)],
            assigned_shifts={TUESDAY: ShiftName.MORNING},
        )

        jornada = reconciler().reconcile_day(events, TUESDAY, ctx).jornada

        assert jornada.employee_status is AbsenceKind.SICK
        assert jornada.worked_hours == Decimal("0")
        assert jornada.shift is None
        assert jornada.assigned_shift is None
        assert jornada.actual_entry is None
        jornada.validate()

    def test_absence_covers_every_day_in_range(self, context):
        ctx = context(FRIDAY, absences=[Absence(AbsenceKind.VACATION, MONDAY, WEDNESDAY)])

        jornadas = reconciler().reconcile_range([], MONDAY, WEDNESDAY, ctx)

        assert [j.date for j in jornadas] == [MONDAY, TUESDAY, WEDNESDAY]
        assert all(j.employee_status is AbsenceKind.VACATION for j in jornadas)


class TestOvertimeAndHolidays:
    """Advisory overtime and holiday booking."""

    def test_suspected_overtime_with_suggestion(self, punch, context):
        events = [punch(TUESDAY, 6, 0, "entry"), punch(TUESDAY, 16, 10, "exit")]

        jornada = reconciler().reconcile_day(events, TUESDAY, context(FRIDAY)).jornada

        assert jornada.suspected_overtime is True
        assert jornada.suggested_overtime_50 == Decimal("2")
        assert jornada.suggested_overtime_100 == Decimal("0")
        # Advisory only: nothing is booked as overtime.
        assert jornada.overtime_50 == Decimal("0")
        assert jornada.day_hours == Decimal("8")

    def test_recorded_overtime_silences_suspicion(self, punch, context):
        events = [punch(TUESDAY, 6, 0, "entry"), punch(TUESDAY, 16, 10, "exit")]
        ctx = context(FRIDAY, recorded_overtime={TUESDAY: (Decimal("2"), Decimal("0"))})

        jornada = reconciler().reconcile_day(events, TUESDAY, ctx).jornada

        assert jornada.suspected_overtime is False

    def test_saturday_afternoon_overtime_is_100(self, punch, context):
        events = [punch(SATURDAY, 6, 0, "entry"), punch(SATURDAY, 15, 0, "exit")]

        jornada = reconciler().reconcile_day(events, SATURDAY, context(SUNDAY)).jornada

        assert jornada.suspected_overtime is True
        assert jornada.suggested_overtime_100 == Decimal("2")
        assert jornada.suggested_overtime_50 == Decimal("0")

    def test_holiday_hours(self, punch, context):
        events = [punch(MAY_DAY, 6, 0, "entry"), punch(MAY_DAY, 14, 0, "exit")]
        ctx = context(FRIDAY, holidays=frozenset({MAY_DAY}))

        jornada = reconciler().reconcile_day(events, MAY_DAY, ctx).jornada

        assert jornada.holiday_hours == Decimal("8")
        assert jornada.day_hours == Decimal("0")
        assert jornada.night_hours == Decimal("0")


class TestFlexibleEmployees:
    """Employees outside the agreement have no baseline."""

    def test_flexible_employee(self, punch, context):
        events = [punch(TUESDAY, 8, 0, "entry"), punch(TUESDAY, 19, 0, "exit")]
        ctx = context(FRIDAY, bargaining_status=BargainingStatus.EXCLUDED)

        jornada = reconciler().reconcile_day(events, TUESDAY, ctx).jornada

        assert jornada.shift is ShiftName.FLEXIBLE
        assert jornada.day_hours == Decimal("11")
        assert jornada.suspected_overtime is False
        assert jornada.schedule_anomaly is False


class TestIdempotency:
    """Same input, same output."""

    def test_reconcile_twice_gives_identical_jornadas(self, punch, context):
        events = [
            punch(MONDAY, 21, 45, "entry"),
            punch(TUESDAY, 5, 50, "exit"),
            punch(WEDNESDAY, 6, 0, "entry"),
        ]
        ctx = context(FRIDAY, assigned_shifts={FRIDAY: ShiftName.AFTERNOON})

        first = reconciler().reconcile_range(events, MONDAY, FRIDAY, ctx)
        second = reconciler().reconcile_range(list(reversed(events)), MONDAY, FRIDAY, ctx)

        assert [j.to_canonical_dict() for j in first] == [
            j.to_canonical_dict() for j in second
        ]
        assert all(j.origin is Origin.CLOCK for j in first if j.actual_entry)
