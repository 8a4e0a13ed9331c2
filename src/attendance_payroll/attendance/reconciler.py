"""Session reconciler: raw punches to one Jornada per anchor day.

A late entry is one at or after `late_entry_hour` that no later exit on
its own day closes. An early exit is the first exit of a day, before
`early_exit_hour` and before any entry of that day. Pairing priority
for a target day D (local civil days):

1. A late entry on D-1 with an early exit on D is a night session
   anchored on D (the exit day).
2. A late entry on D with an early exit on D+1 is a night session
   anchored on D+1; it is returned as the adjacent Jornada and D keeps
   only its earlier punches.
3. A late entry on D with no early exit after it is an open night
   session, unless D already has earlier punches.
4. Otherwise the first entry and the last exit after it form a day
   session. Entries without an exit and exits without an entry are
   reported as inconsistencies, never paired backwards.

Pairs longer than `max_session_hours` are never accepted.

Absences override everything; the reconciler never raises for missing
data and never reads the system clock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from attendance_payroll.attendance.events import DayPunches, partition_by_day
from attendance_payroll.attendance.hours import (
    night_overlap,
    suggest_overtime,
    to_hours,
)
from attendance_payroll.attendance.shifts import SUNDAY, ShiftCatalog
from attendance_payroll.attendance.types import (
    ZERO,
    Absence,
    ClockEvent,
    InconsistencyKind,
    Jornada,
    Origin,
    ReconcileContext,
    ReconcileOutcome,
    ShiftName,
)
from attendance_payroll.config import AgreementParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Session:
    anchor: date
    entry: datetime | None
    exit: datetime | None
    open_night: bool = False


class SessionReconciler:
    """Turns an employee's punches into Jornadas.

    Callers must supply events for a window padded by one day on each side
    of the days being reconciled.
    """

    def __init__(
        self,
        local_tz: tzinfo | str = "America/Argentina/Buenos_Aires",
        params: AgreementParameters | None = None,
        catalog: ShiftCatalog | None = None,
    ):
        self.local_tz = ZoneInfo(local_tz) if isinstance(local_tz, str) else local_tz
        self.params = params or AgreementParameters()
        self.catalog = catalog or ShiftCatalog(self.params)

    def reconcile_range(
        self,
        events: Iterable[ClockEvent],
        date_from: date,
        date_to: date,
        ctx: ReconcileContext,
    ) -> list[Jornada]:
        """Reconcile every day in [date_from, date_to], in date order."""
        days = self._partition(events, ctx.employee_id)
        jornadas = []
        day = date_from
        while day <= date_to:
            outcome = self._reconcile(days, day, ctx)
            if outcome.jornada is not None:
                jornadas.append(outcome.jornada)
            day += timedelta(days=1)
        return jornadas

    def reconcile_day(
        self,
        events: Iterable[ClockEvent],
        target: date,
        ctx: ReconcileContext,
    ) -> ReconcileOutcome:
        """Reconcile a single anchor day."""
        return self._reconcile(self._partition(events, ctx.employee_id), target, ctx)

    def _partition(self, events: Iterable[ClockEvent], employee_id: int) -> dict[date, DayPunches]:
        own = [e for e in events if e.employee_id == employee_id]
        return partition_by_day(own, self.local_tz)

    def _reconcile(
        self,
        days: dict[date, DayPunches],
        target: date,
        ctx: ReconcileContext,
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(target_date=target)

        absence = ctx.absence_on(target)
        if absence is not None:
            outcome.jornada = self._status_day(ctx.employee_id, target, absence)
            return outcome

        previous = days.get(target - timedelta(days=1), DayPunches(target - timedelta(days=1)))
        today = days.get(target, DayPunches(target))
        following = days.get(target + timedelta(days=1), DayPunches(target + timedelta(days=1)))

        session: _Session | None = None
        night_in = self._night_pair(previous, today)
        night_out = self._night_pair(today, following)
        if night_in is not None:
            session = _Session(target, *night_in)
        elif night_out is not None:
            outcome.adjacent = self._session_day(
                _Session(target + timedelta(days=1), *night_out), ctx
            )
            remaining = self._before(today, night_out[0])
            if not remaining.is_empty:
                session = self._day_session(target, remaining)
        else:
            night_entry = self._night_start(today)
            if night_entry is None:
                if not today.is_empty:
                    session = self._day_session(target, today)
            else:
                remaining = self._before(today, night_entry)
                if remaining.is_empty:
                    session = _Session(target, night_entry, None, open_night=True)
                else:
                    session = self._day_session(target, remaining)

        if session is not None:
            outcome.jornada = self._session_day(session, ctx)
        elif today.is_empty:
            outcome.jornada = self._unpunched_day(ctx, target)
        return outcome

    def _plausible(self, entry: datetime, exit_: datetime) -> bool:
        span = exit_ - entry
        return timedelta(0) < span <= timedelta(hours=float(self.params.max_session_hours))

    def _night_start(self, punches: DayPunches) -> datetime | None:
        """First late entry that no later exit on the same day closes."""
        last_exit = punches.exits[-1] if punches.exits else None
        for entry in punches.entries:
            if entry.hour < self.params.late_entry_hour:
                continue
            if last_exit is None or last_exit < entry:
                return entry
        return None

    def _night_pair(
        self, start: DayPunches, end: DayPunches
    ) -> tuple[datetime, datetime] | None:
        """A late entry on `start` closed by the first, early exit on `end`."""
        entry = self._night_start(start)
        if entry is None or not end.exits:
            return None
        exit_ = end.exits[0]
        if exit_.hour >= self.params.early_exit_hour:
            return None
        if any(t < exit_ for t in end.entries):
            return None
        if not self._plausible(entry, exit_):
            return None
        return entry, exit_

    @staticmethod
    def _before(punches: DayPunches, moment: datetime) -> DayPunches:
        return DayPunches(
            punches.day,
            [t for t in punches.entries if t < moment],
            [t for t in punches.exits if t < moment],
        )

    def _day_session(self, target: date, punches: DayPunches) -> _Session:
        """First entry with the last exit after it; unmatched punches stay open."""
        if not punches.entries:
            return _Session(target, None, punches.exits[-1] if punches.exits else None)
        entry = punches.entries[0]
        closing = [t for t in punches.exits if self._plausible(entry, t)]
        return _Session(target, entry, closing[-1] if closing else None)

    @staticmethod
    def _status_day(employee_id: int, day: date, absence: Absence) -> Jornada:
        return Jornada(
            employee_id=employee_id,
            date=day,
            worked_hours=ZERO,
            employee_status=absence.kind,
        )

    def _unpunched_day(self, ctx: ReconcileContext, day: date) -> Jornada | None:
        planned = ctx.assigned_shifts.get(day)
        if planned is None:
            return None
        jornada = Jornada(employee_id=ctx.employee_id, date=day, assigned_shift=planned)
        if day < ctx.as_of and not self._is_rest_day(day, ctx):
            jornada.has_inconsistency = True
            jornada.inconsistency_kind = InconsistencyKind.NO_PUNCHES
        return jornada

    @staticmethod
    def _is_rest_day(day: date, ctx: ReconcileContext) -> bool:
        return day.weekday() == SUNDAY or day in ctx.holidays

    def _resolve_shift(self, session: _Session, ctx: ReconcileContext) -> ShiftName | None:
        if ctx.is_flexible:
            return ShiftName.FLEXIBLE
        planned = ctx.assigned_shifts.get(session.anchor)
        if planned is not None:
            return planned
        if session.entry is not None:
            return self.catalog.classify_entry(session.entry, session.entry.date())
        return None

    def _session_day(self, session: _Session, ctx: ReconcileContext) -> Jornada:
        anchor = session.anchor
        shift = self._resolve_shift(session, ctx)
        jornada = Jornada(
            employee_id=ctx.employee_id,
            date=anchor,
            assigned_shift=ctx.assigned_shifts.get(anchor),
            shift=shift,
            actual_entry=session.entry,
            actual_exit=session.exit,
            origin=Origin.CLOCK,
        )
        if session.open_night:
            jornada.notes = "open night session"

        if session.entry is not None and session.exit is not None:
            self._fill_hours(jornada, session.entry, session.exit, ctx)

        if session.entry is not None and not ctx.is_flexible:
            start_day = session.entry.date()
            if shift is ShiftName.NIGHT and session.entry.hour < self.params.early_exit_hour:
                start_day -= timedelta(days=1)
            jornada.schedule_anomaly = self.catalog.is_anomalous_entry(
                session.entry, shift, start_day
            )

        self._flag_gaps(jornada, session, ctx)
        return jornada

    def _fill_hours(
        self,
        jornada: Jornada,
        entry: datetime,
        exit_: datetime,
        ctx: ReconcileContext,
    ) -> None:
        duration = exit_ - entry
        worked = to_hours(duration)
        jornada.worked_hours = worked

        baseline = self.catalog.baseline_hours(entry.date(), jornada.shift)
        if baseline > 0:
            regular = min(duration, timedelta(hours=float(baseline)))
        else:
            regular = duration
        regular_hours = to_hours(regular)

        if jornada.date in ctx.holidays:
            jornada.holiday_hours = regular_hours
        else:
            if jornada.shift is ShiftName.NIGHT:
                night = regular_hours
            else:
                night = to_hours(
                    night_overlap(
                        entry,
                        entry + regular,
                        self.params.night_window_start,
                        self.params.night_window_end,
                    )
                )
            jornada.night_hours = night
            jornada.day_hours = regular_hours - night

        if ctx.is_flexible:
            return
        recorded = ctx.recorded_overtime.get(jornada.date, (ZERO, ZERO))
        has_recorded = any(value > 0 for value in recorded)
        if worked > baseline + self.params.overtime_tolerance_hours and not has_recorded:
            jornada.suspected_overtime = True
            ot50, ot100 = suggest_overtime(
                entry,
                entry + duration,
                baseline,
                jornada.date,
                ctx.holidays,
                self.params.overtime_block_minutes,
            )
            jornada.suggested_overtime_50 = ot50
            jornada.suggested_overtime_100 = ot100

    def _flag_gaps(self, jornada: Jornada, session: _Session, ctx: ReconcileContext) -> None:
        if jornada.date > ctx.as_of or self._is_rest_day(jornada.date, ctx):
            return
        kind = InconsistencyKind.NONE
        if session.entry is not None and session.exit is None:
            expected_end = jornada.date + timedelta(days=1) if session.open_night else jornada.date
            if expected_end < ctx.as_of:
                kind = InconsistencyKind.MISSING_EXIT
        elif session.exit is not None and session.entry is None:
            kind = InconsistencyKind.MISSING_ENTRY
        if kind is not InconsistencyKind.NONE:
            jornada.has_inconsistency = True
            jornada.inconsistency_kind = kind
            logger.debug(
                "Employee %s on %s: %s", ctx.employee_id, jornada.date, kind.value
            )

