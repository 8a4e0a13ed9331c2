"""Property-based tests for reconciliation and liquidation invariants.

These tests use hypothesis to generate random punch pairs and rosters
and verify that the invariants hold for any of them.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from hypothesis import given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st

from attendance_payroll.attendance.reconciler import SessionReconciler
from attendance_payroll.attendance.types import (
    BargainingStatus,
    ClockEvent,
    Direction,
    Jornada,
    Origin,
    ReconcileContext,
)
from attendance_payroll.calculators.engine import LiquidationEngine
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.calculators.types import EmployeeClass, EmployeeProfile
from attendance_payroll.config import Settings

TZ = ZoneInfo("America/Argentina/Buenos_Aires")
WEEK_START = date(2024, 5, 6)
PQN = LiquidationPeriod.for_type(2024, 5, "PQN")

SETTINGS = Settings(
    database_url="sqlite+aiosqlite:///:memory:",
    engine_version="test",
    host="127.0.0.1",
    port=8000,
    debug=False,
    log_level="WARNING",
    local_timezone="America/Argentina/Buenos_Aires",
    max_workers=1,
)

hours_dec = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("12"), places=2, allow_nan=False, allow_infinity=False
)


@st.composite
def day_sessions(draw):
    """Entry between 04:00 and 14:59, exit later the same day."""
    day = WEEK_START + timedelta(days=draw(st.integers(0, 4)))
    entry = datetime.combine(day, datetime.min.time(), tzinfo=TZ) + timedelta(
        hours=draw(st.integers(4, 14)), minutes=draw(st.integers(0, 59))
    )
    length = timedelta(minutes=draw(st.integers(30, 9 * 60)))
    return day, entry, entry + length


@st.composite
def night_sessions(draw):
    """Entry from 18:00, exit the next morning before noon, at most 14h later."""
    day = WEEK_START + timedelta(days=draw(st.integers(0, 3)))
    entry_minute = draw(st.integers(18 * 60, 24 * 60 - 1))
    entry = datetime.combine(day, datetime.min.time(), tzinfo=TZ) + timedelta(minutes=entry_minute)
    shortest = 24 * 60 - entry_minute
    longest = min(14 * 60, 36 * 60 - 1 - entry_minute)
    exit_ = entry + timedelta(minutes=draw(st.integers(shortest, longest)))
    return day + timedelta(days=1), entry, exit_


def reconcile(entry: datetime, exit_: datetime, flexible: bool = False) -> list[Jornada]:
    events = [
        ClockEvent(entry, 1, Direction.ENTRY),
        ClockEvent(exit_, 1, Direction.EXIT),
    ]
    ctx = ReconcileContext(
        employee_id=1,
        as_of=WEEK_START + timedelta(days=14),
        bargaining_status=BargainingStatus.EXCLUDED if flexible else BargainingStatus.COVERED,
    )
    return SessionReconciler(TZ).reconcile_range(
        events, WEEK_START - timedelta(days=1), WEEK_START + timedelta(days=6), ctx
    )


class TestReconcilerProperties:
    """One punch pair always gives one consistent Jornada."""

    @given(day_sessions(), st.booleans())
    @hypothesis_settings(max_examples=100, deadline=None)
    def test_day_session_gives_single_jornada(self, session, flexible):
        anchor, entry, exit_ = session

        jornadas = reconcile(entry, exit_, flexible)

        assert [j.date for j in jornadas] == [anchor]
        jornada = jornadas[0]
        jornada.validate()
        assert jornada.worked_hours is not None and jornada.worked_hours >= 0
        assert jornada.day_hours + jornada.night_hours <= jornada.worked_hours
        assert jornada.has_inconsistency is False

    @given(night_sessions())
    @hypothesis_settings(max_examples=100, deadline=None)
    def test_night_session_anchors_on_exit_day(self, session):
        anchor, entry, exit_ = session

        jornadas = reconcile(entry, exit_)

        assert [j.date for j in jornadas] == [anchor]
        jornada = jornadas[0]
        jornada.validate()
        assert jornada.worked_hours >= 0
        assert jornada.day_hours + jornada.night_hours <= jornada.worked_hours
        assert jornada.origin is Origin.CLOCK

    @given(
        st.lists(
            st.tuples(st.integers(0, 3 * 24 * 60 - 1), st.sampled_from(list(Direction))),
            max_size=8,
        )
    )
    @hypothesis_settings(max_examples=150, deadline=None)
    def test_any_punches_give_bounded_sessions(self, punches):
        start = datetime.combine(WEEK_START, datetime.min.time(), tzinfo=TZ)
        events = [ClockEvent(start + timedelta(minutes=m), 1, d) for m, d in punches]
        ctx = ReconcileContext(employee_id=1, as_of=WEEK_START + timedelta(days=14))

        jornadas = SessionReconciler(TZ).reconcile_range(
            events, WEEK_START, WEEK_START + timedelta(days=3), ctx
        )

        assert len({j.date for j in jornadas}) == len(jornadas)
        for jornada in jornadas:
            jornada.validate()
            if jornada.worked_hours is not None:
                assert jornada.actual_exit > jornada.actual_entry
                assert Decimal("0") < jornada.worked_hours <= Decimal("14")

    @given(day_sessions())
    @hypothesis_settings(max_examples=50, deadline=None)
    def test_reconcile_is_deterministic(self, session):
        _, entry, exit_ = session

        first = [j.to_canonical_dict() for j in reconcile(entry, exit_)]
        second = [j.to_canonical_dict() for j in reconcile(entry, exit_)]

        assert first == second


def profile(employee_id: int, rate: Decimal) -> EmployeeProfile:
    return EmployeeProfile(
        employee_id=employee_id,
        legajo=f"J-{employee_id:03d}",
        name=f"Employee {employee_id}",
        employee_class=EmployeeClass.JORNAL,
        base_rate=rate,
        hire_date=date(2019, 3, 1),
    )


def jornadas_for(employee_id: int, daily: list[Decimal]) -> list[Jornada]:
    return [
        Jornada(
            employee_id=employee_id,
            date=PQN.date_from + timedelta(days=offset),
            worked_hours=hours,
            day_hours=hours,
        )
        for offset, hours in enumerate(daily)
    ]


class TestLiquidationProperties:
    """Additivity of net and of period totals."""

    @given(
        st.lists(hours_dec, min_size=0, max_size=15),
        st.decimals(min_value=Decimal("100"), max_value=Decimal("5000"), places=2),
    )
    @hypothesis_settings(max_examples=75, deadline=None)
    def test_net_is_earnings_plus_non_taxable_minus_deductions(self, daily, rate):
        engine = LiquidationEngine(settings=SETTINGS)

        employee = engine.liquidate_employee(PQN, profile(1, rate), jornadas_for(1, daily), [])

        totals = LineItemBuilder.totals_from_lines(employee.lines)
        assert employee.net == totals.earnings + totals.non_taxable - totals.deductions
        assert all(line.amount >= 0 for line in employee.lines)

    @given(
        st.lists(
            st.lists(hours_dec, min_size=0, max_size=15),
            min_size=1,
            max_size=8,
        )
    )
    @hypothesis_settings(max_examples=40, deadline=None)
    def test_period_totals_equal_sum_of_employees(self, per_employee):
        roster = [profile(i, Decimal("1000")) for i in range(1, len(per_employee) + 1)]
        jornadas = {i: jornadas_for(i, daily) for i, daily in enumerate(per_employee, start=1)}

        result = LiquidationEngine(settings=SETTINGS).liquidate(PQN, roster, jornadas)

        assert result.totals.net == sum((r.net for r in result.results), Decimal("0"))
        assert result.totals.employer_contributions == sum(
            (r.totals.employer_contributions for r in result.results), Decimal("0")
        )
