"""SQLAlchemy implementations of the record stores."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.attendance.events import parse_clock_event, sort_events
from attendance_payroll.attendance.types import (
    Absence,
    AbsenceKind,
    BargainingStatus,
    ClockEvent,
    InconsistencyKind,
    Jornada,
    Origin,
    ShiftName,
)
from attendance_payroll.calculators.concepts import DEFAULT_CONCEPTS, ConceptCatalog
from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.calculators.types import (
    ConceptCategory,
    ConceptDefinition,
    EmployeeClass,
    EmployeeProfile,
    Novelty,
)
from attendance_payroll.models import (
    AbsenceRecord,
    ClockEventRecord,
    ConceptDefinitionRecord,
    Employee,
    Holiday,
    JornadaRecord,
    PayrollNovelty,
    ShiftAssignment,
)

_JORNADA_FIELDS = {f.name for f in dataclasses.fields(Jornada)} - {"employee_id", "date"}


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _enum_or_none(enum_cls, value: str | None):
    return enum_cls(value) if value is not None else None


def record_to_jornada(record: JornadaRecord, local_tz: tzinfo) -> Jornada:
    """Map a row to a Jornada with timestamps in local time."""
    def local(value: datetime | None) -> datetime | None:
        value = _as_utc(value)
        return value.astimezone(local_tz) if value is not None else None

    return Jornada(
        employee_id=record.employee_id,
        date=record.work_date,
        assigned_shift=_enum_or_none(ShiftName, record.assigned_shift),
        shift=_enum_or_none(ShiftName, record.shift),
        actual_entry=local(record.actual_entry),
        actual_exit=local(record.actual_exit),
        worked_hours=record.worked_hours,
        day_hours=record.day_hours,
        night_hours=record.night_hours,
        overtime_50=record.overtime_50,
        overtime_100=record.overtime_100,
        holiday_hours=record.holiday_hours,
        origin=Origin(record.origin),
        employee_status=_enum_or_none(AbsenceKind, record.employee_status),
        has_inconsistency=record.has_inconsistency,
        inconsistency_kind=InconsistencyKind(record.inconsistency_kind),
        inconsistency_resolved=record.inconsistency_resolved,
        resolved_by=record.resolved_by,
        suspected_overtime=record.suspected_overtime,
        schedule_anomaly=record.schedule_anomaly,
        suggested_overtime_50=record.suggested_overtime_50,
        suggested_overtime_100=record.suggested_overtime_100,
        notes=record.notes,
    )


def jornada_to_values(jornada: Jornada) -> dict[str, Any]:
    """Column values for a Jornada, timestamps normalized to UTC."""
    def value_of(value: Any) -> Any:
        if isinstance(value, (ShiftName, AbsenceKind, Origin, InconsistencyKind)):
            return value.value
        return value

    values = {name: value_of(getattr(jornada, name)) for name in _JORNADA_FIELDS}
    values["actual_entry"] = _as_utc(jornada.actual_entry)
    values["actual_exit"] = _as_utc(jornada.actual_exit)
    return values


class SqlAttendanceStore:
    """Clock events, planning, absences and holidays."""

    def __init__(self, session: AsyncSession, local_tz: tzinfo):
        self.session = session
        self.local_tz = local_tz

    async def get_events(self, employee_id: int, date_from: date, date_to: date) -> list[ClockEvent]:
        events = await self.events_for([employee_id], date_from, date_to)
        return events.get(employee_id, [])

    async def events_for(
        self, employee_ids: Iterable[int], date_from: date, date_to: date
    ) -> dict[int, list[ClockEvent]]:
        """Parsed events per employee; malformed rows are dropped and logged."""
        ids = list(employee_ids)
        # Device dates may lag the local civil date by a day around midnight.
        result = await self.session.execute(
            select(ClockEventRecord)
            .where(
                ClockEventRecord.employee_id.in_(ids),
                ClockEventRecord.event_date >= date_from - timedelta(days=1),
                ClockEventRecord.event_date <= date_to + timedelta(days=1),
            )
            .order_by(ClockEventRecord.event_id)
        )
        by_employee: dict[int, list[ClockEvent]] = {}
        for row in result.scalars():
            event = parse_clock_event(
                {
                    "employee_id": row.employee_id,
                    "timestamp": row.recorded_at,
                    "direction": row.direction,
                    "device_id": row.device_id,
                },
                self.local_tz,
            )
            if event is None:
                continue
            local_day = event.timestamp.astimezone(self.local_tz).date()
            if date_from <= local_day <= date_to:
                by_employee.setdefault(event.employee_id, []).append(event)
        return {k: sort_events(v) for k, v in by_employee.items()}

    async def get_assigned_shift(self, employee_id: int, day: date) -> ShiftName | None:
        shifts = await self.shifts_for([employee_id], day, day)
        return shifts.get(employee_id, {}).get(day)

    async def shifts_for(
        self, employee_ids: Iterable[int], date_from: date, date_to: date
    ) -> dict[int, dict[date, ShiftName]]:
        result = await self.session.execute(
            select(ShiftAssignment).where(
                ShiftAssignment.employee_id.in_(list(employee_ids)),
                ShiftAssignment.work_date >= date_from,
                ShiftAssignment.work_date <= date_to,
            )
        )
        shifts: dict[int, dict[date, ShiftName]] = {}
        for row in result.scalars():
            shifts.setdefault(row.employee_id, {})[row.work_date] = ShiftName(row.shift)
        return shifts

    async def get_absence(self, employee_id: int, day: date) -> Absence | None:
        absences = await self.absences_for([employee_id], day, day)
        found = absences.get(employee_id, [])
        return found[0] if found else None

    async def absences_for(
        self, employee_ids: Iterable[int], date_from: date, date_to: date
    ) -> dict[int, list[Absence]]:
        result = await self.session.execute(
            select(AbsenceRecord)
            .where(
                AbsenceRecord.employee_id.in_(list(employee_ids)),
                AbsenceRecord.date_from <= date_to,
                AbsenceRecord.date_to >= date_from,
            )
            .order_by(AbsenceRecord.date_from, AbsenceRecord.absence_id)
        )
        absences: dict[int, list[Absence]] = {}
        for row in result.scalars():
            absences.setdefault(row.employee_id, []).append(
                Absence(AbsenceKind(row.kind), row.date_from, row.date_to)
            )
        return absences

    async def holidays(self, date_from: date, date_to: date) -> frozenset[date]:
        result = await self.session.execute(
            select(Holiday.holiday_date).where(
                Holiday.holiday_date >= date_from,
                Holiday.holiday_date <= date_to,
            )
        )
        return frozenset(result.scalars())


class SqlJornadaRepository:
    """Jornada persistence with the invariant check at the write boundary."""

    def __init__(self, session: AsyncSession, local_tz: tzinfo):
        self.session = session
        self.local_tz = local_tz

    async def get(self, employee_id: int, day: date) -> Jornada | None:
        record = await self.session.get(JornadaRecord, (employee_id, day))
        return record_to_jornada(record, self.local_tz) if record else None

    async def list_range(
        self,
        date_from: date,
        date_to: date,
        employee_ids: Iterable[int] | None = None,
    ) -> list[Jornada]:
        stmt = select(JornadaRecord).where(
            JornadaRecord.work_date >= date_from,
            JornadaRecord.work_date <= date_to,
        )
        if employee_ids is not None:
            stmt = stmt.where(JornadaRecord.employee_id.in_(list(employee_ids)))
        stmt = stmt.order_by(JornadaRecord.employee_id, JornadaRecord.work_date)
        result = await self.session.execute(stmt)
        return [record_to_jornada(r, self.local_tz) for r in result.scalars()]

    async def upsert_jornada(
        self, employee_id: int, day: date, fields: Mapping[str, Any]
    ) -> Jornada:
        """Merge `fields` over the stored Jornada (or an empty one) and save."""
        unknown = set(fields) - _JORNADA_FIELDS
        if unknown:
            raise ValueError(f"Unknown jornada fields: {sorted(unknown)}")
        current = await self.get(employee_id, day) or Jornada(employee_id=employee_id, date=day)
        merged = dataclasses.replace(current, **dict(fields))
        return await self.save(merged)

    async def save(self, jornada: Jornada) -> Jornada:
        jornada.validate()
        values = jornada_to_values(jornada)
        record = await self.session.get(JornadaRecord, (jornada.employee_id, jornada.date))
        if record is None:
            record = JornadaRecord(
                employee_id=jornada.employee_id, work_date=jornada.date, **values
            )
            self.session.add(record)
        else:
            for name, value in values.items():
                setattr(record, name, value)
        await self.session.flush()
        return jornada

    async def delete(self, employee_id: int, day: date) -> None:
        await self.session.execute(
            delete(JornadaRecord).where(
                and_(JornadaRecord.employee_id == employee_id, JornadaRecord.work_date == day)
            )
        )


class SqlEmployeeRepository:
    """Employee master data as payroll profiles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def roster(
        self,
        employee_class: EmployeeClass | None = None,
        employee_ids: Iterable[int] | None = None,
    ) -> list[EmployeeProfile]:
        stmt = select(Employee).where(Employee.active.is_(True))
        if employee_class is not None:
            stmt = stmt.where(Employee.employee_class == employee_class.value)
        if employee_ids is not None:
            stmt = stmt.where(Employee.employee_id.in_(list(employee_ids)))
        result = await self.session.execute(stmt.order_by(Employee.employee_id))
        return [self.to_profile(e) for e in result.scalars()]

    @staticmethod
    def to_profile(employee: Employee) -> EmployeeProfile:
        return EmployeeProfile(
            employee_id=employee.employee_id,
            legajo=employee.legajo,
            name=employee.full_name,
            employee_class=EmployeeClass(employee.employee_class),
            bargaining_status=BargainingStatus(employee.bargaining_status),
            base_rate=employee.base_rate,
            hire_date=employee.hire_date,
            sector=employee.sector,
        )


class SqlConceptRepository:
    """Concept catalog rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def all_concepts(self) -> list[ConceptDefinition]:
        result = await self.session.execute(
            select(ConceptDefinitionRecord).order_by(ConceptDefinitionRecord.code)
        )
        return [self._to_definition(r) for r in result.scalars()]

    async def list_active_concepts(self, employee_class: EmployeeClass) -> list[ConceptDefinition]:
        catalog = await self.load_catalog()
        return catalog.list_active_concepts(employee_class)

    async def load_catalog(self) -> ConceptCatalog:
        """Catalog from the database, or the built-in table when it is empty."""
        definitions = await self.all_concepts()
        if not definitions:
            return ConceptCatalog.default()
        return ConceptCatalog(definitions)

    async def seed_defaults(self) -> int:
        """Insert the built-in concepts that are missing. Returns rows added."""
        existing = {d.code for d in await self.all_concepts()}
        added = 0
        for definition in DEFAULT_CONCEPTS:
            if definition.code in existing:
                continue
            self.session.add(
                ConceptDefinitionRecord(
                    code=definition.code,
                    description=definition.description,
                    category=int(definition.category),
                    active=definition.active,
                    formula_description=definition.formula_description,
                    default_multiplier=definition.default_multiplier,
                    employee_class=(
                        definition.employee_class.value if definition.employee_class else None
                    ),
                )
            )
            added += 1
        await self.session.flush()
        return added

    @staticmethod
    def _to_definition(record: ConceptDefinitionRecord) -> ConceptDefinition:
        return ConceptDefinition(
            code=record.code,
            description=record.description,
            category=ConceptCategory(record.category),
            active=record.active,
            formula_description=record.formula_description,
            default_multiplier=(
                Decimal(record.default_multiplier)
                if record.default_multiplier is not None
                else None
            ),
            employee_class=_enum_or_none(EmployeeClass, record.employee_class),
        )


class SqlNoveltyRepository:
    """Manual per-employee concept quantities for a period."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def novelties_for(self, period: LiquidationPeriod) -> dict[int, list[Novelty]]:
        result = await self.session.execute(
            select(PayrollNovelty)
            .where(
                PayrollNovelty.year == period.year,
                PayrollNovelty.month == period.month,
                PayrollNovelty.period_type == period.period_type.value,
            )
            .order_by(PayrollNovelty.employee_id, PayrollNovelty.concept_code)
        )
        novelties: dict[int, list[Novelty]] = {}
        for row in result.scalars():
            novelties.setdefault(row.employee_id, []).append(
                Novelty(row.concept_code, quantity=row.quantity, amount=row.amount)
            )
        return novelties
