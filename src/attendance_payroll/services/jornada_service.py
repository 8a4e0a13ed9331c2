"""Jornada regeneration and manual maintenance."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.attendance.events import parse_timestamp
from attendance_payroll.attendance.hours import to_hours, worked_duration
from attendance_payroll.attendance.reconciler import SessionReconciler
from attendance_payroll.attendance.types import (
    ZERO,
    Jornada,
    Origin,
    ReconcileContext,
)
from attendance_payroll.config import Settings, get_settings
from attendance_payroll.errors import JornadaInvariantError, StoreUnavailableError
from attendance_payroll.models import Employee
from attendance_payroll.services.repositories import (
    SqlAttendanceStore,
    SqlEmployeeRepository,
    SqlJornadaRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class RegenerationSummary:
    """What a regeneration run did."""

    date_from: date
    date_to: date
    employees: int = 0
    written: int = 0
    preserved: int = 0
    removed: int = 0
    inconsistencies: int = 0
    suspected_overtime: int = 0
    rejected: list[str] = field(default_factory=list)


class JornadaService:
    """Rebuilds Jornadas from punches and applies operator edits.

    The service only flushes; committing is left to the caller so that a
    whole regeneration lands in one transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        reconciler: SessionReconciler | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.local_tz = ZoneInfo(self.settings.local_timezone)
        self.reconciler = reconciler or SessionReconciler(
            self.local_tz, self.settings.agreement
        )
        self.attendance = SqlAttendanceStore(session, self.local_tz)
        self.jornadas = SqlJornadaRepository(session, self.local_tz)
        self.employees = SqlEmployeeRepository(session)

    async def regenerate(
        self,
        date_from: date,
        date_to: date,
        as_of: date,
        employee_ids: Iterable[int] | None = None,
        overwrite_manual: bool = False,
    ) -> RegenerationSummary:
        """Reconcile every day of the range and store the results.

        Manual Jornadas survive unless `overwrite_manual` is set; overtime
        confirmed on a stored Jornada is carried into the regenerated one.
        Clock Jornadas for days that no longer yield a session are removed.
        """
        if date_to < date_from:
            raise ValueError("date_to must not precede date_from")
        summary = RegenerationSummary(date_from, date_to)
        try:
            roster = await self.employees.roster(employee_ids=employee_ids)
            ids = [p.employee_id for p in roster]
            summary.employees = len(ids)
            if not ids:
                return summary

            pad_from = date_from - timedelta(days=1)
            pad_to = date_to + timedelta(days=1)
            events = await self.attendance.events_for(ids, pad_from, pad_to)
            shifts = await self.attendance.shifts_for(ids, pad_from, pad_to)
            absences = await self.attendance.absences_for(ids, pad_from, pad_to)
            holidays = await self.attendance.holidays(pad_from, pad_to)
            stored = await self.jornadas.list_range(date_from, date_to, ids)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not read attendance data: {e}") from e

        existing: dict[int, dict[date, Jornada]] = {}
        for jornada in stored:
            existing.setdefault(jornada.employee_id, {})[jornada.date] = jornada

        contexts = [
            ReconcileContext(
                employee_id=profile.employee_id,
                as_of=as_of,
                bargaining_status=profile.bargaining_status,
                assigned_shifts=shifts.get(profile.employee_id, {}),
                absences=absences.get(profile.employee_id, []),
                holidays=holidays,
                recorded_overtime={
                    day: (j.overtime_50, j.overtime_100)
                    for day, j in existing.get(profile.employee_id, {}).items()
                    if j.has_manual_overtime
                },
            )
            for profile in roster
        ]

        def work(ctx: ReconcileContext) -> list[Jornada]:
            return self.reconciler.reconcile_range(
                events.get(ctx.employee_id, []), date_from, date_to, ctx
            )

        max_workers = self.settings.max_workers
        if max_workers <= 1 or len(contexts) <= 1:
            generated = [work(ctx) for ctx in contexts]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                generated = list(pool.map(work, contexts))

        try:
            for profile, jornadas in zip(roster, generated):
                await self._store_employee(
                    {j.date: j for j in jornadas},
                    existing.get(profile.employee_id, {}),
                    date_from,
                    date_to,
                    overwrite_manual,
                    summary,
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not store jornadas: {e}") from e

        logger.info(
            "Regenerated %s..%s for %d employees: %d written, %d preserved, %d removed, %d rejected",
            date_from,
            date_to,
            summary.employees,
            summary.written,
            summary.preserved,
            summary.removed,
            len(summary.rejected),
        )
        return summary

    async def _store_employee(
        self,
        generated: dict[date, Jornada],
        existing: dict[date, Jornada],
        date_from: date,
        date_to: date,
        overwrite_manual: bool,
        summary: RegenerationSummary,
    ) -> None:
        day = date_from
        while day <= date_to:
            current = existing.get(day)
            fresh = generated.get(day)
            day += timedelta(days=1)

            if current is not None and current.origin is not Origin.CLOCK and not overwrite_manual:
                if current.origin is Origin.MANUAL or fresh is None:
                    summary.preserved += 1
                    continue

            if fresh is None:
                if current is not None:
                    await self.jornadas.delete(current.employee_id, current.date)
                    summary.removed += 1
                continue

            if current is not None and not overwrite_manual:
                fresh = self._merge_operator_data(fresh, current)

            try:
                await self.jornadas.save(fresh)
            except JornadaInvariantError as e:
                logger.error("Rejected jornada: %s", e)
                summary.rejected.append(str(e))
                continue
            summary.written += 1
            if fresh.has_inconsistency:
                summary.inconsistencies += 1
            if fresh.suspected_overtime:
                summary.suspected_overtime += 1

    @staticmethod
    def _merge_operator_data(fresh: Jornada, current: Jornada) -> Jornada:
        """Carry confirmed overtime and resolutions into a regenerated Jornada."""
        if fresh.employee_status is not None:
            return fresh
        changes: dict[str, Any] = {}
        if current.has_manual_overtime:
            changes.update(
                overtime_50=current.overtime_50,
                overtime_100=current.overtime_100,
                origin=Origin.MIXED,
                suspected_overtime=False,
                suggested_overtime_50=ZERO,
                suggested_overtime_100=ZERO,
            )
        if (
            current.inconsistency_resolved
            and fresh.has_inconsistency
            and fresh.inconsistency_kind is current.inconsistency_kind
        ):
            changes.update(inconsistency_resolved=True, resolved_by=current.resolved_by)
        return dataclasses.replace(fresh, **changes) if changes else fresh

    async def list_jornadas(
        self,
        date_from: date,
        date_to: date,
        employee_ids: Iterable[int] | None = None,
        only_inconsistent: bool = False,
    ) -> list[Jornada]:
        try:
            jornadas = await self.jornadas.list_range(date_from, date_to, employee_ids)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not read jornadas: {e}") from e
        if only_inconsistent:
            jornadas = [
                j for j in jornadas if j.has_inconsistency and not j.inconsistency_resolved
            ]
        return jornadas

    async def record_manual_jornada(
        self,
        employee_id: int,
        day: date,
        fields: Mapping[str, Any],
        resolved_by: str | None = None,
    ) -> Jornada:
        """Apply an operator edit; the result is marked as manual.

        Naive punches are read as local time. When both punches are given
        without worked hours, the worked hours are derived from them.
        """
        if await self.session.get(Employee, employee_id) is None:
            raise ValueError(f"Employee {employee_id} not found")
        values = dict(fields)
        values["origin"] = Origin.MANUAL
        for name in ("actual_entry", "actual_exit"):
            if values.get(name) is not None:
                values[name] = parse_timestamp(values[name], self.local_tz)
        entry = values.get("actual_entry")
        exit_ = values.get("actual_exit")
        if entry is not None and exit_ is not None and values.get("worked_hours") is None:
            values["worked_hours"] = to_hours(worked_duration(entry, exit_))
        if resolved_by is not None:
            values["inconsistency_resolved"] = True
            values["resolved_by"] = resolved_by
        try:
            return await self.jornadas.upsert_jornada(employee_id, day, values)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not store jornada: {e}") from e
