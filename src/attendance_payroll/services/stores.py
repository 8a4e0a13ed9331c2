"""Interfaces of the external record stores the core reads and writes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol

from attendance_payroll.attendance.types import Absence, ClockEvent, Jornada, ShiftName
from attendance_payroll.calculators.types import ConceptDefinition, EmployeeClass


class ClockEventStore(Protocol):
    async def get_events(
        self, employee_id: int, date_from: date, date_to: date
    ) -> list[ClockEvent]:
        """Events in time order whose local civil day is within the range."""


class ShiftLookup(Protocol):
    async def get_assigned_shift(self, employee_id: int, day: date) -> ShiftName | None:
        """Planned shift, if any."""


class AbsenceLookup(Protocol):
    async def get_absence(self, employee_id: int, day: date) -> Absence | None:
        """Absence covering the day, if any."""


class JornadaRepository(Protocol):
    async def upsert_jornada(
        self, employee_id: int, day: date, fields: Mapping[str, Any]
    ) -> Jornada:
        """Idempotent upsert keyed by (employee_id, day); rejects invalid states."""


class ConceptRepository(Protocol):
    async def list_active_concepts(self, employee_class: EmployeeClass) -> list[ConceptDefinition]:
        """Active concepts applicable to the class."""
