"""Liquidation service - loads inputs, runs the engine, persists results."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import threading
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendance_payroll.attendance.types import Jornada
from attendance_payroll.calculators.comparator import (
    Comparator,
    ComparisonReport,
    ReferencePayslip,
)
from attendance_payroll.calculators.engine import (
    EmployeeLiquidation,
    LiquidationEngine,
    LiquidationResult,
)
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.calculators.types import (
    ConceptCategory,
    ConceptLineItem,
    EmployeeTotals,
    HourBuckets,
)
from attendance_payroll.config import Settings, get_settings
from attendance_payroll.errors import PeriodClosedError, StoreUnavailableError
from attendance_payroll.models import (
    LiquidationEmployeeRecord,
    LiquidationLineRecord,
    LiquidationPeriodRecord,
)
from attendance_payroll.services.repositories import (
    SqlConceptRepository,
    SqlEmployeeRepository,
    SqlJornadaRepository,
    SqlNoveltyRepository,
)
from attendance_payroll.services.state_machine import PeriodStateMachine, PeriodStatus

logger = logging.getLogger(__name__)


class LiquidationService:
    """Service for liquidation runs.

    Operations:
    - simulate: compute a period without writing anything
    - execute: compute a period and replace its stored results
    - compare: check stored results against a reference payroll
    - void: close a period for good

    simulate and execute share `_compute`, so a simulation shows exactly
    what an execution would store.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        local_tz = ZoneInfo(self.settings.local_timezone)
        self.employees = SqlEmployeeRepository(session)
        self.jornadas = SqlJornadaRepository(session, local_tz)
        self.concepts = SqlConceptRepository(session)
        self.novelties = SqlNoveltyRepository(session)

    @staticmethod
    def period_id_for(period: LiquidationPeriod) -> UUID:
        """Deterministic period ID, so re-executions address the same row."""
        json_str = json.dumps(period.canonical_key(), sort_keys=True)
        return UUID(bytes=hashlib.sha256(json_str.encode()).digest()[:16])

    async def simulate(
        self,
        period: LiquidationPeriod,
        employee_ids: Iterable[int] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LiquidationResult:
        """Compute a period. Never writes; a cancelled run returns partial results."""
        return await self._compute(period, employee_ids, cancel_event, dry_run=True)

    async def execute(
        self,
        period: LiquidationPeriod,
        cancel_event: threading.Event | None = None,
    ) -> tuple[LiquidationPeriodRecord, LiquidationResult]:
        """Compute a period and store it, replacing any previous execution.

        Raises PeriodClosedError for voided periods, LiquidationCancelledError
        when cancelled and StoreUnavailableError when the store fails. In
        every failure case nothing is written.
        """
        period_id = self.period_id_for(period)
        try:
            record = await self.session.get(LiquidationPeriodRecord, period_id)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not read period {period.label}: {e}") from e
        if record is not None and not PeriodStateMachine.can_execute(record.status):
            raise PeriodClosedError(period.label, record.status)

        result = await self._compute(period, None, cancel_event, dry_run=False)

        try:
            record = await self._persist(period_id, period, record, result)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not store period {period.label}: {e}") from e
        logger.info(
            "Executed %s as %s: net %s over %d employees",
            period.label,
            period_id,
            record.net,
            record.employee_count,
        )
        return record, result

    async def _compute(
        self,
        period: LiquidationPeriod,
        employee_ids: Iterable[int] | None,
        cancel_event: threading.Event | None,
        dry_run: bool,
    ) -> LiquidationResult:
        try:
            roster = await self.employees.roster(
                employee_class=period.employee_class_filter, employee_ids=employee_ids
            )
            ids = [p.employee_id for p in roster]
            stored = await self.jornadas.list_range(period.date_from, period.date_to, ids)
            novelties = await self.novelties.novelties_for(period)
            catalog = await self.concepts.load_catalog()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not load inputs for {period.label}: {e}") from e

        jornadas: dict[int, list[Jornada]] = {}
        for jornada in stored:
            jornadas.setdefault(jornada.employee_id, []).append(jornada)

        engine = LiquidationEngine(catalog=catalog, settings=self.settings)
        return await asyncio.to_thread(
            engine.liquidate,
            period,
            roster,
            jornadas,
            novelties,
            cancel_event,
            dry_run,
        )

    async def _persist(
        self,
        period_id: UUID,
        period: LiquidationPeriod,
        record: LiquidationPeriodRecord | None,
        result: LiquidationResult,
    ) -> LiquidationPeriodRecord:
        if record is None:
            record = LiquidationPeriodRecord(
                period_id=period_id,
                year=period.year,
                month=period.month,
                period_type=period.period_type.value,
                fortnight=period.fortnight,
                date_from=period.date_from,
                date_to=period.date_to,
                employee_class=(
                    period.employee_class_filter.value
                    if period.employee_class_filter
                    else None
                ),
                status=PeriodStatus.DRAFT.value,
            )
            self.session.add(record)
        PeriodStateMachine.validate_transition(record.status, PeriodStatus.EXECUTED)

        await self.session.execute(
            delete(LiquidationLineRecord).where(LiquidationLineRecord.period_id == period_id)
        )
        await self.session.execute(
            delete(LiquidationEmployeeRecord).where(
                LiquidationEmployeeRecord.period_id == period_id
            )
        )

        for employee in result.results:
            totals = LineItemBuilder.serialize_totals(employee.totals)
            self.session.add(
                LiquidationEmployeeRecord(
                    period_id=period_id,
                    employee_id=employee.employee_id,
                    legajo=employee.legajo,
                    calculation_id=employee.calculation_id,
                    error_message=None,
                    lines=[
                        self._line_record(period_id, employee.employee_id, line_no, line)
                        for line_no, line in enumerate(employee.lines, start=1)
                    ],
                    **totals,
                )
            )
        for error in result.errors:
            self.session.add(
                LiquidationEmployeeRecord(
                    period_id=period_id,
                    employee_id=error.employee_id,
                    legajo=error.legajo,
                    error_message=(
                        f"{error.concept_code}: {error.reason}"
                        if error.concept_code
                        else error.reason
                    ),
                )
            )

        totals = LineItemBuilder.serialize_totals(result.totals)
        record.earnings = totals["earnings"]
        record.non_taxable = totals["non_taxable"]
        record.deductions = totals["deductions"]
        record.employer_contributions = totals["employer_contributions"]
        record.net = totals["net"]
        record.employee_count = result.success_count
        record.error_count = result.error_count
        record.fingerprint = result.fingerprint()
        record.executed_at = datetime.now(timezone.utc)
        record.status = PeriodStatus.EXECUTED.value
        await self.session.flush()
        return record

    @staticmethod
    def _line_record(
        period_id: UUID, employee_id: int, line_no: int, line: ConceptLineItem
    ) -> LiquidationLineRecord:
        serialized = LineItemBuilder.serialize_line(line)
        return LiquidationLineRecord(
            period_id=period_id,
            employee_id=employee_id,
            line_no=line_no,
            concept_code=line.concept_code,
            category=int(line.category),
            quantity=serialized["quantity"],
            unit_value=serialized["unit_value"],
            amount=serialized["amount"],
        )

    async def get_period(self, period_id: UUID) -> LiquidationPeriodRecord | None:
        """Load a period with its employees and lines."""
        result = await self.session.execute(
            select(LiquidationPeriodRecord)
            .where(LiquidationPeriodRecord.period_id == period_id)
            .options(
                selectinload(LiquidationPeriodRecord.employees).selectinload(
                    LiquidationEmployeeRecord.lines
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def void(self, period_id: UUID) -> LiquidationPeriodRecord:
        record = await self.session.get(LiquidationPeriodRecord, period_id)
        if record is None:
            raise ValueError(f"Period {period_id} not found")
        PeriodStateMachine.validate_transition(record.status, PeriodStatus.VOIDED)
        record.status = PeriodStatus.VOIDED.value
        await self.session.flush()
        logger.info("Voided period %s", record.label)
        return record

    async def compare(
        self,
        period_id: UUID,
        references: Mapping[int, ReferencePayslip] | Iterable[ReferencePayslip],
        epsilon: Decimal = Decimal("0.01"),
    ) -> ComparisonReport:
        """Compare a stored execution with reference payslips. Read-only."""
        record = await self.get_period(period_id)
        if record is None:
            raise ValueError(f"Period {period_id} not found")
        if record.status != PeriodStatus.EXECUTED:
            raise PeriodClosedError(record.label, record.status)
        return Comparator(epsilon).compare(self._stored_result(record), references)

    @staticmethod
    def _stored_result(record: LiquidationPeriodRecord) -> LiquidationResult:
        period = LiquidationPeriod.for_type(record.year, record.month, record.period_type)
        result = LiquidationResult(period=period, rules_fingerprint=record.fingerprint or "")
        for employee in record.employees:
            if not employee.succeeded:
                continue
            totals = EmployeeTotals(
                earnings=employee.earnings,
                non_taxable=employee.non_taxable,
                deductions=employee.deductions,
                employer_contributions=employee.employer_contributions,
            )
            result.results.append(
                EmployeeLiquidation(
                    employee_id=employee.employee_id,
                    legajo=employee.legajo or "",
                    calculation_id=employee.calculation_id,
                    lines=[
                        ConceptLineItem(
                            concept_code=line.concept_code,
                            category=ConceptCategory(line.category),
                            amount=line.amount,
                            quantity=line.quantity,
                            unit_value=line.unit_value,
                        )
                        for line in employee.lines
                    ],
                    totals=totals,
                    buckets=HourBuckets(),
                    inputs_fingerprint="",
                )
            )
            result.totals = result.totals + totals
        return result
