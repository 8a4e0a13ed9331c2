"""Liquidation API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, status

from attendance_payroll.api.dependencies import AppSettings, DbSession
from attendance_payroll.api.schemas import (
    ComparisonRequest,
    ComparisonResponse,
    ConceptDeltaResponse,
    EmployeeComparisonResponse,
    EmployeeErrorResponse,
    EmployeeLiquidationResponse,
    ErrorResponse,
    LiquidationDetailResponse,
    LiquidationLineResponse,
    LiquidationPeriodResponse,
    LiquidationRequest,
    SimulationResponse,
)
from attendance_payroll.calculators.comparator import references_from_rows
from attendance_payroll.calculators.engine import EmployeeLiquidation, LiquidationResult
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.services.liquidation_service import LiquidationService

router = APIRouter(prefix="/liquidations", tags=["liquidations"])


def _employee_response(employee: EmployeeLiquidation) -> EmployeeLiquidationResponse:
    totals = LineItemBuilder.serialize_totals(employee.totals)
    return EmployeeLiquidationResponse(
        employee_id=employee.employee_id,
        legajo=employee.legajo,
        calculation_id=employee.calculation_id,
        lines=[
            LiquidationLineResponse.model_validate(LineItemBuilder.serialize_line(line))
            for line in employee.lines
        ],
        **totals,
    )


def _simulation_response(result: LiquidationResult) -> SimulationResponse:
    totals = LineItemBuilder.serialize_totals(result.totals)
    return SimulationResponse(
        period=result.period.label,
        date_from=result.period.date_from,
        date_to=result.period.date_to,
        employees=[_employee_response(e) for e in result.results],
        errors=[
            EmployeeErrorResponse(
                employee_id=e.employee_id,
                legajo=e.legajo,
                reason=e.reason,
                concept_code=e.concept_code,
            )
            for e in result.errors
        ],
        total_earnings=totals["earnings"],
        total_non_taxable=totals["non_taxable"],
        total_deductions=totals["deductions"],
        total_employer_contributions=totals["employer_contributions"],
        total_net=totals["net"],
        fingerprint=result.fingerprint(),
        cancelled=result.cancelled,
    )


# ============================================================================
# Runs
# ============================================================================


@router.post(
    "/simulate",
    response_model=SimulationResponse,
    responses={503: {"model": ErrorResponse}},
)
async def simulate_liquidation(
    db: DbSession,
    settings: AppSettings,
    payload: LiquidationRequest,
) -> SimulationResponse:
    """Compute a period without storing anything."""
    period = LiquidationPeriod.for_type(payload.year, payload.month, payload.period_type)
    service = LiquidationService(db, settings)
    result = await service.simulate(period, employee_ids=payload.employee_ids)
    return _simulation_response(result)


@router.post(
    "/execute",
    response_model=LiquidationPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def execute_liquidation(
    db: DbSession,
    settings: AppSettings,
    payload: LiquidationRequest,
) -> LiquidationPeriodResponse:
    """Compute a period and store it, replacing any previous execution."""
    if payload.employee_ids is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Executions always cover the whole roster",
        )
    period = LiquidationPeriod.for_type(payload.year, payload.month, payload.period_type)
    service = LiquidationService(db, settings)
    record, _ = await service.execute(period)
    await db.commit()
    return LiquidationPeriodResponse.model_validate(record)


# ============================================================================
# Stored periods
# ============================================================================


@router.get(
    "/{period_id}",
    response_model=LiquidationDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_liquidation(
    db: DbSession,
    settings: AppSettings,
    period_id: Annotated[UUID, Path()],
) -> LiquidationDetailResponse:
    """Get a stored period with its employees and lines."""
    record = await LiquidationService(db, settings).get_period(period_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Liquidation period not found",
        )
    return LiquidationDetailResponse.model_validate(record)


@router.post(
    "/{period_id}/void",
    response_model=LiquidationPeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def void_liquidation(
    db: DbSession,
    settings: AppSettings,
    period_id: Annotated[UUID, Path()],
) -> LiquidationPeriodResponse:
    """Void a period; it can no longer be executed."""
    try:
        record = await LiquidationService(db, settings).void(period_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    await db.commit()
    return LiquidationPeriodResponse.model_validate(record)


@router.post(
    "/{period_id}/compare",
    response_model=ComparisonResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def compare_liquidation(
    db: DbSession,
    settings: AppSettings,
    period_id: Annotated[UUID, Path()],
    payload: ComparisonRequest,
) -> ComparisonResponse:
    """Compare a stored execution with reference figures. Read-only."""
    references = references_from_rows(row.model_dump() for row in payload.rows)
    try:
        report = await LiquidationService(db, settings).compare(
            period_id, references, epsilon=payload.epsilon
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return ComparisonResponse(
        period_id=period_id,
        total_count=report.total_count,
        matched_count=report.matched_count,
        precision=report.precision,
        total_computed=report.total_computed,
        total_reference=report.total_reference,
        employees=[
            EmployeeComparisonResponse(
                employee_id=e.employee_id,
                computed_net=e.computed_net,
                reference_net=e.reference_net,
                net_difference=e.net_difference,
                matched=e.matched,
                concept_deltas=[
                    ConceptDeltaResponse(
                        concept_code=d.concept_code,
                        computed=d.computed,
                        reference=d.reference,
                        difference=d.difference,
                        percent=d.percent,
                    )
                    for d in e.concept_deltas
                ],
            )
            for e in report.employees
        ],
    )
