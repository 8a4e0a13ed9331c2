"""Jornada API endpoints."""

from datetime import date, datetime
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, HTTPException, Path, Query, status

from attendance_payroll.api.dependencies import AppSettings, DbSession
from attendance_payroll.api.schemas import (
    ErrorResponse,
    JornadaListResponse,
    JornadaResponse,
    ManualJornadaRequest,
    RegenerateRequest,
    RegenerationResponse,
)
from attendance_payroll.services.jornada_service import JornadaService

router = APIRouter(prefix="/jornadas", tags=["jornadas"])


@router.get(
    "",
    response_model=JornadaListResponse,
    responses={422: {"model": ErrorResponse}},
)
async def list_jornadas(
    db: DbSession,
    settings: AppSettings,
    date_from: date,
    date_to: date,
    employee_id: Annotated[list[int] | None, Query()] = None,
    only_inconsistent: bool = False,
) -> JornadaListResponse:
    """List stored jornadas, optionally only the unresolved inconsistencies."""
    service = JornadaService(db, settings)
    jornadas = await service.list_jornadas(
        date_from, date_to, employee_id, only_inconsistent=only_inconsistent
    )
    return JornadaListResponse(
        items=[JornadaResponse.model_validate(j) for j in jornadas],
        total=len(jornadas),
    )


@router.post(
    "/regenerate",
    response_model=RegenerationResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def regenerate_jornadas(
    db: DbSession,
    settings: AppSettings,
    payload: RegenerateRequest,
) -> RegenerationResponse:
    """Rebuild jornadas from clock punches for a date range."""
    if payload.date_to < payload.date_from:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="date_to must not precede date_from",
        )
    as_of = payload.as_of or datetime.now(ZoneInfo(settings.local_timezone)).date()
    service = JornadaService(db, settings)
    summary = await service.regenerate(
        payload.date_from,
        payload.date_to,
        as_of,
        employee_ids=payload.employee_ids,
        overwrite_manual=payload.overwrite_manual,
    )
    await db.commit()
    return RegenerationResponse.model_validate(summary)


@router.put(
    "/{employee_id}/{work_date}",
    response_model=JornadaResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def record_manual_jornada(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[int, Path()],
    work_date: Annotated[date, Path()],
    payload: ManualJornadaRequest,
) -> JornadaResponse:
    """Record an operator edit; the jornada becomes manual."""
    fields = payload.model_dump(exclude_unset=True)
    resolved_by = fields.pop("resolved_by", None)
    service = JornadaService(db, settings)
    try:
        jornada = await service.record_manual_jornada(
            employee_id, work_date, fields, resolved_by=resolved_by
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    await db.commit()
    return JornadaResponse.model_validate(jornada)
