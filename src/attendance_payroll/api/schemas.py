"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from attendance_payroll.attendance.types import (
    AbsenceKind,
    InconsistencyKind,
    Origin,
    ShiftName,
)
from attendance_payroll.calculators.periods import PeriodType


# ============================================================================
# Jornada schemas
# ============================================================================


class JornadaResponse(BaseModel):
    """Schema for a reconciled jornada."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    date: date
    assigned_shift: ShiftName | None = None
    shift: ShiftName | None = None
    actual_entry: datetime | None = None
    actual_exit: datetime | None = None
    worked_hours: Decimal | None = None
    day_hours: Decimal
    night_hours: Decimal
    overtime_50: Decimal
    overtime_100: Decimal
    holiday_hours: Decimal
    origin: Origin
    employee_status: AbsenceKind | None = None
    has_inconsistency: bool
    inconsistency_kind: InconsistencyKind
    inconsistency_resolved: bool
    resolved_by: str | None = None
    suspected_overtime: bool
    schedule_anomaly: bool
    suggested_overtime_50: Decimal
    suggested_overtime_100: Decimal
    notes: str | None = None


class JornadaListResponse(BaseModel):
    """Schema for listing jornadas."""

    items: list[JornadaResponse]
    total: int


class RegenerateRequest(BaseModel):
    """Schema for a regeneration request.

    `as_of` defaults to today in the configured local timezone.
    """

    date_from: date
    date_to: date
    as_of: date | None = None
    employee_ids: list[int] | None = None
    overwrite_manual: bool = False


class RegenerationResponse(BaseModel):
    """Schema for a regeneration summary."""

    model_config = ConfigDict(from_attributes=True)

    date_from: date
    date_to: date
    employees: int
    written: int
    preserved: int
    removed: int
    inconsistencies: int
    suspected_overtime: int
    rejected: list[str]


class ManualJornadaRequest(BaseModel):
    """Operator edit of one jornada. Only the fields sent are changed."""

    assigned_shift: ShiftName | None = None
    shift: ShiftName | None = None
    actual_entry: datetime | None = None
    actual_exit: datetime | None = None
    worked_hours: Decimal | None = Field(default=None, ge=0)
    day_hours: Decimal = Field(default=Decimal("0"), ge=0)
    night_hours: Decimal = Field(default=Decimal("0"), ge=0)
    overtime_50: Decimal = Field(default=Decimal("0"), ge=0)
    overtime_100: Decimal = Field(default=Decimal("0"), ge=0)
    holiday_hours: Decimal = Field(default=Decimal("0"), ge=0)
    employee_status: AbsenceKind | None = None
    notes: str | None = None
    resolved_by: str | None = None


# ============================================================================
# Liquidation schemas
# ============================================================================


class LiquidationRequest(BaseModel):
    """Schema identifying a liquidation period."""

    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    period_type: PeriodType
    employee_ids: list[int] | None = None


class LiquidationLineResponse(BaseModel):
    """Schema for a concept line, rounded to cents."""

    model_config = ConfigDict(from_attributes=True)

    concept_code: str
    category: int
    description: str | None = None
    quantity: Decimal | None = None
    unit_value: Decimal | None = None
    amount: Decimal


class EmployeeLiquidationResponse(BaseModel):
    """Schema for one employee's liquidation."""

    employee_id: int
    legajo: str | None = None
    calculation_id: UUID | None = None
    earnings: Decimal
    non_taxable: Decimal
    deductions: Decimal
    employer_contributions: Decimal
    net: Decimal
    lines: list[LiquidationLineResponse]


class EmployeeErrorResponse(BaseModel):
    """Schema for an employee skipped by a run."""

    employee_id: int
    legajo: str | None = None
    reason: str
    concept_code: str | None = None


class SimulationResponse(BaseModel):
    """Schema for a dry run. Nothing is stored."""

    period: str
    date_from: date
    date_to: date
    employees: list[EmployeeLiquidationResponse]
    errors: list[EmployeeErrorResponse]
    total_earnings: Decimal
    total_non_taxable: Decimal
    total_deductions: Decimal
    total_employer_contributions: Decimal
    total_net: Decimal
    fingerprint: str
    cancelled: bool = False


class LiquidationPeriodResponse(BaseModel):
    """Schema for a stored liquidation period."""

    model_config = ConfigDict(from_attributes=True)

    period_id: UUID
    year: int
    month: int
    period_type: str
    fortnight: int | None = None
    date_from: date
    date_to: date
    status: str
    earnings: Decimal
    non_taxable: Decimal
    deductions: Decimal
    employer_contributions: Decimal
    net: Decimal
    employee_count: int
    error_count: int
    fingerprint: str | None = None
    executed_at: datetime | None = None


class StoredEmployeeResponse(BaseModel):
    """Schema for a stored employee result."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    legajo: str | None = None
    calculation_id: UUID | None = None
    earnings: Decimal
    non_taxable: Decimal
    deductions: Decimal
    employer_contributions: Decimal
    net: Decimal
    error_message: str | None = None
    lines: list[LiquidationLineResponse] = []


class LiquidationDetailResponse(LiquidationPeriodResponse):
    """Schema for a stored period with its employees."""

    employees: list[StoredEmployeeResponse] = []


# ============================================================================
# Comparison schemas
# ============================================================================


class ReferenceRow(BaseModel):
    """One reference figure; concept code NET carries the net amount."""

    employee_id: int
    concept_code: str
    amount: Decimal


class ComparisonRequest(BaseModel):
    """Schema for a comparison request."""

    rows: list[ReferenceRow]
    epsilon: Decimal = Field(default=Decimal("0.01"), ge=0)


class ConceptDeltaResponse(BaseModel):
    """Schema for a concept whose amounts differ."""

    concept_code: str
    computed: Decimal
    reference: Decimal
    difference: Decimal
    percent: Decimal | None = None


class EmployeeComparisonResponse(BaseModel):
    """Schema for one employee's comparison."""

    employee_id: int
    computed_net: Decimal | None = None
    reference_net: Decimal | None = None
    net_difference: Decimal | None = None
    matched: bool
    concept_deltas: list[ConceptDeltaResponse]


class ComparisonResponse(BaseModel):
    """Schema for a comparison report."""

    period_id: UUID
    total_count: int
    matched_count: int
    precision: Decimal
    total_computed: Decimal
    total_reference: Decimal
    employees: list[EmployeeComparisonResponse]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
