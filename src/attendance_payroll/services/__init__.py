"""Services for attendance and liquidation operations."""

from attendance_payroll.services.jornada_service import JornadaService, RegenerationSummary
from attendance_payroll.services.liquidation_service import LiquidationService
from attendance_payroll.services.state_machine import (
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)

__all__ = [
    "InvalidTransitionError",
    "JornadaService",
    "LiquidationService",
    "PeriodStateMachine",
    "PeriodStatus",
    "RegenerationSummary",
]
