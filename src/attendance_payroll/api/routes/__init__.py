"""API routes."""

from attendance_payroll.api.routes.health import router as health_router
from attendance_payroll.api.routes.jornadas import router as jornadas_router
from attendance_payroll.api.routes.liquidations import router as liquidations_router

__all__ = ["health_router", "jornadas_router", "liquidations_router"]
