"""Attendance reconciliation: punches to Jornadas."""

from attendance_payroll.attendance.reconciler import SessionReconciler
from attendance_payroll.attendance.shifts import ShiftCatalog
from attendance_payroll.attendance.types import (
    Absence,
    AbsenceKind,
    BargainingStatus,
    ClockEvent,
    Direction,
    InconsistencyKind,
    Jornada,
    Origin,
    ReconcileContext,
    ShiftName,
)

__all__ = [
    "Absence",
    "AbsenceKind",
    "BargainingStatus",
    "ClockEvent",
    "Direction",
    "InconsistencyKind",
    "Jornada",
    "Origin",
    "ReconcileContext",
    "SessionReconciler",
    "ShiftCatalog",
    "ShiftName",
]
