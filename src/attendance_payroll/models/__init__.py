"""SQLAlchemy ORM models."""

from attendance_payroll.models.attendance import (
    AbsenceRecord,
    ClockEventRecord,
    Holiday,
    JornadaRecord,
    ShiftAssignment,
)
from attendance_payroll.models.base import Base, TimestampMixin
from attendance_payroll.models.employee import Employee
from attendance_payroll.models.liquidation import (
    ConceptDefinitionRecord,
    LiquidationEmployeeRecord,
    LiquidationLineRecord,
    LiquidationPeriodRecord,
    PayrollNovelty,
)

__all__ = [
    "AbsenceRecord",
    "Base",
    "ClockEventRecord",
    "ConceptDefinitionRecord",
    "Employee",
    "Holiday",
    "JornadaRecord",
    "LiquidationEmployeeRecord",
    "LiquidationLineRecord",
    "LiquidationPeriodRecord",
    "PayrollNovelty",
    "ShiftAssignment",
    "TimestampMixin",
]
