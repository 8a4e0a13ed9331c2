"""Employee master record."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from attendance_payroll.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee with the class and agreement attributes payroll depends on.

    `base_rate` is the hourly wage for jornal employees and the monthly
    salary for mensual employees.
    """

    __tablename__ = "employee"

    employee_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    legajo: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    employee_class: Mapped[str] = mapped_column(String, nullable=False)
    bargaining_status: Mapped[str] = mapped_column(
        String, nullable=False, default="covered"
    )
    base_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sector: Mapped[str | None] = mapped_column(String, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "employee_class IN ('jornal', 'mensual')",
            name="employee_class_valid",
        ),
        CheckConstraint(
            "bargaining_status IN ('covered', 'excluded')",
            name="employee_bargaining_status_valid",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.last_name}, {self.first_name}"
