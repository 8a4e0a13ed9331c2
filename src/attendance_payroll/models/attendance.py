"""Attendance models: raw punches, planning, absences, holidays and jornadas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from attendance_payroll.models.base import Base, TimestampMixin


class ClockEventRecord(Base, TimestampMixin):
    """A punch exactly as delivered by the clock middleware.

    The timestamp is kept as text so that malformed values survive
    ingestion and are dropped per event when read.
    """

    __tablename__ = "clock_event"

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    recorded_at: Mapped[str] = mapped_column(String, nullable=False)
    direction: Mapped[str] = mapped_column(String, nullable=False)
    device_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # Civil date reported by the device; used only to narrow queries.
    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (Index("ix_clock_event_employee_date", "employee_id", "event_date"),)


class ShiftAssignment(Base):
    """Planned shift for an employee on a day."""

    __tablename__ = "shift_assignment"

    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        primary_key=True,
    )
    work_date: Mapped[date] = mapped_column(Date, primary_key=True)
    shift: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "shift IN ('morning', 'afternoon', 'night', 'flexible')",
            name="shift_assignment_shift_valid",
        ),
    )


class AbsenceRecord(Base, TimestampMixin):
    """Vacation, sickness, accident, leave or unexcused absence over a range."""

    __tablename__ = "absence"

    absence_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("date_to >= date_from", name="absence_range_valid"),
        CheckConstraint(
            "kind IN ('vacation', 'sick', 'accident', 'leave', 'unexcused')",
            name="absence_kind_valid",
        ),
    )


class Holiday(Base):
    """National or company holiday."""

    __tablename__ = "holiday"

    holiday_date: Mapped[date] = mapped_column(Date, primary_key=True)
    description: Mapped[str] = mapped_column(String, nullable=False)


class JornadaRecord(Base, TimestampMixin):
    """Persisted Jornada keyed by employee and anchor day."""

    __tablename__ = "jornada"

    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        primary_key=True,
    )
    work_date: Mapped[date] = mapped_column(Date, primary_key=True)
    assigned_shift: Mapped[str | None] = mapped_column(String, nullable=True)
    shift: Mapped[str | None] = mapped_column(String, nullable=True)
    actual_entry: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_exit: Mapped[datetime | None] = mapped_column(nullable=True)
    worked_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    day_hours: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    night_hours: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_50: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_100: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    holiday_hours: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    suggested_overtime_50: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    suggested_overtime_100: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    origin: Mapped[str] = mapped_column(String, nullable=False, default="clock")
    employee_status: Mapped[str | None] = mapped_column(String, nullable=True)
    has_inconsistency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inconsistency_kind: Mapped[str] = mapped_column(String, nullable=False, default="none")
    inconsistency_resolved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    resolved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    suspected_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    schedule_anomaly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "employee_status IS NULL OR ("
            "COALESCE(worked_hours, 0) = 0 AND shift IS NULL AND assigned_shift IS NULL "
            "AND actual_entry IS NULL AND actual_exit IS NULL)",
            name="jornada_status_excludes_work",
        ),
        CheckConstraint(
            "origin IN ('clock', 'manual', 'mixed')",
            name="jornada_origin_valid",
        ),
        CheckConstraint(
            "worked_hours IS NULL OR worked_hours >= 0",
            name="jornada_worked_hours_non_negative",
        ),
        Index("ix_jornada_work_date", "work_date"),
    )
