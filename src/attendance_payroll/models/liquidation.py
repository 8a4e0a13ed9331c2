"""Concept catalog, manual novelties and liquidation result models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_payroll.models.base import Base, TimestampMixin

MONEY = Numeric(14, 2)


class ConceptDefinitionRecord(Base, TimestampMixin):
    """Payroll concept as configured by payroll administrators."""

    __tablename__ = "concept_definition"

    code: Mapped[str] = mapped_column(String(4), primary_key=True)
    description: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    formula_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_multiplier: Mapped[Decimal | None] = mapped_column(nullable=True)
    employee_class: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("category IN (0, 1, 2, 4, 6)", name="concept_category_valid"),
    )


class PayrollNovelty(Base, TimestampMixin):
    """Operator-entered quantity or amount for one concept in one period."""

    __tablename__ = "payroll_novelty"

    novelty_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String, nullable=False)
    concept_code: Mapped[str] = mapped_column(String(4), nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "year", "month", "period_type", "concept_code",
            name="payroll_novelty_unique",
        ),
    )


class LiquidationPeriodRecord(Base, TimestampMixin):
    """One liquidation run for a (year, month, type)."""

    __tablename__ = "liquidation_period"

    period_id: Mapped[UUID] = mapped_column(primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String, nullable=False)
    fortnight: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    employee_class: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    earnings: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    non_taxable: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_contributions: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    employees: Mapped[list[LiquidationEmployeeRecord]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        order_by="LiquidationEmployeeRecord.employee_id",
    )

    __table_args__ = (
        UniqueConstraint("year", "month", "period_type", name="liquidation_period_unique"),
        CheckConstraint(
            "status IN ('draft', 'executed', 'voided')",
            name="liquidation_period_status_valid",
        ),
    )

    @property
    def label(self) -> str:
        return f"{self.period_type} {self.month:02d}/{self.year}"


class LiquidationEmployeeRecord(Base):
    """Per-employee totals, or the reason the employee was skipped."""

    __tablename__ = "liquidation_employee"

    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("liquidation_period.period_id", ondelete="CASCADE"),
        primary_key=True,
    )
    employee_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    legajo: Mapped[str | None] = mapped_column(String, nullable=True)
    calculation_id: Mapped[UUID | None] = mapped_column(nullable=True)
    earnings: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    non_taxable: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_contributions: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    period: Mapped[LiquidationPeriodRecord] = relationship(back_populates="employees")
    lines: Mapped[list[LiquidationLineRecord]] = relationship(
        cascade="all, delete-orphan",
        order_by="LiquidationLineRecord.line_no",
    )

    @property
    def succeeded(self) -> bool:
        return self.error_message is None


class LiquidationLineRecord(Base):
    """A concept line item rounded to cents for persistence."""

    __tablename__ = "liquidation_line"

    period_id: Mapped[UUID] = mapped_column(primary_key=True)
    employee_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    line_no: Mapped[int] = mapped_column(Integer, primary_key=True)
    concept_code: Mapped[str] = mapped_column(String(4), nullable=False)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["period_id", "employee_id"],
            ["liquidation_employee.period_id", "liquidation_employee.employee_id"],
            ondelete="CASCADE",
        ),
    )
