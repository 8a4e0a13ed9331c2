"""Liquidation period types and date derivation."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum

from attendance_payroll.calculators.types import EmployeeClass


class PeriodType(str, Enum):
    """Liquidation types known to the external payroll system."""

    FIRST_FORTNIGHT = "PQN"
    SECOND_FORTNIGHT = "SQN"
    MONTHLY = "MN"
    VACATION = "VAC"
    BONUS_FIRST_HALF = "SA1"
    BONUS_SECOND_HALF = "SA2"
    FINAL_SETTLEMENT = "FID"


_CLASS_FILTER = {
    PeriodType.FIRST_FORTNIGHT: EmployeeClass.JORNAL,
    PeriodType.SECOND_FORTNIGHT: EmployeeClass.JORNAL,
    PeriodType.MONTHLY: EmployeeClass.MENSUAL,
}


@dataclass(frozen=True)
class LiquidationPeriod:
    """A period to liquidate. Immutable once created."""

    year: int
    month: int
    period_type: PeriodType
    date_from: date
    date_to: date
    fortnight: int | None = None
    employee_class_filter: EmployeeClass | None = None

    @classmethod
    def for_type(cls, year: int, month: int, period_type: PeriodType | str) -> LiquidationPeriod:
        """Derive dates, fortnight and roster filter from the period type."""
        period_type = PeriodType(period_type)
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month {month}")
        last_day = calendar.monthrange(year, month)[1]
        fortnight = None
        if period_type is PeriodType.FIRST_FORTNIGHT:
            date_from, date_to, fortnight = date(year, month, 1), date(year, month, 15), 1
        elif period_type is PeriodType.SECOND_FORTNIGHT:
            date_from, date_to, fortnight = date(year, month, 16), date(year, month, last_day), 2
        else:
            date_from, date_to = date(year, month, 1), date(year, month, last_day)
        return cls(
            year=year,
            month=month,
            period_type=period_type,
            date_from=date_from,
            date_to=date_to,
            fortnight=fortnight,
            employee_class_filter=_CLASS_FILTER.get(period_type),
        )

    @property
    def is_fortnight(self) -> bool:
        return self.fortnight is not None

    @property
    def label(self) -> str:
        return f"{self.period_type.value} {self.month:02d}/{self.year}"

    def contains(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to

    def accepts(self, employee_class: EmployeeClass) -> bool:
        return self.employee_class_filter is None or self.employee_class_filter is employee_class

    def canonical_key(self) -> dict[str, str | int]:
        return {
            "year": self.year,
            "month": self.month,
            "type": self.period_type.value,
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
        }


def seniority_years(hire_date: date | None, reference: date) -> int:
    """Whole years of service at `reference`, never negative."""
    if hire_date is None:
        return 0
    years = reference.year - hire_date.year
    if (reference.month, reference.day) < (hire_date.month, hire_date.day):
        years -= 1
    return max(0, years)
