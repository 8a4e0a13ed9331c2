"""Type definitions for the liquidation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any

from attendance_payroll.attendance.types import AbsenceKind, BargainingStatus
from attendance_payroll.errors import InvalidHoursError

ZERO = Decimal("0")


class ConceptCategory(IntEnum):
    """Concept categories as numbered by the external payroll system."""

    EARNING = 0
    NON_TAXABLE = 1
    DEDUCTION = 2
    EMPLOYER_CONTRIBUTION = 4
    INFORMATIONAL = 6


class EmployeeClass(str, Enum):
    """Hourly-paid (jornal) or salaried (mensual)."""

    JORNAL = "jornal"
    MENSUAL = "mensual"


@dataclass(frozen=True)
class ConceptDefinition:
    """A catalog entry.

    `default_multiplier` overrides the strategy's factor: a multiplier for
    rate concepts, percentage points for percentage concepts and the
    amount itself for fixed concepts.
    """

    code: str
    description: str
    category: ConceptCategory
    active: bool = True
    formula_description: str | None = None
    default_multiplier: Decimal | None = None
    employee_class: EmployeeClass | None = None

    def applies_to(self, employee_class: EmployeeClass) -> bool:
        return self.employee_class is None or self.employee_class is employee_class


@dataclass
class ConceptLineItem:
    """One computed concept for one employee.

    Amounts are kept at internal precision; rounding to cents happens
    only when a line is serialized.
    """

    concept_code: str
    category: ConceptCategory
    amount: Decimal
    quantity: Decimal | None = None
    unit_value: Decimal | None = None
    description: str | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "concept_code": self.concept_code,
            "category": int(self.category),
            "amount": str(self.amount),
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "unit_value": str(self.unit_value) if self.unit_value is not None else None,
        }


@dataclass
class EmployeeTotals:
    """Per-category sums. Employer contributions never reduce net."""

    earnings: Decimal = ZERO
    non_taxable: Decimal = ZERO
    deductions: Decimal = ZERO
    employer_contributions: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.earnings + self.non_taxable - self.deductions

    def __add__(self, other: EmployeeTotals) -> EmployeeTotals:
        return EmployeeTotals(
            earnings=self.earnings + other.earnings,
            non_taxable=self.non_taxable + other.non_taxable,
            deductions=self.deductions + other.deductions,
            employer_contributions=self.employer_contributions + other.employer_contributions,
        )

    def to_canonical_dict(self) -> dict[str, str]:
        return {
            "earnings": str(self.earnings),
            "non_taxable": str(self.non_taxable),
            "deductions": str(self.deductions),
            "employer_contributions": str(self.employer_contributions),
            "net": str(self.net),
        }


@dataclass
class HourBuckets:
    """Hours and absence days aggregated over a period."""

    day_hours: Decimal = ZERO
    night_hours: Decimal = ZERO
    overtime_50: Decimal = ZERO
    overtime_100: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    holiday_night_hours: Decimal = ZERO
    sick_hours: Decimal = ZERO
    accident_hours: Decimal = ZERO
    leave_hours: Decimal = ZERO
    absence_days: dict[AbsenceKind, int] = field(default_factory=dict)

    HOUR_FIELDS = (
        "day_hours",
        "night_hours",
        "overtime_50",
        "overtime_100",
        "holiday_hours",
        "holiday_night_hours",
        "sick_hours",
        "accident_hours",
        "leave_hours",
    )

    @property
    def regular_hours(self) -> Decimal:
        return self.day_hours + self.night_hours

    def days(self, kind: AbsenceKind) -> int:
        return self.absence_days.get(kind, 0)

    def validate(self, employee_id: int) -> None:
        for name in self.HOUR_FIELDS:
            if getattr(self, name) < 0:
                raise InvalidHoursError(employee_id, f"{name} is negative")

    def to_canonical_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: str(getattr(self, name)) for name in self.HOUR_FIELDS}
        data["absence_days"] = {k.value: v for k, v in sorted(self.absence_days.items())}
        return data


@dataclass(frozen=True)
class EmployeeProfile:
    """The slice of the employee master record payroll needs."""

    employee_id: int
    legajo: str
    name: str
    employee_class: EmployeeClass
    bargaining_status: BargainingStatus = BargainingStatus.COVERED
    base_rate: Decimal | None = None
    hire_date: date | None = None
    sector: str | None = None

    @property
    def is_covered(self) -> bool:
        return self.bargaining_status is BargainingStatus.COVERED


@dataclass(frozen=True)
class Novelty:
    """Operator-entered quantity or amount that overrides derived values."""

    concept_code: str
    quantity: Decimal | None = None
    amount: Decimal | None = None


@dataclass
class EmployeeLiquidationContext:
    """Context for liquidating a single employee.

    Lines accumulate in evaluation order, so percentage concepts can read
    the running earnings of everything evaluated before them.
    """

    profile: EmployeeProfile
    buckets: HourBuckets
    seniority_years: int
    is_fortnight: bool
    novelties: dict[str, Novelty] = field(default_factory=dict)
    lines: list[ConceptLineItem] = field(default_factory=list)

    @property
    def employee_id(self) -> int:
        return self.profile.employee_id

    def add(self, line: ConceptLineItem) -> None:
        self.lines.append(line)

    def amount_of(self, *codes: str) -> Decimal:
        wanted = set(codes)
        return sum((line.amount for line in self.lines if line.concept_code in wanted), ZERO)

    def running_total(self, *categories: ConceptCategory) -> Decimal:
        wanted = set(categories)
        return sum((line.amount for line in self.lines if line.category in wanted), ZERO)
