"""Rate resolution for employee profiles."""

from __future__ import annotations

from decimal import Decimal

from attendance_payroll.calculators.types import EmployeeClass, EmployeeProfile
from attendance_payroll.errors import RateNotFoundError


class RateResolver:
    """Resolves the hourly wage or monthly salary of an employee.

    Jornal employees carry an hourly wage in `base_rate`; mensual
    employees carry their monthly salary there. Asking a profile for the
    rate its class does not have is a configuration error.
    """

    @staticmethod
    def _require(profile: EmployeeProfile, expected: EmployeeClass, label: str) -> Decimal:
        if profile.employee_class is not expected:
            raise RateNotFoundError(
                profile.employee_id,
                f"{label} requested for a {profile.employee_class.value} employee",
            )
        if profile.base_rate is None or profile.base_rate <= 0:
            raise RateNotFoundError(
                profile.employee_id,
                f"missing {label} for legajo {profile.legajo}",
            )
        return profile.base_rate

    @classmethod
    def hourly_rate(cls, profile: EmployeeProfile) -> Decimal:
        return cls._require(profile, EmployeeClass.JORNAL, "hourly rate")

    @classmethod
    def monthly_salary(cls, profile: EmployeeProfile) -> Decimal:
        return cls._require(profile, EmployeeClass.MENSUAL, "monthly salary")
