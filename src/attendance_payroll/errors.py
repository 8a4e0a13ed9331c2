"""Exception taxonomy for reconciliation and liquidation."""

from __future__ import annotations

from datetime import date


class AttendancePayrollError(Exception):
    """Base class for all engine errors."""


class JornadaInvariantError(AttendancePayrollError):
    """Raised when a Jornada would be written in an inconsistent state."""

    def __init__(self, employee_id: int, work_date: date, reason: str):
        self.employee_id = employee_id
        self.work_date = work_date
        self.reason = reason
        super().__init__(
            f"Invalid jornada for employee {employee_id} on {work_date}: {reason}"
        )


class EmployeeComputationError(AttendancePayrollError):
    """Base for errors that are fatal to a single employee only."""

    def __init__(self, employee_id: int, reason: str, concept_code: str | None = None):
        self.employee_id = employee_id
        self.concept_code = concept_code
        self.reason = reason
        msg = f"Employee {employee_id}"
        if concept_code:
            msg += f", concept {concept_code}"
        super().__init__(f"{msg}: {reason}")


class RateNotFoundError(EmployeeComputationError):
    """Raised when an employee lacks the rate a concept needs."""


class ConceptConfigurationError(EmployeeComputationError):
    """Raised when a concept references an undefined strategy or parameter."""


class InvalidHoursError(EmployeeComputationError):
    """Raised when hour buckets or novelty values are negative."""


class StoreUnavailableError(AttendancePayrollError):
    """Raised when the record store cannot be reached; fatal for the run."""


class LiquidationCancelledError(AttendancePayrollError):
    """Raised when a persisting run is cancelled between employees."""

    def __init__(self, completed: int, total: int):
        self.completed = completed
        self.total = total
        super().__init__(
            f"Liquidation cancelled after {completed} of {total} employees"
        )


class PeriodClosedError(AttendancePayrollError):
    """Raised when a liquidation period no longer accepts execution."""

    def __init__(self, period_label: str, status: str):
        self.period_label = period_label
        self.status = status
        super().__init__(f"Period {period_label} is {status} and cannot be executed")
