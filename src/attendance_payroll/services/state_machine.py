"""Liquidation period state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class PeriodStatus(str, Enum):
    """Liquidation period status values."""

    DRAFT = "draft"
    EXECUTED = "executed"
    VOIDED = "voided"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PeriodStateMachine:
    """State machine for liquidation period status transitions.

    Simulations never touch the period, so only executions and voids
    move it.

    Allowed transitions:
    - draft → executed
    - executed → executed (re-run replaces lines)
    - executed → voided
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.EXECUTED, PeriodStatus.VOIDED],
        PeriodStatus.EXECUTED: [PeriodStatus.EXECUTED, PeriodStatus.VOIDED],
        PeriodStatus.VOIDED: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_execute(cls, status: str) -> bool:
        return cls.can_transition(status, PeriodStatus.EXECUTED)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
