"""Attendance reconciliation and payroll liquidation engine."""

__version__ = "0.1.0"
