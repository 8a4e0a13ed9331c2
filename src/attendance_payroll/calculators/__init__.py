"""Liquidation engine."""

from attendance_payroll.calculators.comparator import Comparator, ComparisonReport, ReferencePayslip
from attendance_payroll.calculators.concepts import ConceptCatalog
from attendance_payroll.calculators.engine import LiquidationEngine, LiquidationResult
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod, PeriodType
from attendance_payroll.calculators.rate_resolver import RateResolver

__all__ = [
    "Comparator",
    "ComparisonReport",
    "ConceptCatalog",
    "LineItemBuilder",
    "LiquidationEngine",
    "LiquidationPeriod",
    "LiquidationResult",
    "PeriodType",
    "RateResolver",
    "ReferencePayslip",
]
