"""Line item builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from attendance_payroll.calculators.types import (
    ConceptCategory,
    ConceptDefinition,
    ConceptLineItem,
    EmployeeTotals,
)


class LineItemBuilder:
    """Builds concept lines and totals.

    Sign conventions:
    - amounts are never negative; negative inputs are rejected before a
      line is built, and the category decides the effect on net
    - EMPLOYER_CONTRIBUTION and INFORMATIONAL never affect net

    Rounding:
    - internal compute at 4 decimals
    - 2 decimals only when a line is serialized or persisted
    """

    PRECISION = Decimal("0.0001")  # 4 decimal places for internal calculations
    OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places for persistence

    @staticmethod
    def quantize(amount: Decimal) -> Decimal:
        """Round to internal precision."""
        return amount.quantize(LineItemBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def fixed_width_quantity(quantity: Decimal | None) -> int:
        """Quantity as an integer with two implied decimals."""
        if quantity is None:
            return 0
        scaled = LineItemBuilder.round_to_cents(quantity) * 100
        return int(scaled)

    @staticmethod
    def compute_line_hash(line: ConceptLineItem) -> str:
        """Compute deterministic hash for a line item."""
        canonical = line.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def create_rate_line(
        concept: ConceptDefinition,
        quantity: Decimal,
        unit_value: Decimal,
    ) -> ConceptLineItem:
        """Create a quantity × unit value line."""
        unit = LineItemBuilder.quantize(unit_value)
        return ConceptLineItem(
            concept_code=concept.code,
            category=concept.category,
            amount=LineItemBuilder.quantize(quantity * unit),
            quantity=quantity,
            unit_value=unit,
            description=concept.description,
        )

    @staticmethod
    def create_amount_line(concept: ConceptDefinition, amount: Decimal) -> ConceptLineItem:
        """Create a line that only carries an amount."""
        return ConceptLineItem(
            concept_code=concept.code,
            category=concept.category,
            amount=LineItemBuilder.quantize(amount),
            description=concept.description,
        )

    @staticmethod
    def sum_by_category(
        lines: Iterable[ConceptLineItem],
    ) -> dict[ConceptCategory, Decimal]:
        """Sum line amounts by category."""
        totals: dict[ConceptCategory, Decimal] = {}
        for line in lines:
            totals[line.category] = totals.get(line.category, Decimal("0")) + line.amount
        return totals

    @staticmethod
    def totals_from_lines(lines: Iterable[ConceptLineItem]) -> EmployeeTotals:
        """Build EmployeeTotals without any rounding."""
        by_category = LineItemBuilder.sum_by_category(lines)
        zero = Decimal("0")
        return EmployeeTotals(
            earnings=by_category.get(ConceptCategory.EARNING, zero),
            non_taxable=by_category.get(ConceptCategory.NON_TAXABLE, zero),
            deductions=by_category.get(ConceptCategory.DEDUCTION, zero),
            employer_contributions=by_category.get(
                ConceptCategory.EMPLOYER_CONTRIBUTION, zero
            ),
        )

    @staticmethod
    def serialize_line(line: ConceptLineItem) -> dict[str, Any]:
        """Line rounded for export: amounts to cents, quantity scaled ×100."""
        return {
            "concept_code": line.concept_code,
            "category": int(line.category),
            "description": line.description,
            "quantity": (
                LineItemBuilder.round_to_cents(line.quantity)
                if line.quantity is not None
                else None
            ),
            "quantity_fixed": LineItemBuilder.fixed_width_quantity(line.quantity),
            "unit_value": (
                LineItemBuilder.round_to_cents(line.unit_value)
                if line.unit_value is not None
                else None
            ),
            "amount": LineItemBuilder.round_to_cents(line.amount),
        }

    @staticmethod
    def serialize_totals(totals: EmployeeTotals) -> dict[str, Decimal]:
        """Totals rounded to cents."""
        rnd = LineItemBuilder.round_to_cents
        return {
            "earnings": rnd(totals.earnings),
            "non_taxable": rnd(totals.non_taxable),
            "deductions": rnd(totals.deductions),
            "employer_contributions": rnd(totals.employer_contributions),
            "net": rnd(totals.net),
        }
