"""Read-only comparison of a liquidation against a reference payroll."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from attendance_payroll.calculators.engine import EmployeeLiquidation, LiquidationResult
from attendance_payroll.calculators.line_builder import LineItemBuilder

ZERO = Decimal("0")


@dataclass(frozen=True)
class ReferencePayslip:
    """Authoritative figures for one employee from another payroll system."""

    employee_id: int
    net: Decimal
    lines: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass
class ConceptDelta:
    concept_code: str
    computed: Decimal
    reference: Decimal

    @property
    def difference(self) -> Decimal:
        return self.computed - self.reference

    @property
    def percent(self) -> Decimal | None:
        if self.reference == 0:
            return None
        return (self.difference / self.reference * 100).quantize(Decimal("0.01"))


@dataclass
class EmployeeComparison:
    employee_id: int
    computed_net: Decimal | None
    reference_net: Decimal | None
    matched: bool
    concept_deltas: list[ConceptDelta] = field(default_factory=list)

    @property
    def net_difference(self) -> Decimal | None:
        if self.computed_net is None or self.reference_net is None:
            return None
        return self.computed_net - self.reference_net


@dataclass
class ComparisonReport:
    employees: list[EmployeeComparison] = field(default_factory=list)
    total_computed: Decimal = ZERO
    total_reference: Decimal = ZERO

    @property
    def total_count(self) -> int:
        return len(self.employees)

    @property
    def matched_count(self) -> int:
        return sum(1 for e in self.employees if e.matched)

    @property
    def precision(self) -> Decimal:
        """matched / total, 1 for an empty comparison."""
        if not self.employees:
            return Decimal("1")
        return (Decimal(self.matched_count) / Decimal(self.total_count)).quantize(
            Decimal("0.0001")
        )

    def unmatched(self) -> list[EmployeeComparison]:
        return [e for e in self.employees if not e.matched]


class Comparator:
    """Compares rounded computed figures with reference figures.

    Nets match when they differ by no more than `epsilon`; concept deltas
    are listed for every code whose amounts differ by more than that.
    Employees present on only one side are unmatched.
    """

    def __init__(self, epsilon: Decimal = Decimal("0.01")):
        self.epsilon = epsilon

    def compare(
        self,
        result: LiquidationResult,
        references: Mapping[int, ReferencePayslip] | Iterable[ReferencePayslip],
    ) -> ComparisonReport:
        if not isinstance(references, Mapping):
            references = {r.employee_id: r for r in references}
        computed = {r.employee_id: r for r in result.results}

        report = ComparisonReport()
        for employee_id in sorted(set(computed) | set(references)):
            mine = computed.get(employee_id)
            theirs = references.get(employee_id)
            comparison = self._compare_employee(employee_id, mine, theirs)
            report.employees.append(comparison)
            if comparison.computed_net is not None:
                report.total_computed += comparison.computed_net
            if comparison.reference_net is not None:
                report.total_reference += comparison.reference_net
        return report

    def _compare_employee(
        self,
        employee_id: int,
        mine: EmployeeLiquidation | None,
        theirs: ReferencePayslip | None,
    ) -> EmployeeComparison:
        computed_net = LineItemBuilder.round_to_cents(mine.net) if mine else None
        reference_net = theirs.net if theirs else None
        if mine is None or theirs is None:
            return EmployeeComparison(employee_id, computed_net, reference_net, matched=False)

        matched = abs(computed_net - reference_net) <= self.epsilon
        comparison = EmployeeComparison(employee_id, computed_net, reference_net, matched)

        mine_by_code: dict[str, Decimal] = {}
        for line in mine.lines:
            mine_by_code[line.concept_code] = mine_by_code.get(line.concept_code, ZERO) + line.amount
        for code in sorted(set(mine_by_code) | set(theirs.lines)):
            ours = LineItemBuilder.round_to_cents(mine_by_code.get(code, ZERO))
            ref = theirs.lines.get(code, ZERO)
            if abs(ours - ref) > self.epsilon:
                comparison.concept_deltas.append(ConceptDelta(code, ours, ref))
        return comparison


def references_from_rows(rows: Iterable[Mapping[str, Any]]) -> dict[int, ReferencePayslip]:
    """Build reference payslips from flat rows.

    Each row holds `employee_id`, `concept_code` and `amount`; a row with
    concept code `NET` carries the net amount.
    """
    nets: dict[int, Decimal] = {}
    lines: dict[int, dict[str, Decimal]] = {}
    for row in rows:
        employee_id = int(row["employee_id"])
        code = str(row["concept_code"])
        amount = Decimal(str(row["amount"]))
        if code == "NET":
            nets[employee_id] = amount
        else:
            per_code = lines.setdefault(employee_id, {})
            per_code[code] = per_code.get(code, ZERO) + amount
    return {
        employee_id: ReferencePayslip(employee_id, nets.get(employee_id, ZERO), lines.get(employee_id, {}))
        for employee_id in sorted(set(nets) | set(lines))
    }
