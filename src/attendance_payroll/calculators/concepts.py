"""Concept catalog and the typed formula strategies behind each code.

Formulas are never parsed from `formula_description`; each code maps to
one of four strategies in a table:

- RateTimesQuantity: hour or day quantity × wage × factor
- PercentOfBase: percentage of a base built from earlier lines
- FixedAmount: configured constant (or a mirror of another line)
- PercentOfRunningEarnings: percentage of the running earnings total
"""

from __future__ import annotations

import hashlib
import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import IntEnum

from attendance_payroll.attendance.types import AbsenceKind
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.rate_resolver import RateResolver
from attendance_payroll.calculators.types import (
    ZERO,
    ConceptCategory,
    ConceptDefinition,
    ConceptLineItem,
    EmployeeClass,
    EmployeeLiquidationContext,
    EmployeeProfile,
    Novelty,
)
from attendance_payroll.config import AgreementParameters
from attendance_payroll.errors import ConceptConfigurationError

HUNDRED = Decimal("100")

# Lines that make up the attendance bonus base, and the ones taken back out.
ATTENDANCE_QUALIFYING_CODES = ("0010", "0020", "0050", "0051", "0045", "0040", "0003")
ATTENDANCE_EXCLUDED_CODES = ("0040", "0003")
SALARY_CODE = "0201"


class Phase(IntEnum):
    """Evaluation phases; later phases read lines from earlier ones."""

    HOURS = 1
    ALLOWANCES = 2
    DEDUCTIONS = 3
    CONTRIBUTIONS = 4


def _param(value: Decimal | str, params: AgreementParameters, code: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(getattr(params, value))
    except AttributeError as exc:
        raise ConceptConfigurationError(0, f"unknown parameter {value!r}", code) from exc


class FormulaStrategy(ABC):
    """Computes one concept line for one employee."""

    phase: Phase

    def apply(
        self,
        concept: ConceptDefinition,
        ctx: EmployeeLiquidationContext,
        params: AgreementParameters,
    ) -> ConceptLineItem | None:
        """Evaluate the concept; an amount novelty replaces the formula."""
        novelty = ctx.novelties.get(concept.code)
        if novelty is not None and novelty.amount is not None:
            return LineItemBuilder.create_amount_line(concept, novelty.amount)
        line = self.evaluate(concept, ctx, params, novelty)
        if line is not None and line.amount < 0:
            raise ConceptConfigurationError(
                ctx.employee_id, f"negative amount {line.amount}", concept.code
            )
        return line

    @abstractmethod
    def evaluate(
        self,
        concept: ConceptDefinition,
        ctx: EmployeeLiquidationContext,
        params: AgreementParameters,
        novelty: Novelty | None,
    ) -> ConceptLineItem | None:
        """Return the line, or None when the concept yields nothing."""


@dataclass(frozen=True)
class RateTimesQuantity(FormulaStrategy):
    """quantity × hourly wage × factor (× hours per unit, × seniority uplift)."""

    quantity_source: str
    factor: Decimal | str = Decimal("1")
    hours_per_unit: Decimal | str = Decimal("1")
    seniority_uplift: bool = False
    sector: str | None = None
    phase: Phase = Phase.HOURS

    def quantity(self, ctx: EmployeeLiquidationContext, params: AgreementParameters) -> Decimal:
        buckets = ctx.buckets
        if self.quantity_source == "vacation_days":
            return Decimal(buckets.days(AbsenceKind.VACATION))
        if self.quantity_source == "calorie_hours":
            raw = buckets.regular_hours * params.calorie_ratio
            return raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if self.quantity_source not in buckets.HOUR_FIELDS:
            raise ConceptConfigurationError(
                ctx.employee_id, f"unknown quantity source {self.quantity_source!r}"
            )
        return getattr(buckets, self.quantity_source)

    def evaluate(self, concept, ctx, params, novelty):
        if self.sector is not None:
            wanted = getattr(params, self.sector, self.sector)
            if ctx.profile.sector != wanted:
                return None
        if novelty is not None and novelty.quantity is not None:
            quantity = novelty.quantity
        else:
            quantity = self.quantity(ctx, params)
        if quantity == 0:
            return None

        factor = concept.default_multiplier
        if factor is None:
            factor = _param(self.factor, params, concept.code)
        unit = (
            RateResolver.hourly_rate(ctx.profile)
            * factor
            * _param(self.hours_per_unit, params, concept.code)
        )
        if self.seniority_uplift:
            unit *= 1 + ctx.seniority_years * params.seniority_rate
        return LineItemBuilder.create_rate_line(concept, quantity, unit)


@dataclass(frozen=True)
class PercentOfBase(FormulaStrategy):
    """base × percent, or base × years × percent for seniority."""

    base: str
    rate: Decimal | str
    per_year: bool = False
    requires_attendance: bool = False
    phase: Phase = Phase.ALLOWANCES

    def base_amount(self, ctx: EmployeeLiquidationContext) -> Decimal:
        if self.base == "attendance_base":
            return ctx.amount_of(*ATTENDANCE_QUALIFYING_CODES) - ctx.amount_of(
                *ATTENDANCE_EXCLUDED_CODES
            )
        if self.base == "salary":
            return ctx.amount_of(SALARY_CODE)
        raise ConceptConfigurationError(ctx.employee_id, f"unknown base {self.base!r}")

    @staticmethod
    def attendance_eligible(ctx: EmployeeLiquidationContext, params: AgreementParameters) -> bool:
        if ctx.buckets.days(AbsenceKind.UNEXCUSED) > 0:
            return False
        minimum = params.attendance_bonus_min_hours
        if not ctx.is_fortnight:
            minimum *= 2
        return ctx.buckets.regular_hours >= minimum

    def evaluate(self, concept, ctx, params, novelty):
        if self.requires_attendance and novelty is None:
            if not self.attendance_eligible(ctx, params):
                return None
        if concept.default_multiplier is not None:
            percent = concept.default_multiplier / HUNDRED
        else:
            percent = _param(self.rate, params, concept.code)
        base = self.base_amount(ctx)
        if self.per_year:
            if ctx.seniority_years <= 0:
                return None
            amount = base * ctx.seniority_years * percent
        else:
            amount = base * percent
        if amount <= 0:
            return None
        return LineItemBuilder.create_amount_line(concept, amount)


@dataclass(frozen=True)
class FixedAmount(FormulaStrategy):
    """A configured constant, the monthly salary, or a copy of another line."""

    amount: Decimal | str | None = None
    from_salary: bool = False
    mirror_of: str | None = None
    halve_on_fortnight: bool = False
    phase: Phase = Phase.HOURS

    def evaluate(self, concept, ctx, params, novelty):
        if self.from_salary:
            value = RateResolver.monthly_salary(ctx.profile)
        elif self.mirror_of is not None:
            value = ctx.amount_of(self.mirror_of)
        elif concept.default_multiplier is not None:
            value = concept.default_multiplier
        elif self.amount is not None:
            value = _param(self.amount, params, concept.code)
        else:
            return None
        if self.halve_on_fortnight and ctx.is_fortnight:
            value = value / 2
        if value == 0:
            return None
        return LineItemBuilder.create_amount_line(concept, value)


@dataclass(frozen=True)
class PercentOfRunningEarnings(FormulaStrategy):
    """percent of the earning lines accumulated so far.

    Non-taxable lines never enter the base. With `apply_detraction` the
    fixed detraction is subtracted first, floored at zero.
    """

    rate: Decimal | str
    apply_detraction: bool = False
    phase: Phase = Phase.DEDUCTIONS

    def evaluate(self, concept, ctx, params, novelty):
        running = ctx.running_total(ConceptCategory.EARNING)
        if self.apply_detraction:
            running = max(ZERO, running - params.contribution_detraction)
        if concept.default_multiplier is not None:
            percent = concept.default_multiplier / HUNDRED
        else:
            percent = _param(self.rate, params, concept.code)
        amount = running * percent
        if amount <= 0:
            return None
        return LineItemBuilder.create_amount_line(concept, amount)


def _concept(
    code: str,
    description: str,
    category: ConceptCategory,
    employee_class: EmployeeClass | None = None,
    formula: str | None = None,
) -> ConceptDefinition:
    return ConceptDefinition(
        code=code,
        description=description,
        category=category,
        formula_description=formula,
        employee_class=employee_class,
    )


_E = ConceptCategory.EARNING
_N = ConceptCategory.NON_TAXABLE
_D = ConceptCategory.DEDUCTION
_C = ConceptCategory.EMPLOYER_CONTRIBUTION
_J = EmployeeClass.JORNAL
_M = EmployeeClass.MENSUAL

DEFAULT_CONCEPTS: tuple[ConceptDefinition, ...] = (
    _concept("0003", "HORAS ACCIDENTE", _E, _J, "horas accidente x valor hora"),
    _concept("0010", "HORAS NORMALES", _E, _J, "horas diurnas x valor hora"),
    _concept("0020", "HORAS NOCTURNAS", _E, _J, "horas nocturnas x valor hora x 1,133"),
    _concept("0021", "HORAS EXTRAS 50%", _E, _J, "horas x valor hora x 1,5"),
    _concept("0030", "HORAS EXTRAS 100%", _E, _J, "horas x valor hora x 2"),
    _concept("0040", "HORAS ENFERMEDAD", _E, _J, "horas enfermedad x valor hora"),
    _concept("0042", "LEY 26341", _N, _J, "importe fijo"),
    _concept("0045", "LICENCIA ESPECIAL", _E, _J, "horas licencia x valor hora"),
    _concept("0050", "FERIADO", _E, _J, "horas feriado x valor hora"),
    _concept("0051", "FERIADO NOCTURNO", _E, _J, "horas feriado x valor hora x 1,133"),
    _concept("0054", "ART. 66 CALORIAS", _E, _J, "(hs diurnas + nocturnas) x 0,19"),
    _concept("0120", "PRESENTISMO", _E, _J, "20% sobre horas trabajadas"),
    _concept("0140", "PRESTACION DINERARIA", _N, None, "importe informado"),
    _concept("0150", "VACACIONES", _E, _J, "dias x 8 x valor hora x (1 + antig/100)"),
    _concept("0190", "ANTIGUEDAD", _E, _J, "1% por anio sobre base presentismo"),
    _concept("0201", "SUELDO MENSUAL", _E, _M, "sueldo basico"),
    _concept("0202", "ANTIGUEDAD", _E, _M, "1% por anio sobre sueldo"),
    _concept("0401", "JUBILACION", _D, None, "11% remunerativo"),
    _concept("0402", "LEY 19032", _D, None, "3% remunerativo"),
    _concept("0405", "OBRA SOCIAL", _D, None, "3% remunerativo"),
    _concept("0421", "CUOTA SINDICAL UOM", _D, None, "2,5% sobre total haberes"),
    _concept("0441", "SEGURO DE VIDA UOM", _D, None, "importe fijo"),
    _concept("0501", "CONTRIB. JUBILACION", _C, None, "10,77% (rem - detraccion)"),
    _concept("0502", "CONTRIB. LEY 19032", _C, None, "1,59% (rem - detraccion)"),
    _concept("0503", "CONTRIB. ASIG. FAMILIARES", _C, None, "4,70% (rem - detraccion)"),
    _concept("0504", "CONTRIB. FONDO EMPLEO", _C, None, "0,94% (rem - detraccion)"),
    _concept("0505", "CONTRIB. OBRA SOCIAL", _C, None, "6% remunerativo"),
    _concept("0525", "ART VARIABLE", _C, None, "7,5% remunerativo"),
    _concept("0526", "ART FIJO", _C, None, "importe fijo"),
    _concept("0537", "SEGURO DE VIDA EMPLEADOR", _C, None, "igual a 0441"),
)

DEFAULT_STRATEGIES: dict[str, FormulaStrategy] = {
    "0003": RateTimesQuantity("accident_hours"),
    "0010": RateTimesQuantity("day_hours"),
    "0020": RateTimesQuantity("night_hours", factor="night_differential"),
    "0021": RateTimesQuantity("overtime_50", factor="overtime_50_multiplier"),
    "0030": RateTimesQuantity("overtime_100", factor="overtime_100_multiplier"),
    "0040": RateTimesQuantity("sick_hours"),
    "0042": FixedAmount(amount="non_remunerative_fixed"),
    "0045": RateTimesQuantity("leave_hours"),
    "0050": RateTimesQuantity("holiday_hours"),
    "0051": RateTimesQuantity("holiday_night_hours", factor="night_differential"),
    "0054": RateTimesQuantity("calorie_hours", sector="calorie_sector"),
    "0120": PercentOfBase("attendance_base", "attendance_bonus_rate", requires_attendance=True),
    "0140": FixedAmount(),
    "0150": RateTimesQuantity(
        "vacation_days",
        hours_per_unit="vacation_hours_per_day",
        seniority_uplift=True,
    ),
    "0190": PercentOfBase("attendance_base", "seniority_rate", per_year=True),
    "0201": FixedAmount(from_salary=True, halve_on_fortnight=True),
    "0202": PercentOfBase("salary", "seniority_rate", per_year=True),
    "0401": PercentOfRunningEarnings("retirement_rate"),
    "0402": PercentOfRunningEarnings("law_19032_rate"),
    "0405": PercentOfRunningEarnings("health_insurance_rate"),
    "0421": PercentOfRunningEarnings("union_dues_rate"),
    "0441": FixedAmount(amount="life_insurance_amount", phase=Phase.DEDUCTIONS),
    "0501": PercentOfRunningEarnings(
        "employer_retirement_rate", apply_detraction=True, phase=Phase.CONTRIBUTIONS
    ),
    "0502": PercentOfRunningEarnings(
        "employer_law_19032_rate", apply_detraction=True, phase=Phase.CONTRIBUTIONS
    ),
    "0503": PercentOfRunningEarnings(
        "family_allowance_rate", apply_detraction=True, phase=Phase.CONTRIBUTIONS
    ),
    "0504": PercentOfRunningEarnings(
        "employment_fund_rate", apply_detraction=True, phase=Phase.CONTRIBUTIONS
    ),
    "0505": PercentOfRunningEarnings("employer_health_rate", phase=Phase.CONTRIBUTIONS),
    "0525": PercentOfRunningEarnings("work_risk_rate", phase=Phase.CONTRIBUTIONS),
    "0526": FixedAmount(amount="work_risk_fixed", phase=Phase.CONTRIBUTIONS),
    "0537": FixedAmount(mirror_of="0441", phase=Phase.CONTRIBUTIONS),
}

# Union concepts; employees outside the agreement do not pay them.
COVERED_ONLY_CODES = frozenset({"0421", "0441", "0537"})


class ConceptCatalog:
    """Active concept definitions plus the strategy table."""

    def __init__(
        self,
        definitions: Iterable[ConceptDefinition],
        strategies: Mapping[str, FormulaStrategy] | None = None,
        covered_only: frozenset[str] = COVERED_ONLY_CODES,
    ):
        self._definitions = {d.code: d for d in definitions}
        self._strategies = dict(DEFAULT_STRATEGIES if strategies is None else strategies)
        self._covered_only = covered_only

    @classmethod
    def default(cls) -> ConceptCatalog:
        return cls(DEFAULT_CONCEPTS)

    def __contains__(self, code: str) -> bool:
        return code in self._definitions

    def get(self, code: str) -> ConceptDefinition | None:
        return self._definitions.get(code)

    def list_active_concepts(self, employee_class: EmployeeClass) -> list[ConceptDefinition]:
        """Active concepts for a class, in evaluation order."""
        concepts = [
            d for d in self._definitions.values() if d.active and d.applies_to(employee_class)
        ]
        return sorted(concepts, key=lambda d: (self._phase_of(d.code), d.code))

    def applies_to(self, concept: ConceptDefinition, profile: EmployeeProfile) -> bool:
        return profile.is_covered or concept.code not in self._covered_only

    def strategy_for(self, code: str, employee_id: int) -> FormulaStrategy:
        strategy = self._strategies.get(code)
        if strategy is None:
            raise ConceptConfigurationError(employee_id, "no formula strategy configured", code)
        return strategy

    def _phase_of(self, code: str) -> Phase:
        strategy = self._strategies.get(code)
        return strategy.phase if strategy is not None else Phase.HOURS

    def fingerprint(self) -> str:
        """Deterministic digest of definitions and strategies."""
        rows = [
            {
                "code": d.code,
                "category": int(d.category),
                "active": d.active,
                "multiplier": str(d.default_multiplier) if d.default_multiplier is not None else None,
                "class": d.employee_class.value if d.employee_class else None,
                "strategy": repr(self._strategies.get(d.code)),
                "covered_only": d.code in self._covered_only,
            }
            for d in sorted(self._definitions.values(), key=lambda d: d.code)
        ]
        return hashlib.sha256(json.dumps(rows, sort_keys=True).encode()).hexdigest()
