"""Liquidation engine - main orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from attendance_payroll.attendance.shifts import ShiftCatalog
from attendance_payroll.attendance.types import Jornada
from attendance_payroll.calculators.aggregation import aggregate_jornadas
from attendance_payroll.calculators.concepts import ConceptCatalog
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod, seniority_years
from attendance_payroll.calculators.types import (
    ConceptLineItem,
    EmployeeLiquidationContext,
    EmployeeProfile,
    EmployeeTotals,
    HourBuckets,
    Novelty,
)
from attendance_payroll.config import AgreementParameters, Settings, get_settings
from attendance_payroll.errors import (
    ConceptConfigurationError,
    EmployeeComputationError,
    InvalidHoursError,
    LiquidationCancelledError,
)

logger = logging.getLogger(__name__)


@dataclass
class EmployeeLiquidation:
    """Result of liquidating one employee."""

    employee_id: int
    legajo: str
    calculation_id: UUID
    lines: list[ConceptLineItem]
    totals: EmployeeTotals
    buckets: HourBuckets
    inputs_fingerprint: str

    @property
    def net(self) -> Decimal:
        return self.totals.net

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "calculation_id": str(self.calculation_id),
            "lines": [line.to_canonical_dict() for line in self.lines],
            "totals": self.totals.to_canonical_dict(),
        }


@dataclass
class EmployeeError:
    """An employee skipped by the run, with the reason."""

    employee_id: int
    legajo: str | None
    reason: str
    concept_code: str | None = None


@dataclass
class LiquidationResult:
    """Result of liquidating a whole roster."""

    period: LiquidationPeriod
    results: list[EmployeeLiquidation] = field(default_factory=list)
    errors: list[EmployeeError] = field(default_factory=list)
    totals: EmployeeTotals = field(default_factory=EmployeeTotals)
    rules_fingerprint: str = ""
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def for_employee(self, employee_id: int) -> EmployeeLiquidation | None:
        for result in self.results:
            if result.employee_id == employee_id:
                return result
        return None

    def fingerprint(self) -> str:
        """Digest of every output figure; identical inputs give identical digests."""
        payload = {
            "period": self.period.canonical_key(),
            "results": [r.to_canonical_dict() for r in self.results],
            "errors": [
                {"employee_id": e.employee_id, "reason": e.reason, "concept": e.concept_code}
                for e in self.errors
            ],
            "totals": self.totals.to_canonical_dict(),
        }
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()


class _Cancelled:
    pass


_CANCELLED = _Cancelled()


class LiquidationEngine:
    """Main liquidation engine.

    Calculation pipeline (stable order per employee):
    1) Aggregate the period's Jornadas into hour buckets
    2) Evaluate hour concepts (quantity × rate)
    3) Evaluate base-dependent earnings (attendance, seniority)
    4) Evaluate deductions over the finalized running earnings
    5) Evaluate employer contributions
    6) Sum lines into totals; net = earnings + non_taxable - deductions

    Employees are independent: each runs in isolation, failures are
    recorded and the batch continues. Period totals are a reduction over
    the successful employees after all of them finish.
    """

    def __init__(
        self,
        catalog: ConceptCatalog | None = None,
        params: AgreementParameters | None = None,
        settings: Settings | None = None,
        max_workers: int | None = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog or ConceptCatalog.default()
        self.params = params or self.settings.agreement
        self.shift_catalog = ShiftCatalog(self.params)
        self.max_workers = max_workers or self.settings.max_workers

    def liquidate(
        self,
        period: LiquidationPeriod,
        roster: Iterable[EmployeeProfile],
        jornadas: Mapping[int, list[Jornada]],
        novelties: Mapping[int, list[Novelty]] | None = None,
        cancel_event: threading.Event | None = None,
        dry_run: bool = False,
    ) -> LiquidationResult:
        """Liquidate every employee on the roster that matches the period.

        A set `cancel_event` stops the run at the next employee boundary.
        Dry runs return what was computed so far; other runs raise
        LiquidationCancelledError and keep nothing.
        """
        novelties = novelties or {}
        employees = sorted(
            (p for p in roster if period.accepts(p.employee_class)),
            key=lambda p: p.employee_id,
        )
        rules_fp = self._compute_rules_fingerprint()

        def work(profile: EmployeeProfile):
            if cancel_event is not None and cancel_event.is_set():
                return _CANCELLED
            return self._guarded(
                period,
                profile,
                jornadas.get(profile.employee_id, []),
                novelties.get(profile.employee_id, []),
                rules_fp,
            )

        if self.max_workers <= 1 or len(employees) <= 1:
            outcomes = [work(p) for p in employees]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(work, employees))

        result = LiquidationResult(period=period, rules_fingerprint=rules_fp)
        completed = 0
        for outcome in outcomes:
            if outcome is _CANCELLED:
                result.cancelled = True
                continue
            completed += 1
            if isinstance(outcome, EmployeeError):
                result.errors.append(outcome)
            else:
                result.results.append(outcome)

        if result.cancelled and not dry_run:
            raise LiquidationCancelledError(completed, len(employees))

        for employee in result.results:
            result.totals = result.totals + employee.totals

        logger.info(
            "Liquidated %s: %d succeeded, %d failed%s",
            period.label,
            result.success_count,
            result.error_count,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _guarded(
        self,
        period: LiquidationPeriod,
        profile: EmployeeProfile,
        jornadas: list[Jornada],
        novelties: list[Novelty],
        rules_fp: str,
    ) -> EmployeeLiquidation | EmployeeError:
        try:
            return self.liquidate_employee(period, profile, jornadas, novelties, rules_fp)
        except EmployeeComputationError as e:
            logger.error("Skipping employee %s: %s", profile.employee_id, e.reason)
            return EmployeeError(
                employee_id=profile.employee_id,
                legajo=profile.legajo,
                reason=e.reason,
                concept_code=e.concept_code,
            )
        except Exception as e:
            logger.exception("Unexpected error liquidating employee %s", profile.employee_id)
            return EmployeeError(
                employee_id=profile.employee_id,
                legajo=profile.legajo,
                reason=f"Unexpected error: {e}",
            )

    def liquidate_employee(
        self,
        period: LiquidationPeriod,
        profile: EmployeeProfile,
        jornadas: list[Jornada],
        novelties: list[Novelty],
        rules_fp: str = "",
    ) -> EmployeeLiquidation:
        """Compute lines and totals for one employee. Raises on bad data."""
        buckets = aggregate_jornadas(jornadas, period, self.shift_catalog)
        buckets.validate(profile.employee_id)

        ctx = EmployeeLiquidationContext(
            profile=profile,
            buckets=buckets,
            seniority_years=seniority_years(profile.hire_date, period.date_to),
            is_fortnight=period.is_fortnight,
            novelties={n.concept_code: n for n in novelties},
        )

        concepts = self.catalog.list_active_concepts(profile.employee_class)
        known = {c.code for c in concepts}
        for code in sorted(ctx.novelties):
            if code not in known:
                raise ConceptConfigurationError(
                    profile.employee_id, "novelty for an inactive or unknown concept", code
                )
            novelty = ctx.novelties[code]
            if novelty.quantity is not None and novelty.quantity < 0:
                raise InvalidHoursError(
                    profile.employee_id, f"negative novelty quantity {novelty.quantity}", code
                )
            if novelty.amount is not None and novelty.amount < 0:
                raise InvalidHoursError(
                    profile.employee_id, f"negative novelty amount {novelty.amount}", code
                )

        for concept in concepts:
            if not self.catalog.applies_to(concept, profile):
                continue
            strategy = self.catalog.strategy_for(concept.code, profile.employee_id)
            try:
                line = strategy.apply(concept, ctx, self.params)
            except EmployeeComputationError as e:
                raise type(e)(profile.employee_id, e.reason, e.concept_code or concept.code) from e
            if line is not None and line.amount != 0:
                ctx.add(line)

        inputs_fp = self._compute_inputs_fingerprint(profile, buckets, novelties)
        return EmployeeLiquidation(
            employee_id=profile.employee_id,
            legajo=profile.legajo,
            calculation_id=self._generate_calculation_id(
                period, profile.employee_id, inputs_fp, rules_fp
            ),
            lines=ctx.lines,
            totals=LineItemBuilder.totals_from_lines(ctx.lines),
            buckets=buckets,
            inputs_fingerprint=inputs_fp,
        )

    def _compute_rules_fingerprint(self) -> str:
        """Compute fingerprint of the concept catalog and agreement parameters."""
        data = {
            "catalog": self.catalog.fingerprint(),
            "agreement": {k: str(v) for k, v in asdict(self.params).items()},
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    def _generate_calculation_id(
        self,
        period: LiquidationPeriod,
        employee_id: int,
        inputs_fingerprint: str,
        rules_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "period": period.canonical_key(),
            "employee_id": employee_id,
            "inputs_fingerprint": inputs_fingerprint,
            "rules_fingerprint": rules_fingerprint,
            "engine_version": self.settings.engine_version,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    @staticmethod
    def _compute_inputs_fingerprint(
        profile: EmployeeProfile,
        buckets: HourBuckets,
        novelties: list[Novelty],
    ) -> str:
        """Compute fingerprint of the employee's inputs."""
        data = {
            "profile": {
                "employee_id": profile.employee_id,
                "class": profile.employee_class.value,
                "bargaining": profile.bargaining_status.value,
                "base_rate": str(profile.base_rate),
                "hire_date": profile.hire_date.isoformat() if profile.hire_date else None,
                "sector": profile.sector,
            },
            "buckets": buckets.to_canonical_dict(),
            "novelties": sorted(
                [n.concept_code, str(n.quantity), str(n.amount)] for n in novelties
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()
