"""Attendance payroll command line interface.

Provides operational tools for:
- Schema creation and concept seeding
- Jornada regeneration
- Liquidation simulation and execution
- Comparison against a reference payroll

Usage:
    attendance-payroll init-db
    attendance-payroll regenerate --from 2024-05-01 --to 2024-05-15
    attendance-payroll simulate --year 2024 --month 5 --type PQN
    attendance-payroll execute --year 2024 --month 5 --type PQN
    attendance-payroll compare --period-id X --reference payroll.csv
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import json
import sys
from datetime import date, datetime
from typing import Any, Callable
from uuid import UUID
from zoneinfo import ZoneInfo

from attendance_payroll.calculators.comparator import references_from_rows
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.periods import LiquidationPeriod, PeriodType
from attendance_payroll.config import get_settings
from attendance_payroll.database import create_schema, dispose_db, get_session
from attendance_payroll.errors import AttendancePayrollError
from attendance_payroll.logging_config import configure_logging
from attendance_payroll.services.jornada_service import JornadaService
from attendance_payroll.services.liquidation_service import LiquidationService
from attendance_payroll.services.repositories import SqlConceptRepository
from attendance_payroll.services.state_machine import InvalidTransitionError


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_ids(s: str) -> list[int]:
    """Parse a comma-separated list of employee IDs."""
    return [int(part) for part in s.split(",") if part.strip()]


class AttendancePayrollCli:
    """Attendance payroll command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="attendance-payroll",
            description="Attendance reconciliation and payroll liquidation",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            help="Log level (default: $LOG_LEVEL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser(
            "init-db",
            help="Create missing tables and seed the default concept catalog",
        )

        regenerate = subparsers.add_parser(
            "regenerate",
            help="Rebuild jornadas from clock punches",
        )
        regenerate.add_argument("--from", dest="date_from", type=parse_date, required=True)
        regenerate.add_argument("--to", dest="date_to", type=parse_date, required=True)
        regenerate.add_argument(
            "--as-of",
            type=parse_date,
            help="Current civil date (default: today in $LOCAL_TIMEZONE)",
        )
        regenerate.add_argument(
            "--employees",
            type=parse_ids,
            help="Comma-separated employee IDs (default: all active)",
        )
        regenerate.add_argument(
            "--overwrite-manual",
            action="store_true",
            help="Replace jornadas edited by operators",
        )

        for name, help_text in (
            ("simulate", "Compute a period without storing it"),
            ("execute", "Compute a period and store it"),
        ):
            run = subparsers.add_parser(name, help=help_text)
            run.add_argument("--year", type=int, required=True)
            run.add_argument("--month", type=int, required=True)
            run.add_argument(
                "--type",
                dest="period_type",
                type=PeriodType,
                choices=list(PeriodType),
                required=True,
            )
            if name == "simulate":
                run.add_argument("--employees", type=parse_ids)
                run.add_argument(
                    "--json",
                    action="store_true",
                    help="Print serialized lines as JSON",
                )

        compare = subparsers.add_parser(
            "compare",
            help="Compare a stored period with a reference CSV",
        )
        compare.add_argument("--period-id", type=parse_uuid, required=True)
        compare.add_argument(
            "--reference",
            type=str,
            required=True,
            help="CSV with employee_id, concept_code and amount columns",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level or get_settings().log_level)

        handlers: dict[str, Callable[[argparse.Namespace], Any]] = {
            "init-db": self._cmd_init_db,
            "regenerate": self._cmd_regenerate,
            "simulate": self._cmd_simulate,
            "execute": self._cmd_execute,
            "compare": self._cmd_compare,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(self._with_engine(handler(parsed)))
        except (AttendancePayrollError, InvalidTransitionError, ValueError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    @staticmethod
    async def _with_engine(coro: Any) -> int:
        try:
            return await coro
        finally:
            await dispose_db()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create tables and seed concepts."""
        await create_schema()
        async with get_session() as session:
            added = await SqlConceptRepository(session).seed_defaults()
        print(f"Schema ready; {added} concept(s) seeded.")
        return 0

    async def _cmd_regenerate(self, args: argparse.Namespace) -> int:
        """Rebuild jornadas."""
        settings = get_settings()
        as_of = args.as_of or datetime.now(ZoneInfo(settings.local_timezone)).date()
        async with get_session() as session:
            summary = await JornadaService(session, settings).regenerate(
                args.date_from,
                args.date_to,
                as_of,
                employee_ids=args.employees,
                overwrite_manual=args.overwrite_manual,
            )

        print(f"Regenerated {summary.date_from} .. {summary.date_to} (as of {as_of})")
        print(f"  Employees:          {summary.employees}")
        print(f"  Written:            {summary.written}")
        print(f"  Preserved manual:   {summary.preserved}")
        print(f"  Removed:            {summary.removed}")
        print(f"  Inconsistencies:    {summary.inconsistencies}")
        print(f"  Suspected overtime: {summary.suspected_overtime}")
        for reason in summary.rejected:
            print(f"  Rejected: {reason}")
        return 0 if not summary.rejected else 3

    async def _cmd_simulate(self, args: argparse.Namespace) -> int:
        """Dry run of a period."""
        period = LiquidationPeriod.for_type(args.year, args.month, args.period_type)
        async with get_session() as session:
            result = await LiquidationService(session).simulate(
                period, employee_ids=args.employees
            )

        if args.json:
            payload = {
                str(e.employee_id): {
                    "lines": [LineItemBuilder.serialize_line(line) for line in e.lines],
                    "totals": LineItemBuilder.serialize_totals(e.totals),
                }
                for e in result.results
            }
            print(json.dumps(payload, indent=2, default=str))
            return 0

        totals = LineItemBuilder.serialize_totals(result.totals)
        print(f"Simulation {period.label} ({period.date_from} .. {period.date_to})")
        print("=" * 60)
        for employee in result.results:
            print(f"  {employee.legajo:>10}  net {LineItemBuilder.round_to_cents(employee.net):>15,.2f}")
        for error in result.errors:
            code = f" [{error.concept_code}]" if error.concept_code else ""
            print(f"  {error.legajo or error.employee_id:>10}  ERROR{code}: {error.reason}")
        print("=" * 60)
        print(f"  Earnings:      {totals['earnings']:>15,.2f}")
        print(f"  Non-taxable:   {totals['non_taxable']:>15,.2f}")
        print(f"  Deductions:    {totals['deductions']:>15,.2f}")
        print(f"  Contributions: {totals['employer_contributions']:>15,.2f}")
        print(f"  Net:           {totals['net']:>15,.2f}")
        print(f"  Fingerprint:   {result.fingerprint()}")
        return 0

    async def _cmd_execute(self, args: argparse.Namespace) -> int:
        """Execute and store a period."""
        period = LiquidationPeriod.for_type(args.year, args.month, args.period_type)
        async with get_session() as session:
            record, result = await LiquidationService(session).execute(period)
            period_id = record.period_id
            net = record.net

        print(f"Executed {period.label} as {period_id}")
        print(f"  Employees: {result.success_count}")
        print(f"  Errors:    {result.error_count}")
        print(f"  Net:       {net:>15,.2f}")
        return 0

    async def _cmd_compare(self, args: argparse.Namespace) -> int:
        """Compare a stored period with reference figures."""
        with open(args.reference, newline="", encoding="utf-8") as f:
            references = references_from_rows(csv.DictReader(f))

        async with get_session() as session:
            report = await LiquidationService(session).compare(args.period_id, references)

        print(f"Comparison for {args.period_id}")
        print(f"  Matched:   {report.matched_count}/{report.total_count}")
        print(f"  Precision: {report.precision}")
        for employee in report.unmatched():
            print(
                f"  Employee {employee.employee_id}: computed {employee.computed_net}"
                f" reference {employee.reference_net}"
            )
            for delta in employee.concept_deltas:
                print(f"    {delta.concept_code}: {delta.computed} vs {delta.reference}")
        return 0 if not report.unmatched() else 4


def main() -> None:
    """CLI entry point."""
    cli = AttendancePayrollCli()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
