"""CLI entry point for Snowball."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from .errors import InvariantViolation
from .logging_config import configure_logging
from .report import render_month, render_summary
from .schema import SchemaError, load_scenario
from .session import GameSession, PlanRejection
from .validate import check_scenario_sanity, validate_scenario

DEFAULT_MONTHS = 12


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Snowball personal finance simulation")
    parser.add_argument("scenario", help="Path to scenario JSON file")
    parser.add_argument("--months", type=int, help="Months to play (default: scripted months, or 12)")
    parser.add_argument("--seed", type=int, help="Override the scenario seed")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print end-of-run summary to stdout")
    parser.add_argument("--save", help="Write the saved game JSON to this path")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level for JSON logs on stderr")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _print_rejection(rejection: PlanRejection) -> None:
    print(f"Plan for {rejection.month} rejected; spending the essential floor instead:", file=sys.stderr)
    for issue in rejection.issues:
        print(f"  {issue.code}: {issue.message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.months is not None and args.months < 1:
        print("--months must be >= 1", file=sys.stderr)
        return 2

    configure_logging(level=getattr(logging, args.log_level))

    try:
        scenario = load_scenario(args.scenario)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load scenario: {exc}", file=sys.stderr)
        return 2

    validation = validate_scenario(scenario)
    _print_validation(validation.errors, validation.warnings + check_scenario_sanity(scenario))
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Scenario is valid.")
        return 0

    session = GameSession.from_scenario(scenario, seed=args.seed)
    selected = session.select_market(scenario.market)
    print(f"Market: {session.market.name} ({selected.currency}), seed {session.seed}")

    plans = scenario.scripted_plans(session.market.currency)
    months = args.months or len(plans) or DEFAULT_MONTHS
    for index in range(months):
        if index < len(plans):
            budget, actions = plans[index]
            result = session.submit_plan(budget, actions)
            if isinstance(result, PlanRejection):
                _print_rejection(result)
        try:
            report = session.advance_month()
        except InvariantViolation as exc:
            print(f"Settlement failed ({exc.rule}): {exc}", file=sys.stderr)
            return 1
        print(render_month(report))
        print()

    if args.summary:
        print(render_summary(session))

    if args.save:
        Path(args.save).write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
        print(f"Wrote saved game to {Path(args.save)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
