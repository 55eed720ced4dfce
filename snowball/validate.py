"""Semantic and cross-reference validation for scenarios."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import re
from typing import Iterable

from .budget import EXPENSE_CATEGORIES
from .career import Career, is_eligible, job_listings
from .errors import ConfigurationError, RuleVersionError
from .housing import housing_listings
from .income import INCOME_KINDS
from .markets import get_market, supported_markets
from .money import MINOR_UNITS
from .schema import EngineSettings, Scenario
from .timeline import GameMonth

DATE_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MIN_PLAYER_AGE = 15
MAX_PLAYER_AGE = 100


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_minor_units(result: ValidationResult, path: str, value: Decimal, currency: str) -> None:
    places = MINOR_UNITS[currency]
    if value != value.quantize(Decimal(1).scaleb(-places)):
        result.errors.append(f"{path}: {value} has more than {places} decimal places for {currency}")


def _check_non_negative(result: ValidationResult, path: str, value: Decimal) -> None:
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_settings(result: ValidationResult, settings: EngineSettings) -> None:
    for name in ("emergency_probability_bps", "windfall_probability_bps"):
        value = getattr(settings, name)
        if not 0 <= value <= 10_000:
            result.errors.append(f"settings.{name}: must be between 0 and 10000")
    if settings.market_move_min_bps > settings.market_move_max_bps:
        result.errors.append("settings.market_move_min_bps/settings.market_move_max_bps: min must be <= max")
    if settings.behavior_window_months < 1:
        result.errors.append("settings.behavior_window_months: must be >= 1")
    for name in ("savings_rate_threshold", "leisure_ratio_threshold", "safe_withdrawal_rate", "barista_coverage"):
        value = getattr(settings, name)
        if not Decimal(0) <= value <= Decimal(1):
            result.errors.append(f"settings.{name}: must be between 0 and 1")
    if settings.safe_withdrawal_rate == 0:
        result.warnings.append("settings.safe_withdrawal_rate: zero rate means no FIRE milestone can unlock")


def validate_scenario(scenario: Scenario) -> ValidationResult:
    result = ValidationResult()

    _check_enum(result, "market", scenario.market, supported_markets())
    if not DATE_RE.match(scenario.start_month):
        result.errors.append(f"start_month: '{scenario.start_month}' is not valid; expected YYYY-MM")
    if not MIN_PLAYER_AGE <= scenario.player.age <= MAX_PLAYER_AGE:
        result.errors.append(f"player.age: must be between {MIN_PLAYER_AGE} and {MAX_PLAYER_AGE}")
    _check_settings(result, scenario.settings)

    # Everything below needs the market's tables.
    if not result.is_valid:
        return result

    market = get_market(scenario.market)
    currency = market.currency
    start = GameMonth.parse(scenario.start_month)
    try:
        accounts = market.available_accounts(start)
    except RuleVersionError as exc:
        result.errors.append(f"start_month: {exc}")
        return result

    jobs = job_listings(market.market_id)
    listings = housing_listings(market.market_id)

    if scenario.starting_cash is not None:
        _check_non_negative(result, "starting_cash", scenario.starting_cash)
        _check_minor_units(result, "starting_cash", scenario.starting_cash, currency)
    if scenario.starting_job is not None:
        if scenario.starting_job not in jobs:
            result.errors.append(f"starting_job: '{scenario.starting_job}' does not match any {market.name} job")
        elif not is_eligible(jobs[scenario.starting_job], Career()):
            result.errors.append(f"starting_job: '{scenario.starting_job}' requires prior experience")
    else:
        result.warnings.append("starting_job: none; the player starts unemployed")
    if scenario.starting_housing is not None and scenario.starting_housing not in listings:
        result.errors.append(f"starting_housing: '{scenario.starting_housing}' does not match any {market.name} listing")

    for account_id, amount in scenario.starting_accounts.items():
        path = f"starting_accounts.{account_id}"
        if account_id not in accounts:
            result.errors.append(f"{path}: account type is not offered in {market.name}")
            continue
        _check_non_negative(result, path, amount)
        _check_minor_units(result, path, amount, currency)

    active_incomes: set[str] = set()
    for idx, item in enumerate(scenario.months):
        base = f"months[{idx}]"
        if item.repeat < 1:
            result.errors.append(f"{base}.repeat: must be >= 1")
        for category, amount in item.budget.items():
            _check_enum(result, f"{base}.budget.{category}", category, EXPENSE_CATEGORIES)
            _check_non_negative(result, f"{base}.budget.{category}", amount)
            _check_minor_units(result, f"{base}.budget.{category}", amount, currency)
        if "essential" not in item.budget:
            result.warnings.append(f"{base}.budget: no essential allocation; the plan will be rejected below the floor")
        for kind, amounts in (("contributions", item.contributions), ("disposals", item.disposals)):
            for account_id, amount in amounts.items():
                path = f"{base}.{kind}.{account_id}"
                if account_id not in accounts:
                    result.errors.append(f"{path}: account type is not offered in {market.name}")
                    continue
                if amount <= 0:
                    result.errors.append(f"{path}: must be > 0")
                _check_minor_units(result, path, amount, currency)
        if item.take_job is not None and item.take_job not in jobs:
            result.errors.append(f"{base}.take_job: '{item.take_job}' does not match any {market.name} job")
        if item.take_job is not None and item.quit_job:
            result.warnings.append(f"{base}: quit_job with take_job simply switches jobs")
        if item.move_to is not None and item.move_to not in listings:
            result.errors.append(f"{base}.move_to: '{item.move_to}' does not match any {market.name} listing")

        for source_id in item.end_income:
            if source_id not in active_incomes:
                result.errors.append(f"{base}.end_income: '{source_id}' is not an active income source")
            active_incomes.discard(source_id)
        for income_idx, income in enumerate(item.add_income):
            path = f"{base}.add_income[{income_idx}]"
            if income.source_id in active_incomes:
                result.errors.append(f"{path}.id: '{income.source_id}' is already active")
            _check_enum(result, f"{path}.kind", income.kind, INCOME_KINDS)
            if income.amount <= 0:
                result.errors.append(f"{path}.amount: must be > 0")
            _check_minor_units(result, f"{path}.amount", income.amount, currency)
            if income.kind != "one_time":
                active_incomes.add(income.source_id)

    return result


def check_scenario_sanity(scenario: Scenario) -> list[str]:
    """Soft warnings about scripted plans that are legal but probably unintended."""
    warnings: list[str] = []
    try:
        market = get_market(scenario.market)
    except ConfigurationError:
        return warnings
    floor = market.essential_floor.amount
    for idx, item in enumerate(scenario.months):
        essential = item.budget.get("essential")
        if essential is not None and essential < floor:
            warnings.append(f"months[{idx}].budget.essential: {essential} is below the {floor} floor")
    return warnings
