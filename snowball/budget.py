"""Budget plans, plan validation and expense resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Final, Mapping

from .career import Career, Job, find_job, is_eligible
from .errors import ConfigurationError
from .housing import Housing, HousingListing, find_listing, moving_cost
from .income import INCOME_KINDS, IncomeSource
from .ledger import AccountLedger, CapExceeded
from .market import MarketProfile
from .money import Money
from .timeline import GameMonth

EXPENSE_CATEGORIES: Final[list[str]] = ["essential", "lifestyle", "health", "transportation", "education", "other"]
DISCRETIONARY_CATEGORY: Final[str] = "lifestyle"

ISSUE_CODES: Final[set[str]] = {
    "unknown_category",
    "negative_allocation",
    "currency_mismatch",
    "essential_below_floor",
    "discretionary_below_floor",
    "overdraft",
    "cap_exceeded",
    "unknown_job",
    "job_not_eligible",
    "unknown_listing",
    "account_locked",
    "insufficient_balance",
    "invalid_amount",
    "unknown_income",
    "duplicate_income",
    "unknown_income_kind",
}


@dataclass(frozen=True, slots=True)
class BudgetPlan:
    allocations: Mapping[str, Money] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "allocations", MappingProxyType(dict(self.allocations)))

    def amount(self, category: str, currency: str) -> Money:
        return self.allocations.get(category, Money.zero(currency))

    def total(self, currency: str) -> Money:
        return Money.total(self.allocations.values(), currency)

    def to_dict(self) -> dict[str, str]:
        return {category: amount.to_json() for category, amount in sorted(self.allocations.items())}


@dataclass(frozen=True, slots=True)
class PlanActions:
    """Non-budget decisions for the month."""

    take_job: str | None = None
    quit_job: bool = False
    move_to: str | None = None
    contributions: Mapping[str, Money] = field(default_factory=dict)
    disposals: Mapping[str, Money] = field(default_factory=dict)
    add_income: tuple[IncomeSource, ...] = ()
    end_income: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "contributions", MappingProxyType(dict(self.contributions)))
        object.__setattr__(self, "disposals", MappingProxyType(dict(self.disposals)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "take_job": self.take_job,
            "quit_job": self.quit_job,
            "move_to": self.move_to,
            "contributions": {key: value.to_json() for key, value in sorted(self.contributions.items())},
            "disposals": {key: value.to_json() for key, value in sorted(self.disposals.items())},
            "add_income": [source.to_dict() for source in self.add_income],
            "end_income": list(self.end_income),
        }


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    code: str
    message: str
    subject: str | None = None
    amount: Money | None = None
    limit: Money | None = None


@dataclass(slots=True)
class PlanValidation:
    issues: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True, slots=True)
class PlanContext:
    """Everything plan validation needs to know about the month ahead."""

    market: MarketProfile
    month: GameMonth
    cash: Money
    expected_net_income: Money
    housing: Housing | None
    career: Career
    ledger: AccountLedger
    essential_floor: Money
    discretionary_floor: Money
    player_age: int
    side_incomes: tuple[IncomeSource, ...] = ()


@dataclass(frozen=True, slots=True)
class ExpenseBreakdown:
    categories: Mapping[str, Money]
    housing: Money
    moving: Money
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))

    @property
    def budget_total(self) -> Money:
        return Money.total(self.categories.values(), self.currency)

    @property
    def total(self) -> Money:
        return self.budget_total + self.housing + self.moving

    @property
    def essential(self) -> Money:
        return self.categories.get("essential", Money.zero(self.currency))

    @property
    def discretionary(self) -> Money:
        return self.categories.get(DISCRETIONARY_CATEGORY, Money.zero(self.currency))


def resolve_expenses(plan: BudgetPlan, housing: Housing | None, currency: str, moving: Money | None = None) -> ExpenseBreakdown:
    """Recurring housing plus every budget category; a move's one-off cost is kept separate."""
    categories = {category: plan.amount(category, currency) for category in EXPENSE_CATEGORIES if category in plan.allocations}
    return ExpenseBreakdown(
        categories=categories,
        housing=Money.zero(currency) if housing is None else housing.listing.monthly_cost,
        moving=moving or Money.zero(currency),
        currency=currency,
    )


def default_plan(essential_floor: Money) -> BudgetPlan:
    return BudgetPlan(allocations={"essential": essential_floor})


def planned_job(actions: PlanActions, context: PlanContext) -> Job | None:
    if actions.take_job is not None:
        return find_job(context.market.market_id, actions.take_job)
    if actions.quit_job:
        return None
    return context.career.job


def planned_incomes(actions: PlanActions, context: PlanContext) -> tuple[IncomeSource, ...]:
    """Side incomes active this month if the income changes go through."""
    ended = set(actions.end_income)
    active = [source for source in context.side_incomes if source.source_id not in ended]
    active_ids = {source.source_id for source in active}
    for source in actions.add_income:
        if source.source_id not in active_ids:
            active.append(source)
            active_ids.add(source.source_id)
    return tuple(active)


def planned_listing(actions: PlanActions, context: PlanContext) -> HousingListing | None:
    if actions.move_to is not None:
        return find_listing(context.market.market_id, actions.move_to)
    return None if context.housing is None else context.housing.listing


def _currency_issue(subject: str, amount: Money, currency: str) -> ValidationIssue:
    return ValidationIssue("currency_mismatch", f"{subject} is in {amount.currency}, market uses {currency}", subject=subject)


def _check_allocations(plan: BudgetPlan, context: PlanContext, result: PlanValidation) -> None:
    currency = context.market.currency
    for category, amount in plan.allocations.items():
        if category not in EXPENSE_CATEGORIES:
            result.issues.append(ValidationIssue("unknown_category", f"Unknown expense category {category!r}", subject=category))
            continue
        if amount.currency != currency:
            result.issues.append(_currency_issue(category, amount, currency))
            continue
        if amount.is_negative:
            result.issues.append(ValidationIssue("negative_allocation", f"{category} must not be negative", subject=category, amount=amount))

    essential = plan.amount("essential", currency)
    if essential.currency == currency and essential < context.essential_floor:
        result.issues.append(
            ValidationIssue(
                "essential_below_floor",
                f"Essential spending must be at least {context.essential_floor}",
                subject="essential",
                amount=essential,
                limit=context.essential_floor,
            )
        )

    discretionary = plan.amount(DISCRETIONARY_CATEGORY, currency)
    if discretionary.currency == currency and discretionary < context.discretionary_floor:
        result.issues.append(
            ValidationIssue(
                "discretionary_below_floor",
                f"Lifestyle spending must be at least {context.discretionary_floor} this month",
                subject=DISCRETIONARY_CATEGORY,
                amount=discretionary,
                limit=context.discretionary_floor,
            )
        )


def _check_incomes(actions: PlanActions, context: PlanContext, result: PlanValidation) -> None:
    currency = context.market.currency
    active = {source.source_id for source in context.side_incomes}
    for source_id in actions.end_income:
        if source_id not in active:
            result.issues.append(ValidationIssue("unknown_income", f"No active income source {source_id!r}", subject=source_id))
    remaining = active - set(actions.end_income)
    for source in actions.add_income:
        if source.source_id in remaining:
            result.issues.append(
                ValidationIssue("duplicate_income", f"Income source {source.source_id!r} is already active", subject=source.source_id)
            )
            continue
        remaining.add(source.source_id)
        if source.kind not in INCOME_KINDS:
            result.issues.append(
                ValidationIssue("unknown_income_kind", f"Unknown income kind {source.kind!r}", subject=source.source_id)
            )
        elif source.gross_monthly.currency != currency:
            result.issues.append(_currency_issue(source.source_id, source.gross_monthly, currency))
        elif not source.gross_monthly.is_positive:
            result.issues.append(
                ValidationIssue("invalid_amount", "Income must be positive", subject=source.source_id, amount=source.gross_monthly)
            )


def _check_actions(actions: PlanActions, context: PlanContext, result: PlanValidation) -> Money:
    """Validate job, housing and account intents. Returns the month's one-off moving cost."""
    market = context.market
    moving = Money.zero(market.currency)

    if actions.take_job is not None:
        try:
            job = find_job(market.market_id, actions.take_job)
        except ConfigurationError:
            result.issues.append(ValidationIssue("unknown_job", f"Unknown job {actions.take_job!r}", subject=actions.take_job))
        else:
            if not is_eligible(job, context.career):
                result.issues.append(
                    ValidationIssue(
                        "job_not_eligible",
                        f"{job.title} requires more experience",
                        subject=job.job_id,
                    )
                )

    if actions.move_to is not None:
        try:
            listing = find_listing(market.market_id, actions.move_to)
        except ConfigurationError:
            result.issues.append(ValidationIssue("unknown_listing", f"Unknown housing {actions.move_to!r}", subject=actions.move_to))
        else:
            if context.housing is not None and context.housing.listing.listing_id == listing.listing_id:
                result.warnings.append(f"Already living at {listing.address}; no move needed")
            else:
                moving = moving_cost(listing, market.moving_fee)

    for account_id, amount in actions.contributions.items():
        if amount.currency != market.currency:
            result.issues.append(_currency_issue(account_id, amount, market.currency))
            continue
        if not amount.is_positive:
            result.issues.append(ValidationIssue("invalid_amount", "Contribution must be positive", subject=account_id, amount=amount))
            continue
        outcome = context.ledger.check_contribution(account_id, amount, context.month)
        if isinstance(outcome, CapExceeded):
            result.issues.append(
                ValidationIssue(
                    "cap_exceeded",
                    f"Contribution limited to {outcome.remaining_cap} this year",
                    subject=account_id,
                    amount=amount,
                    limit=outcome.remaining_cap,
                )
            )

    for account_id, amount in actions.disposals.items():
        if amount.currency != market.currency:
            result.issues.append(_currency_issue(account_id, amount, market.currency))
            continue
        rule = market.account_rule(account_id, context.month)
        if not amount.is_positive:
            result.issues.append(ValidationIssue("invalid_amount", "Withdrawal must be positive", subject=account_id, amount=amount))
            continue
        if rule.locked_until_retirement and context.player_age < market.retirement_age:
            result.issues.append(
                ValidationIssue("account_locked", f"{rule.name} is locked until age {market.retirement_age}", subject=account_id)
            )
            continue
        balance = context.ledger.balance(account_id)
        if amount > balance:
            result.issues.append(
                ValidationIssue("insufficient_balance", f"{rule.name} holds only {balance}", subject=account_id, amount=amount, limit=balance)
            )

    _check_incomes(actions, context, result)
    return moving


def validate_plan(plan: BudgetPlan, actions: PlanActions, context: PlanContext) -> PlanValidation:
    """Check floors, caps, listings and affordability without mutating anything.

    A plan whose total outflow exceeds cash on hand plus the expected net
    income and withdrawal proceeds is rejected as an overdraft.
    """
    result = PlanValidation()
    _check_allocations(plan, context, result)
    moving = _check_actions(actions, context, result)
    if result.issues:
        return result

    currency = context.market.currency
    listing = planned_listing(actions, context)
    housing_cost = Money.zero(currency) if listing is None else listing.monthly_cost
    contributions = Money.total(actions.contributions.values(), currency)
    withdrawals = Money.total(actions.disposals.values(), currency)
    outflow = plan.total(currency) + housing_cost + moving + contributions
    available = context.cash + context.expected_net_income + withdrawals
    if outflow > available:
        result.issues.append(
            ValidationIssue(
                "overdraft",
                f"Planned spending {outflow} exceeds available {available}",
                amount=outflow,
                limit=available,
            )
        )
    return result
