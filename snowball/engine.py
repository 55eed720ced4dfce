"""Monthly settlement: turns a validated plan and a snapshot into the next snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from .behavior import BehavioralState, BehaviorDelta
from .budget import BudgetPlan, ExpenseBreakdown, PlanActions, PlanContext, planned_incomes, planned_job, resolve_expenses
from .career import Career, boosted_salary, find_job, is_eligible
from .errors import InvariantViolation
from .events import InterruptEvent, roll_events
from .housing import Housing, find_listing, moving_cost
from .income import IncomeSource, apply_income_changes, carried_forward, total_income
from .ledger import AccountLedger, AccountState, CapExceeded, ContributionOutcome, DisposalOutcome
from .logging_config import get_logger
from .market import MarketProfile
from .money import Money
from .schema import EngineSettings
from .tax import TaxBreakdown
from .timeline import GameMonth

logger = get_logger("engine")

ENTRY_CATEGORIES = {
    "income",
    "contribution",
    "income_tax",
    "social_insurance",
    "health_insurance",
    "state_match",
    "disposal",
    "capital_gains_tax",
    "moving",
    "housing",
    "expense",
    "emergency",
    "windfall",
    "market_move",
}


@dataclass(frozen=True, slots=True)
class FinancialSnapshot:
    """State at a month boundary. ``month`` is the next month to be settled."""

    month: GameMonth
    currency: str
    cash: Money
    accounts: Mapping[str, AccountState]
    housing: Housing | None
    career: Career
    contribution_year: int
    ytd_gross: Money
    last_gross_income: Money | None = None
    last_net_income: Money | None = None
    last_expenses: Money | None = None
    last_essential_expenses: Money | None = None
    side_incomes: tuple[IncomeSource, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", MappingProxyType(dict(self.accounts)))

    @property
    def settled(self) -> bool:
        return self.last_expenses is not None

    def account_balance(self, account_id: str) -> Money:
        state = self.accounts.get(account_id)
        return Money.zero(self.currency) if state is None else state.balance

    @property
    def portfolio_value(self) -> Money:
        return Money.total((state.balance for state in self.accounts.values()), self.currency)

    @property
    def net_worth(self) -> Money:
        return self.cash + self.portfolio_value

    def to_dict(self) -> dict[str, Any]:
        def _opt(value: Money | None) -> str | None:
            return None if value is None else value.to_json()

        return {
            "month": str(self.month),
            "currency": self.currency,
            "cash": self.cash.to_json(),
            "accounts": [state.to_dict() for _, state in sorted(self.accounts.items())],
            "housing": None if self.housing is None else self.housing.to_dict(),
            "career": self.career.to_dict(),
            "contribution_year": self.contribution_year,
            "ytd_gross": self.ytd_gross.to_json(),
            "last_gross_income": _opt(self.last_gross_income),
            "last_net_income": _opt(self.last_net_income),
            "last_expenses": _opt(self.last_expenses),
            "last_essential_expenses": _opt(self.last_essential_expenses),
            "side_incomes": [source.to_dict() for source in self.side_incomes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], market: MarketProfile) -> FinancialSnapshot:
        currency = market.currency

        def _opt(value: str | None) -> Money | None:
            return None if value is None else Money.from_json(value, currency)

        housing_raw = data.get("housing")
        housing = None
        if housing_raw is not None:
            housing = Housing(
                listing=find_listing(market.market_id, housing_raw["listing_id"]),
                moved_in=GameMonth.parse(housing_raw["moved_in"]),
            )
        career_raw = data["career"]
        career = Career(
            job=None if career_raw.get("job_id") is None else find_job(market.market_id, career_raw["job_id"]),
            months_in_job=int(career_raw.get("months_in_job", 0)),
            experience_months=int(career_raw.get("experience_months", 0)),
            last_salary=_opt(career_raw.get("last_salary")),
            history=tuple(career_raw.get("history", [])),
            human_capital=Decimal(career_raw.get("human_capital", "0")),
        )
        accounts = {item["account_id"]: AccountState.from_dict(item, currency) for item in data.get("accounts", [])}
        return cls(
            month=GameMonth.parse(data["month"]),
            currency=currency,
            cash=Money.from_json(data["cash"], currency),
            accounts=accounts,
            housing=housing,
            career=career,
            contribution_year=int(data["contribution_year"]),
            ytd_gross=Money.from_json(data.get("ytd_gross", "0"), currency),
            last_gross_income=_opt(data.get("last_gross_income")),
            last_net_income=_opt(data.get("last_net_income")),
            last_expenses=_opt(data.get("last_expenses")),
            last_essential_expenses=_opt(data.get("last_essential_expenses")),
            side_incomes=tuple(IncomeSource.from_dict(item, currency) for item in data.get("side_incomes", [])),
        )


@dataclass(frozen=True, slots=True)
class SettlementEntry:
    sequence: int
    category: str
    label: str
    amount: Money
    account_id: str | None = None
    affects_cash: bool = True


@dataclass(frozen=True, slots=True)
class SettlementReport:
    month: GameMonth
    rule_version: str
    employment_status: str
    gross_income: Money
    taxes: TaxBreakdown
    contributions: tuple[ContributionOutcome, ...]
    state_matches: Mapping[str, Money]
    disposals: tuple[DisposalOutcome, ...]
    expenses: ExpenseBreakdown
    events: tuple[InterruptEvent, ...]
    entries: tuple[SettlementEntry, ...]
    cash_before: Money
    cash_after: Money
    promotion_raise: Money | None = None
    moved_to: str | None = None
    housing_happiness: int = 0
    market_return_bps: int = 0
    behavior: BehaviorDelta | None = None
    side_income: Money | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "state_matches", MappingProxyType(dict(self.state_matches)))

    @property
    def net_income(self) -> Money:
        return self.gross_income - self.taxes.total

    @property
    def net_cash_delta(self) -> Money:
        return self.cash_after - self.cash_before

    @property
    def overdraft(self) -> bool:
        return self.cash_after.is_negative


def employment_status(career: Career, player_age: int, market: MarketProfile) -> str:
    if career.is_employed:
        return "employed"
    if player_age >= market.retirement_age:
        return "retired"
    return "unemployed"


def payroll_breakdown(
    market: MarketProfile,
    month: GameMonth,
    gross_income: Money,
    deductible: Money,
    ytd_gross: Money,
    status: str,
) -> TaxBreakdown:
    """Income tax on gross less deductible contributions, plus social and health insurance."""
    return market.compute_income_tax(gross_income, month, deductible).with_insurance(
        market.compute_social_insurance(gross_income, month, ytd_gross),
        market.compute_health_insurance(gross_income, status, month),
    )


def _ytd_gross(snapshot: FinancialSnapshot) -> Money:
    if snapshot.month.year != snapshot.contribution_year:
        return Money.zero(snapshot.currency)
    return snapshot.ytd_gross


def build_plan_context(
    market: MarketProfile,
    snapshot: FinancialSnapshot,
    behavior: BehavioralState,
    actions: PlanActions,
    player_age: int,
) -> PlanContext:
    """Planning-phase view of the month: dry-run ledger, floors and expected net income."""
    month = snapshot.month
    ledger = AccountLedger.from_accounts(market, snapshot.accounts, snapshot.contribution_year)
    ledger.start_month(month)
    preliminary = PlanContext(
        market=market,
        month=month,
        cash=snapshot.cash,
        expected_net_income=Money.zero(market.currency),
        housing=snapshot.housing,
        career=snapshot.career,
        ledger=ledger,
        essential_floor=market.essential_floor + behavior.essential_baseline,
        discretionary_floor=behavior.discretionary_floor(),
        player_age=player_age,
        side_incomes=snapshot.side_incomes,
    )

    job = planned_job(actions, preliminary)
    salary = Money.zero(market.currency)
    if job is not None:
        salary = boosted_salary(job.salary, snapshot.career.human_capital, market.human_capital_unit)
    side = [source for source in planned_incomes(actions, preliminary) if source.gross_monthly.currency == market.currency]
    gross = salary + total_income(side, market.currency)
    deductible = Money.total(
        (
            amount
            for account_id, amount in actions.contributions.items()
            if amount.currency == market.currency and market.account_rule(account_id, month).is_deductible
        ),
        market.currency,
    )
    status = "employed" if job is not None else employment_status(Career(), player_age, market)
    taxes = payroll_breakdown(market, month, gross, deductible, _ytd_gross(snapshot), status)
    return PlanContext(
        market=market,
        month=month,
        cash=snapshot.cash,
        expected_net_income=gross - taxes.total,
        housing=snapshot.housing,
        career=snapshot.career,
        ledger=ledger,
        essential_floor=preliminary.essential_floor,
        discretionary_floor=preliminary.discretionary_floor,
        player_age=player_age,
        side_incomes=snapshot.side_incomes,
    )


def settle_month(
    *,
    market: MarketProfile,
    snapshot: FinancialSnapshot,
    plan: BudgetPlan,
    actions: PlanActions,
    seed: int,
    fingerprint: str,
    settings: EngineSettings,
    player_age: int,
) -> tuple[SettlementReport, FinancialSnapshot]:
    """Run the Execution and Review phases for ``snapshot.month``.

    Nothing outside this function is mutated; the caller swaps in the returned
    snapshot only when no ``InvariantViolation`` was raised.
    """
    month = snapshot.month
    currency = market.currency
    zero = Money.zero(currency)
    entries: list[SettlementEntry] = []

    def _entry(category: str, label: str, amount: Money, *, account_id: str | None = None, affects_cash: bool = True) -> None:
        entries.append(SettlementEntry(len(entries) + 1, category, label, amount, account_id, affects_cash))

    cash = snapshot.cash
    ledger = AccountLedger.from_accounts(market, snapshot.accounts, snapshot.contribution_year)
    ytd_gross = _ytd_gross(snapshot)

    # Step 1: Calendar-year rollover of annual contribution counters.
    ledger.start_month(month)

    # Step 2: Career and housing actions.
    career = snapshot.career
    promotion_raise = None
    if actions.quit_job:
        career = career.quit()
    if actions.take_job is not None:
        job = find_job(market.market_id, actions.take_job)
        if not is_eligible(job, career):
            raise InvariantViolation(
                "job taken without the required experience",
                rule="career.eligibility",
                context={"job_id": job.job_id, "experience_years": career.experience_years},
            )
        career, promotion_raise = career.take_job(job)

    housing = snapshot.housing
    moving = zero
    moved_to = None
    if actions.move_to is not None and (housing is None or housing.listing.listing_id != actions.move_to):
        listing = find_listing(market.market_id, actions.move_to)
        moving = moving_cost(listing, market.moving_fee)
        cash = cash - moving
        _entry("moving", f"Moving costs: {listing.address}", -moving)
        housing = Housing(listing=listing, moved_in=month)
        moved_to = listing.listing_id

    side_incomes = apply_income_changes(snapshot.side_incomes, added=actions.add_income, ended=actions.end_income)

    # Step 3: Gross income. Side incomes are taxed together with the salary.
    salary = career.monthly_gross(currency, market.human_capital_unit)
    if salary.is_positive and career.job is not None:
        cash = cash + salary
        _entry("income", f"Salary: {career.job.title}", salary)
    for source in side_incomes:
        if source.gross_monthly.is_positive:
            cash = cash + source.gross_monthly
            _entry("income", f"Side income: {source.name}", source.gross_monthly)
    side_income = total_income(side_incomes, currency)
    gross = salary + side_income
    status = employment_status(career, player_age, market)

    # Step 4: Contributions, re-checked against this year's caps.
    contribution_outcomes: list[ContributionOutcome] = []
    deductible = zero
    for account_id, amount in sorted(actions.contributions.items()):
        outcome = ledger.contribute(account_id, amount, month)
        if isinstance(outcome, CapExceeded):
            raise InvariantViolation(
                "contribution exceeds the annual cap after plan validation",
                rule="ledger.annual_cap",
                context={"account_id": account_id, "requested": amount.to_json(), "remaining_cap": outcome.remaining_cap.to_json()},
            )
        contribution_outcomes.append(outcome)
        cash = cash - amount
        _entry("contribution", f"Contribution: {account_id}", -amount, account_id=account_id)
        if outcome.deductible:
            deductible = deductible + amount

    # Step 5: Income tax and insurance, on gross income before any spending.
    taxes = payroll_breakdown(market, month, gross, deductible, ytd_gross, status)
    for category, label, amount in (
        ("income_tax", "Income tax", taxes.income_tax),
        ("social_insurance", "Social insurance", taxes.social_insurance),
        ("health_insurance", "Health insurance", taxes.health_insurance),
    ):
        if not amount.is_zero:
            cash = cash - amount
            _entry(category, label, -amount)

    # Step 6: State matches on accepted contributions.
    matches: dict[str, Money] = {}
    for outcome in contribution_outcomes:
        match = ledger.apply_state_match(outcome.account_id, outcome.amount, month)
        if match.is_positive:
            matches[outcome.account_id] = match
            _entry("state_match", f"State match: {outcome.account_id}", match, account_id=outcome.account_id, affects_cash=False)

    # Step 7: Disposals, taxed lot by lot.
    disposals: list[DisposalOutcome] = []
    for account_id, amount in sorted(actions.disposals.items()):
        rule = market.account_rule(account_id, month)
        if rule.locked_until_retirement and player_age < market.retirement_age:
            raise InvariantViolation(
                "withdrawal from an account locked until retirement",
                rule="ledger.locked_account",
                context={"account_id": account_id, "player_age": player_age},
            )
        disposal = ledger.evaluate_disposal(account_id, amount, month)
        disposals.append(disposal)
        cash = cash + disposal.proceeds
        _entry("disposal", f"Withdrawal: {account_id}", disposal.proceeds, account_id=account_id)
        if disposal.tax.is_positive:
            cash = cash - disposal.tax
            _entry("capital_gains_tax", f"Capital gains tax: {account_id}", -disposal.tax, account_id=account_id)

    # Step 8: Recurring housing and budgeted expenses, funded from net income.
    expenses = resolve_expenses(plan, housing, currency, moving)
    if housing is not None:
        cash = cash - expenses.housing
        _entry("housing", f"Rent and utilities: {housing.listing.address}", -expenses.housing)
    for category, amount in expenses.categories.items():
        if amount.is_positive:
            cash = cash - amount
            _entry("expense", f"Budget: {category}", -amount)
    career = career.invest(expenses.categories.get("education", zero))

    # Step 9: Random interrupt events.
    events = roll_events(seed, month, fingerprint, currency, settings.event_odds)
    market_return_bps = 0
    for event in events:
        if event.kind == "emergency" and event.amount is not None:
            cash = cash - event.amount
            _entry("emergency", f"Emergency: {event.label}", -event.amount)
        elif event.kind == "windfall" and event.amount is not None:
            cash = cash + event.amount
            _entry("windfall", f"Windfall: {event.label}", event.amount)
        elif event.kind == "market_move" and event.return_bps is not None:
            market_return_bps = event.return_bps
            change = ledger.apply_market_move(event.return_bps, month)
            if not change.is_zero:
                _entry("market_move", f"Market move {event.return_bps / 100:+.2f}%", change, affects_cash=False)

    # Step 10: Review. Reconcile the audit trail and freeze the new snapshot.
    ledger.check_invariants(month)
    cash_delta = Money.total((entry.amount for entry in entries if entry.affects_cash), currency)
    if snapshot.cash + cash_delta != cash:
        raise InvariantViolation(
            "settlement entries do not reconcile with cash",
            rule="settlement.reconciliation",
            context={"cash_before": snapshot.cash.to_json(), "cash_after": cash.to_json(), "entries_total": cash_delta.to_json()},
        )

    new_snapshot = FinancialSnapshot(
        month=month.next(),
        currency=currency,
        cash=cash,
        accounts=ledger.accounts(),
        housing=housing,
        career=career.worked_month(),
        contribution_year=ledger.contribution_year,
        ytd_gross=ytd_gross + gross,
        last_gross_income=gross,
        last_net_income=gross - taxes.total,
        last_expenses=expenses.total,
        last_essential_expenses=expenses.essential + expenses.housing,
        side_incomes=carried_forward(side_incomes),
    )
    report = SettlementReport(
        month=month,
        rule_version=market.rule_version(month),
        employment_status=status,
        gross_income=gross,
        taxes=taxes,
        contributions=tuple(contribution_outcomes),
        state_matches=matches,
        disposals=tuple(disposals),
        expenses=expenses,
        events=tuple(events),
        entries=tuple(entries),
        cash_before=snapshot.cash,
        cash_after=cash,
        promotion_raise=promotion_raise,
        moved_to=moved_to,
        housing_happiness=0 if housing is None else housing.listing.happiness_impact,
        market_return_bps=market_return_bps,
        side_income=side_income if side_incomes else None,
    )
    logger.debug(
        "month_settled",
        extra={"month": str(month), "gross": gross.to_json(), "cash_after": cash.to_json(), "entries": len(entries)},
    )
    return report, new_snapshot
