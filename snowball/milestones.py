"""FIRE progress metrics and achievement unlocks over the snapshot history."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Final, Mapping, Sequence, TypeVar

from .behavior import BehavioralState
from .engine import FinancialSnapshot
from .market import MarketProfile
from .money import ROUND_DOWN, ROUND_HALF_UP, Money
from .schema import EngineSettings
from .timeline import GameMonth

TRAILING_MONTHS: Final[int] = 12
ZEN_MONTHS: Final[int] = 24

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class FireMetrics:
    portfolio: Money
    annual_expenses: Money
    annual_essential_expenses: Money
    fire_number: Money
    safe_withdrawal: Money
    years_to_retirement: int
    fire: bool
    lean_fire: bool
    barista_fire: bool
    coast_fire: bool

    @property
    def fire_progress(self) -> Decimal:
        if not self.fire_number.is_positive:
            return Decimal(0)
        return min(Decimal(1), self.portfolio.ratio(self.fire_number))


@dataclass(frozen=True, slots=True)
class Achievement:
    achievement_id: str
    title: str
    description: str


ACHIEVEMENTS: Final[dict[str, Achievement]] = {
    item.achievement_id: item
    for item in [
        Achievement("first_paycheck", "First paycheck", "Receive a salary for the first time."),
        Achievement("emergency_fund", "Rainy day ready", "Hold at least three months of expenses in the emergency fund."),
        Achievement("debt_free_year", "Debt-free year", "End twelve consecutive months with non-negative cash."),
        Achievement("cap_maxed", "Maxed out", "Reach the annual contribution cap of a capped account."),
        Achievement("zen_master", "Zen master", "Keep happiness above 80 for 24 consecutive months."),
        Achievement("lean_fire", "Lean FIRE", "Safe withdrawal covers essential expenses."),
        Achievement("barista_fire", "Barista FIRE", "Safe withdrawal covers half of all expenses."),
        Achievement("coast_fire", "Coast FIRE", "Growth alone reaches the FIRE number by retirement age."),
        Achievement("fire", "FIRE", "Portfolio reaches 25 times annual expenses."),
    ]
}


def _settled(history: Sequence[FinancialSnapshot]) -> list[FinancialSnapshot]:
    return [snapshot for snapshot in history if snapshot.settled]


def _recent_settled(history: Sequence[FinancialSnapshot], end: int) -> list[FinancialSnapshot]:
    """Up to the last twelve settled snapshots in ``history[: end + 1]``, oldest first."""
    recent: list[FinancialSnapshot] = []
    for index in range(end, -1, -1):
        if history[index].settled:
            recent.append(history[index])
            if len(recent) == TRAILING_MONTHS:
                break
    recent.reverse()
    return recent


def _settled_month(snapshot: FinancialSnapshot) -> GameMonth:
    return snapshot.month.plus_months(-1)


def _trailing_annual(values: list[Money], currency: str) -> Money:
    if not values:
        return Money.zero(currency)
    window = values[-TRAILING_MONTHS:]
    monthly = Money.total(window, currency).divide(len(window), ROUND_HALF_UP)
    return monthly.multiply(12, ROUND_HALF_UP)


def fire_metrics(
    history: Sequence[FinancialSnapshot],
    *,
    current_age: int,
    retirement_age: int,
    settings: EngineSettings,
) -> FireMetrics:
    """FIRE metrics for the latest snapshot against the trailing twelve months of expenses."""
    return _metrics_at(history, len(history) - 1, current_age=current_age, retirement_age=retirement_age, settings=settings)


def _metrics_at(
    history: Sequence[FinancialSnapshot],
    index: int,
    *,
    current_age: int,
    retirement_age: int,
    settings: EngineSettings,
) -> FireMetrics:
    latest = history[index]
    currency = latest.currency
    settled = _recent_settled(history, index)
    annual_expenses = _trailing_annual([item.last_expenses for item in settled if item.last_expenses is not None], currency)
    annual_essential = _trailing_annual(
        [item.last_essential_expenses for item in settled if item.last_essential_expenses is not None], currency
    )

    portfolio = latest.portfolio_value
    fire_number = annual_expenses.multiply(settings.fire_multiple, ROUND_HALF_UP)
    safe_withdrawal = portfolio.multiply(settings.safe_withdrawal_rate, ROUND_DOWN)
    years = max(0, retirement_age - current_age)
    growth = (Decimal(1) + settings.coast_real_return) ** years
    projected = portfolio.multiply(growth, ROUND_DOWN)

    has_expenses = annual_expenses.is_positive
    return FireMetrics(
        portfolio=portfolio,
        annual_expenses=annual_expenses,
        annual_essential_expenses=annual_essential,
        fire_number=fire_number,
        safe_withdrawal=safe_withdrawal,
        years_to_retirement=years,
        fire=has_expenses and portfolio >= fire_number,
        lean_fire=annual_essential.is_positive and safe_withdrawal >= annual_essential,
        barista_fire=has_expenses and safe_withdrawal >= annual_expenses.multiply(settings.barista_coverage, ROUND_HALF_UP),
        coast_fire=has_expenses and projected >= fire_number,
    )


def _consecutive(history: Sequence[T], predicate: Callable[[T], bool], length: int) -> int | None:
    """Index at which ``predicate`` has first held for ``length`` consecutive items."""
    run = 0
    for index, item in enumerate(history):
        run = run + 1 if predicate(item) else 0
        if run >= length:
            return index
    return None


def evaluate_achievements(
    history: Sequence[FinancialSnapshot],
    behavior_history: Sequence[BehavioralState],
    *,
    market: MarketProfile,
    start_age: int,
    settings: EngineSettings,
    previous: Mapping[str, GameMonth] | None = None,
) -> dict[str, GameMonth]:
    """Unlocked achievement ids mapped to the month whose settlement first earned them.

    Read-only and deterministic: the same history always yields the same mapping.
    ``behavior_history[i]`` is the state after the month that produced ``history[i + 1]``.

    ``previous`` is the result for ``history[:-1]``. When given, only the newest
    snapshot is checked for per-month unlocks, which keeps a long game linear.
    """
    unlocked: dict[str, GameMonth] = dict(previous or {})

    def _unlock(achievement_id: str, month: GameMonth) -> None:
        if achievement_id not in unlocked:
            unlocked[achievement_id] = month

    start = history[0].month if history else None
    first = 0 if previous is None else max(0, len(history) - 1)
    for index in range(first, len(history)):
        snapshot = history[index]
        if not snapshot.settled:
            continue
        settled_month = _settled_month(snapshot)
        if snapshot.last_gross_income is not None and snapshot.last_gross_income.is_positive:
            _unlock("first_paycheck", settled_month)

        monthly = snapshot.last_expenses
        if monthly is not None and monthly.is_positive:
            target = monthly.multiply(settings.emergency_fund_months, ROUND_HALF_UP)
            if snapshot.account_balance("emergency_fund") >= target:
                _unlock("emergency_fund", settled_month)

        rules = market.available_accounts(settled_month)
        for account_id, state in snapshot.accounts.items():
            rule = rules.get(account_id)
            if rule is not None and rule.annual_cap is not None and state.contributed_this_year >= rule.annual_cap:
                _unlock("cap_maxed", settled_month)

        age = start_age + (snapshot.month.months_since(start) // 12 if start is not None else 0)
        metrics = _metrics_at(history, index, current_age=age, retirement_age=market.retirement_age, settings=settings)
        for achievement_id, reached in (
            ("lean_fire", metrics.lean_fire),
            ("barista_fire", metrics.barista_fire),
            ("coast_fire", metrics.coast_fire),
            ("fire", metrics.fire),
        ):
            if reached:
                _unlock(achievement_id, settled_month)

    if "debt_free_year" not in unlocked:
        # Incremental calls only need the window ending at the newest snapshot.
        settled = _recent_settled(history, len(history) - 1) if previous is not None else _settled(history)
        debt_free_at = _consecutive(settled, lambda item: not item.cash.is_negative, TRAILING_MONTHS)
        if debt_free_at is not None:
            _unlock("debt_free_year", _settled_month(settled[debt_free_at]))

    zen_at = None
    if "zen_master" not in unlocked:
        offset = max(0, len(behavior_history) - ZEN_MONTHS) if previous is not None else 0
        zen_at = _consecutive(behavior_history[offset:], lambda item: item.happiness > 80, ZEN_MONTHS)
        if zen_at is not None:
            zen_at += offset
    if zen_at is not None and zen_at + 1 < len(history):
        _unlock("zen_master", _settled_month(history[zen_at + 1]))

    return dict(sorted(unlocked.items(), key=lambda item: (item[1], item[0])))
