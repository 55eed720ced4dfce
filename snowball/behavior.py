"""Happiness, burnout, revenge spending and lifestyle creep."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .money import ROUND_HALF_UP, Money

if TYPE_CHECKING:
    from .engine import SettlementReport
    from .schema import EngineSettings

SCORE_MIN = 0
SCORE_MAX = 100


def _clamp(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, value))


@dataclass(frozen=True, slots=True)
class BehavioralState:
    happiness: int
    burnout: int
    essential_baseline: Money
    savings_rates: tuple[Decimal, ...] = ()
    leisure_ratios: tuple[Decimal, ...] = ()
    revenge_floor: Money | None = None

    @classmethod
    def initial(cls, currency: str, settings: EngineSettings) -> BehavioralState:
        return cls(
            happiness=_clamp(settings.starting_happiness),
            burnout=_clamp(settings.starting_burnout),
            essential_baseline=Money.zero(currency),
        )

    @property
    def financial_peace_score(self) -> int:
        return (self.happiness + (SCORE_MAX - self.burnout)) // 2

    def at_revenge_risk(self, settings: EngineSettings) -> bool:
        return self.happiness < settings.revenge_happiness_threshold or self.burnout > settings.revenge_burnout_threshold

    def discretionary_floor(self) -> Money:
        """Soft floor on next month's lifestyle budget."""
        return self.revenge_floor or Money.zero(self.essential_baseline.currency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "happiness": self.happiness,
            "burnout": self.burnout,
            "essential_baseline": self.essential_baseline.to_json(),
            "savings_rates": [str(value) for value in self.savings_rates],
            "leisure_ratios": [str(value) for value in self.leisure_ratios],
            "revenge_floor": None if self.revenge_floor is None else self.revenge_floor.to_json(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], currency: str) -> BehavioralState:
        revenge_floor = data.get("revenge_floor")
        return cls(
            happiness=int(data["happiness"]),
            burnout=int(data["burnout"]),
            essential_baseline=Money.from_json(data.get("essential_baseline", "0"), currency),
            savings_rates=tuple(Decimal(value) for value in data.get("savings_rates", [])),
            leisure_ratios=tuple(Decimal(value) for value in data.get("leisure_ratios", [])),
            revenge_floor=None if revenge_floor is None else Money.from_json(revenge_floor, currency),
        )


@dataclass(frozen=True, slots=True)
class BehaviorDelta:
    happiness: int
    burnout: int
    savings_rate: Decimal
    leisure_ratio: Decimal
    revenge_triggered: bool
    baseline_increase: Money
    reasons: tuple[str, ...]


def _average(values: tuple[Decimal, ...]) -> Decimal:
    if not values:
        return Decimal(0)
    return sum(values, Decimal(0)) / len(values)


def month_ratios(report: SettlementReport) -> tuple[Decimal, Decimal]:
    """(savings rate, leisure ratio) against the month's net income; both zero without income."""
    net = report.net_income
    if not net.is_positive:
        return Decimal(0), Decimal(0)
    saved = net - report.expenses.total
    return saved.ratio(net), report.expenses.discretionary.ratio(net)


def update_behavior(
    previous: BehavioralState,
    report: SettlementReport,
    *,
    frugal: bool,
    revenge_roll: int,
    settings: EngineSettings,
) -> tuple[BehavioralState, BehaviorDelta]:
    """Pure transition from one month's settlement to the next behavioral state.

    ``revenge_roll`` is a uniform integer in [0, 10000).
    """
    window = settings.behavior_window_months
    savings_rate, leisure_ratio = month_ratios(report)
    savings_rates = (previous.savings_rates + (savings_rate,))[-window:]
    leisure_ratios = (previous.leisure_ratios + (leisure_ratio,))[-window:]

    happiness_change = 0
    burnout_change = 0
    reasons: list[str] = []

    if _average(savings_rates) > settings.savings_rate_threshold:
        burnout_change += settings.burnout_increase
        reasons.append("high savings rate")
    else:
        burnout_change -= settings.burnout_recovery

    if _average(leisure_ratios) > settings.leisure_ratio_threshold:
        happiness_change += settings.happiness_increase
        reasons.append("enjoying leisure spending")
    else:
        happiness_change -= settings.happiness_decay

    if report.cash_after.is_negative:
        burnout_change += settings.overdraft_burnout
        happiness_change -= settings.overdraft_happiness
        reasons.append("overdraft stress")

    if report.housing_happiness:
        happiness_change += report.housing_happiness
        reasons.append("housing location")

    happiness = _clamp(previous.happiness + happiness_change)
    burnout = _clamp(previous.burnout + burnout_change)

    baseline_increase = Money.zero(previous.essential_baseline.currency)
    if report.promotion_raise is not None and not frugal:
        baseline_increase = report.promotion_raise.multiply(settings.lifestyle_creep_rate, ROUND_HALF_UP)
        reasons.append("lifestyle creep")

    revenge_triggered = False
    revenge_floor = None
    threshold = settings.revenge_happiness_threshold
    if happiness < threshold and threshold > 0:
        probability_bps = (threshold - happiness) * 10_000 // threshold
        if revenge_roll < probability_bps and report.net_income.is_positive:
            revenge_triggered = True
            revenge_floor = report.net_income.multiply(settings.revenge_floor_rate, ROUND_HALF_UP)
            reasons.append("revenge spending")

    new_state = replace(
        previous,
        happiness=happiness,
        burnout=burnout,
        essential_baseline=previous.essential_baseline + baseline_increase,
        savings_rates=savings_rates,
        leisure_ratios=leisure_ratios,
        revenge_floor=revenge_floor,
    )
    delta = BehaviorDelta(
        happiness=happiness - previous.happiness,
        burnout=burnout - previous.burnout,
        savings_rate=savings_rate,
        leisure_ratio=leisure_ratio,
        revenge_triggered=revenge_triggered,
        baseline_increase=baseline_increase,
        reasons=tuple(reasons),
    )
    return new_state, delta
