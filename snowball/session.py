"""Game session: the single owner of one player's snapshot history and behavioral state."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any
import uuid

from .behavior import BehavioralState, update_behavior
from .budget import BudgetPlan, PlanActions, ValidationIssue, default_plan, validate_plan
from .career import Career, find_job
from .engine import FinancialSnapshot, SettlementReport, build_plan_context, settle_month
from .errors import InvariantViolation, SessionStateError
from .events import decision_fingerprint, revenge_roll
from .housing import Housing, find_listing
from .ledger import AccountLedger
from .logging_config import LogContext, get_logger
from .market import MarketProfile
from .markets import MARKETS, get_market, supported_markets
from .milestones import FireMetrics, evaluate_achievements, fire_metrics
from .money import ROUND_DOWN, Money
from .schema import EngineSettings, PlayerProfile, Scenario
from .timeline import GameMonth

logger = get_logger("session")

SAVE_FORMAT_VERSION = 1


@dataclass(frozen=True, slots=True)
class MarketSelected:
    market_id: str
    currency: str
    rule_version: str


@dataclass(frozen=True, slots=True)
class UnsupportedMarket:
    market_id: str
    supported: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PlanAcceptance:
    month: GameMonth
    expected_net_income: Money
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PlanRejection:
    month: GameMonth
    issues: tuple[ValidationIssue, ...]


class GameSession:
    """Planning, execution and review for one game, one month at a time."""

    def __init__(
        self,
        profile: PlayerProfile,
        *,
        seed: int,
        start_month: GameMonth,
        starting_cash: Decimal | None = None,
        starting_job: str | None = None,
        starting_housing: str | None = None,
        starting_accounts: dict[str, Decimal] | None = None,
        settings: EngineSettings | None = None,
        session_id: str | None = None,
    ) -> None:
        self.profile = profile
        self.seed = seed
        self.start_month = start_month
        self.settings = settings or EngineSettings()
        self.session_id = session_id or uuid.uuid4().hex
        self._starting_cash = starting_cash
        self._starting_job = starting_job
        self._starting_housing = starting_housing
        self._starting_accounts = dict(starting_accounts or {})

        self._market: MarketProfile | None = None
        self._history: list[FinancialSnapshot] = []
        self._behavior: BehavioralState | None = None
        self._behavior_history: list[BehavioralState] = []
        self._reports: list[SettlementReport] = []
        self._achievements: dict[str, GameMonth] = {}
        self._fingerprint = ""
        self._pending: tuple[BudgetPlan, PlanActions] | None = None

    @classmethod
    def from_scenario(cls, scenario: Scenario, *, seed: int | None = None) -> GameSession:
        return cls(
            scenario.player,
            seed=scenario.seed if seed is None else seed,
            start_month=GameMonth.parse(scenario.start_month),
            starting_cash=scenario.starting_cash,
            starting_job=scenario.starting_job,
            starting_housing=scenario.starting_housing,
            starting_accounts=scenario.starting_accounts,
            settings=scenario.settings,
        )

    # -- setup ---------------------------------------------------------------

    @property
    def market(self) -> MarketProfile:
        if self._market is None:
            raise SessionStateError("no market selected", operation="market")
        return self._market

    def select_market(self, market_id: str) -> MarketSelected | UnsupportedMarket:
        """Pick the jurisdiction for the whole game. Callable once."""
        if self._market is not None:
            raise SessionStateError("market already selected; switching markets is unsupported", operation="select_market")
        if market_id not in MARKETS:
            logger.info("market_unsupported", extra={"market_id": market_id})
            return UnsupportedMarket(market_id=market_id, supported=tuple(supported_markets()))

        market = get_market(market_id)
        currency = market.currency
        month = self.start_month

        career = Career()
        if self._starting_job is not None:
            career, _ = career.take_job(find_job(market_id, self._starting_job))
        housing = None
        if self._starting_housing is not None:
            housing = Housing(listing=find_listing(market_id, self._starting_housing), moved_in=month)

        if self._starting_cash is not None:
            cash = Money.of(self._starting_cash, currency)
        elif career.job is not None:
            cash = career.job.salary.divide(2, ROUND_DOWN)
        else:
            cash = Money.zero(currency)

        ledger = AccountLedger(market=market, contribution_year=month.year)
        for account_id, amount in sorted(self._starting_accounts.items()):
            ledger.deposit(account_id, Money.of(amount, currency), month)

        self._market = market
        self._history = [
            FinancialSnapshot(
                month=month,
                currency=currency,
                cash=cash,
                accounts=ledger.accounts(),
                housing=housing,
                career=career,
                contribution_year=month.year,
                ytd_gross=Money.zero(currency),
            )
        ]
        self._behavior = BehavioralState.initial(currency, self.settings)
        logger.info("market_selected", extra={"market_id": market_id, "session_id": self.session_id})
        return MarketSelected(market_id=market_id, currency=currency, rule_version=market.rule_version(month))

    # -- read-only views -----------------------------------------------------

    def current_snapshot(self) -> FinancialSnapshot:
        if not self._history:
            raise SessionStateError("no market selected", operation="current_snapshot")
        return self._history[-1]

    def snapshot_history(self) -> tuple[FinancialSnapshot, ...]:
        return tuple(self._history)

    def behavioral_state(self) -> BehavioralState:
        if self._behavior is None:
            raise SessionStateError("no market selected", operation="behavioral_state")
        return self._behavior

    def behavior_history(self) -> tuple[BehavioralState, ...]:
        return tuple(self._behavior_history)

    def reports(self) -> tuple[SettlementReport, ...]:
        return tuple(self._reports)

    def achievements(self) -> dict[str, GameMonth]:
        return dict(self._achievements)

    def player_age(self, month: GameMonth | None = None) -> int:
        target = month or self.current_snapshot().month
        return self.profile.age + target.months_since(self.start_month) // 12

    def fire_metrics(self) -> FireMetrics:
        return fire_metrics(
            self._history,
            current_age=self.player_age(),
            retirement_age=self.market.retirement_age,
            settings=self.settings,
        )

    def pending_plan(self) -> tuple[BudgetPlan, PlanActions] | None:
        return self._pending

    # -- planning ------------------------------------------------------------

    def submit_plan(self, budget: BudgetPlan, actions: PlanActions | None = None) -> PlanAcceptance | PlanRejection:
        """Validate and stage next month's plan. May be called any number of times before ``advance_month``."""
        actions = actions or PlanActions()
        snapshot = self.current_snapshot()
        context = build_plan_context(self.market, snapshot, self.behavioral_state(), actions, self.player_age())
        validation = validate_plan(budget, actions, context)
        if not validation.is_valid:
            logger.info(
                "plan_rejected",
                extra={"month": str(snapshot.month), "issues": [issue.code for issue in validation.issues]},
            )
            return PlanRejection(month=snapshot.month, issues=tuple(validation.issues))

        self._pending = (budget, actions)
        return PlanAcceptance(
            month=snapshot.month,
            expected_net_income=context.expected_net_income,
            warnings=tuple(validation.warnings),
        )

    def discard_plan(self) -> None:
        self._pending = None

    def _default_plan(self) -> tuple[BudgetPlan, PlanActions]:
        behavior = self.behavioral_state()
        budget = default_plan(self.market.essential_floor + behavior.essential_baseline)
        floor = behavior.discretionary_floor()
        if floor.is_positive:
            budget = BudgetPlan(allocations={**budget.allocations, "lifestyle": floor})
        return budget, PlanActions()

    # -- execution and review ------------------------------------------------

    def advance_month(self) -> SettlementReport:
        """Settle the current month atomically.

        Without a submitted plan the essential floor (plus any revenge-spending
        floor) is spent and nothing else happens. On ``InvariantViolation`` the
        session is left exactly as it was.
        """
        market = self.market
        snapshot = self.current_snapshot()
        behavior = self.behavioral_state()
        budget, actions = self._pending or self._default_plan()
        fingerprint = decision_fingerprint(self._fingerprint, {"budget": budget.to_dict(), "actions": actions.to_dict()})
        age = self.player_age(snapshot.month)

        with LogContext.bind(session_id=self.session_id, month=str(snapshot.month)):
            try:
                report, new_snapshot = settle_month(
                    market=market,
                    snapshot=snapshot,
                    plan=budget,
                    actions=actions,
                    seed=self.seed,
                    fingerprint=fingerprint,
                    settings=self.settings,
                    player_age=age,
                )
                new_behavior, delta = update_behavior(
                    behavior,
                    report,
                    frugal=self.profile.frugal,
                    revenge_roll=revenge_roll(self.seed, snapshot.month, fingerprint),
                    settings=self.settings,
                )
            except InvariantViolation as exc:
                logger.error(
                    "month_rejected",
                    extra={"rule": exc.rule, "context": exc.context},
                    exc_info=True,
                )
                raise

            report = replace(report, behavior=delta)
            history = self._history + [new_snapshot]
            behavior_history = self._behavior_history + [new_behavior]
            achievements = evaluate_achievements(
                history,
                behavior_history,
                market=market,
                start_age=self.profile.age,
                settings=self.settings,
                previous=self._achievements,
            )
            for achievement_id in achievements.keys() - self._achievements.keys():
                logger.info("achievement_unlocked", extra={"achievement_id": achievement_id})

        self._history = history
        self._behavior = new_behavior
        self._behavior_history = behavior_history
        self._reports.append(report)
        self._achievements = achievements
        self._fingerprint = fingerprint
        self._pending = None
        return report

    # -- persistence ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Logical save-game shape; money is written as decimal strings."""
        return {
            "version": SAVE_FORMAT_VERSION,
            "session_id": self.session_id,
            "market_id": self.market.market_id,
            "seed": self.seed,
            "start_month": str(self.start_month),
            "profile": self.profile.to_dict(),
            "settings": self.settings.to_dict(),
            "fingerprint": self._fingerprint,
            "history": [snapshot.to_dict() for snapshot in self._history],
            "behavior": self.behavioral_state().to_dict(),
            "behavior_history": [state.to_dict() for state in self._behavior_history],
            "achievements": {key: str(value) for key, value in self._achievements.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameSession:
        if data.get("version") != SAVE_FORMAT_VERSION:
            raise SessionStateError(f"unsupported save version {data.get('version')!r}", operation="from_dict")
        session = cls(
            PlayerProfile.from_dict(data["profile"], "profile"),
            seed=int(data["seed"]),
            start_month=GameMonth.parse(data["start_month"]),
            settings=EngineSettings.from_dict(data.get("settings", {})),
            session_id=data.get("session_id"),
        )
        market = get_market(data["market_id"])
        currency = market.currency
        session._market = market
        session._history = [FinancialSnapshot.from_dict(item, market) for item in data["history"]]
        session._behavior = BehavioralState.from_dict(data["behavior"], currency)
        session._behavior_history = [BehavioralState.from_dict(item, currency) for item in data.get("behavior_history", [])]
        session._achievements = {key: GameMonth.parse(value) for key, value in data.get("achievements", {}).items()}
        session._fingerprint = data.get("fingerprint", "")
        return session
