"""Scenario schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
import json
from pathlib import Path
from typing import Any

from .budget import BudgetPlan, PlanActions
from .events import EventOdds
from .income import IncomeSource
from .money import Money, to_decimal


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _decimal(value: Any, path: str) -> Decimal:
    try:
        return to_decimal(value, path)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"{path}: expected exact decimal number or string") from exc


def _amounts(data: Any, path: str) -> dict[str, Decimal]:
    raw = _expect_dict(data, path)
    return {key: _decimal(value, f"{path}.{key}") for key, value in raw.items()}


@dataclass(slots=True)
class EngineSettings:
    """Behavioral thresholds, event odds and FIRE assumptions."""

    behavior_window_months: int = 3
    savings_rate_threshold: Decimal = Decimal("0.5")
    leisure_ratio_threshold: Decimal = Decimal("0.10")
    burnout_increase: int = 5
    burnout_recovery: int = 2
    happiness_increase: int = 3
    happiness_decay: int = 1
    overdraft_burnout: int = 8
    overdraft_happiness: int = 5
    revenge_happiness_threshold: int = 40
    revenge_burnout_threshold: int = 70
    revenge_floor_rate: Decimal = Decimal("0.10")
    lifestyle_creep_rate: Decimal = Decimal("0.10")
    starting_happiness: int = 70
    starting_burnout: int = 20
    emergency_probability_bps: int = 500
    windfall_probability_bps: int = 300
    market_move_min_bps: int = -150
    market_move_max_bps: int = 200
    safe_withdrawal_rate: Decimal = Decimal("0.04")
    fire_multiple: int = 25
    barista_coverage: Decimal = Decimal("0.5")
    coast_real_return: Decimal = Decimal("0.05")
    emergency_fund_months: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "settings") -> "EngineSettings":
        settings = cls()
        known = {item.name: item for item in fields(cls)}
        for key, value in data.items():
            if key not in known:
                raise SchemaError(f"{path}.{key}: unknown setting")
            current = getattr(settings, key)
            if isinstance(current, Decimal):
                setattr(settings, key, _decimal(value, f"{path}.{key}"))
            else:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise SchemaError(f"{path}.{key}: expected integer")
                setattr(settings, key, value)
        return settings

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            result[item.name] = str(value) if isinstance(value, Decimal) else value
        return result

    @property
    def event_odds(self) -> EventOdds:
        return EventOdds(
            emergency_bps=self.emergency_probability_bps,
            windfall_bps=self.windfall_probability_bps,
            market_min_bps=self.market_move_min_bps,
            market_max_bps=self.market_move_max_bps,
        )


@dataclass(slots=True)
class PlayerProfile:
    name: str
    age: int
    frugal: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "player") -> "PlayerProfile":
        age = _require(data, "age", path)
        if isinstance(age, bool) or not isinstance(age, int):
            raise SchemaError(f"{path}.age: expected integer")
        return cls(name=str(_require(data, "name", path)), age=age, frugal=bool(_optional(data, "frugal", False)))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "age": self.age, "frugal": self.frugal}


@dataclass(slots=True)
class ScenarioIncome:
    source_id: str
    name: str
    kind: str
    amount: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScenarioIncome":
        source_id = str(_require(data, "id", path))
        return cls(
            source_id=source_id,
            name=str(_optional(data, "name", source_id)),
            kind=str(_require(data, "kind", path)),
            amount=_decimal(_require(data, "amount", path), f"{path}.amount"),
        )

    def to_source(self, currency: str) -> IncomeSource:
        return IncomeSource(self.source_id, self.name, self.kind, Money.of(self.amount, currency))


@dataclass(slots=True)
class ScenarioMonth:
    """One scripted plan, repeated ``repeat`` months."""

    budget: dict[str, Decimal]
    contributions: dict[str, Decimal] = field(default_factory=dict)
    disposals: dict[str, Decimal] = field(default_factory=dict)
    take_job: str | None = None
    quit_job: bool = False
    move_to: str | None = None
    add_income: list[ScenarioIncome] = field(default_factory=list)
    end_income: list[str] = field(default_factory=list)
    repeat: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScenarioMonth":
        repeat = _optional(data, "repeat", 1)
        if isinstance(repeat, bool) or not isinstance(repeat, int):
            raise SchemaError(f"{path}.repeat: expected integer")
        add_income_raw = _expect_list(_optional(data, "add_income", []), f"{path}.add_income")
        end_income_raw = _expect_list(_optional(data, "end_income", []), f"{path}.end_income")
        return cls(
            budget=_amounts(_require(data, "budget", path), f"{path}.budget"),
            contributions=_amounts(_optional(data, "contributions", {}), f"{path}.contributions"),
            disposals=_amounts(_optional(data, "disposals", {}), f"{path}.disposals"),
            take_job=_optional(data, "take_job"),
            quit_job=bool(_optional(data, "quit_job", False)),
            move_to=_optional(data, "move_to"),
            add_income=[
                ScenarioIncome.from_dict(_expect_dict(item, f"{path}.add_income[{idx}]"), f"{path}.add_income[{idx}]")
                for idx, item in enumerate(add_income_raw)
            ],
            end_income=[str(item) for item in end_income_raw],
            repeat=repeat,
        )

    def to_plan(self, currency: str) -> tuple[BudgetPlan, PlanActions]:
        budget = BudgetPlan(allocations={key: Money.of(value, currency) for key, value in self.budget.items()})
        actions = PlanActions(
            take_job=self.take_job,
            quit_job=self.quit_job,
            move_to=self.move_to,
            contributions={key: Money.of(value, currency) for key, value in self.contributions.items()},
            disposals={key: Money.of(value, currency) for key, value in self.disposals.items()},
            add_income=tuple(item.to_source(currency) for item in self.add_income),
            end_income=tuple(self.end_income),
        )
        return budget, actions


@dataclass(slots=True)
class Scenario:
    player: PlayerProfile
    market: str
    seed: int
    start_month: str
    starting_cash: Decimal | None = None
    starting_job: str | None = None
    starting_housing: str | None = None
    starting_accounts: dict[str, Decimal] = field(default_factory=dict)
    settings: EngineSettings = field(default_factory=EngineSettings)
    months: list[ScenarioMonth] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        path = "scenario"
        seed = _require(data, "seed", path)
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise SchemaError(f"{path}.seed: expected integer")
        starting_cash_raw = _optional(data, "starting_cash")
        months_raw = _expect_list(_optional(data, "months", []), f"{path}.months")
        return cls(
            player=PlayerProfile.from_dict(_expect_dict(_require(data, "player", path), f"{path}.player"), f"{path}.player"),
            market=str(_require(data, "market", path)),
            seed=seed,
            start_month=str(_require(data, "start_month", path)),
            starting_cash=None if starting_cash_raw is None else _decimal(starting_cash_raw, f"{path}.starting_cash"),
            starting_job=_optional(data, "starting_job"),
            starting_housing=_optional(data, "starting_housing"),
            starting_accounts=_amounts(_optional(data, "starting_accounts", {}), f"{path}.starting_accounts"),
            settings=EngineSettings.from_dict(_expect_dict(_optional(data, "settings", {}), f"{path}.settings")),
            months=[
                ScenarioMonth.from_dict(_expect_dict(item, f"{path}.months[{idx}]"), f"{path}.months[{idx}]")
                for idx, item in enumerate(months_raw)
            ],
        )

    def scripted_plans(self, currency: str) -> list[tuple[BudgetPlan, PlanActions]]:
        """Expand ``repeat`` counts into one plan per month.

        A job change, move or income change only applies in the first month of a repeated block.
        """
        plans: list[tuple[BudgetPlan, PlanActions]] = []
        for item in self.months:
            budget, actions = item.to_plan(currency)
            for index in range(item.repeat):
                if index == 0:
                    plans.append((budget, actions))
                else:
                    plans.append(
                        (budget, PlanActions(contributions=actions.contributions, disposals=actions.disposals))
                    )
        return plans


def load_json(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        raw = json.load(f, parse_float=Decimal)
    if not isinstance(raw, dict):
        raise SchemaError("scenario: root must be a JSON object")
    return raw


def load_scenario(path: str | Path) -> Scenario:
    return Scenario.from_dict(load_json(path))
