import copy
from decimal import Decimal
import json
from pathlib import Path

from snowball.budget import BudgetPlan, PlanActions
from snowball.money import Money
from snowball.schema import EngineSettings, PlayerProfile
from snowball.session import GameSession
from snowball.timeline import GameMonth

SAMPLE_SCENARIO = Path(__file__).resolve().parent.parent / "sample_scenario.json"


def write_scenario(tmp_path: Path, data: dict, filename: str = "scenario.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_scenario(data: dict) -> dict:
    return copy.deepcopy(data)


def czk(amount) -> Money:
    return Money.of(amount, "CZK")


def budget(**allocations) -> BudgetPlan:
    return BudgetPlan(allocations={key: czk(value) for key, value in allocations.items()})


def contributions(**amounts) -> PlanActions:
    return PlanActions(contributions={key: czk(value) for key, value in amounts.items()})


def new_session(
    settings: EngineSettings,
    *,
    job: str | None = "cz_tech_entry",
    housing: str | None = None,
    cash="50000",
    accounts: dict | None = None,
    age: int = 25,
    frugal: bool = False,
    start: str = "2025-01",
    seed: int = 7,
) -> GameSession:
    session = GameSession(
        PlayerProfile(name="Test", age=age, frugal=frugal),
        seed=seed,
        start_month=GameMonth.parse(start),
        starting_cash=None if cash is None else Money.of(cash, "CZK").amount,
        starting_job=job,
        starting_housing=housing,
        starting_accounts={key: Decimal(str(value)) for key, value in (accounts or {}).items()},
        settings=settings,
        session_id="test-session",
    )
    session.select_market("czech")
    return session
