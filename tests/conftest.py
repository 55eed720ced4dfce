import json

import pytest

from snowball.logging_config import reset_logging
from snowball.markets import get_market
from snowball.schema import EngineSettings
from tests.helpers import SAMPLE_SCENARIO


@pytest.fixture
def sample_scenario_dict() -> dict:
    return json.loads(SAMPLE_SCENARIO.read_text(encoding="utf-8"))


@pytest.fixture
def quiet_settings() -> EngineSettings:
    """No emergencies, no windfalls and a flat market."""
    return EngineSettings.from_dict(
        {
            "emergency_probability_bps": 0,
            "windfall_probability_bps": 0,
            "market_move_min_bps": 0,
            "market_move_max_bps": 0,
        }
    )


@pytest.fixture
def czech():
    return get_market("czech")


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()
