from decimal import Decimal

import pytest

from snowball.money import Money
from snowball.schema import EngineSettings, SchemaError, load_scenario
from tests.helpers import SAMPLE_SCENARIO, clone_scenario, write_scenario


def test_load_sample_scenario():
    scenario = load_scenario(SAMPLE_SCENARIO)
    assert scenario.market == "czech"
    assert scenario.player.name == "Jana"
    assert scenario.starting_cash == Decimal("20000")
    assert scenario.settings.emergency_probability_bps == 400
    assert scenario.settings.windfall_probability_bps == EngineSettings().windfall_probability_bps
    assert sum(item.repeat for item in scenario.months) == 12


def test_load_scenario_rejects_non_object_root(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(SchemaError, match="scenario: root must be a JSON object"):
        load_scenario(path)


def test_load_scenario_requires_required_field(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    del data["start_month"]
    path = write_scenario(tmp_path, data)

    with pytest.raises(SchemaError, match=r"scenario\.start_month: missing required field"):
        load_scenario(path)


def test_load_scenario_requires_player_age(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["player"]["age"] = "old"
    path = write_scenario(tmp_path, data)

    with pytest.raises(SchemaError, match=r"scenario\.player\.age: expected integer"):
        load_scenario(path)


def test_load_scenario_rejects_wrong_collection_types(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["months"] = {}
    path = write_scenario(tmp_path, data)

    with pytest.raises(SchemaError, match=r"scenario\.months: expected array"):
        load_scenario(path)


def test_load_scenario_rejects_unknown_setting(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["settings"] = {"luck": 7}
    path = write_scenario(tmp_path, data)

    with pytest.raises(SchemaError, match=r"settings\.luck: unknown setting"):
        load_scenario(path)


def test_load_scenario_rejects_non_numeric_amounts(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["months"][0]["budget"]["essential"] = "lots"
    path = write_scenario(tmp_path, data)

    with pytest.raises(SchemaError, match=r"scenario\.months\[0\]\.budget\.essential"):
        load_scenario(path)


def test_json_floats_are_read_as_exact_decimals(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    path = write_scenario(tmp_path, data)
    path.write_text(path.read_text(encoding="utf-8").replace('"essential": "8000"', '"essential": 8000.10', 1), encoding="utf-8")

    scenario = load_scenario(path)
    assert scenario.months[0].budget["essential"] == Decimal("8000.10")


def test_scripted_plans_expand_repeats_and_apply_moves_once(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["months"][0]["move_to"] = "cz_studio_avg_1"
    data["months"][0]["repeat"] = 3
    path = write_scenario(tmp_path, data)

    plans = load_scenario(path).scripted_plans("CZK")
    assert len(plans) == 9
    assert [actions.move_to for _, actions in plans[:3]] == ["cz_studio_avg_1", None, None]
    budget, actions = plans[1]
    assert budget.allocations["essential"] == Money.of(8000, "CZK")
    assert actions.contributions["third_pillar"] == Money.of(1700, "CZK")


def test_settings_round_trip():
    settings = EngineSettings.from_dict({"revenge_floor_rate": "0.2", "starting_happiness": 50})
    assert settings.revenge_floor_rate == Decimal("0.2")
    assert EngineSettings.from_dict(settings.to_dict()) == settings


def test_settings_reject_wrong_types():
    with pytest.raises(SchemaError, match=r"settings\.starting_happiness: expected integer"):
        EngineSettings.from_dict({"starting_happiness": "high"})


def test_income_changes_apply_in_the_first_month_of_a_block(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["months"][0]["add_income"] = [{"id": "gig", "name": "Tutoring", "kind": "freelance", "amount": "3000"}]
    data["months"][1]["end_income"] = ["gig"]
    plans = load_scenario(write_scenario(tmp_path, data)).scripted_plans("CZK")

    added = plans[0][1].add_income
    assert [(source.source_id, source.name, source.kind) for source in added] == [("gig", "Tutoring", "freelance")]
    assert added[0].gross_monthly == Money.of(3000, "CZK")
    assert plans[1][1].add_income == ()
    assert plans[6][1].end_income == ("gig",)
    assert plans[7][1].end_income == ()


def test_income_entries_need_id_and_kind(tmp_path, sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["months"][0]["add_income"] = [{"kind": "freelance", "amount": "3000"}]
    with pytest.raises(SchemaError, match=r"scenario\.months\[0\]\.add_income\[0\]\.id: missing required field"):
        load_scenario(write_scenario(tmp_path, data))
