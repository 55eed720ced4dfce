import pytest

from snowball.cost_basis import LotSlice
from snowball.errors import InputValidationError, UnknownAccountTypeError, UnknownMarketError
from snowball.markets import get_market, supported_markets
from snowball.money import Money
from snowball.timeline import GameMonth

JAN_2025 = GameMonth(2025, 1)


def _czk(amount) -> Money:
    return Money.of(amount, "CZK")


def test_registry():
    assert supported_markets() == ["czech", "uk", "usa"]
    with pytest.raises(UnknownMarketError) as excinfo:
        get_market("mars")
    assert excinfo.value.code == "UNKNOWN_MARKET"


def test_czech_payroll_insurance():
    market = get_market("czech")
    assert market.compute_social_insurance(_czk(30000), JAN_2025) == _czk(2130)
    assert market.compute_health_insurance(_czk(30000), "employed", JAN_2025) == _czk(1350)


def test_czech_social_insurance_stops_at_annual_ceiling():
    market = get_market("czech")
    assert market.compute_social_insurance(_czk(30000), JAN_2025, _czk(2234736)).is_zero
    assert market.compute_social_insurance(_czk(30000), JAN_2025, _czk(2224736)) == _czk(710)


@pytest.mark.parametrize(
    ("market_id", "status", "expected"),
    [
        ("czech", "unemployed", "2808"),
        ("czech", "employed", "2808"),
        ("usa", "unemployed", "477"),
        ("usa", "employed", "477"),
        ("uk", "unemployed", "0"),
    ],
)
def test_health_minimum_applies_whenever_income_is_zero(market_id, status, expected):
    market = get_market(market_id)
    charge = market.compute_health_insurance(Money.zero(market.currency), status, JAN_2025)
    assert charge == Money.of(expected, market.currency)


def test_health_minimum_follows_rule_year():
    market = get_market("czech")
    assert market.compute_health_insurance(_czk(0), "unemployed", GameMonth(2024, 12)) == _czk(2552)


def test_unknown_employment_status_is_rejected():
    with pytest.raises(InputValidationError):
        get_market("czech").compute_health_insurance(_czk(100), "student", JAN_2025)


def test_usa_fica_respects_wage_base():
    market = get_market("usa")
    gross = Money.of(4200, "USD")
    assert market.compute_social_insurance(gross, JAN_2025) == Money.of("321.30", "USD")
    assert market.compute_social_insurance(gross, JAN_2025, Money.of(176000, "USD")) == Money.of("67.10", "USD")


def test_unknown_account_type():
    with pytest.raises(UnknownAccountTypeError) as excinfo:
        get_market("czech").account_rule("401k", JAN_2025)
    assert excinfo.value.account_id == "401k"


def test_account_rules_and_caps():
    accounts = get_market("czech").available_accounts(JAN_2025)
    assert set(accounts) == {"emergency_fund", "brokerage", "dip", "third_pillar", "stavebni_sporeni"}
    assert accounts["third_pillar"].annual_cap == _czk(24000)
    assert accounts["dip"].is_deductible
    assert accounts["dip"].locked_until_retirement
    assert accounts["emergency_fund"].annual_cap is None
    assert get_market("usa").account_rule("401k", JAN_2025).annual_cap == Money.of(23500, "USD")


@pytest.mark.parametrize(
    ("contribution", "expected"),
    [("499", "0"), ("500", "100"), ("1700", "340"), ("5000", "340")],
)
def test_czech_third_pillar_match(contribution, expected):
    market = get_market("czech")
    match = market.state_match("third_pillar", _czk(contribution), Money.zero("CZK"), JAN_2025)
    assert match == _czk(expected)


def test_czech_building_savings_match_is_capped_per_year():
    market = get_market("czech")
    assert market.state_match("stavebni_sporeni", _czk(5000), _czk(0), JAN_2025) == _czk(500)
    assert market.state_match("stavebni_sporeni", _czk(5000), _czk(1800), JAN_2025) == _czk(200)
    assert market.state_match("stavebni_sporeni", _czk(5000), _czk(2000), JAN_2025).is_zero


def gbp(amount) -> Money:
    return Money.of(amount, "GBP")


def test_uk_lisa_bonus_and_sipp_relief():
    market = get_market("uk")
    assert market.state_match("lisa", gbp(400), gbp(0), JAN_2025) == gbp(100)
    assert market.state_match("lisa", gbp(400), gbp(950), JAN_2025) == gbp(50)
    assert market.state_match("sipp", gbp(800), gbp(0), JAN_2025) == gbp(200)
    assert market.state_match("isa", gbp(800), gbp(0), JAN_2025).is_zero


def _slice(cost, proceeds, acquired: GameMonth, currency="CZK") -> LotSlice:
    return LotSlice(cost=Money.of(cost, currency), proceeds=Money.of(proceeds, currency), acquired=acquired)


def test_czech_time_test_boundary_is_exempt():
    market = get_market("czech")
    lot = _slice(10000, 15000, GameMonth(2025, 1))
    assert market.capital_gains_tax(lot, GameMonth(2027, 12)) == _czk(750)
    assert market.capital_gains_tax(lot, GameMonth(2028, 1)).is_zero
    assert market.capital_gains_tax(lot, GameMonth(2028, 2)).is_zero


def test_losses_are_never_taxed():
    market = get_market("czech")
    assert market.capital_gains_tax(_slice(10000, 9000, JAN_2025), GameMonth(2025, 6)).is_zero


def test_usa_long_term_rate_after_twelve_months():
    market = get_market("usa")
    lot = _slice(1000, 2000, GameMonth(2025, 1), "USD")
    assert market.capital_gains_tax(lot, GameMonth(2025, 12)) == Money.of(220, "USD")
    assert market.capital_gains_tax(lot, GameMonth(2026, 1)) == Money.of(150, "USD")


def test_uk_flat_rate_depends_on_year():
    market = get_market("uk")
    lot = _slice(1000, 2000, GameMonth(2020, 1), "GBP")
    assert market.capital_gains_tax(lot, GameMonth(2024, 6)) == Money.of(200, "GBP")
    assert market.capital_gains_tax(lot, GameMonth(2025, 6)) == Money.of(240, "GBP")

