from dataclasses import replace
from decimal import Decimal

import pytest

from snowball.budget import PlanActions
from snowball.career import Career, Job, find_job
from snowball.engine import ENTRY_CATEGORIES, FinancialSnapshot, settle_month
from snowball.errors import InvariantViolation
from snowball.income import IncomeSource
from snowball.ledger import AccountLedger
from snowball.markets import get_market
from snowball.money import Money
from snowball.schema import EngineSettings
from snowball.timeline import GameMonth
from tests.helpers import budget, contributions, czk

JAN_2025 = GameMonth(2025, 1)


def _snapshot(*, salary: str | None = "30000", cash="0", month: GameMonth = JAN_2025, accounts=None, **kwargs) -> FinancialSnapshot:
    career = Career()
    if salary is not None:
        career = Career(job=Job("test_analyst", "Analyst", "finance", "entry", czk(salary)), last_salary=czk(salary))
    return FinancialSnapshot(
        month=month,
        currency="CZK",
        cash=czk(cash),
        accounts=accounts or {},
        housing=None,
        career=career,
        contribution_year=kwargs.pop("contribution_year", month.year),
        ytd_gross=Money.zero("CZK"),
        **kwargs,
    )


def _settle(snapshot, plan, actions=None, *, settings, age=30, seed=1, fingerprint="fp"):
    return settle_month(
        market=get_market("czech"),
        snapshot=snapshot,
        plan=plan,
        actions=actions or PlanActions(),
        seed=seed,
        fingerprint=fingerprint,
        settings=settings,
        player_age=age,
    )


def test_30000_gross_with_essential_floor(quiet_settings):
    report, after = _settle(_snapshot(), budget(essential=3500), settings=quiet_settings)

    assert report.gross_income == czk(30000)
    assert report.taxes.income_tax == czk(1930)
    assert report.taxes.social_insurance == czk(2130)
    assert report.taxes.health_insurance == czk(1350)
    assert report.net_income == czk(24590)
    assert report.net_cash_delta == report.net_income - czk(3500)
    assert after.cash == czk(21090)
    assert after.month == GameMonth(2025, 2)
    assert after.last_net_income == czk(24590)
    assert after.ytd_gross == czk(30000)
    assert not report.overdraft


def test_entries_reconcile_with_cash(quiet_settings):
    report, after = _settle(_snapshot(cash="5000"), budget(essential=3500, lifestyle=2000), settings=quiet_settings)
    cash_entries = [entry for entry in report.entries if entry.affects_cash]
    assert Money.total((entry.amount for entry in cash_entries), "CZK") == after.cash - czk(5000)
    assert [entry.sequence for entry in report.entries] == list(range(1, len(report.entries) + 1))
    assert {entry.category for entry in report.entries} <= ENTRY_CATEGORIES


def test_zero_income_month_charges_health_minimum(quiet_settings):
    report, after = _settle(_snapshot(salary=None, cash="10000"), budget(essential=3500), settings=quiet_settings)
    assert report.employment_status == "unemployed"
    assert report.taxes.income_tax.is_zero
    assert report.taxes.social_insurance.is_zero
    assert report.taxes.health_insurance == czk(2808)
    assert after.cash == czk(3692)


def test_retired_status_at_retirement_age(quiet_settings):
    report, _ = _settle(_snapshot(salary=None, cash="10000"), budget(essential=3500), settings=quiet_settings, age=65)
    assert report.employment_status == "retired"


def test_overdraft_is_recoverable(quiet_settings):
    report, after = _settle(_snapshot(salary=None), budget(essential=3500), settings=quiet_settings)
    assert report.overdraft
    assert after.cash == czk(-6308)


def test_deductible_contribution_lowers_income_tax(quiet_settings):
    report, after = _settle(_snapshot(), budget(essential=3500), contributions(dip=2000), settings=quiet_settings)
    assert report.taxes.income_tax == czk(1630)
    assert after.account_balance("dip") == czk(2000)
    assert after.cash == czk(21090 - 2000 + 300)


def test_state_match_does_not_touch_cash(quiet_settings):
    report, after = _settle(_snapshot(), budget(essential=3500), contributions(third_pillar=1700), settings=quiet_settings)
    assert report.state_matches == {"third_pillar": czk(340)}
    assert after.account_balance("third_pillar") == czk(2040)
    assert after.cash == czk(21090 - 1700)
    match_entry = next(entry for entry in report.entries if entry.category == "state_match")
    assert not match_entry.affects_cash


def test_cap_breach_during_execution_is_invariant_violation(quiet_settings):
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.contribute("third_pillar", czk(24000), JAN_2025)
    snapshot = _snapshot(accounts=ledger.accounts())

    with pytest.raises(InvariantViolation) as excinfo:
        _settle(snapshot, budget(essential=3500), contributions(third_pillar=100), settings=quiet_settings)
    assert excinfo.value.rule == "ledger.annual_cap"
    assert snapshot.account_balance("third_pillar") == czk(24000)


def test_year_rollover_resets_caps(quiet_settings):
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.contribute("third_pillar", czk(24000), GameMonth(2025, 12))
    snapshot = _snapshot(accounts=ledger.accounts(), month=GameMonth(2026, 1), contribution_year=2025)

    report, after = _settle(snapshot, budget(essential=3500), contributions(third_pillar=1700), settings=quiet_settings)
    assert report.contributions[0].accepted
    assert after.contribution_year == 2026
    assert after.accounts["third_pillar"].contributed_this_year == czk(1700)
    assert after.ytd_gross == czk(30000)


def test_locked_withdrawal_during_execution_is_invariant_violation(quiet_settings):
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.deposit("dip", czk(5000), JAN_2025)
    actions = PlanActions(disposals={"dip": czk(1000)})
    with pytest.raises(InvariantViolation):
        _settle(_snapshot(accounts=ledger.accounts()), budget(essential=3500), actions, settings=quiet_settings)


def test_taxable_withdrawal_pays_capital_gains(quiet_settings):
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.deposit("brokerage", czk(1000), GameMonth(2024, 6))
    ledger.apply_market_move(5000, GameMonth(2024, 6))
    actions = PlanActions(disposals={"brokerage": czk(1500)})

    report, after = _settle(_snapshot(accounts=ledger.accounts()), budget(essential=3500), actions, settings=quiet_settings)
    assert report.disposals[0].tax == czk(75)
    assert after.account_balance("brokerage").is_zero
    assert after.cash == czk(21090 + 1500 - 75)


def test_move_charges_moving_cost_separately(quiet_settings):
    actions = PlanActions(move_to="cz_shared_poor_1")
    report, after = _settle(_snapshot(), budget(essential=3500), actions, settings=quiet_settings)
    categories = [entry.category for entry in report.entries]
    assert "moving" in categories and "housing" in categories
    assert report.expenses.moving == czk(9500)
    assert report.expenses.housing == czk(5000)
    assert report.moved_to == "cz_shared_poor_1"
    assert report.housing_happiness == -2
    assert after.housing.listing.listing_id == "cz_shared_poor_1"
    assert after.housing.moved_in == JAN_2025
    assert after.cash == czk(21090 - 9500 - 5000)


def test_promotion_reports_raise(quiet_settings):
    career = Career(job=find_job("czech", "cz_tech_entry"), experience_months=24, last_salary=czk(32000))
    snapshot = replace(_snapshot(), career=career)
    report, after = _settle(snapshot, budget(essential=3500), PlanActions(take_job="cz_dev_junior"), settings=quiet_settings)
    assert report.promotion_raise == czk(13000)
    assert report.gross_income == czk(45000)
    assert after.career.job.job_id == "cz_dev_junior"
    assert after.career.history == ("cz_tech_entry",)
    assert after.career.months_in_job == 1


def test_ineligible_job_during_execution_is_invariant_violation(quiet_settings):
    with pytest.raises(InvariantViolation):
        _settle(_snapshot(), budget(essential=3500), PlanActions(take_job="cz_arch_lead"), settings=quiet_settings)


def test_market_move_grows_invested_accounts():
    settings = EngineSettings.from_dict(
        {"emergency_probability_bps": 0, "windfall_probability_bps": 0, "market_move_min_bps": 100, "market_move_max_bps": 100}
    )
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.deposit("brokerage", czk(10000), JAN_2025)
    report, after = _settle(_snapshot(accounts=ledger.accounts()), budget(essential=3500), settings=settings)
    assert report.market_return_bps == 200
    assert after.account_balance("brokerage") == czk(10200)
    assert after.cash == czk(21090)


def test_events_are_deterministic_for_seed_and_decisions():
    settings = EngineSettings.from_dict({"emergency_probability_bps": 5000, "windfall_probability_bps": 5000})
    first, _ = _settle(_snapshot(), budget(essential=3500), settings=settings, seed=99, fingerprint="abc")
    second, _ = _settle(_snapshot(), budget(essential=3500), settings=settings, seed=99, fingerprint="abc")
    assert first.events == second.events
    assert first.cash_after == second.cash_after


def test_snapshot_round_trips_through_dict(quiet_settings):
    _, after = _settle(_snapshot(), budget(essential=3500), contributions(third_pillar=1700), settings=quiet_settings)
    market = get_market("czech")
    # Jobs are looked up by id, so use a listed job for the round trip.
    listed = replace(after, career=Career(job=find_job("czech", "cz_tech_entry"), months_in_job=3))
    assert FinancialSnapshot.from_dict(listed.to_dict(), market) == listed


def test_snapshot_round_trip_keeps_human_capital_and_side_incomes(quiet_settings):
    gig = IncomeSource("gig", "Weekend gigs", "freelance", czk(2000))
    _, after = _settle(_snapshot(), budget(essential=3500, education=5000), PlanActions(add_income=(gig,)), settings=quiet_settings)
    listed = replace(after, career=replace(after.career, job=find_job("czech", "cz_tech_entry")))
    restored = FinancialSnapshot.from_dict(listed.to_dict(), get_market("czech"))
    assert restored == listed
    assert restored.career.human_capital == Decimal(5000)
    assert restored.side_incomes == (gig,)


def test_snapshot_accounts_are_read_only(quiet_settings):
    ledger = AccountLedger(market=get_market("czech"), contribution_year=2025)
    ledger.deposit("brokerage", czk(10000), JAN_2025)
    accounts = ledger.accounts()
    snapshot = _snapshot(accounts=accounts)
    accounts.clear()
    with pytest.raises(TypeError):
        snapshot.accounts["brokerage"] = None  # type: ignore[index]
    with pytest.raises(AttributeError):
        snapshot.accounts.clear()  # type: ignore[attr-defined]
    assert snapshot.account_balance("brokerage") == czk(10000)

    report, _ = _settle(_snapshot(), budget(essential=3500), contributions(third_pillar=1700), settings=quiet_settings)
    with pytest.raises(TypeError):
        report.state_matches["third_pillar"] = czk(0)  # type: ignore[index]
    assert report.state_matches == {"third_pillar": czk(340)}


def test_education_spending_builds_human_capital(quiet_settings):
    report, after = _settle(_snapshot(), budget(essential=3500, education=5000), settings=quiet_settings)
    assert report.gross_income == czk(30000)
    assert after.career.human_capital == Decimal(5000)
    # 5000 of a 100000 unit adds half of the 10% step.
    assert after.career.monthly_gross("CZK", get_market("czech").human_capital_unit) == czk(30150)


def test_human_capital_raises_settled_salary(quiet_settings):
    snapshot = _snapshot()
    snapshot = replace(snapshot, career=replace(snapshot.career, human_capital=Decimal(50000)))
    report, after = _settle(snapshot, budget(essential=3500), settings=quiet_settings)
    assert report.gross_income == czk(31500)
    assert after.last_gross_income == czk(31500)
    assert report.net_income == czk(31500) - report.taxes.total


def test_side_income_is_taxed_with_salary(quiet_settings):
    gig = IncomeSource("gig", "Weekend gigs", "freelance", czk(2000))
    report, after = _settle(_snapshot(), budget(essential=3500), PlanActions(add_income=(gig,)), settings=quiet_settings)

    # Same payroll as a 32000 salary.
    assert report.gross_income == czk(32000)
    assert report.side_income == czk(2000)
    assert report.taxes.income_tax == czk(2230)
    assert report.taxes.social_insurance == czk(2272)
    assert report.taxes.health_insurance == czk(1440)
    assert report.net_income == czk(26058)
    assert [entry.label for entry in report.entries if entry.category == "income"] == ["Salary: Analyst", "Side income: Weekend gigs"]
    assert after.side_incomes == (gig,)

    report, after = _settle(after, budget(essential=3500), settings=quiet_settings)
    assert report.gross_income == czk(32000)

    report, after = _settle(after, budget(essential=3500), PlanActions(end_income=("gig",)), settings=quiet_settings)
    assert report.gross_income == czk(30000)
    assert report.side_income is None
    assert after.side_incomes == ()


def test_one_time_income_pays_once(quiet_settings):
    bonus = IncomeSource("bonus", "Signing bonus", "one_time", czk(10000))
    report, after = _settle(_snapshot(salary=None, cash="10000"), budget(essential=3500), PlanActions(add_income=(bonus,)), settings=quiet_settings)
    assert report.gross_income == czk(10000)
    assert report.employment_status == "unemployed"
    assert after.side_incomes == ()

    report, _ = _settle(after, budget(essential=3500), settings=quiet_settings)
    assert report.gross_income.is_zero


def test_ending_unknown_income_during_execution_is_invariant_violation(quiet_settings):
    with pytest.raises(InvariantViolation) as excinfo:
        _settle(_snapshot(), budget(essential=3500), PlanActions(end_income=("ghost",)), settings=quiet_settings)
    assert excinfo.value.rule == "income.unknown_source"
