import pytest

from snowball.errors import InputValidationError, InvariantViolation, UnknownAccountTypeError
from snowball.ledger import AccountLedger, CapExceeded, ContributionAccepted
from snowball.markets import get_market
from snowball.money import Money
from snowball.timeline import GameMonth
from tests.helpers import czk

JAN_2025 = GameMonth(2025, 1)


def _ledger(year: int = 2025) -> AccountLedger:
    return AccountLedger(market=get_market("czech"), contribution_year=year)


def test_contribution_within_cap_is_credited():
    ledger = _ledger()
    outcome = ledger.contribute("third_pillar", czk(20000), JAN_2025)
    assert isinstance(outcome, ContributionAccepted)
    assert outcome.accepted
    assert outcome.remaining_cap == czk(4000)
    assert ledger.balance("third_pillar") == czk(20000)


def test_contribution_over_remaining_cap_is_rejected_whole():
    ledger = _ledger()
    ledger.contribute("third_pillar", czk(20000), JAN_2025)
    outcome = ledger.contribute("third_pillar", czk(5000), GameMonth(2025, 2))
    assert isinstance(outcome, CapExceeded)
    assert not outcome.accepted
    assert outcome.remaining_cap == czk(4000)
    assert outcome.annual_cap == czk(24000)
    assert ledger.balance("third_pillar") == czk(20000)
    assert ledger.accounts()["third_pillar"].contributed_this_year == czk(20000)


def test_contribution_filling_the_cap_exactly_is_accepted():
    ledger = _ledger()
    ledger.contribute("third_pillar", czk(20000), JAN_2025)
    outcome = ledger.contribute("third_pillar", czk(4000), JAN_2025)
    assert isinstance(outcome, ContributionAccepted)
    assert outcome.remaining_cap == Money.zero("CZK")


def test_uncapped_accounts_report_no_remaining_cap():
    ledger = _ledger()
    outcome = ledger.contribute("brokerage", czk(1_000_000), JAN_2025)
    assert isinstance(outcome, ContributionAccepted)
    assert outcome.remaining_cap is None


def test_annual_counters_reset_in_a_new_year():
    ledger = _ledger()
    ledger.contribute("third_pillar", czk(24000), GameMonth(2025, 12))
    assert ledger.remaining_cap("third_pillar", GameMonth(2025, 12)) == Money.zero("CZK")
    assert ledger.remaining_cap("third_pillar", GameMonth(2026, 1)) == czk(24000)

    ledger.start_month(GameMonth(2026, 1))
    assert ledger.contribution_year == 2026
    state = ledger.accounts()["third_pillar"]
    assert state.contributed_this_year.is_zero
    assert state.balance == czk(24000)


def test_check_contribution_does_not_mutate():
    ledger = _ledger()
    ledger.check_contribution("dip", czk(1000), JAN_2025)
    assert ledger.accounts() == {}


def test_non_positive_contribution_is_input_error():
    with pytest.raises(InputValidationError):
        _ledger().contribute("dip", Money.zero("CZK"), JAN_2025)


def test_unknown_account_is_configuration_error():
    with pytest.raises(UnknownAccountTypeError):
        _ledger().contribute("isa", czk(100), JAN_2025)


def test_state_match_is_credited_as_its_own_lot():
    ledger = _ledger()
    ledger.contribute("third_pillar", czk(1700), JAN_2025)
    match = ledger.apply_state_match("third_pillar", czk(1700), JAN_2025)
    state = ledger.accounts()["third_pillar"]
    assert match == czk(340)
    assert state.balance == czk(2040)
    assert state.matched_this_year == czk(340)
    assert state.contributed_this_year == czk(1700)
    assert len(state.lots) == 2


def test_market_move_only_grows_invested_accounts():
    ledger = _ledger()
    ledger.deposit("brokerage", czk(1000), JAN_2025)
    ledger.deposit("emergency_fund", czk(1000), JAN_2025)
    change = ledger.apply_market_move(250, JAN_2025)
    assert change == czk(25)
    assert ledger.balance("brokerage") == czk(1025)
    assert ledger.balance("emergency_fund") == czk(1000)
    assert ledger.invested_value(JAN_2025) == czk(1025)


def test_disposal_is_fifo_with_per_lot_tax():
    ledger = _ledger()
    ledger.deposit("brokerage", czk(1000), GameMonth(2025, 1))
    ledger.deposit("brokerage", czk(1000), GameMonth(2025, 6))
    ledger.apply_market_move(1000, GameMonth(2025, 6))

    disposal = ledger.evaluate_disposal("brokerage", czk(1500), GameMonth(2026, 1))
    first, second = disposal.slices
    assert first.acquired == GameMonth(2025, 1)
    assert (first.cost, first.proceeds) == (czk(1000), czk(1100))
    assert second.acquired == GameMonth(2025, 6)
    assert (second.cost, second.proceeds) == (czk("363.64"), czk(400))
    assert disposal.tax == czk("20.45")
    assert disposal.net_proceeds == czk("1479.55")

    (kept,) = ledger.accounts()["brokerage"].lots
    assert kept.acquired == GameMonth(2025, 6)
    assert (kept.cost, kept.value) == (czk("636.36"), czk(700))


def test_disposal_after_time_test_is_exempt():
    ledger = _ledger()
    ledger.deposit("brokerage", czk(1000), GameMonth(2025, 1))
    ledger.apply_market_move(5000, GameMonth(2025, 1))
    disposal = ledger.evaluate_disposal("brokerage", czk(1500), GameMonth(2028, 1))
    assert disposal.tax.is_zero
    assert disposal.exempt_slices == 1


def test_disposal_from_untaxed_account_has_no_tax():
    ledger = _ledger()
    ledger.deposit("stavebni_sporeni", czk(5000), JAN_2025)
    disposal = ledger.evaluate_disposal("stavebni_sporeni", czk(2000), GameMonth(2025, 3))
    assert disposal.tax.is_zero
    assert ledger.balance("stavebni_sporeni") == czk(3000)


def test_disposal_beyond_balance_is_invariant_violation():
    ledger = _ledger()
    ledger.deposit("brokerage", czk(100), JAN_2025)
    with pytest.raises(InvariantViolation) as excinfo:
        ledger.evaluate_disposal("brokerage", czk(101), JAN_2025)
    assert excinfo.value.rule == "ledger.disposal"
    assert ledger.balance("brokerage") == czk(100)


def test_state_round_trips_through_dict():
    ledger = _ledger()
    ledger.contribute("third_pillar", czk(1700), JAN_2025)
    state = ledger.accounts()["third_pillar"]
    restored = type(state).from_dict(state.to_dict(), "CZK")
    assert restored == state


def test_invariant_check_passes_for_consistent_ledger():
    ledger = _ledger()
    ledger.contribute("dip", czk(48000), JAN_2025)
    ledger.check_invariants(JAN_2025)
