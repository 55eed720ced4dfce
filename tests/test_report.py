from decimal import Decimal

from snowball.budget import PlanActions
from snowball.income import IncomeSource
from snowball.report import _percent, render_month, render_summary
from tests.helpers import budget, contributions, czk, new_session


def test_month_report_lists_taxes_contributions_and_cash(quiet_settings):
    session = new_session(quiet_settings)
    session.submit_plan(budget(essential=3500), contributions(third_pillar=1700))
    text = render_month(session.advance_month())

    lines = text.splitlines()
    assert lines[0] == "== 2025-01 (czech-2025, employed) =="
    assert "Gross income:      32,000.00 Kč" in lines
    assert "Income tax:        2,230.00 Kč" in lines
    assert "Net income:        26,058.00 Kč" in lines
    assert "Contribution third_pillar: 1,700.00 Kč (cap left 22,300.00 Kč)" in lines
    assert "State match third_pillar: +340.00 Kč" in lines
    assert "Cash: 50,000.00 Kč -> 70,858.00 Kč (+20,858.00 Kč)" in lines
    assert "OVERDRAFT" not in text


def test_month_report_flags_overdraft(quiet_settings):
    session = new_session(quiet_settings, job=None, cash="0")
    text = render_month(session.advance_month())

    assert "(czech-2025, unemployed)" in text
    assert "OVERDRAFT: cash ended the month below zero" in text


def test_summary_lists_accounts_and_progress(quiet_settings):
    session = new_session(quiet_settings)
    session.submit_plan(budget(essential=3500), contributions(third_pillar=1700))
    session.advance_month()
    text = render_summary(session)

    assert "Player: Test, age 25" in text
    assert "Market: Czech Republic" in text
    assert "Months played: 1" in text
    assert "  third_pillar: 2,040.00 Kč" in text
    assert "FIRE number: " in text


def test_month_report_shows_side_income(quiet_settings):
    session = new_session(quiet_settings)
    session.submit_plan(budget(essential=3500), PlanActions(add_income=(IncomeSource("gig", "Tutoring", "freelance", czk(3000)),)))
    lines = render_month(session.advance_month()).splitlines()

    assert lines[1:3] == ["Gross income:      35,000.00 Kč", "  of which side:   3,000.00 Kč"]
    assert "Net income:        28,260.00 Kč" in lines


def test_month_report_without_side_income_has_no_side_line(quiet_settings):
    session = new_session(quiet_settings)
    assert "of which side" not in render_month(session.advance_month())


def test_percent_formats_decimal_progress():
    assert _percent(Decimal("0.125")) == "12.5%"
    assert _percent(Decimal(1)) == "100.0%"
