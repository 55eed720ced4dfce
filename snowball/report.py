"""Plain-text settlement reports and session summaries."""

from __future__ import annotations

from decimal import Decimal

from .engine import SettlementReport
from .milestones import ACHIEVEMENTS
from .money import Money
from .session import GameSession


def _money(value: Money) -> str:
    return value.format()


def _format_signed(value: Money) -> str:
    return f"+{_money(value)}" if value.is_positive else _money(value)


def _percent(value: Decimal) -> str:
    return f"{value * 100:.1f}%"


def render_month(report: SettlementReport) -> str:
    lines = [
        f"== {report.month} ({report.rule_version}, {report.employment_status}) ==",
        f"Gross income:      {_money(report.gross_income)}",
        f"Income tax:        {_money(report.taxes.income_tax)}",
        f"Social insurance:  {_money(report.taxes.social_insurance)}",
        f"Health insurance:  {_money(report.taxes.health_insurance)}",
        f"Net income:        {_money(report.net_income)}",
        f"Expenses:          {_money(report.expenses.total)}",
    ]
    if report.side_income is not None:
        lines.insert(2, f"  of which side:   {_money(report.side_income)}")
    for outcome in report.contributions:
        cap = "no cap" if outcome.remaining_cap is None else f"cap left {_money(outcome.remaining_cap)}"
        lines.append(f"Contribution {outcome.account_id}: {_money(outcome.amount)} ({cap})")
    for account_id, match in sorted(report.state_matches.items()):
        lines.append(f"State match {account_id}: {_format_signed(match)}")
    for disposal in report.disposals:
        lines.append(f"Withdrawal {disposal.account_id}: {_money(disposal.proceeds)}, tax {_money(disposal.tax)}")
    for event in report.events:
        if event.kind == "market_move":
            lines.append(f"Market: {event.return_bps / 100:+.2f}%")
        elif event.amount is not None:
            lines.append(f"{event.kind.title()}: {event.label} {_money(event.amount)}")
    lines.append(f"Cash: {_money(report.cash_before)} -> {_money(report.cash_after)} ({_format_signed(report.net_cash_delta)})")
    if report.overdraft:
        lines.append("OVERDRAFT: cash ended the month below zero")
    if report.behavior is not None:
        delta = report.behavior
        reasons = ", ".join(delta.reasons) if delta.reasons else "steady"
        lines.append(f"Happiness {delta.happiness:+d}, burnout {delta.burnout:+d} ({reasons})")
    return "\n".join(lines)


def render_summary(session: GameSession) -> str:
    snapshot = session.current_snapshot()
    behavior = session.behavioral_state()
    metrics = session.fire_metrics()
    history = session.snapshot_history()
    lines = [
        f"Player: {session.profile.name}, age {session.player_age()}",
        f"Market: {session.market.name}",
        f"Months played: {len(history) - 1}",
        f"Cash: {_money(snapshot.cash)}",
        f"Portfolio: {_money(snapshot.portfolio_value)}",
        f"Net worth: {_money(snapshot.net_worth)}",
        f"Happiness: {behavior.happiness}  Burnout: {behavior.burnout}  Peace: {behavior.financial_peace_score}",
        f"FIRE number: {_money(metrics.fire_number)} ({_percent(metrics.fire_progress)} reached)",
    ]
    for account_id, state in sorted(snapshot.accounts.items()):
        lines.append(f"  {account_id}: {_money(state.balance)} (cost {_money(state.cost_basis)})")
    unlocked = session.achievements()
    if unlocked:
        lines.append("Achievements:")
        for achievement_id, month in unlocked.items():
            lines.append(f"  {month} {ACHIEVEMENTS[achievement_id].title}")
    return "\n".join(lines)
