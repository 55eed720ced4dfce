"""Market rule contract shared by every jurisdiction.

A market is selected once per game and exposes pure functions of income,
dates and account state. Concrete markets live in ``snowball.markets``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from .cost_basis import LotSlice
from .errors import UnknownAccountTypeError
from .money import Money
from .tax import TaxBreakdown
from .timeline import GameMonth

# taxable: gains are taxed on disposal.
# deductible: contributions reduce taxable income; disposals are untaxed.
# tax_free: contributions are post-tax; disposals are untaxed.
# none: plain cash savings.
TAX_TREATMENTS = {"taxable", "deductible", "tax_free", "none"}


@dataclass(frozen=True, slots=True)
class AccountRule:
    account_id: str
    name: str
    annual_cap: Money | None
    tax_treatment: str
    invested: bool
    holding_period_sensitive: bool = False
    locked_until_retirement: bool = False
    match_description: str | None = None

    @property
    def is_deductible(self) -> bool:
        return self.tax_treatment == "deductible"


class MarketProfile(Protocol):
    market_id: str
    name: str
    currency: str
    retirement_age: int
    essential_floor: Money
    moving_fee: Money
    human_capital_unit: Money

    def rule_version(self, month: GameMonth) -> str: ...

    def compute_income_tax(
        self,
        gross_income: Money,
        month: GameMonth,
        deductible_contributions: Money | None = None,
    ) -> TaxBreakdown: ...

    def compute_social_insurance(self, gross_income: Money, month: GameMonth, ytd_gross: Money | None = None) -> Money: ...

    def compute_health_insurance(self, gross_income: Money, employment_status: str, month: GameMonth) -> Money: ...

    def available_accounts(self, month: GameMonth) -> dict[str, AccountRule]: ...

    def account_rule(self, account_id: str, month: GameMonth) -> AccountRule: ...

    def state_match(self, account_id: str, contribution: Money, matched_this_year: Money, month: GameMonth) -> Money: ...

    def capital_gains_tax(self, lot: LotSlice, disposal_month: GameMonth) -> Money: ...


def select_account_rule(rules: dict[str, AccountRule], account_id: str, market_id: str) -> AccountRule:
    rule = rules.get(account_id)
    if rule is None:
        raise UnknownAccountTypeError(account_id, market_id)
    return rule


def cap_money(caps: dict[str, Decimal], account_id: str, currency: str) -> Money | None:
    cap = caps.get(account_id)
    if cap is None:
        return None
    return Money.of(cap, currency)
