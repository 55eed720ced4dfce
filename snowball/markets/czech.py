"""Czech Republic: monthly employee taxation, DIP, penzijní spoření and stavební spoření."""

from __future__ import annotations

from ..cost_basis import LotSlice
from ..errors import InputValidationError
from ..insurance import EMPLOYMENT_STATUSES, capped_assessment_base, health_with_fallback, percentage_insurance
from ..market import AccountRule, cap_money, select_account_rule
from ..money import ROUND_DOWN, ROUND_HALF_UP, Money
from ..tax import TaxBreakdown, marginal_rate, progressive_tax, require_non_negative_income, round_tax
from ..tax_data import (
    CZ_ACCOUNT_CAPS,
    CZ_BUILDING_SAVINGS_MATCH,
    CZ_CAPITAL_GAINS_RATE,
    CZ_ESSENTIAL_FLOOR,
    CZ_HUMAN_CAPITAL_UNIT,
    CZ_HEALTH_MINIMUM,
    CZ_HEALTH_RATE,
    CZ_INCOME_TAX_BRACKETS,
    CZ_MOVING_FEE,
    CZ_RETIREMENT_AGE,
    CZ_SOCIAL_ANNUAL_CEILING,
    CZ_SOCIAL_RATE,
    CZ_TAXPAYER_CREDIT,
    CZ_THIRD_PILLAR_MATCH,
    CZ_TIME_TEST_MONTHS,
    effective_year,
    rule_for_year,
)
from ..timeline import GameMonth


class CzechMarket:
    market_id = "czech"
    name = "Czech Republic"
    currency = "CZK"
    retirement_age = CZ_RETIREMENT_AGE
    time_test_months = CZ_TIME_TEST_MONTHS

    def __init__(self) -> None:
        self.essential_floor = Money.of(CZ_ESSENTIAL_FLOOR, self.currency)
        self.moving_fee = Money.of(CZ_MOVING_FEE, self.currency)
        self.human_capital_unit = Money.of(CZ_HUMAN_CAPITAL_UNIT, self.currency)

    def rule_version(self, month: GameMonth) -> str:
        return f"{self.market_id}-{effective_year(CZ_INCOME_TAX_BRACKETS, month.year, 'CZ_INCOME_TAX_BRACKETS')}"

    def compute_income_tax(
        self,
        gross_income: Money,
        month: GameMonth,
        deductible_contributions: Money | None = None,
    ) -> TaxBreakdown:
        """Monthly advance: 15%/23% on the base, less the basic taxpayer credit."""
        require_non_negative_income(gross_income)
        brackets = rule_for_year(CZ_INCOME_TAX_BRACKETS, month.year, "CZ_INCOME_TAX_BRACKETS")
        credit = rule_for_year(CZ_TAXPAYER_CREDIT, month.year, "CZ_TAXPAYER_CREDIT")

        deductible = deductible_contributions or Money.zero(self.currency)
        taxable = (gross_income - deductible).clamp_min_zero()
        gross_tax = progressive_tax(taxable.amount, brackets)
        applied_credit = min(gross_tax, credit)
        return TaxBreakdown.income_only(
            taxable_income=taxable,
            income_tax=round_tax(gross_tax - applied_credit, self.currency),
            tax_credit=Money.rounded(applied_credit, self.currency, ROUND_DOWN),
            marginal_rate=marginal_rate(taxable.amount, brackets),
        )

    def compute_social_insurance(self, gross_income: Money, month: GameMonth, ytd_gross: Money | None = None) -> Money:
        require_non_negative_income(gross_income)
        rate = rule_for_year(CZ_SOCIAL_RATE, month.year, "CZ_SOCIAL_RATE")
        ceiling = rule_for_year(CZ_SOCIAL_ANNUAL_CEILING, month.year, "CZ_SOCIAL_ANNUAL_CEILING")
        base = capped_assessment_base(gross_income, ytd_gross or Money.zero(self.currency), ceiling)
        return percentage_insurance(base, rate)

    def compute_health_insurance(self, gross_income: Money, employment_status: str, month: GameMonth) -> Money:
        require_non_negative_income(gross_income)
        if employment_status not in EMPLOYMENT_STATUSES:
            raise InputValidationError("unknown employment status", field="employment_status", value=employment_status)
        rate = rule_for_year(CZ_HEALTH_RATE, month.year, "CZ_HEALTH_RATE")
        minimum = rule_for_year(CZ_HEALTH_MINIMUM, month.year, "CZ_HEALTH_MINIMUM")
        return health_with_fallback(gross_income, percentage_insurance(gross_income, rate), minimum)

    def available_accounts(self, month: GameMonth) -> dict[str, AccountRule]:
        caps = rule_for_year(CZ_ACCOUNT_CAPS, month.year, "CZ_ACCOUNT_CAPS")
        cur = self.currency
        return {
            "emergency_fund": AccountRule("emergency_fund", "Spořicí účet", None, "none", invested=False),
            "brokerage": AccountRule(
                "brokerage",
                "Investiční účet",
                None,
                "taxable",
                invested=True,
                holding_period_sensitive=True,
            ),
            "dip": AccountRule(
                "dip",
                "Dlouhodobý investiční produkt",
                cap_money(caps, "dip", cur),
                "deductible",
                invested=True,
                locked_until_retirement=True,
            ),
            "third_pillar": AccountRule(
                "third_pillar",
                "Doplňkové penzijní spoření",
                cap_money(caps, "third_pillar", cur),
                "tax_free",
                invested=True,
                locked_until_retirement=True,
                match_description="20% of a monthly contribution from 500 up to 1,700 CZK",
            ),
            "stavebni_sporeni": AccountRule(
                "stavebni_sporeni",
                "Stavební spoření",
                cap_money(caps, "stavebni_sporeni", cur),
                "tax_free",
                invested=False,
                match_description="10% of contributions, up to 2,000 CZK per year",
            ),
        }

    def account_rule(self, account_id: str, month: GameMonth) -> AccountRule:
        return select_account_rule(self.available_accounts(month), account_id, self.market_id)

    def state_match(self, account_id: str, contribution: Money, matched_this_year: Money, month: GameMonth) -> Money:
        self.account_rule(account_id, month)
        zero = Money.zero(self.currency)
        if not contribution.is_positive:
            return zero

        if account_id == "third_pillar":
            minimum, matched_ceiling, rate = rule_for_year(CZ_THIRD_PILLAR_MATCH, month.year, "CZ_THIRD_PILLAR_MATCH")
            if contribution.amount < minimum:
                return zero
            base = min(contribution, Money.of(matched_ceiling, self.currency))
            return base.multiply(rate, ROUND_HALF_UP)

        if account_id == "stavebni_sporeni":
            rate, annual_max = rule_for_year(CZ_BUILDING_SAVINGS_MATCH, month.year, "CZ_BUILDING_SAVINGS_MATCH")
            remaining = (Money.of(annual_max, self.currency) - matched_this_year).clamp_min_zero()
            return min(contribution.multiply(rate, ROUND_HALF_UP), remaining)

        return zero

    def capital_gains_tax(self, lot: LotSlice, disposal_month: GameMonth) -> Money:
        """15% on the gain unless the lot passed the time test.

        A lot held exactly ``time_test_months`` months is exempt.
        """
        if not lot.gain.is_positive:
            return Money.zero(self.currency)
        if lot.held_months(disposal_month) >= self.time_test_months:
            return Money.zero(self.currency)
        rate = rule_for_year(CZ_CAPITAL_GAINS_RATE, disposal_month.year, "CZ_CAPITAL_GAINS_RATE")
        return lot.gain.multiply(rate, ROUND_DOWN)
