"""United States: federal income tax for a single filer, FICA, 401(k), Roth IRA and HSA."""

from __future__ import annotations

from ..cost_basis import LotSlice
from ..errors import InputValidationError
from ..insurance import EMPLOYMENT_STATUSES, capped_assessment_base, health_with_fallback, percentage_insurance
from ..market import AccountRule, cap_money, select_account_rule
from ..money import ROUND_DOWN, Money
from ..tax import TaxBreakdown, annualized_monthly_tax, marginal_rate, require_non_negative_income, round_tax
from ..tax_data import (
    US_ACCOUNT_CAPS,
    US_CAPITAL_GAINS_RATES,
    US_ESSENTIAL_FLOOR,
    US_FEDERAL_BRACKETS,
    US_FICA_RATES,
    US_HUMAN_CAPITAL_UNIT,
    US_HEALTH_MINIMUM,
    US_HEALTH_PREMIUM_EMPLOYED,
    US_LONG_TERM_MONTHS,
    US_MOVING_FEE,
    US_RETIREMENT_AGE,
    US_SOCIAL_SECURITY_WAGE_BASE,
    US_STANDARD_DEDUCTION,
    effective_year,
    rule_for_year,
)
from ..timeline import GameMonth


class UsaMarket:
    market_id = "usa"
    name = "United States"
    currency = "USD"
    retirement_age = US_RETIREMENT_AGE
    long_term_months = US_LONG_TERM_MONTHS

    def __init__(self) -> None:
        self.essential_floor = Money.of(US_ESSENTIAL_FLOOR, self.currency)
        self.moving_fee = Money.of(US_MOVING_FEE, self.currency)
        self.human_capital_unit = Money.of(US_HUMAN_CAPITAL_UNIT, self.currency)

    def rule_version(self, month: GameMonth) -> str:
        return f"{self.market_id}-{effective_year(US_FEDERAL_BRACKETS, month.year, 'US_FEDERAL_BRACKETS')}"

    def compute_income_tax(
        self,
        gross_income: Money,
        month: GameMonth,
        deductible_contributions: Money | None = None,
    ) -> TaxBreakdown:
        require_non_negative_income(gross_income)
        brackets = rule_for_year(US_FEDERAL_BRACKETS, month.year, "US_FEDERAL_BRACKETS")
        deduction = rule_for_year(US_STANDARD_DEDUCTION, month.year, "US_STANDARD_DEDUCTION")

        deductible = deductible_contributions or Money.zero(self.currency)
        monthly_taxable = (gross_income - deductible).clamp_min_zero()
        monthly_tax, annual_taxable = annualized_monthly_tax(monthly_taxable.amount, deduction, brackets)
        return TaxBreakdown.income_only(
            taxable_income=monthly_taxable,
            income_tax=round_tax(monthly_tax, self.currency),
            marginal_rate=marginal_rate(annual_taxable, brackets),
        )

    def compute_social_insurance(self, gross_income: Money, month: GameMonth, ytd_gross: Money | None = None) -> Money:
        """Social Security up to the wage base plus uncapped Medicare."""
        require_non_negative_income(gross_income)
        ss_rate, medicare_rate = rule_for_year(US_FICA_RATES, month.year, "US_FICA_RATES")
        wage_base = rule_for_year(US_SOCIAL_SECURITY_WAGE_BASE, month.year, "US_SOCIAL_SECURITY_WAGE_BASE")
        ss_base = capped_assessment_base(gross_income, ytd_gross or Money.zero(self.currency), wage_base)
        return percentage_insurance(ss_base, ss_rate) + percentage_insurance(gross_income, medicare_rate)

    def compute_health_insurance(self, gross_income: Money, employment_status: str, month: GameMonth) -> Money:
        require_non_negative_income(gross_income)
        if employment_status not in EMPLOYMENT_STATUSES:
            raise InputValidationError("unknown employment status", field="employment_status", value=employment_status)
        minimum = rule_for_year(US_HEALTH_MINIMUM, month.year, "US_HEALTH_MINIMUM")
        if employment_status == "employed":
            premium = Money.of(rule_for_year(US_HEALTH_PREMIUM_EMPLOYED, month.year, "US_HEALTH_PREMIUM_EMPLOYED"), self.currency)
        else:
            premium = Money.of(minimum, self.currency)
        return health_with_fallback(gross_income, premium, minimum)

    def available_accounts(self, month: GameMonth) -> dict[str, AccountRule]:
        caps = rule_for_year(US_ACCOUNT_CAPS, month.year, "US_ACCOUNT_CAPS")
        cur = self.currency
        return {
            "emergency_fund": AccountRule("emergency_fund", "High-yield savings", None, "none", invested=False),
            "brokerage": AccountRule(
                "brokerage",
                "Taxable brokerage",
                None,
                "taxable",
                invested=True,
                holding_period_sensitive=True,
            ),
            "401k": AccountRule(
                "401k", "401(k)", cap_money(caps, "401k", cur), "deductible", invested=True, locked_until_retirement=True
            ),
            "roth_ira": AccountRule(
                "roth_ira", "Roth IRA", cap_money(caps, "roth_ira", cur), "tax_free", invested=True, locked_until_retirement=True
            ),
            "hsa": AccountRule("hsa", "Health savings account", cap_money(caps, "hsa", cur), "deductible", invested=True),
        }

    def account_rule(self, account_id: str, month: GameMonth) -> AccountRule:
        return select_account_rule(self.available_accounts(month), account_id, self.market_id)

    def state_match(self, account_id: str, contribution: Money, matched_this_year: Money, month: GameMonth) -> Money:
        self.account_rule(account_id, month)
        return Money.zero(self.currency)

    def capital_gains_tax(self, lot: LotSlice, disposal_month: GameMonth) -> Money:
        """Long-term rate once a lot has been held ``long_term_months``; short-term rate before."""
        if not lot.gain.is_positive:
            return Money.zero(self.currency)
        short_rate, long_rate = rule_for_year(US_CAPITAL_GAINS_RATES, disposal_month.year, "US_CAPITAL_GAINS_RATES")
        rate = long_rate if lot.held_months(disposal_month) >= self.long_term_months else short_rate
        return lot.gain.multiply(rate, ROUND_DOWN)
