"""United Kingdom: PAYE income tax, Class 1 National Insurance, ISA, LISA and SIPP."""

from __future__ import annotations

from decimal import Decimal

from ..cost_basis import LotSlice
from ..errors import InputValidationError
from ..insurance import EMPLOYMENT_STATUSES, health_with_fallback
from ..market import AccountRule, cap_money, select_account_rule
from ..money import ROUND_DOWN, ROUND_HALF_UP, Money
from ..tax import TaxBreakdown, annualized_monthly_tax, marginal_rate, require_non_negative_income, round_tax
from ..tax_data import (
    UK_ACCOUNT_CAPS,
    UK_CAPITAL_GAINS_RATE,
    UK_ESSENTIAL_FLOOR,
    UK_HUMAN_CAPITAL_UNIT,
    UK_HEALTH_MINIMUM,
    UK_INCOME_TAX_BRACKETS,
    UK_LISA_BONUS,
    UK_MOVING_FEE,
    UK_NATIONAL_INSURANCE_BRACKETS,
    UK_RETIREMENT_AGE,
    UK_SIPP_RELIEF_RATE,
    effective_year,
    rule_for_year,
)
from ..timeline import GameMonth


class UkMarket:
    market_id = "uk"
    name = "United Kingdom"
    currency = "GBP"
    retirement_age = UK_RETIREMENT_AGE

    def __init__(self) -> None:
        self.essential_floor = Money.of(UK_ESSENTIAL_FLOOR, self.currency)
        self.moving_fee = Money.of(UK_MOVING_FEE, self.currency)
        self.human_capital_unit = Money.of(UK_HUMAN_CAPITAL_UNIT, self.currency)

    def rule_version(self, month: GameMonth) -> str:
        return f"{self.market_id}-{effective_year(UK_INCOME_TAX_BRACKETS, month.year, 'UK_INCOME_TAX_BRACKETS')}"

    def compute_income_tax(
        self,
        gross_income: Money,
        month: GameMonth,
        deductible_contributions: Money | None = None,
    ) -> TaxBreakdown:
        require_non_negative_income(gross_income)
        brackets = rule_for_year(UK_INCOME_TAX_BRACKETS, month.year, "UK_INCOME_TAX_BRACKETS")
        deductible = deductible_contributions or Money.zero(self.currency)
        monthly_taxable = (gross_income - deductible).clamp_min_zero()
        monthly_tax, annual_taxable = annualized_monthly_tax(monthly_taxable.amount, Decimal(0), brackets)
        return TaxBreakdown.income_only(
            taxable_income=monthly_taxable,
            income_tax=round_tax(monthly_tax, self.currency),
            marginal_rate=marginal_rate(annual_taxable, brackets),
        )

    def compute_social_insurance(self, gross_income: Money, month: GameMonth, ytd_gross: Money | None = None) -> Money:
        """Class 1 employee NI, assessed per pay period so the year-to-date total is not needed."""
        require_non_negative_income(gross_income)
        brackets = rule_for_year(UK_NATIONAL_INSURANCE_BRACKETS, month.year, "UK_NATIONAL_INSURANCE_BRACKETS")
        monthly_ni, _ = annualized_monthly_tax(gross_income.amount, Decimal(0), brackets)
        return Money.rounded(monthly_ni, self.currency, ROUND_HALF_UP)

    def compute_health_insurance(self, gross_income: Money, employment_status: str, month: GameMonth) -> Money:
        require_non_negative_income(gross_income)
        if employment_status not in EMPLOYMENT_STATUSES:
            raise InputValidationError("unknown employment status", field="employment_status", value=employment_status)
        minimum = rule_for_year(UK_HEALTH_MINIMUM, month.year, "UK_HEALTH_MINIMUM")
        return health_with_fallback(gross_income, Money.zero(self.currency), minimum)

    def available_accounts(self, month: GameMonth) -> dict[str, AccountRule]:
        caps = rule_for_year(UK_ACCOUNT_CAPS, month.year, "UK_ACCOUNT_CAPS")
        cur = self.currency
        return {
            "emergency_fund": AccountRule("emergency_fund", "Easy-access savings", None, "none", invested=False),
            "gia": AccountRule(
                "gia",
                "General investment account",
                None,
                "taxable",
                invested=True,
                holding_period_sensitive=True,
            ),
            "isa": AccountRule("isa", "Stocks and shares ISA", cap_money(caps, "isa", cur), "tax_free", invested=True),
            "lisa": AccountRule(
                "lisa",
                "Lifetime ISA",
                cap_money(caps, "lisa", cur),
                "tax_free",
                invested=True,
                locked_until_retirement=True,
                match_description="25% government bonus, up to 1,000 GBP per year",
            ),
            "sipp": AccountRule(
                "sipp",
                "Self-invested personal pension",
                cap_money(caps, "sipp", cur),
                "tax_free",
                invested=True,
                locked_until_retirement=True,
                match_description="25% basic-rate relief added to contributions",
            ),
        }

    def account_rule(self, account_id: str, month: GameMonth) -> AccountRule:
        return select_account_rule(self.available_accounts(month), account_id, self.market_id)

    def state_match(self, account_id: str, contribution: Money, matched_this_year: Money, month: GameMonth) -> Money:
        self.account_rule(account_id, month)
        zero = Money.zero(self.currency)
        if not contribution.is_positive:
            return zero

        if account_id == "lisa":
            rate, annual_max = rule_for_year(UK_LISA_BONUS, month.year, "UK_LISA_BONUS")
            remaining = (Money.of(annual_max, self.currency) - matched_this_year).clamp_min_zero()
            return min(contribution.multiply(rate, ROUND_HALF_UP), remaining)

        if account_id == "sipp":
            rate = rule_for_year(UK_SIPP_RELIEF_RATE, month.year, "UK_SIPP_RELIEF_RATE")
            return contribution.multiply(rate, ROUND_HALF_UP)

        return zero

    def capital_gains_tax(self, lot: LotSlice, disposal_month: GameMonth) -> Money:
        """Flat rate on the gain with no holding-period exemption."""
        if not lot.gain.is_positive:
            return Money.zero(self.currency)
        rate = rule_for_year(UK_CAPITAL_GAINS_RATE, disposal_month.year, "UK_CAPITAL_GAINS_RATE")
        return lot.gain.multiply(rate, ROUND_DOWN)
