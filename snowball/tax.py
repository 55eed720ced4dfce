"""Tax computation helpers shared by every market."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from .errors import InputValidationError
from .money import ROUND_DOWN, Money
from .tax_data import Bracket


@dataclass(frozen=True, slots=True)
class TaxBreakdown:
    """One month's income tax and payroll insurance."""

    taxable_income: Money
    income_tax: Money
    social_insurance: Money
    health_insurance: Money
    tax_credit: Money
    marginal_rate: Decimal

    @classmethod
    def income_only(
        cls,
        *,
        taxable_income: Money,
        income_tax: Money,
        tax_credit: Money | None = None,
        marginal_rate: Decimal = Decimal(0),
    ) -> TaxBreakdown:
        zero = Money.zero(income_tax.currency)
        return cls(
            taxable_income=taxable_income,
            income_tax=income_tax,
            social_insurance=zero,
            health_insurance=zero,
            tax_credit=tax_credit or zero,
            marginal_rate=marginal_rate,
        )

    def with_insurance(self, social_insurance: Money, health_insurance: Money) -> TaxBreakdown:
        return replace(self, social_insurance=social_insurance, health_insurance=health_insurance)

    @property
    def total(self) -> Money:
        return self.income_tax + self.social_insurance + self.health_insurance


def require_non_negative_income(gross_income: Money) -> None:
    if gross_income.is_negative:
        raise InputValidationError("gross income must not be negative", field="gross_income", value=str(gross_income.amount))


def progressive_tax(amount: Decimal, brackets: list[Bracket]) -> Decimal:
    """Exact (unrounded) tax on ``amount``.

    Each bracket's upper bound is inclusive, so income exactly at a bound is
    taxed wholly at that bracket's rate and only the excess reaches the next.
    """
    if amount <= 0:
        return Decimal(0)

    remaining = amount
    lower = Decimal(0)
    tax = Decimal(0)
    for upper, rate in brackets:
        if remaining <= 0:
            break
        if upper is None:
            taxable_at_rate = remaining
        else:
            taxable_at_rate = min(remaining, max(Decimal(0), upper - lower))
        tax += taxable_at_rate * rate
        remaining -= taxable_at_rate
        if upper is None:
            break
        lower = upper
    return max(Decimal(0), tax)


def marginal_rate(amount: Decimal, brackets: list[Bracket]) -> Decimal:
    for upper, rate in brackets:
        if upper is None or amount <= upper:
            return rate
    return brackets[-1][1]


def round_tax(value: Decimal, currency: str) -> Money:
    """Tax owed is rounded down to the minor unit."""
    return Money.rounded(max(Decimal(0), value), currency, ROUND_DOWN)


def annualized_monthly_tax(monthly_taxable: Decimal, annual_deduction: Decimal, brackets: list[Bracket]) -> tuple[Decimal, Decimal]:
    """Return (exact monthly tax, annual taxable income) for annual brackets.

    The month is annualized, taxed against the yearly schedule and divided
    back by twelve.
    """
    annual_taxable = max(Decimal(0), monthly_taxable * 12 - annual_deduction)
    return progressive_tax(annual_taxable, brackets) / 12, annual_taxable
