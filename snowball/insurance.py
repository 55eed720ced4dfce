"""Payroll social and health insurance helpers."""

from __future__ import annotations

from decimal import Decimal

from .money import ROUND_HALF_UP, Money

EMPLOYMENT_STATUSES = {"employed", "unemployed", "retired"}


def capped_assessment_base(gross_income: Money, ytd_gross: Money, annual_ceiling: Decimal) -> Money:
    """Part of this month's income still below the annual assessment ceiling."""
    remaining = max(Decimal(0), annual_ceiling - ytd_gross.amount)
    return Money(min(gross_income.amount, remaining), gross_income.currency)


def percentage_insurance(base: Money, rate: Decimal) -> Money:
    """Insurance owed is rounded half-up to the minor unit."""
    if not base.is_positive:
        return Money.zero(base.currency)
    return base.multiply(rate, ROUND_HALF_UP)


def health_with_fallback(gross_income: Money, charge: Money, minimum: Decimal) -> Money:
    """Charge the statutory minimum whenever the month's realized income is zero.

    No prior-month income or employment status waives the minimum.
    """
    if gross_income.is_zero:
        return Money.of(minimum, gross_income.currency)
    return charge
