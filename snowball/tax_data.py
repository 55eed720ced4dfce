"""Versioned tax, insurance and account reference data per market.

Every table is keyed by the first calendar year it applies to. A month uses
the latest table whose year is not after the month's year; months before the
earliest table have no rule version.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Final, TypeVar

from .errors import RuleVersionError

D = Decimal
T = TypeVar("T")

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
# Upper bounds are inclusive: income exactly at a bound is taxed at that row's rate.
Bracket = tuple[Decimal | None, Decimal]


def effective_year(table: dict[int, object], year: int, name: str) -> int:
    effective = [table_year for table_year in table if table_year <= year]
    if not effective:
        raise RuleVersionError(name, year)
    return max(effective)


def rule_for_year(table: dict[int, T], year: int, name: str) -> T:
    return table[effective_year(table, year, name)]


# ---------------------------------------------------------------------------
# Czech Republic (monthly amounts, CZK)
# ---------------------------------------------------------------------------

# 23% applies above 36x the average wage, expressed per month.
CZ_INCOME_TAX_BRACKETS: Final[dict[int, list[Bracket]]] = {
    2024: [(D("131901"), D("0.15")), (None, D("0.23"))],
    2025: [(D("139671"), D("0.15")), (None, D("0.23"))],
}

CZ_TAXPAYER_CREDIT: Final[dict[int, Decimal]] = {
    2024: D("2570"),
    2025: D("2570"),
}

CZ_SOCIAL_RATE: Final[dict[int, Decimal]] = {
    2024: D("0.071"),
    2025: D("0.071"),
}

# Annual assessment-base ceiling for employee social insurance (48x average wage).
CZ_SOCIAL_ANNUAL_CEILING: Final[dict[int, Decimal]] = {
    2024: D("2110416"),
    2025: D("2234736"),
}

CZ_HEALTH_RATE: Final[dict[int, Decimal]] = {
    2024: D("0.045"),
    2025: D("0.045"),
}

# Minimum monthly health insurance for a person without insurable income.
CZ_HEALTH_MINIMUM: Final[dict[int, Decimal]] = {
    2024: D("2552"),
    2025: D("2808"),
}

CZ_CAPITAL_GAINS_RATE: Final[dict[int, Decimal]] = {
    2024: D("0.15"),
    2025: D("0.15"),
}

CZ_TIME_TEST_MONTHS: Final[int] = 36

CZ_ACCOUNT_CAPS: Final[dict[int, dict[str, Decimal]]] = {
    2024: {"dip": D("48000"), "third_pillar": D("24000"), "stavebni_sporeni": D("20000")},
    2025: {"dip": D("48000"), "third_pillar": D("24000"), "stavebni_sporeni": D("20000")},
}

# (minimum monthly contribution, maximum matched monthly contribution, rate)
CZ_THIRD_PILLAR_MATCH: Final[dict[int, tuple[Decimal, Decimal, Decimal]]] = {
    2024: (D("500"), D("1700"), D("0.20")),
}

# (rate, maximum match per calendar year)
CZ_BUILDING_SAVINGS_MATCH: Final[dict[int, tuple[Decimal, Decimal]]] = {
    2024: (D("0.10"), D("2000")),
}

CZ_ESSENTIAL_FLOOR: Final[Decimal] = D("3500")
CZ_MOVING_FEE: Final[Decimal] = D("1500")
CZ_RETIREMENT_AGE: Final[int] = 65
# Every unit of education spending raises salaries by HUMAN_CAPITAL_STEP.
CZ_HUMAN_CAPITAL_UNIT: Final[Decimal] = D("100000")

# ---------------------------------------------------------------------------
# United States (annual amounts, USD, single filer)
# ---------------------------------------------------------------------------

US_FEDERAL_BRACKETS: Final[dict[int, list[Bracket]]] = {
    2024: [
        (D("11600"), D("0.10")),
        (D("47150"), D("0.12")),
        (D("100525"), D("0.22")),
        (D("191950"), D("0.24")),
        (D("243725"), D("0.32")),
        (D("609350"), D("0.35")),
        (None, D("0.37")),
    ],
    2025: [
        (D("11925"), D("0.10")),
        (D("48475"), D("0.12")),
        (D("103350"), D("0.22")),
        (D("197300"), D("0.24")),
        (D("250525"), D("0.32")),
        (D("626350"), D("0.35")),
        (None, D("0.37")),
    ],
}

US_STANDARD_DEDUCTION: Final[dict[int, Decimal]] = {
    2024: D("14600"),
    2025: D("15000"),
}

# (social security rate, medicare rate)
US_FICA_RATES: Final[dict[int, tuple[Decimal, Decimal]]] = {
    2024: (D("0.062"), D("0.0145")),
}

US_SOCIAL_SECURITY_WAGE_BASE: Final[dict[int, Decimal]] = {
    2024: D("168600"),
    2025: D("176100"),
}

# Monthly employee share of an employer plan, and the marketplace plan
# charged when there is no income.
US_HEALTH_PREMIUM_EMPLOYED: Final[dict[int, Decimal]] = {2024: D("200")}
US_HEALTH_MINIMUM: Final[dict[int, Decimal]] = {2024: D("477")}

# (short-term rate, long-term rate)
US_CAPITAL_GAINS_RATES: Final[dict[int, tuple[Decimal, Decimal]]] = {
    2024: (D("0.22"), D("0.15")),
}

US_LONG_TERM_MONTHS: Final[int] = 12

US_ACCOUNT_CAPS: Final[dict[int, dict[str, Decimal]]] = {
    2024: {"401k": D("23000"), "roth_ira": D("7000"), "hsa": D("4150")},
    2025: {"401k": D("23500"), "roth_ira": D("7000"), "hsa": D("4300")},
}

US_ESSENTIAL_FLOOR: Final[Decimal] = D("300")
US_MOVING_FEE: Final[Decimal] = D("500")
US_RETIREMENT_AGE: Final[int] = 67
US_HUMAN_CAPITAL_UNIT: Final[Decimal] = D("4000")

# ---------------------------------------------------------------------------
# United Kingdom (annual amounts, GBP)
# ---------------------------------------------------------------------------

# The first row is the personal allowance. The allowance taper above
# GBP 100,000 is not modelled.
UK_INCOME_TAX_BRACKETS: Final[dict[int, list[Bracket]]] = {
    2024: [
        (D("12570"), D("0")),
        (D("50270"), D("0.20")),
        (D("125140"), D("0.40")),
        (None, D("0.45")),
    ],
}

UK_NATIONAL_INSURANCE_BRACKETS: Final[dict[int, list[Bracket]]] = {
    2024: [
        (D("12570"), D("0")),
        (D("50270"), D("0.08")),
        (None, D("0.02")),
    ],
}

# NHS care is funded through general taxation.
UK_HEALTH_MINIMUM: Final[dict[int, Decimal]] = {2024: D("0")}

UK_CAPITAL_GAINS_RATE: Final[dict[int, Decimal]] = {
    2024: D("0.20"),
    2025: D("0.24"),
}

UK_ACCOUNT_CAPS: Final[dict[int, dict[str, Decimal]]] = {
    2024: {"isa": D("20000"), "lisa": D("4000"), "sipp": D("60000")},
}

# (bonus rate, maximum bonus per calendar year)
UK_LISA_BONUS: Final[dict[int, tuple[Decimal, Decimal]]] = {
    2024: (D("0.25"), D("1000")),
}

# Basic-rate relief added to net pension contributions.
UK_SIPP_RELIEF_RATE: Final[dict[int, Decimal]] = {
    2024: D("0.25"),
}

UK_ESSENTIAL_FLOOR: Final[Decimal] = D("250")
UK_MOVING_FEE: Final[Decimal] = D("400")
UK_RETIREMENT_AGE: Final[int] = 66
UK_HUMAN_CAPITAL_UNIT: Final[Decimal] = D("3500")
