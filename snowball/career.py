"""Jobs, career levels and the per-market job listings."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Final

from .errors import ConfigurationError
from .money import ROUND_HALF_UP, Money

# Minimum years of experience required for each level.
JOB_LEVELS: Final[dict[str, int]] = {
    "entry": 0,
    "junior": 2,
    "mid": 4,
    "senior": 7,
    "lead": 10,
}
LEVEL_ORDER: Final[list[str]] = ["entry", "junior", "mid", "senior", "lead"]

CAREER_FIELDS = {"technology", "finance", "healthcare", "education", "retail", "manufacturing", "administration"}

# Salary boost per market human-capital unit of education spending.
HUMAN_CAPITAL_STEP: Final[Decimal] = Decimal("0.10")


@dataclass(frozen=True, slots=True)
class Job:
    job_id: str
    title: str
    field: str
    level: str
    salary: Money
    employer: str | None = None


@dataclass(frozen=True, slots=True)
class Career:
    job: Job | None = None
    months_in_job: int = 0
    experience_months: int = 0
    last_salary: Money | None = None
    history: tuple[str, ...] = ()
    # Education spending to date, in major units of the market currency.
    human_capital: Decimal = Decimal(0)

    @property
    def experience_years(self) -> int:
        return self.experience_months // 12

    @property
    def is_employed(self) -> bool:
        return self.job is not None

    def monthly_gross(self, currency: str, unit: Money | None = None) -> Money:
        if self.job is None:
            return Money.zero(currency)
        return boosted_salary(self.job.salary, self.human_capital, unit)

    def invest(self, amount: Money) -> Career:
        """Add education spending to the human-capital counter."""
        if not amount.is_positive:
            return self
        return replace(self, human_capital=self.human_capital + amount.amount)

    def take_job(self, job: Job) -> tuple[Career, Money | None]:
        """Start ``job``. Returns the new career and the raise over the last salary, if any."""
        raise_amount = None
        if self.last_salary is not None and job.salary > self.last_salary:
            raise_amount = job.salary - self.last_salary
        history = self.history if self.job is None else self.history + (self.job.job_id,)
        return replace(self, job=job, months_in_job=0, last_salary=job.salary, history=history), raise_amount

    def quit(self) -> Career:
        if self.job is None:
            return self
        return replace(self, job=None, months_in_job=0, history=self.history + (self.job.job_id,))

    def worked_month(self) -> Career:
        if self.job is None:
            return self
        return replace(self, months_in_job=self.months_in_job + 1, experience_months=self.experience_months + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": None if self.job is None else self.job.job_id,
            "months_in_job": self.months_in_job,
            "experience_months": self.experience_months,
            "last_salary": None if self.last_salary is None else self.last_salary.to_json(),
            "history": list(self.history),
            "human_capital": str(self.human_capital),
        }


def boosted_salary(salary: Money, human_capital: Decimal, unit: Money | None) -> Money:
    """``salary`` raised by HUMAN_CAPITAL_STEP for every ``unit`` of education spending."""
    if unit is None or not unit.is_positive or human_capital <= 0:
        return salary
    multiplier = Decimal(1) + human_capital / unit.amount * HUMAN_CAPITAL_STEP
    return salary.multiply(multiplier, ROUND_HALF_UP)


def is_eligible(job: Job, career: Career) -> bool:
    return career.experience_years >= JOB_LEVELS[job.level]


def _job(job_id: str, title: str, field: str, level: str, salary: int, employer: str, currency: str) -> Job:
    return Job(job_id=job_id, title=title, field=field, level=level, salary=Money.of(salary, currency), employer=employer)


def _czech_jobs() -> list[Job]:
    return [
        _job("cz_retail_entry", "Sales Associate", "retail", "entry", 25000, "Local Store", "CZK"),
        _job("cz_admin_entry", "Administrative Assistant", "administration", "entry", 28000, "Office Corp", "CZK"),
        _job("cz_tech_entry", "Junior IT Support", "technology", "entry", 32000, "Tech Solutions s.r.o.", "CZK"),
        _job("cz_dev_junior", "Junior Software Developer", "technology", "junior", 45000, "CodeCraft Prague", "CZK"),
        _job("cz_accountant_junior", "Junior Accountant", "finance", "junior", 38000, "Finance Group", "CZK"),
        _job("cz_teacher_junior", "Elementary School Teacher", "education", "junior", 35000, "Praha Elementary", "CZK"),
        _job("cz_dev_mid", "Software Developer", "technology", "mid", 65000, "TechCorp Prague", "CZK"),
        _job("cz_accountant_mid", "Accountant", "finance", "mid", 52000, "KPMG Czech", "CZK"),
        _job("cz_manager_mid", "Team Manager", "manufacturing", "mid", 58000, "Škoda Auto", "CZK"),
        _job("cz_nurse_mid", "Registered Nurse", "healthcare", "mid", 48000, "Motol Hospital", "CZK"),
        _job("cz_dev_senior", "Senior Software Engineer", "technology", "senior", 90000, "Avast Software", "CZK"),
        _job("cz_accountant_senior", "Senior Financial Analyst", "finance", "senior", 75000, "Česká spořitelna", "CZK"),
        _job("cz_doctor_senior", "Specialist Physician", "healthcare", "senior", 85000, "General Hospital Prague", "CZK"),
        _job("cz_arch_lead", "Lead Software Architect", "technology", "lead", 120000, "O2 Czech Republic", "CZK"),
        _job("cz_cfo_lead", "Finance Director", "finance", "lead", 110000, "Česká pojišťovna", "CZK"),
        _job("cz_director_lead", "Operations Director", "manufacturing", "lead", 100000, "ČEZ Group", "CZK"),
    ]


def _usa_jobs() -> list[Job]:
    return [
        _job("us_retail_entry", "Retail Associate", "retail", "entry", 2800, "Corner Market", "USD"),
        _job("us_tech_entry", "IT Support Technician", "technology", "entry", 4200, "HelpDesk Inc.", "USD"),
        _job("us_dev_junior", "Junior Software Developer", "technology", "junior", 6500, "Startup Labs", "USD"),
        _job("us_dev_mid", "Software Engineer", "technology", "mid", 9500, "Cloudworks", "USD"),
        _job("us_dev_senior", "Senior Software Engineer", "technology", "senior", 13500, "Big Search Co.", "USD"),
        _job("us_director_lead", "Engineering Director", "technology", "lead", 19000, "Big Search Co.", "USD"),
    ]


def _uk_jobs() -> list[Job]:
    return [
        _job("uk_retail_entry", "Shop Assistant", "retail", "entry", 1950, "High Street Stores", "GBP"),
        _job("uk_admin_entry", "Office Administrator", "administration", "entry", 2200, "City Council", "GBP"),
        _job("uk_dev_junior", "Graduate Developer", "technology", "junior", 2900, "Fintech Ltd", "GBP"),
        _job("uk_nurse_mid", "Staff Nurse", "healthcare", "mid", 3100, "NHS Trust", "GBP"),
        _job("uk_dev_senior", "Senior Developer", "technology", "senior", 5600, "Fintech Ltd", "GBP"),
        _job("uk_cfo_lead", "Finance Director", "finance", "lead", 9000, "FTSE Holdings", "GBP"),
    ]


JOB_MARKETS: Final[dict[str, list[Job]]] = {
    "czech": _czech_jobs(),
    "usa": _usa_jobs(),
    "uk": _uk_jobs(),
}


def job_listings(market_id: str) -> dict[str, Job]:
    return {job.job_id: job for job in JOB_MARKETS.get(market_id, [])}


def find_job(market_id: str, job_id: str) -> Job:
    job = job_listings(market_id).get(job_id)
    if job is None:
        raise ConfigurationError(
            f"Unknown job {job_id!r} in market {market_id!r}",
            rule="job_listings",
            context={"market_id": market_id, "job_id": job_id},
        )
    return job


def visible_jobs(market_id: str, career: Career) -> list[Job]:
    """Jobs up to one level above the highest level the player qualifies for."""
    qualified = max(
        (index for index, level in enumerate(LEVEL_ORDER) if career.experience_years >= JOB_LEVELS[level]),
        default=0,
    )
    return [job for job in JOB_MARKETS.get(market_id, []) if LEVEL_ORDER.index(job.level) <= qualified + 1]
