"""Side incomes earned on top of (or instead of) a salary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Iterable, Sequence

from .errors import InvariantViolation
from .money import Money

INCOME_KINDS: Final[list[str]] = ["freelance", "passive", "one_time"]


@dataclass(frozen=True, slots=True)
class IncomeSource:
    """A gross monthly income taxed together with the salary.

    ``one_time`` sources pay out in the month they are added and then lapse.
    """

    source_id: str
    name: str
    kind: str
    gross_monthly: Money

    @property
    def recurring(self) -> bool:
        return self.kind != "one_time"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.source_id,
            "name": self.name,
            "kind": self.kind,
            "gross_monthly": self.gross_monthly.to_json(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], currency: str) -> IncomeSource:
        return cls(
            source_id=data["id"],
            name=data.get("name", data["id"]),
            kind=data["kind"],
            gross_monthly=Money.from_json(data["gross_monthly"], currency),
        )


def apply_income_changes(
    current: Sequence[IncomeSource],
    *,
    added: Iterable[IncomeSource] = (),
    ended: Iterable[str] = (),
) -> tuple[IncomeSource, ...]:
    """Sources active this month, after ending and then adding sources."""
    ended_ids = set(ended)
    known = {source.source_id for source in current}
    missing = sorted(ended_ids - known)
    if missing:
        raise InvariantViolation(
            "ended an income source that is not active",
            rule="income.unknown_source",
            context={"source_ids": missing},
        )
    active = [source for source in current if source.source_id not in ended_ids]
    for source in added:
        if any(existing.source_id == source.source_id for existing in active):
            raise InvariantViolation(
                "income source id already active",
                rule="income.duplicate_source",
                context={"source_id": source.source_id},
            )
        active.append(source)
    return tuple(active)


def total_income(sources: Iterable[IncomeSource], currency: str) -> Money:
    return Money.total((source.gross_monthly for source in sources), currency)


def carried_forward(sources: Iterable[IncomeSource]) -> tuple[IncomeSource, ...]:
    return tuple(source for source in sources if source.recurring)
