"""Game calendar: months are the engine's only unit of time."""

from __future__ import annotations

from dataclasses import dataclass
import re

_YM_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


@dataclass(frozen=True, slots=True, order=True)
class GameMonth:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be 1..12, got {self.month}")

    @classmethod
    def parse(cls, value: str) -> GameMonth:
        match = _YM_RE.match(value)
        if match is None:
            raise ValueError(f"expected YYYY-MM, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_index(cls, index: int) -> GameMonth:
        year, month_zero = divmod(index, 12)
        return cls(year, month_zero + 1)

    @property
    def index(self) -> int:
        return self.year * 12 + (self.month - 1)

    @property
    def starts_year(self) -> bool:
        return self.month == 1

    def next(self) -> GameMonth:
        return GameMonth.from_index(self.index + 1)

    def plus_months(self, months: int) -> GameMonth:
        return GameMonth.from_index(self.index + months)

    def months_since(self, earlier: GameMonth) -> int:
        """Whole months elapsed from ``earlier`` to this month."""
        return self.index - earlier.index

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
