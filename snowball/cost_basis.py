"""FIFO lot tracking for holding-period-sensitive accounts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .money import ROUND_HALF_EVEN, ROUND_HALF_UP, Money
from .timeline import GameMonth


@dataclass(frozen=True, slots=True)
class Lot:
    cost: Money
    value: Money
    acquired: GameMonth


@dataclass(frozen=True, slots=True)
class LotSlice:
    """The part of one lot consumed by a disposal."""

    cost: Money
    proceeds: Money
    acquired: GameMonth

    @property
    def gain(self) -> Money:
        return self.proceeds - self.cost

    def held_months(self, disposal_month: GameMonth) -> int:
        return disposal_month.months_since(self.acquired)


def lots_value(lots: tuple[Lot, ...], currency: str) -> Money:
    return Money.total((lot.value for lot in lots), currency)


def lots_cost(lots: tuple[Lot, ...], currency: str) -> Money:
    return Money.total((lot.cost for lot in lots), currency)


def grow_lots(lots: tuple[Lot, ...], return_bps: int) -> tuple[tuple[Lot, ...], Money | None]:
    """Apply a market move in basis points to every lot. Returns (lots, total change)."""
    if not lots:
        return lots, None
    factor = Decimal(10_000 + return_bps) / Decimal(10_000)
    grown: list[Lot] = []
    change = Money.zero(lots[0].value.currency)
    for lot in lots:
        new_value = lot.value.multiply(factor, ROUND_HALF_EVEN).clamp_min_zero()
        change = change + (new_value - lot.value)
        grown.append(Lot(cost=lot.cost, value=new_value, acquired=lot.acquired))
    return tuple(grown), change


def take_fifo(lots: tuple[Lot, ...], amount: Money) -> tuple[list[LotSlice], tuple[Lot, ...]]:
    """Remove ``amount`` of value oldest-first.

    A partially consumed lot keeps its acquisition month and gives up cost
    basis in proportion to the value taken. The caller guarantees ``amount``
    does not exceed the lots' total value.
    """
    remaining = amount
    slices: list[LotSlice] = []
    kept: list[Lot] = []
    ordered = sorted(lots, key=lambda lot: lot.acquired.index)
    for lot in ordered:
        if not remaining.is_positive:
            kept.append(lot)
            continue
        if lot.value <= remaining:
            slices.append(LotSlice(cost=lot.cost, proceeds=lot.value, acquired=lot.acquired))
            remaining = remaining - lot.value
            continue
        cost_taken = lot.cost.multiply(remaining.ratio(lot.value), ROUND_HALF_UP)
        slices.append(LotSlice(cost=cost_taken, proceeds=remaining, acquired=lot.acquired))
        kept.append(Lot(cost=lot.cost - cost_taken, value=lot.value - remaining, acquired=lot.acquired))
        remaining = Money.zero(amount.currency)
    return slices, tuple(kept)
