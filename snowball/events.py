"""Seeded random interrupt events.

Every draw comes from a ``random.Random`` built from the game seed, the month
index and a fingerprint of the decisions made so far, so replaying the same
decisions replays the same events.
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
import random
from typing import Any, Final

from .money import Money
from .timeline import GameMonth

EVENT_KINDS = {"emergency", "windfall", "market_move"}

# (label, amount) per currency.
EMERGENCY_EXPENSES: Final[dict[str, list[tuple[str, int]]]] = {
    "CZK": [("Dental treatment", 3000), ("Broken phone", 6000), ("Car repair", 12000), ("Laptop replacement", 18000)],
    "USD": [("Urgent care visit", 250), ("Car repair", 800), ("Laptop replacement", 1200), ("Vet bill", 600)],
    "GBP": [("Boiler repair", 450), ("Car MOT failure", 600), ("Laptop replacement", 900), ("Dental treatment", 250)],
    "EUR": [("Car repair", 700), ("Laptop replacement", 1000)],
}

WINDFALLS: Final[dict[str, list[tuple[str, int]]]] = {
    "CZK": [("Tax refund", 4000), ("Freelance gig", 8000), ("Birthday gift", 2000)],
    "USD": [("Tax refund", 600), ("Freelance gig", 900), ("Birthday gift", 150)],
    "GBP": [("Premium bond prize", 100), ("Freelance gig", 500), ("Birthday gift", 100)],
    "EUR": [("Freelance gig", 500)],
}


@dataclass(frozen=True, slots=True)
class InterruptEvent:
    kind: str
    label: str
    amount: Money | None = None
    return_bps: int | None = None


@dataclass(frozen=True, slots=True)
class EventOdds:
    emergency_bps: int
    windfall_bps: int
    market_min_bps: int
    market_max_bps: int


def _rng(seed: int, month: GameMonth, fingerprint: str, stream: str) -> random.Random:
    digest = hashlib.sha256(f"{seed}:{month.index}:{fingerprint}:{stream}".encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def decision_fingerprint(previous: str, decisions: dict[str, Any]) -> str:
    """Chain a month's decisions onto the fingerprint of everything decided before."""
    canonical = json.dumps(decisions, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(f"{previous}|{canonical}".encode("utf-8")).hexdigest()


def roll_events(seed: int, month: GameMonth, fingerprint: str, currency: str, odds: EventOdds) -> list[InterruptEvent]:
    """Events for one month: at most one emergency, at most one windfall and always a market move."""
    rng = _rng(seed, month, fingerprint, "events")
    events: list[InterruptEvent] = []

    if rng.randrange(10_000) < odds.emergency_bps:
        label, amount = rng.choice(EMERGENCY_EXPENSES[currency])
        events.append(InterruptEvent("emergency", label, amount=Money.of(amount, currency)))

    if rng.randrange(10_000) < odds.windfall_bps:
        label, amount = rng.choice(WINDFALLS[currency])
        events.append(InterruptEvent("windfall", label, amount=Money.of(amount, currency)))

    # Sum of two uniform draws keeps most months near the middle of the range.
    low, high = odds.market_min_bps, odds.market_max_bps
    return_bps = rng.randint(low, high) + rng.randint(low, high)
    events.append(InterruptEvent("market_move", "Market move", return_bps=return_bps))
    return events


def revenge_roll(seed: int, month: GameMonth, fingerprint: str) -> int:
    """Uniform integer in [0, 10000) used by the behavioral engine."""
    return _rng(seed, month, fingerprint, "revenge").randrange(10_000)
