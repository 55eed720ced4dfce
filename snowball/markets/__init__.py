"""Registry of supported markets."""

from __future__ import annotations

from typing import Callable, Final

from ..errors import UnknownMarketError
from ..market import MarketProfile
from .czech import CzechMarket
from .uk import UkMarket
from .usa import UsaMarket

MARKETS: Final[dict[str, Callable[[], MarketProfile]]] = {
    CzechMarket.market_id: CzechMarket,
    UsaMarket.market_id: UsaMarket,
    UkMarket.market_id: UkMarket,
}


def supported_markets() -> list[str]:
    return sorted(MARKETS)


def get_market(market_id: str) -> MarketProfile:
    factory = MARKETS.get(market_id)
    if factory is None:
        raise UnknownMarketError(market_id)
    return factory()


__all__ = ["CzechMarket", "MARKETS", "UkMarket", "UsaMarket", "get_market", "supported_markets"]
