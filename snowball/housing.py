"""Housing listings, moving costs and tenancy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Final

from .errors import ConfigurationError
from .money import ROUND_HALF_UP, Money
from .timeline import GameMonth

HOUSING_TYPES = {"shared", "studio", "one_bedroom", "two_bedroom", "three_bedroom", "house"}

# Monthly happiness adjustment for living in a location of this quality.
LOCATION_HAPPINESS: Final[dict[str, int]] = {
    "poor": -2,
    "average": 0,
    "good": 1,
    "premium": 2,
}

DEPOSIT_MONTHS: Final[int] = 2


@dataclass(frozen=True, slots=True)
class HousingListing:
    listing_id: str
    housing_type: str
    location: str
    address: str
    rent: Money
    utilities: Money

    @property
    def monthly_cost(self) -> Money:
        return self.rent + self.utilities

    @property
    def happiness_impact(self) -> int:
        return LOCATION_HAPPINESS[self.location]


@dataclass(frozen=True, slots=True)
class Housing:
    """The player's single active tenancy."""

    listing: HousingListing
    moved_in: GameMonth

    def tenancy_months(self, month: GameMonth) -> int:
        return month.months_since(self.moved_in)

    def to_dict(self) -> dict[str, Any]:
        return {"listing_id": self.listing.listing_id, "moved_in": str(self.moved_in)}


def moving_cost(listing: HousingListing, moving_fee: Money) -> Money:
    """Security deposit of ``DEPOSIT_MONTHS`` months' rent plus the market's flat fee."""
    return listing.rent.multiply(DEPOSIT_MONTHS, ROUND_HALF_UP) + moving_fee


def _listing(listing_id: str, housing_type: str, location: str, address: str, rent: str, utilities: str, currency: str) -> HousingListing:
    return HousingListing(
        listing_id=listing_id,
        housing_type=housing_type,
        location=location,
        address=address,
        rent=Money.of(Decimal(rent), currency),
        utilities=Money.of(Decimal(utilities), currency),
    )


def _czech_listings() -> list[HousingListing]:
    return [
        _listing("cz_shared_poor_1", "shared", "poor", "Shared room, Černý Most", "4000", "1000", "CZK"),
        _listing("cz_studio_poor_1", "studio", "poor", "Small studio, Hostivař", "7000", "2000", "CZK"),
        _listing("cz_shared_avg_1", "shared", "average", "Shared apartment, Háje", "6000", "1200", "CZK"),
        _listing("cz_studio_avg_1", "studio", "average", "Studio, Chodov", "10000", "2500", "CZK"),
        _listing("cz_1bed_avg_1", "one_bedroom", "average", "1+kk, Nové Butovice", "13000", "3000", "CZK"),
        _listing("cz_1bed_good_1", "one_bedroom", "good", "1+1, Karlín", "18000", "3500", "CZK"),
        _listing("cz_2bed_good_1", "two_bedroom", "good", "2+kk, Smíchov", "22000", "4000", "CZK"),
        _listing("cz_2bed_prem_1", "two_bedroom", "premium", "2+1, Vinohrady", "28000", "4500", "CZK"),
        _listing("cz_3bed_prem_1", "three_bedroom", "premium", "3+1, Nové Město", "35000", "5000", "CZK"),
        _listing("cz_house_prem_1", "house", "premium", "House, Dejvice", "50000", "7000", "CZK"),
    ]


def _usa_listings() -> list[HousingListing]:
    return [
        _listing("us_shared_avg_1", "shared", "average", "Room in shared house, Columbus", "700", "120", "USD"),
        _listing("us_studio_avg_1", "studio", "average", "Studio, Pittsburgh", "1100", "150", "USD"),
        _listing("us_1bed_good_1", "one_bedroom", "good", "1BR, Denver Highlands", "1800", "200", "USD"),
        _listing("us_2bed_prem_1", "two_bedroom", "premium", "2BR, Brooklyn Heights", "4200", "300", "USD"),
    ]


def _uk_listings() -> list[HousingListing]:
    return [
        _listing("uk_shared_poor_1", "shared", "poor", "Room in HMO, Croydon", "650", "120", "GBP"),
        _listing("uk_studio_avg_1", "studio", "average", "Studio, Leeds", "800", "150", "GBP"),
        _listing("uk_1bed_good_1", "one_bedroom", "good", "1 bed flat, Bristol", "1250", "180", "GBP"),
        _listing("uk_2bed_prem_1", "two_bedroom", "premium", "2 bed flat, Islington", "2600", "250", "GBP"),
    ]


HOUSING_MARKETS: Final[dict[str, list[HousingListing]]] = {
    "czech": _czech_listings(),
    "usa": _usa_listings(),
    "uk": _uk_listings(),
}


def housing_listings(market_id: str) -> dict[str, HousingListing]:
    return {listing.listing_id: listing for listing in HOUSING_MARKETS.get(market_id, [])}


def find_listing(market_id: str, listing_id: str) -> HousingListing:
    listing = housing_listings(market_id).get(listing_id)
    if listing is None:
        raise ConfigurationError(
            f"Unknown housing listing {listing_id!r} in market {market_id!r}",
            rule="housing_listings",
            context={"market_id": market_id, "listing_id": listing_id},
        )
    return listing
