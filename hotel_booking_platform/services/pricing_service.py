"""
Currency and occupancy pricing.

The East African country set below is the only classification of guests into
KES and USD pricing. Availability previews, booking creation and price checks
all go through ``resolve_rate`` / ``quote_stay``.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..models.room import RoomType
from ..utils.clock import ensure_utc

# Case-sensitive, exact match
EAST_AFRICAN_COUNTRIES = frozenset({
    "Kenya",
    "Uganda",
    "Tanzania",
    "Rwanda",
    "Burundi",
    "South Sudan",
})

EAST_AFRICAN_CURRENCY = "KES"
INTERNATIONAL_CURRENCY = "USD"

SECONDS_PER_DAY = 24 * 60 * 60
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class StayQuote:
    """Price of one room for one stay."""

    price_per_night: Decimal
    nights: int
    total_price: Decimal
    currency: str
    is_east_african: bool


def is_east_african(guest_country: Optional[str]) -> bool:
    """Unlisted, misspelled or missing countries are international."""
    return guest_country in EAST_AFRICAN_COUNTRIES


def currency_for(guest_country: Optional[str]) -> str:
    return EAST_AFRICAN_CURRENCY if is_east_african(guest_country) else INTERNATIONAL_CURRENCY


def resolve_rate(room_type: RoomType, guest_country: Optional[str], occupancy: int) -> Decimal:
    """
    Pick the nightly rate from a room type's four-way rate card.

    Args:
        room_type: Room type carrying the rate card
        guest_country: Declared country of the guest
        occupancy: Number of adults; 1 is single, 2 or more is double

    Returns:
        Nightly rate in KES for East African guests, USD otherwise
    """
    single = occupancy <= 1
    if is_east_african(guest_country):
        rate = room_type.single_price_ea if single else room_type.double_price_ea
    else:
        rate = room_type.single_price_intl if single else room_type.double_price_intl
    return Decimal(rate)


def calculate_nights(check_in: datetime, check_out: datetime) -> int:
    """Nights between two timestamps; a part day counts as a full night."""
    seconds = (ensure_utc(check_out) - ensure_utc(check_in)).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def quote_stay(
    room_type: RoomType,
    guest_country: Optional[str],
    occupancy: int,
    check_in: datetime,
    check_out: datetime,
) -> StayQuote:
    """Resolve the nightly rate and total for one room over a stay."""
    price_per_night = resolve_rate(room_type, guest_country, occupancy)
    nights = calculate_nights(check_in, check_out)
    total = (price_per_night * nights).quantize(CENTS, rounding=ROUND_HALF_UP)
    return StayQuote(
        price_per_night=price_per_night,
        nights=nights,
        total_price=total,
        currency=currency_for(guest_country),
        is_east_african=is_east_african(guest_country),
    )
