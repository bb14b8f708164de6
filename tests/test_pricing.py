"""
Tests for the rate card resolver and night counting.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from hotel_booking_platform.models.room import RoomType
from hotel_booking_platform.services.pricing_service import (
    calculate_nights,
    currency_for,
    is_east_african,
    quote_stay,
    resolve_rate,
)

CHECK_IN = datetime(2030, 6, 1, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def standard() -> RoomType:
    return RoomType(
        name="Standard",
        slug="standard",
        capacity=2,
        bed_type="Double",
        single_price_ea=Decimal("3000.00"),
        double_price_ea=Decimal("3500.00"),
        single_price_intl=Decimal("40.00"),
        double_price_intl=Decimal("45.00"),
    )


def test_kenyan_single_two_nights(standard):
    quote = quote_stay(standard, "Kenya", 1, CHECK_IN, CHECK_IN + timedelta(days=2))

    assert quote.price_per_night == Decimal("3000.00")
    assert quote.nights == 2
    assert quote.total_price == Decimal("6000.00")
    assert quote.currency == "KES"
    assert quote.is_east_african is True


def test_international_double_three_nights(standard):
    quote = quote_stay(standard, "France", 2, CHECK_IN, CHECK_IN + timedelta(days=3))

    assert quote.price_per_night == Decimal("45.00")
    assert quote.total_price == Decimal("135.00")
    assert quote.currency == "USD"
    assert quote.is_east_african is False


@pytest.mark.parametrize("country", ["Kenya", "Uganda", "Tanzania", "Rwanda", "Burundi", "South Sudan"])
def test_east_african_countries(country):
    assert is_east_african(country)
    assert currency_for(country) == "KES"


@pytest.mark.parametrize("country", [None, "", "kenya", "KENYA", "Kenya ", "Ethiopia", "United States"])
def test_everything_else_is_international(country):
    assert not is_east_african(country)
    assert currency_for(country) == "USD"


def test_occupancy_above_two_uses_double_rate(standard):
    assert resolve_rate(standard, "Uganda", 3) == Decimal("3500.00")
    assert resolve_rate(standard, None, 4) == Decimal("45.00")
    assert resolve_rate(standard, None, 1) == Decimal("40.00")


def test_partial_day_counts_as_a_night():
    assert calculate_nights(CHECK_IN, CHECK_IN + timedelta(hours=20)) == 1
    assert calculate_nights(CHECK_IN, CHECK_IN + timedelta(days=1, hours=1)) == 2


def test_nights_are_never_negative():
    assert calculate_nights(CHECK_IN, CHECK_IN - timedelta(days=1)) == 0


def test_naive_timestamps_are_read_as_utc():
    naive = CHECK_IN.replace(tzinfo=None)
    assert calculate_nights(naive, CHECK_IN + timedelta(days=2)) == 2
