"""
Time helpers shared by the booking rules and scheduled sweeps.

Timestamps are stored in UTC. "Today" and "noon today" are evaluated in the
hotel's local time zone, configured as a fixed UTC offset.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..config import get_settings


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def hotel_timezone() -> timezone:
    """The hotel's local time zone."""
    settings = get_settings()
    return timezone(timedelta(hours=settings.hotel_utc_offset_hours))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    Naive values are treated as UTC, which is how they come back from
    backends without time zone support.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime) -> date:
    """Calendar date of a timestamp in hotel local time."""
    return ensure_utc(value).astimezone(hotel_timezone()).date()


def today(now: Optional[datetime] = None) -> date:
    """Hotel-local calendar date for ``now`` (defaults to the current time)."""
    return local_date(now or utcnow())


def start_of_today(now: Optional[datetime] = None) -> datetime:
    """Local midnight of the current hotel day, expressed in UTC."""
    local_midnight = datetime.combine(today(now), time.min, tzinfo=hotel_timezone())
    return local_midnight.astimezone(timezone.utc)


def noon_today(now: Optional[datetime] = None) -> datetime:
    """Checkout cut-off (noon by default) of the current hotel day, in UTC."""
    settings = get_settings()
    cutoff = datetime.combine(
        today(now), time(hour=settings.checkout_hour), tzinfo=hotel_timezone()
    )
    return cutoff.astimezone(timezone.utc)
