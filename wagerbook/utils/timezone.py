"""
Timezone utilities.

All datetimes are stored as naive UTC. Calendar-day comparisons (game
matching, results-feed dates) happen in the configured local timezone
because a late tip-off in the US lands on the next UTC day.
"""
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for all columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """
    Normalize an aware or naive datetime to naive UTC.

    Naive inputs are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_game_day(start_time_utc: datetime, tz_name: str) -> date:
    """
    Calendar day of a game in the given timezone.

    Examples:
        >>> local_game_day(datetime(2024, 3, 4, 0, 30), "America/New_York")
        datetime.date(2024, 3, 3)
    """
    aware = start_time_utc.replace(tzinfo=timezone.utc)
    return aware.astimezone(ZoneInfo(tz_name)).date()


def local_today(tz_name: str, now: Optional[datetime] = None) -> date:
    """Today's date in the given timezone (``now`` is naive UTC)."""
    return local_game_day(now or utcnow(), tz_name)
