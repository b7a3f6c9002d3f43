"""Time-window identifiers for draws (hourly) and seasons (daily).

All windows are computed in UTC so daylight-saving changes never shift a
boundary. Naive datetimes are taken to already be UTC.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum


class Granularity(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


SEASON_LENGTH = timedelta(days=1)


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def window_id(instant: datetime, granularity: Granularity = Granularity.HOURLY) -> str:
    """Return the stable identifier of the window containing ``instant``.

    Hourly windows look like ``2025-10-09-23``, daily windows like
    ``2025-10-09``. Both sort lexicographically in time order.
    """
    utc = as_utc(instant)
    day = f"{utc.year:04d}-{utc.month:02d}-{utc.day:02d}"
    if granularity == Granularity.DAILY:
        return day
    if granularity == Granularity.HOURLY:
        return f"{day}-{utc.hour:02d}"
    raise ValueError(f"Unknown granularity: {granularity}")


def draw_window_id(instant: datetime | None = None) -> str:
    return window_id(instant or utcnow(), Granularity.HOURLY)


def current_season_id(now: datetime | None = None) -> str:
    return window_id(now or utcnow(), Granularity.DAILY)


def season_start(season_id: str) -> datetime:
    """00:00:00 UTC of the season day."""
    return datetime.strptime(season_id, "%Y-%m-%d")


def season_end(season_id: str) -> datetime:
    """Last representable instant of the season day."""
    return season_start(season_id) + SEASON_LENGTH - timedelta(microseconds=1)


def is_in_season(instant: datetime, season_id: str) -> bool:
    utc = as_utc(instant)
    return season_start(season_id) <= utc <= season_end(season_id)


def time_remaining_in_season(now: datetime | None = None) -> timedelta:
    now = as_utc(now or utcnow())
    return season_end(current_season_id(now)) - now
