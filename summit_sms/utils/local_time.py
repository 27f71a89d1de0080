from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from loguru import logger

from ..config import settings


@dataclass(frozen=True)
class LocalMoment:
    """The user's wall-clock view of an instant."""
    now: datetime
    today: date
    # 0-6, Sunday = 0
    weekday: int
    tz_name: str


def resolve_zone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Returns the user's zone, falling back to the configured default and then UTC
    when the stored name is empty or not a valid IANA zone.
    """
    for candidate in (tz_name, settings.DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except Exception:
            logger.warning("Invalid timezone '{}', falling back", candidate)
    return ZoneInfo("UTC")


def sunday_based_weekday(d: date) -> int:
    return (d.weekday() + 1) % 7


def local_moment(tz_name: Optional[str], now_utc: Optional[datetime] = None) -> LocalMoment:
    now_utc = now_utc or datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)

    zone = resolve_zone(tz_name)
    local_now = now_utc.astimezone(zone)
    return LocalMoment(
        now=local_now,
        today=local_now.date(),
        weekday=sunday_based_weekday(local_now.date()),
        tz_name=zone.key,
    )
