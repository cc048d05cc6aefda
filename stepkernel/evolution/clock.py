"""Time source for the engines.

Day keys are `YYYY-MM-DD` strings in the clock's zone at time of write.
"""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from stepkernel.config import settings


def _tz(tz_name: str | None) -> tzinfo | None:
    if tz_name is None:
        # Device local zone, resolved per moment so DST shifts apply
        return None
    return ZoneInfo(tz_name)


def day_key(day: date) -> str:
    return day.isoformat()


def parse_day_key(key: str | date) -> date:
    """Accept a `date` or an ISO `YYYY-MM-DD` string. Raises ValueError on junk."""
    if isinstance(key, datetime):
        return key.date()
    if isinstance(key, date):
        return key
    return date.fromisoformat(key)


class Clock:
    """Wall clock pinned to one time zone. `tz` is None for the device zone."""

    def __init__(self, tz_name: str | None = None):
        self.tz_name = tz_name if tz_name is not None else settings.default_tz
        self.tz = _tz(self.tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def local_day(self, moment: date | datetime) -> date:
        """Calendar day of `moment` in this clock's zone (naive datetimes taken as local)."""
        if isinstance(moment, datetime):
            if moment.tzinfo is None:
                return moment.date()
            return moment.astimezone(self.tz).date()
        return moment
