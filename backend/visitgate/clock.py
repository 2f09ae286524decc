"""Injectable wall clock.

All core operations take time from a ``Clock`` rather than calling
``datetime.now`` directly, so tests can freeze and advance it.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from visitgate.config import settings


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``timezone=True`` columns;
    those are stored as UTC, so tag them rather than convert.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """System clock: aware UTC ``now()`` and campus-local ``today()``."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        """Current calendar day in the campus time zone."""
        return self.now().astimezone(self.tz).date()


clock = Clock(settings.campus_timezone)


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return clock
