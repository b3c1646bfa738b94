"""Day-window resolver.

Turns a local calendar date plus an IANA timezone into the half-open UTC
range [local midnight, next local midnight). On DST transition days the
window is 23 or 25 hours long.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timeblocker.core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayWindow:
    """Half-open UTC interval covering one local day."""

    start: datetime
    end: datetime

    def intersects(self, start: datetime, end: datetime) -> bool:
        """True if [start, end) starts in, ends in, or spans the window."""
        return start < self.end and end > self.start


def parse_day(date_str: str | None) -> date:
    """Parse a YYYY-MM-DD string. Raises ValidationError otherwise."""
    if not date_str or not isinstance(date_str, str):
        raise ValidationError("Date parameter required")
    try:
        return datetime.strptime(date_str.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date: {date_str!r} (expected YYYY-MM-DD)")


def get_zone(tz_name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name. Raises ValidationError if unknown."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise ValidationError(f"Unknown timezone: {tz_name!r}")


def is_valid_timezone(tz_name: str) -> bool:
    try:
        get_zone(tz_name)
    except ValidationError:
        return False
    return True


def local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    """UTC instant of 00:00 local time on day."""
    return datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(timezone.utc)


def resolve_day_window(date_str: str, tz_name: str) -> DayWindow:
    """Resolve a local date in tz_name to its UTC window.

    >>> w = resolve_day_window("2024-06-01", "America/New_York")
    >>> w.start.isoformat(), w.end.isoformat()
    ('2024-06-01T04:00:00+00:00', '2024-06-02T04:00:00+00:00')
    """
    day = parse_day(date_str)
    tz = get_zone(tz_name)
    window = DayWindow(
        start=local_midnight_utc(day, tz),
        end=local_midnight_utc(day + timedelta(days=1), tz),
    )
    logger.debug("Day window for %s in %s: %s -> %s", day, tz_name, window.start, window.end)
    return window
