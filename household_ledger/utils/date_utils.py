"""Date manipulation utilities"""

import calendar
from datetime import datetime, time, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

END_OF_DAY = time(23, 59, 59, 999999)


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the given month"""
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> int:
    """Clamp a day-of-month setting (1-31) to the month's last day"""
    return min(day, last_day_of_month(year, month))


def shift_month(year: int, month: int, months: int) -> Tuple[int, int]:
    """Move (year, month) by a signed number of months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def to_wall_clock(value: Optional[datetime], timezone_name: str) -> Optional[datetime]:
    """
    Naive wall-clock time in timezone_name.

    Stored dates and the service clock are naive household-local times, so
    offset-aware input ("2024-01-12T10:00:00Z") is converted and stripped.
    Naive input is returned unchanged.
    """
    if value is None or value.tzinfo is None:
        return value
    zone = timezone.utc if timezone_name == "UTC" else ZoneInfo(timezone_name)
    return value.astimezone(zone).replace(tzinfo=None)
