"""Unit tests for date helpers"""

from datetime import datetime, timedelta, timezone
from household_ledger.utils.date_utils import clamp_day, shift_month, to_wall_clock


def test_to_wall_clock_converts_aware_values():
    """Test offset-aware datetimes become naive wall-clock time"""
    utc = datetime(2024, 1, 12, 10, 0, tzinfo=timezone.utc)
    plus_two = datetime(2024, 1, 12, 10, 0, tzinfo=timezone(timedelta(hours=2)))

    assert to_wall_clock(utc, "UTC") == datetime(2024, 1, 12, 10, 0)
    assert to_wall_clock(plus_two, "UTC") == datetime(2024, 1, 12, 8, 0)
    assert to_wall_clock(utc, "UTC").tzinfo is None


def test_to_wall_clock_keeps_naive_values():
    """Test naive datetimes and None pass through unchanged"""
    naive = datetime(2024, 1, 12, 10, 0)
    assert to_wall_clock(naive, "UTC") is naive
    assert to_wall_clock(None, "UTC") is None


def test_clamp_day_and_shift_month():
    """Test day clamping in short months and month arithmetic across years"""
    assert clamp_day(2024, 2, 31) == 29
    assert clamp_day(2023, 2, 31) == 28
    assert clamp_day(2024, 4, 15) == 15
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2024, 1, -1) == (2023, 12)
