"""
Unit Tests - Reporting Window
"""
from datetime import date

import pytest

from agrimarket.analytics.window import AnalyticsError, DateWindow, InvalidDateRangeError


class TestDateWindow:
    """Tests for DateWindow"""

    def test_single_day_window(self):
        window = DateWindow(start=date(2024, 1, 1), end=date(2024, 1, 1))

        assert window.length == 1
        assert window.days() == [date(2024, 1, 1)]

    def test_days_are_inclusive_and_ascending(self, january_window):
        assert january_window.days() == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]

    def test_start_after_end_rejected(self):
        with pytest.raises(InvalidDateRangeError) as exc_info:
            DateWindow(start=date(2024, 1, 5), end=date(2024, 1, 1))

        assert exc_info.value.start == date(2024, 1, 5)
        assert isinstance(exc_info.value, AnalyticsError)
        assert isinstance(exc_info.value, ValueError)

    def test_contains_bounds(self, january_window):
        assert january_window.contains(date(2024, 1, 1))
        assert january_window.contains(date(2024, 1, 3))
        assert not january_window.contains(date(2023, 12, 31))
        assert not january_window.contains(date(2024, 1, 4))

    def test_datetime_bounds_cover_whole_days(self, january_window):
        assert january_window.start_datetime.hour == 0
        assert january_window.end_datetime.date() == date(2024, 1, 3)
        assert january_window.end_datetime.hour == 23

    def test_previous_window_has_equal_length(self, january_window):
        previous = january_window.previous()

        assert previous == DateWindow(start=date(2023, 12, 29), end=date(2023, 12, 31))
        assert previous.length == january_window.length

    def test_last_days_ends_today(self):
        window = DateWindow.last_days(7, today=date(2024, 3, 10))

        assert window.start == date(2024, 3, 4)
        assert window.end == date(2024, 3, 10)
        assert window.length == 7

    def test_last_days_never_empty(self):
        window = DateWindow.last_days(0, today=date(2024, 3, 10))

        assert window.length == 1

    def test_str(self, january_window):
        assert str(january_window) == "2024-01-01..2024-01-03"
