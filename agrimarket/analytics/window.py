"""
Reporting Window

Inclusive calendar-day window shared by every stage of the report pipeline.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional


class AnalyticsError(Exception):
    """Base error for the reporting pipeline"""


class InvalidDateRangeError(AnalyticsError, ValueError):
    """Raised when a window's start falls after its end"""

    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end
        super().__init__(f"Start date {start} is after end date {end}")


@dataclass(frozen=True)
class DateWindow:
    """Inclusive day window; rejected at construction when start > end."""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidDateRangeError(self.start, self.end)

    @classmethod
    def last_days(cls, days: int, today: Optional[date] = None) -> "DateWindow":
        """Window of `days` calendar days ending today."""
        end = today or datetime.now(timezone.utc).date()
        return cls(start=end - timedelta(days=max(days, 1) - 1), end=end)

    @property
    def length(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.end, time.max)

    def days(self) -> List[date]:
        return [self.start + timedelta(days=offset) for offset in range(self.length)]

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def previous(self) -> "DateWindow":
        """Equivalent-length window ending the day before this one starts."""
        prev_end = self.start - timedelta(days=1)
        return DateWindow(start=prev_end - timedelta(days=self.length - 1), end=prev_end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"
