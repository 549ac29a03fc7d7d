"""Reporting windows the traffic summary is computed over."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

DATE_FORMAT = "%Y-%m-%d"


class WindowLabel(str, Enum):
    TODAY = "today"
    THIS_MONTH = "this_month"
    LAST_31_DAYS = "last_31_days"
    LAST_7_DAYS = "last_7_days"


@dataclass(frozen=True)
class TrafficWindow:
    label: WindowLabel
    start: datetime
    end: datetime

    @property
    def start_date(self) -> str:
        return self.start.strftime(DATE_FORMAT)

    @property
    def end_date(self) -> str:
        return self.end.strftime(DATE_FORMAT)

    def contains_date(self, date_str: str) -> bool:
        """True if midnight of the day `date_str` (YYYY-MM-DD) falls inside the window.

        The rolling windows start at `now - N days`, so the oldest calendar day
        is only counted when its midnight is not before that instant.
        """
        day = datetime.strptime(date_str, DATE_FORMAT).replace(tzinfo=self.start.tzinfo)
        return self.start <= day <= self.end


def build_windows(now: datetime) -> list[TrafficWindow]:
    """Today, this month, last 31 days and last 7 days, all ending at `now`."""
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)
    return [
        TrafficWindow(WindowLabel.TODAY, start_of_day, now),
        TrafficWindow(WindowLabel.THIS_MONTH, start_of_month, now),
        TrafficWindow(WindowLabel.LAST_31_DAYS, now - timedelta(days=31), now),
        TrafficWindow(WindowLabel.LAST_7_DAYS, now - timedelta(days=7), now),
    ]
