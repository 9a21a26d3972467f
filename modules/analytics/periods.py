"""
Calendar adapters mapping reading timestamps to aggregation periods.

The aggregation engine only asks an adapter for a period key and a display
label, so calendars can be swapped without touching the bucketing code:
- GregorianCalendar: ISO dates, ISO weeks and Gregorian months
- PersianCalendar: solar Hijri (Jalali) weeks and months with Saturday-based weeks
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Union

import jdatetime

from .records import Granularity

PERSIAN_MONTH_NAMES = (
    "Farvardin", "Ordibehesht", "Khordad", "Tir", "Mordad", "Shahrivar",
    "Mehr", "Aban", "Azar", "Dey", "Bahman", "Esfand",
)


def _as_date(timestamp: Union[datetime, date]) -> date:
    if isinstance(timestamp, datetime):
        return timestamp.date()
    return timestamp


class CalendarAdapter(ABC):
    """Maps timestamps to calendar period keys and labels."""

    name = "abstract"

    @abstractmethod
    def period_key(self, timestamp: Union[datetime, date], granularity: Granularity) -> str:
        """Sortable, unique key of the period containing ``timestamp``."""
        pass

    @abstractmethod
    def period_label(self, timestamp: Union[datetime, date], granularity: Granularity) -> str:
        """Human readable name of the period containing ``timestamp``."""
        pass


class GregorianCalendar(CalendarAdapter):
    """ISO-8601 days and weeks, Gregorian months."""

    name = "gregorian"

    def period_key(self, timestamp, granularity):
        day = _as_date(timestamp)
        if granularity is Granularity.DAILY:
            return day.isoformat()
        if granularity is Granularity.WEEKLY:
            iso_year, iso_week, _ = day.isocalendar()
            return f"{iso_year}-W{iso_week:02d}"
        return f"{day.year}-{day.month:02d}"

    def period_label(self, timestamp, granularity):
        day = _as_date(timestamp)
        if granularity is Granularity.DAILY:
            return day.isoformat()
        if granularity is Granularity.WEEKLY:
            iso_year, iso_week, _ = day.isocalendar()
            return f"Week {iso_week} {iso_year}"
        return f"{day.strftime('%B')} {day.year}"


class PersianCalendar(CalendarAdapter):
    """
    Solar Hijri periods.

    Weeks start on Saturday and are numbered by whole-day arithmetic from
    1 Farvardin of the reading's own Jalali year, so the week label never
    carries a year other than the one the week belongs to. Daily keys stay
    Gregorian ISO dates; only their labels are Jalali.
    """

    name = "persian"

    @staticmethod
    def to_jalali(day: date) -> jdatetime.date:
        return jdatetime.date.fromgregorian(date=day)

    @staticmethod
    def days_since_saturday(day: date) -> int:
        # date.weekday(): Monday=0 ... Saturday=5, Sunday=6
        return (day.weekday() + 2) % 7

    def week_number(self, day: date) -> int:
        """1-based week of the Jalali year containing ``day``."""
        jalali = self.to_jalali(day)
        year_start = jdatetime.date(jalali.year, 1, 1).togregorian()
        offset = self.days_since_saturday(year_start)
        return ((day - year_start).days + offset) // 7 + 1

    def period_key(self, timestamp, granularity):
        day = _as_date(timestamp)
        if granularity is Granularity.DAILY:
            return day.isoformat()
        jalali = self.to_jalali(day)
        if granularity is Granularity.WEEKLY:
            return f"{jalali.year}-W{self.week_number(day):02d}"
        return f"{jalali.year}-{jalali.month:02d}"

    def period_label(self, timestamp, granularity):
        day = _as_date(timestamp)
        jalali = self.to_jalali(day)
        if granularity is Granularity.DAILY:
            return f"{jalali.year}/{jalali.month:02d}/{jalali.day:02d}"
        if granularity is Granularity.WEEKLY:
            return f"Week {self.week_number(day)} {jalali.year}"
        return f"{PERSIAN_MONTH_NAMES[jalali.month - 1]} {jalali.year}"


CALENDARS = {
    GregorianCalendar.name: GregorianCalendar,
    PersianCalendar.name: PersianCalendar,
}


def get_calendar(name: str) -> CalendarAdapter:
    """Instantiate a calendar adapter by name ('persian' or 'gregorian')."""
    try:
        return CALENDARS[name]()
    except KeyError:
        raise ValueError(f"Unknown calendar: {name!r}") from None
