# Overview: Business-calendar date arithmetic for daily custody (fixed UTC offset, weekend rules, stale detection).

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from custody.time_utils import parse_iso_date


# Saturday=5, Sunday=6 (date.weekday())
WEEKEND_DAYS = (5, 6)


def _aware_utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InventoryDateService:
    """
    Date rules shared by consolidation and audit reporting.

    The business day is computed from a fixed UTC offset (GMT-5 by default),
    never from the host timezone. The clock is injectable so tests can pin
    "today".
    """

    def __init__(self, utc_offset_hours: int = -5, clock: Optional[Callable[[], datetime]] = None):
        self.utc_offset_hours = utc_offset_hours
        self._clock = clock or _aware_utc_now

    def now_utc(self) -> datetime:
        """Current instant as a naive UTC datetime (storage convention)."""
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return now

    def get_current_date_in_timezone(self) -> date:
        return (self.now_utc() + timedelta(hours=self.utc_offset_hours)).date()

    def business_day_bounds_utc(self, start: date, end: date) -> tuple[datetime, datetime]:
        """
        Convert an inclusive business-date range to a half-open naive UTC window
        [start 00:00 local, (end + 1) 00:00 local).
        """
        offset = timedelta(hours=self.utc_offset_hours)
        lower = datetime.combine(start, datetime.min.time()) - offset
        upper = datetime.combine(end + timedelta(days=1), datetime.min.time()) - offset
        return lower, upper

    @staticmethod
    def is_weekend(value: date) -> bool:
        return value.weekday() in WEEKEND_DAYS

    @staticmethod
    def get_days_difference(date1, date2) -> int:
        """Signed whole days from date1 to date2 (positive when date2 is later)."""
        return (parse_iso_date(date2) - parse_iso_date(date1)).days

    def apply_weekend_rules(self, value, skip_weekends: bool = False) -> date:
        adjusted = parse_iso_date(value)
        if not skip_weekends:
            return adjusted
        while self.is_weekend(adjusted):
            adjusted += timedelta(days=1)
        return adjusted

    def get_next_working_day(self, value, skip_weekends: bool = False) -> date:
        return self.apply_weekend_rules(parse_iso_date(value) + timedelta(days=1), skip_weekends)

    def is_stale_inventory(self, inventory_date, current_date=None) -> bool:
        compare = parse_iso_date(current_date) if current_date is not None else self.get_current_date_in_timezone()
        return self.get_days_difference(inventory_date, compare) >= 1

    def calculate_next_inventory_date(self, assignment_date, skip_weekends: bool = False) -> date:
        """
        Target date for the assignment that follows assignment_date.

        Same-day (or future-dated) closure rolls to the next working day.
        A stale assignment (dated before today) re-anchors on today instead of
        assignment_date + 1, so missed days are never replayed.
        """
        assignment_date = parse_iso_date(assignment_date)
        today = self.get_current_date_in_timezone()

        if self.get_days_difference(assignment_date, today) <= 0:
            return self.get_next_working_day(assignment_date, skip_weekends)

        return self.apply_weekend_rules(today, skip_weekends)
