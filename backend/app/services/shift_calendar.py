"""
Shift classification and midnight arithmetic.

Every question of the form "which shift-date does this scan belong to" is
answered by ShiftCalendar so the grouper and the time-in/time-out lookups agree.
A shift-date is always the date of the scheduled time-in, even when the
time-out lands on the next calendar day.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Literal, Protocol

from app.core.config import settings
from app.schemas.attendance import ScanRecord

ShiftType = Literal["morning", "afternoon", "evening", "night", "graveyard"]

# Scans up to this many minutes before a next-day shift starts count as its time-in
EARLY_ARRIVAL_MINUTES = 60


class HasShiftWindow(Protocol):
    scheduled_time_in: time
    scheduled_time_out: time


def shift_type_for_hour(hour: int) -> ShiftType:
    if 5 <= hour <= 11:
        return "morning"
    if 12 <= hour <= 17:
        return "afternoon"
    if 18 <= hour <= 21:
        return "evening"
    if 22 <= hour <= 23:
        return "night"
    return "graveyard"


def determine_shift_type(schedule: HasShiftWindow) -> ShiftType:
    return shift_type_for_hour(schedule.scheduled_time_in.hour)


def is_next_day_shift(schedule: HasShiftWindow) -> bool:
    """
    True when the shift crosses midnight (time-out at or before time-in).

    00:00-09:00 is same-day under this rule.
    """
    return schedule.scheduled_time_out <= schedule.scheduled_time_in


_TIME_IN_HOURS: dict[ShiftType, tuple[int, int]] = {
    "morning": (5, 11),
    "afternoon": (12, 17),
    "evening": (18, 23),
    "night": (18, 23),
    "graveyard": (0, 4),
}


class ShiftCalendar:
    def __init__(self, schedule: HasShiftWindow) -> None:
        self.time_in = schedule.scheduled_time_in
        self.time_out = schedule.scheduled_time_out
        self.shift_type = determine_shift_type(schedule)
        self.next_day = is_next_day_shift(schedule)

    def __repr__(self) -> str:
        return f"<ShiftCalendar {self.time_in}-{self.time_out} {self.shift_type} next_day={self.next_day}>"

    def scheduled_start(self, shift_date: date) -> datetime:
        return datetime.combine(shift_date, self.time_in)

    def time_out_date(self, shift_date: date) -> date:
        return shift_date + timedelta(days=1) if self.next_day else shift_date

    def scheduled_end(self, shift_date: date) -> datetime:
        return datetime.combine(self.time_out_date(shift_date), self.time_out)

    def time_in_hour_range(self) -> tuple[int, int]:
        """Hours of the shift-date in which a next-day shift's time-in is searched."""
        return _TIME_IN_HOURS[self.shift_type]

    def shift_date_for(self, scan: datetime) -> date:
        """
        Shift-date a scan belongs to.

        Same-day shifts use the calendar date, except that a scan in the
        EARLY_TIME_IN_WINDOW_HOURS before tomorrow's start (a shift starting
        just after midnight) belongs to tomorrow.

        For next-day shifts a scan belongs to today's shift when it is within
        EARLY_ARRIVAL_MINUTES before the start, or in the evening for shifts
        starting at 22:00 or later, or at/after the start hour.  Anything
        earlier in the day is the previous shift's time-out.
        """
        scan_date = scan.date()
        if not self.next_day:
            next_date = scan_date + timedelta(days=1)
            early = self.scheduled_start(next_date) - scan
            if early <= timedelta(hours=settings.EARLY_TIME_IN_WINDOW_HOURS):
                return next_date
            return scan_date

        minutes_before_start = (self.scheduled_start(scan_date) - scan).total_seconds() / 60
        if 0 <= minutes_before_start <= EARLY_ARRIVAL_MINUTES:
            return scan_date
        if self.time_in.hour >= 22 and 18 <= scan.hour <= 23:
            return scan_date
        if scan.hour < self.time_in.hour:
            return scan_date - timedelta(days=1)
        return scan_date

    def covers(self, scan: datetime, slack_minutes: int = 0) -> bool:
        """True when ``scan`` falls inside a scheduled occurrence of this shift (with slack)."""
        slack = timedelta(minutes=slack_minutes)
        for shift_date in (scan.date(), scan.date() - timedelta(days=1)):
            if self.scheduled_start(shift_date) - slack <= scan <= self.scheduled_end(shift_date) + slack:
                return True
        return False


def group_records_by_shift_date(
    records: list[ScanRecord], schedule: HasShiftWindow | None = None
) -> dict[date, list[ScanRecord]]:
    """
    Bucket one employee's scans by shift-date.

    Without a schedule the calendar date is used.  Buckets are returned in
    shift-date order and each bucket is chronological.
    """
    calendar = ShiftCalendar(schedule) if schedule is not None else None
    buckets: dict[date, list[ScanRecord]] = defaultdict(list)

    for record in sorted(records, key=lambda r: r.datetime):
        key = calendar.shift_date_for(record.datetime) if calendar else record.scan_date
        buckets[key].append(record)

    return dict(sorted(buckets.items()))
