"""
Slot generation.

The clinic sees patients on Saturdays only, in fixed 2-hour blocks starting at
09:00, 11:00, 13:00, 15:00 and 17:00 clinic time. Slots are derived values:
only the start instant is ever persisted.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import pytz

from clinic_booking.core.clock import Clock
from clinic_booking.scheduling.holidays import HolidayCalendar

SATURDAY = 5
DEFAULT_SLOT_START_HOURS = (9, 11, 13, 15, 17)
DEFAULT_SLOT_DURATION_HOURS = 2


@dataclass(frozen=True)
class TimeSlot:
    """A bookable interval, ``end_time`` exclusive."""

    start_time: datetime
    end_time: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start_time <= instant < self.end_time


def slots_equal(a: TimeSlot, b: TimeSlot) -> bool:
    """Check two slots cover exactly the same instants."""
    return a.start_time == b.start_time and a.end_time == b.end_time


class SlotCalculator:
    """Enumerates and validates slots for the clinic calendar."""

    def __init__(
        self,
        clock: Clock,
        holidays: HolidayCalendar,
        timezone: str = "America/Sao_Paulo",
        start_hours: Sequence[int] = DEFAULT_SLOT_START_HOURS,
        duration_hours: int = DEFAULT_SLOT_DURATION_HOURS,
    ):
        self.clock = clock
        self.holidays = holidays
        self.tz = pytz.timezone(timezone)
        self.start_hours = tuple(sorted(start_hours))
        self.duration = timedelta(hours=duration_hours)

    def localize(self, value: datetime) -> datetime:
        """
        Express ``value`` in clinic time.

        Naive datetimes are taken to already be clinic wall-clock time.
        """
        if value.tzinfo is None:
            return self.tz.localize(value)
        return value.astimezone(self.tz)

    def today(self) -> date:
        """Get the current date in clinic time."""
        return self.clock.now().astimezone(self.tz).date()

    def slot_starting_at(self, start: datetime) -> TimeSlot:
        """Build the slot that begins at ``start``."""
        start = self.localize(start)
        return TimeSlot(start_time=start, end_time=start + self.duration)

    def is_open_day(self, day: date) -> bool:
        """Check whether ``day`` is a Saturday that is not a holiday."""
        return day.weekday() == SATURDAY and not self.holidays.is_holiday(day)

    def generate_time_slots(self, day: date) -> list[TimeSlot]:
        """
        Generate the bookable slots for a calendar date.

        Args:
            day: Clinic-local calendar date

        Returns:
            Slots in chronological order. Empty for non-Saturdays, holidays
            and past dates. On the current day only slots that have not yet
            started are returned.
        """
        if not self.is_open_day(day):
            return []

        if day < self.today():
            return []

        now = self.clock.now()
        slots = []
        for hour in self.start_hours:
            slot = self.slot_starting_at(datetime.combine(day, time(hour=hour)))
            if slot.start_time > now:
                slots.append(slot)

        return slots

    def is_valid_time_slot(self, slot: TimeSlot) -> bool:
        """
        Check a candidate slot against the clinic calendar.

        Validates:
        - Saturday, not a holiday
        - Start strictly in the future
        - Start exactly on a canonical hour
        - Duration matches the configured slot length
        - Start and end on the same clinic-local day
        """
        start = self.localize(slot.start_time)
        end = self.localize(slot.end_time)

        if not self.is_open_day(start.date()):
            return False

        if start <= self.clock.now():
            return False

        if start.hour not in self.start_hours:
            return False

        if (start.minute, start.second, start.microsecond) != (0, 0, 0):
            return False

        if end - start != self.duration:
            return False

        return start.date() == end.date()
