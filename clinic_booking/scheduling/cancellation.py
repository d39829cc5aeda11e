"""Cancellation window rules."""

import math
from datetime import datetime, timedelta

from clinic_booking.core.clock import Clock

DEFAULT_CANCELLATION_WINDOW_HOURS = 12


class CancellationPolicy:
    """
    Blocks self-service cancellation close to the appointment.

    Appointments can be cancelled while at least ``window_hours`` remain
    before the scheduled time. Exactly ``window_hours`` out is still allowed.
    """

    def __init__(self, clock: Clock, window_hours: int = DEFAULT_CANCELLATION_WINDOW_HOURS):
        self.clock = clock
        self.window_hours = window_hours

    def time_until(self, scheduled_at: datetime) -> timedelta:
        return scheduled_at - self.clock.now()

    def can_cancel(self, scheduled_at: datetime) -> bool:
        """Check whether the appointment is outside the protected window."""
        return self.time_until(scheduled_at) >= timedelta(hours=self.window_hours)

    def hours_until(self, scheduled_at: datetime) -> int:
        """Whole hours until the appointment, floored. Negative once it has passed."""
        return math.floor(self.time_until(scheduled_at) / timedelta(hours=1))

    def error_message(self, scheduled_at: datetime) -> str:
        return (
            f"Cannot cancel appointment within {self.window_hours} hours of scheduled time. "
            f"Appointment is in {self.hours_until(scheduled_at)} hours."
        )
