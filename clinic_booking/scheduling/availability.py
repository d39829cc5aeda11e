"""Free slot computation."""

from datetime import date

import structlog

from clinic_booking.repositories.appointment_repository import AppointmentRepository
from clinic_booking.scheduling.slots import SlotCalculator, TimeSlot, slots_equal

logger = structlog.get_logger()


class AvailabilityChecker:
    """Canonical slots of a date minus those held by active appointments."""

    def __init__(self, slots: SlotCalculator, repository: AppointmentRepository):
        self.slots = slots
        self.repository = repository

    async def check_availability(self, day: date) -> list[TimeSlot]:
        """
        Get the free slots for a date.

        Args:
            day: Clinic-local calendar date

        Returns:
            Free slots in chronological order
        """
        candidates = self.slots.generate_time_slots(day)

        if not candidates:
            logger.info("availability_closed_day", date=day.isoformat())
            return []

        booked = [
            self.slots.slot_starting_at(appointment.scheduled_at)
            for appointment in await self.repository.find_by_date(day)
        ]

        available = [
            slot for slot in candidates if not any(slots_equal(slot, taken) for taken in booked)
        ]

        logger.info(
            "availability_checked",
            date=day.isoformat(),
            total=len(candidates),
            available=len(available),
        )
        return available
