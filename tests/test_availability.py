"""Tests for free slot computation."""

from datetime import date, timedelta
from uuid import uuid4

from conftest import HOLIDAY_SATURDAY, NEXT_SATURDAY, PAST_SATURDAY, clinic_time

from clinic_booking.core.clock import FixedClock
from clinic_booking.repositories.memory import InMemoryAppointmentRepository
from clinic_booking.scheduling.availability import AvailabilityChecker
from clinic_booking.scheduling.slots import SlotCalculator
from clinic_booking.schemas.appointments import AppointmentStatus


class CountingRepository(InMemoryAppointmentRepository):
    def __init__(self, clock: FixedClock):
        super().__init__(clock)
        self.find_by_date_calls: list[date] = []

    async def find_by_date(self, day: date):
        self.find_by_date_calls.append(day)
        return await super().find_by_date(day)


async def test_free_saturday_has_all_slots(slot_calculator: SlotCalculator, clock: FixedClock):
    checker = AvailabilityChecker(slot_calculator, InMemoryAppointmentRepository(clock))

    slots = await checker.check_availability(NEXT_SATURDAY)

    assert [slot.start_time.hour for slot in slots] == [9, 11, 13, 15, 17]


async def test_closed_days_skip_repository(slot_calculator: SlotCalculator, clock: FixedClock):
    repository = CountingRepository(clock)
    checker = AvailabilityChecker(slot_calculator, repository)

    for day in (NEXT_SATURDAY - timedelta(days=1), HOLIDAY_SATURDAY, PAST_SATURDAY):
        assert await checker.check_availability(day) == []

    assert repository.find_by_date_calls == []


async def test_booked_slot_is_removed(slot_calculator: SlotCalculator, clock: FixedClock):
    repository = InMemoryAppointmentRepository(clock)
    await repository.create(uuid4(), clinic_time(NEXT_SATURDAY, 13))
    checker = AvailabilityChecker(slot_calculator, repository)

    slots = await checker.check_availability(NEXT_SATURDAY)

    assert [slot.start_time.hour for slot in slots] == [9, 11, 15, 17]


async def test_cancelled_appointment_frees_slot(slot_calculator: SlotCalculator, clock: FixedClock):
    repository = InMemoryAppointmentRepository(clock)
    appointment = await repository.create(uuid4(), clinic_time(NEXT_SATURDAY, 9))
    await repository.update(appointment.id, status=AppointmentStatus.CANCELLED)
    checker = AvailabilityChecker(slot_calculator, repository)

    slots = await checker.check_availability(NEXT_SATURDAY)

    assert len(slots) == 5


async def test_bookings_on_other_dates_do_not_count(
    slot_calculator: SlotCalculator,
    clock: FixedClock,
):
    repository = InMemoryAppointmentRepository(clock)
    await repository.create(uuid4(), clinic_time(NEXT_SATURDAY + timedelta(days=7), 9))
    checker = AvailabilityChecker(slot_calculator, repository)

    assert len(await checker.check_availability(NEXT_SATURDAY)) == 5


async def test_date_range_includes_cancelled(clock: FixedClock):
    repository = InMemoryAppointmentRepository(clock)
    kept = await repository.create(uuid4(), clinic_time(NEXT_SATURDAY, 9))
    dropped = await repository.create(uuid4(), clinic_time(NEXT_SATURDAY, 11))
    await repository.delete(dropped.id)
    await repository.create(uuid4(), clinic_time(NEXT_SATURDAY + timedelta(days=14), 9))

    found = await repository.find_by_date_range(
        clinic_time(NEXT_SATURDAY, 0), clinic_time(NEXT_SATURDAY + timedelta(days=7), 0)
    )

    assert [a.id for a in found] == [kept.id, dropped.id]
