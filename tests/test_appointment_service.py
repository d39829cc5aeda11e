"""Tests for the appointment service."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import NEXT_SATURDAY, SATURDAY_AFTER, clinic_time

from clinic_booking.core.clock import FixedClock
from clinic_booking.core.exceptions import (
    CancellationWindowException,
    ConcurrentModificationException,
    ConsentRequiredException,
    InvalidSlotException,
    InvalidTransitionException,
    NotFoundException,
    SlotConflictException,
)
from clinic_booking.repositories.memory import InMemoryAppointmentRepository
from clinic_booking.scheduling.cancellation import CancellationPolicy
from clinic_booking.scheduling.slots import SlotCalculator
from clinic_booking.schemas.appointments import AppointmentStatus
from clinic_booking.schemas.patients import Patient
from clinic_booking.services.appointment_service import AppointmentService
from clinic_booking.services.audit_service import AuditLog, InMemoryAuditLog
from clinic_booking.services.patient_service import PatientService


class RacingRepository(InMemoryAppointmentRepository):
    """Never sees a conflict on read, as if another booking landed just after the check."""

    async def find_by_slot(self, slot):
        return None


class BrokenRepository(InMemoryAppointmentRepository):
    async def find_by_slot(self, slot):
        raise RuntimeError("connection reset")


class InterleavingRepository(InMemoryAppointmentRepository):
    """Runs ``interleave`` right after the next read, before the caller writes."""

    interleave = None

    async def find_by_id(self, appointment_id):
        row = await super().find_by_id(appointment_id)
        if self.interleave is not None:
            change, self.interleave = self.interleave, None
            await change()
        return row


class FailingAuditLog(AuditLog):
    async def record(self, patient_id, action, payload):
        raise RuntimeError("audit store unavailable")


@pytest.fixture
def build_service(
    patient_service: PatientService,
    slot_calculator: SlotCalculator,
    cancellation_policy: CancellationPolicy,
    clock: FixedClock,
):
    def build(repository, audit_log=None) -> AppointmentService:
        return AppointmentService(
            repository=repository,
            patient_service=patient_service,
            audit_log=audit_log or InMemoryAuditLog(),
            slots=slot_calculator,
            cancellation_policy=cancellation_policy,
            clock=clock,
        )

    return build


class TestBook:
    async def test_book_creates_scheduled_appointment(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        audit_log: InMemoryAuditLog,
    ):
        """Test booking a free slot and the availability that follows."""
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.patient_id == consented_patient.id
        assert appointment.scheduled_at == clinic_time(NEXT_SATURDAY, 9)
        assert len(await appointment_service.check_availability(NEXT_SATURDAY)) == 4
        assert audit_log.actions() == ["appointment_booked"]
        assert audit_log.entries[0].payload["appointment_id"] == str(appointment.id)

    async def test_book_same_slot_twice_conflicts(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        await appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 11))

        with pytest.raises(SlotConflictException) as exc_info:
            await appointment_service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 11))

        assert exc_info.value.status_code == 409

    async def test_concurrent_bookings_only_one_wins(
        self,
        appointment_service: AppointmentService,
        appointment_repository: InMemoryAppointmentRepository,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        results = await asyncio.gather(
            appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 15)),
            appointment_service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 15)),
            return_exceptions=True,
        )

        conflicts = [result for result in results if isinstance(result, SlotConflictException)]
        assert len(conflicts) == 1
        assert len(appointment_repository.rows) == 1

    async def test_storage_level_conflict_maps_to_slot_conflict(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        service = build_service(RacingRepository(clock))
        await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))

        with pytest.raises(SlotConflictException):
            await service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 9))

    async def test_book_requires_consent(
        self,
        appointment_service: AppointmentService,
        appointment_repository: InMemoryAppointmentRepository,
        patient_without_consent: Patient,
    ):
        with pytest.raises(ConsentRequiredException):
            await appointment_service.book(
                patient_without_consent.id, clinic_time(NEXT_SATURDAY, 9)
            )

        assert appointment_repository.rows == {}

    async def test_book_unknown_patient(self, appointment_service: AppointmentService):
        with pytest.raises(NotFoundException, match="Patient not found"):
            await appointment_service.book(uuid4(), clinic_time(NEXT_SATURDAY, 9))

    @pytest.mark.parametrize("hour", [8, 10, 19])
    async def test_book_rejects_off_grid_time(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        hour: int,
    ):
        with pytest.raises(InvalidSlotException):
            await appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, hour))

    async def test_book_rejects_weekday(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        friday = NEXT_SATURDAY - timedelta(days=1)
        with pytest.raises(InvalidSlotException):
            await appointment_service.book(consented_patient.id, clinic_time(friday, 9))

    async def test_invalid_slot_checked_before_patient(
        self,
        appointment_service: AppointmentService,
    ):
        with pytest.raises(InvalidSlotException):
            await appointment_service.book(uuid4(), clinic_time(NEXT_SATURDAY, 10))

    async def test_cancelled_slot_can_be_booked_again(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        first = await appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))
        await appointment_service.cancel(first.id, "Patient travelling")

        second = await appointment_service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 9))

        assert second.id != first.id
        assert second.status == AppointmentStatus.SCHEDULED

    async def test_audit_failure_does_not_fail_booking(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
    ):
        service = build_service(InMemoryAppointmentRepository(clock), FailingAuditLog())

        appointment = await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))

        assert appointment.status == AppointmentStatus.SCHEDULED

    async def test_unexpected_error_propagates(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
    ):
        service = build_service(BrokenRepository(clock))

        with pytest.raises(RuntimeError, match="connection reset"):
            await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))


class TestReschedule:
    async def test_reschedule_moves_appointment(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        audit_log: InMemoryAuditLog,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        moved = await appointment_service.reschedule(
            appointment.id, clinic_time(SATURDAY_AFTER, 13)
        )

        assert moved.id == appointment.id
        assert moved.scheduled_at == clinic_time(SATURDAY_AFTER, 13)
        assert moved.status == AppointmentStatus.SCHEDULED
        assert len(await appointment_service.check_availability(NEXT_SATURDAY)) == 5
        assert audit_log.actions()[-1] == "appointment_rescheduled"
        payload = audit_log.entries[-1].payload
        assert payload["old_scheduled_at"] != payload["new_scheduled_at"]

    async def test_reschedule_onto_own_slot(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        same = await appointment_service.reschedule(appointment.id, clinic_time(NEXT_SATURDAY, 9))

        assert same.scheduled_at == appointment.scheduled_at

    async def test_reschedule_onto_taken_slot(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        mine = await appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))
        await appointment_service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 11))

        with pytest.raises(SlotConflictException, match="New slot already booked"):
            await appointment_service.reschedule(mine.id, clinic_time(NEXT_SATURDAY, 11))

    async def test_reschedule_to_invalid_slot(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        with pytest.raises(InvalidSlotException):
            await appointment_service.reschedule(appointment.id, clinic_time(NEXT_SATURDAY, 12))

    async def test_reschedule_unknown_appointment(self, appointment_service: AppointmentService):
        with pytest.raises(NotFoundException, match="Appointment not found"):
            await appointment_service.reschedule(uuid4(), clinic_time(NEXT_SATURDAY, 9))

    async def test_reschedule_cancelled_appointment(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        await appointment_service.cancel(appointment.id, "No longer needed")

        with pytest.raises(InvalidTransitionException, match="Cannot reschedule"):
            await appointment_service.reschedule(appointment.id, clinic_time(SATURDAY_AFTER, 9))

    async def test_reschedule_storage_level_conflict_maps_to_slot_conflict(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        service = build_service(RacingRepository(clock))
        mine = await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))
        await service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 11))

        with pytest.raises(SlotConflictException, match="New slot already booked"):
            await service.reschedule(mine.id, clinic_time(NEXT_SATURDAY, 11))

        assert (await service.find_by_id(mine.id)).scheduled_at == clinic_time(NEXT_SATURDAY, 9)


class TestCancel:
    async def test_cancel_outside_window(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        audit_log: InMemoryAuditLog,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        cancelled = await appointment_service.cancel(appointment.id, "Feeling better")

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert audit_log.actions()[-1] == "appointment_cancelled"
        assert audit_log.entries[-1].payload["reason"] == "Feeling better"

    async def test_cancel_inside_window(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        clock: FixedClock,
    ):
        """Test cancelling 11 hours ahead is refused with the remaining hours."""
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        clock.set(appointment.scheduled_at - timedelta(hours=11))

        with pytest.raises(CancellationWindowException) as exc_info:
            await appointment_service.cancel(appointment.id, "Too late")

        assert "12 hours" in exc_info.value.message
        assert "11 hours" in exc_info.value.message
        assert (await appointment_service.find_by_id(appointment.id)).status == (
            AppointmentStatus.SCHEDULED
        )

    async def test_cancel_exactly_at_window_boundary(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        clock: FixedClock,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        clock.set(appointment.scheduled_at - timedelta(hours=12))

        cancelled = await appointment_service.cancel(appointment.id, "Just in time")

        assert cancelled.status == AppointmentStatus.CANCELLED

    async def test_cancel_confirmed_appointment(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        await appointment_service.update_status(appointment.id, AppointmentStatus.CONFIRMED)

        cancelled = await appointment_service.cancel(appointment.id, "Schedule clash")

        assert cancelled.status == AppointmentStatus.CANCELLED

    async def test_cancel_twice(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        await appointment_service.cancel(appointment.id, "First")

        with pytest.raises(InvalidTransitionException, match="already cancelled"):
            await appointment_service.cancel(appointment.id, "Second")

    async def test_cancel_unknown_appointment(self, appointment_service: AppointmentService):
        with pytest.raises(NotFoundException):
            await appointment_service.cancel(uuid4(), "Anything")

    async def test_cancel_after_status_changed_underneath(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
    ):
        repository = InterleavingRepository(clock)
        service = build_service(repository)
        appointment = await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))

        async def confirm_elsewhere():
            await repository.update(appointment.id, status=AppointmentStatus.CONFIRMED)

        repository.interleave = confirm_elsewhere

        with pytest.raises(ConcurrentModificationException):
            await service.cancel(appointment.id, "Change of plans")

        assert repository.rows[appointment.id].status == AppointmentStatus.CONFIRMED


class TestUpdateStatus:
    @pytest.mark.parametrize(
        "path",
        [
            [AppointmentStatus.CONFIRMED],
            [AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED],
            [AppointmentStatus.CONFIRMED, AppointmentStatus.NO_SHOW],
            [AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED],
            [AppointmentStatus.NO_SHOW],
            [AppointmentStatus.CANCELLED],
        ],
    )
    async def test_allowed_paths(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        path: list[AppointmentStatus],
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        for status in path:
            appointment = await appointment_service.update_status(appointment.id, status)

        assert appointment.status == path[-1]

    async def test_completed_back_to_scheduled_is_rejected(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        await appointment_service.update_status(appointment.id, AppointmentStatus.CONFIRMED)
        await appointment_service.update_status(appointment.id, AppointmentStatus.COMPLETED)

        with pytest.raises(
            InvalidTransitionException,
            match="Invalid status transition from completed to scheduled",
        ):
            await appointment_service.update_status(appointment.id, AppointmentStatus.SCHEDULED)

    @pytest.mark.parametrize(
        "terminal_path",
        [
            [AppointmentStatus.CANCELLED],
            [AppointmentStatus.NO_SHOW],
            [AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED],
        ],
    )
    async def test_terminal_statuses_have_no_exit(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        terminal_path: list[AppointmentStatus],
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )
        for status in terminal_path:
            await appointment_service.update_status(appointment.id, status)

        for target in AppointmentStatus:
            with pytest.raises(InvalidTransitionException):
                await appointment_service.update_status(appointment.id, target)

        with pytest.raises(InvalidTransitionException):
            await appointment_service.reschedule(appointment.id, clinic_time(SATURDAY_AFTER, 9))
        with pytest.raises(InvalidTransitionException):
            await appointment_service.cancel(appointment.id, "Too late now")

    async def test_scheduled_cannot_skip_to_completed(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
    ):
        appointment = await appointment_service.book(
            consented_patient.id, clinic_time(NEXT_SATURDAY, 9)
        )

        with pytest.raises(InvalidTransitionException):
            await appointment_service.update_status(appointment.id, AppointmentStatus.COMPLETED)

    async def test_status_changed_underneath(
        self,
        build_service,
        clock: FixedClock,
        consented_patient: Patient,
    ):
        repository = InterleavingRepository(clock)
        service = build_service(repository)
        appointment = await service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))

        async def cancel_elsewhere():
            await repository.update(appointment.id, status=AppointmentStatus.CANCELLED)

        repository.interleave = cancel_elsewhere

        with pytest.raises(ConcurrentModificationException):
            await service.update_status(appointment.id, AppointmentStatus.CONFIRMED)

        assert repository.rows[appointment.id].status == AppointmentStatus.CANCELLED


class TestQueries:
    async def test_find_by_patient_id_latest_first(
        self,
        appointment_service: AppointmentService,
        consented_patient: Patient,
        other_patient: Patient,
    ):
        early = await appointment_service.book(consented_patient.id, clinic_time(NEXT_SATURDAY, 9))
        late = await appointment_service.book(consented_patient.id, clinic_time(SATURDAY_AFTER, 9))
        await appointment_service.book(other_patient.id, clinic_time(NEXT_SATURDAY, 11))

        appointments = await appointment_service.find_by_patient_id(consented_patient.id)

        assert [a.id for a in appointments] == [late.id, early.id]

    async def test_find_by_id_missing(self, appointment_service: AppointmentService):
        assert await appointment_service.find_by_id(uuid4()) is None


async def test_update_consent_records_audit(
    patient_service: PatientService,
    patient_without_consent: Patient,
    audit_log: InMemoryAuditLog,
    clock: FixedClock,
):
    patient = await patient_service.update_consent(patient_without_consent.id, clock.now())

    assert patient.has_consent
    assert audit_log.actions() == ["UPDATE_CONSENT"]
