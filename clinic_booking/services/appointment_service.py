"""Appointment service for business logic."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog

from clinic_booking.core.clock import Clock
from clinic_booking.core.exceptions import (
    AppException,
    CancellationWindowException,
    ConcurrentModificationException,
    ConsentRequiredException,
    InvalidSlotException,
    InvalidTransitionException,
    NotFoundException,
    SlotConflictException,
)
from clinic_booking.repositories.appointment_repository import (
    AppointmentRepository,
    SlotTakenError,
    StaleStatusError,
)
from clinic_booking.scheduling.availability import AvailabilityChecker
from clinic_booking.scheduling.cancellation import CancellationPolicy
from clinic_booking.scheduling.slots import SlotCalculator, TimeSlot
from clinic_booking.schemas.appointments import Appointment, AppointmentStatus
from clinic_booking.services.audit_service import AuditLog
from clinic_booking.services.patient_service import PatientService

logger = structlog.get_logger()


class AppointmentService:
    """
    Service for booking, rescheduling and cancelling appointments.

    Enforces:
    - Saturday-only canonical 2-hour slots, no holidays, future only
    - One active appointment per slot
    - Patient consent before booking
    - Cancellation window
    - Status lifecycle
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        patient_service: PatientService,
        audit_log: AuditLog,
        slots: SlotCalculator,
        cancellation_policy: CancellationPolicy,
        clock: Clock,
    ):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.patient_service = patient_service
        self.audit_log = audit_log
        self.slots = slots
        self.cancellation_policy = cancellation_policy
        self.clock = clock
        self.availability = AvailabilityChecker(slots, repository)

    @contextmanager
    def _operation(self, name: str, **context: Any) -> Iterator[None]:
        """Log unexpected failures with enough context to diagnose them."""
        try:
            yield
        except AppException:
            raise
        except Exception:
            logger.exception(
                "appointment_operation_failed",
                operation=name,
                timestamp=self.clock.now().isoformat(),
                **{key: str(value) for key, value in context.items()},
            )
            raise

    async def _record_audit(self, patient_id: UUID, action: str, payload: dict[str, Any]) -> None:
        # Audit failures must never fail the business operation
        try:
            await self.audit_log.record(patient_id, action, payload)
        except Exception as e:
            logger.error(
                "audit_log_failed",
                patient_id=str(patient_id),
                action=action,
                error=str(e),
            )

    async def _get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.repository.find_by_id(appointment_id)

        if not appointment:
            raise NotFoundException("Appointment not found")

        return appointment

    def _bookable_slot(self, scheduled_at: datetime) -> TimeSlot:
        slot = self.slots.slot_starting_at(scheduled_at)

        if not self.slots.is_valid_time_slot(slot):
            raise InvalidSlotException()

        return slot

    async def check_availability(self, day: date) -> list[TimeSlot]:
        """Get free slots for a clinic-local date."""
        with self._operation("check_availability", date=day):
            return await self.availability.check_availability(day)

    async def book(self, patient_id: UUID, scheduled_at: datetime) -> Appointment:
        """
        Book a new appointment.

        Args:
            patient_id: Patient ID
            scheduled_at: Slot start

        Returns:
            Created appointment with status ``scheduled``

        Raises:
            InvalidSlotException: Not a bookable slot
            NotFoundException: Patient not found
            ConsentRequiredException: Patient has not consented
            SlotConflictException: Slot already booked
        """
        logger.info(
            "booking_appointment",
            patient_id=str(patient_id),
            scheduled_at=str(scheduled_at),
        )

        with self._operation("book", patient_id=patient_id, scheduled_at=scheduled_at):
            slot = self._bookable_slot(scheduled_at)

            patient = await self.patient_service.find_patient_by_id(patient_id)
            if not patient.has_consent:
                raise ConsentRequiredException()

            if await self.repository.find_by_slot(slot):
                raise SlotConflictException()

            try:
                appointment = await self.repository.create(patient.id, slot.start_time)
            except SlotTakenError as e:
                raise SlotConflictException() from e

        await self._record_audit(
            patient.id,
            "appointment_booked",
            {
                "appointment_id": appointment.id,
                "scheduled_at": appointment.scheduled_at,
                "status": appointment.status,
            },
        )

        logger.info("appointment_booked", appointment_id=str(appointment.id))
        return appointment

    async def reschedule(self, appointment_id: UUID, new_scheduled_at: datetime) -> Appointment:
        """
        Move an appointment to another slot.

        Moving an appointment onto its own current slot is allowed.

        Raises:
            NotFoundException: Appointment not found
            InvalidTransitionException: Appointment is in a terminal status
            InvalidSlotException: Not a bookable slot
            SlotConflictException: Slot held by another appointment
        """
        logger.info(
            "rescheduling_appointment",
            appointment_id=str(appointment_id),
            new_scheduled_at=str(new_scheduled_at),
        )

        with self._operation(
            "reschedule", appointment_id=appointment_id, new_scheduled_at=new_scheduled_at
        ):
            existing = await self._get_appointment(appointment_id)

            if existing.status.is_terminal:
                raise InvalidTransitionException(
                    "Cannot reschedule cancelled, completed, or no-show appointments"
                )

            new_slot = self._bookable_slot(new_scheduled_at)

            conflicting = await self.repository.find_by_slot(new_slot)
            if conflicting and conflicting.id != appointment_id:
                raise SlotConflictException("New slot already booked. Please choose another time.")

            try:
                updated = await self.repository.update(
                    appointment_id,
                    scheduled_at=new_slot.start_time,
                    expected_status=existing.status,
                )
            except SlotTakenError as e:
                raise SlotConflictException(
                    "New slot already booked. Please choose another time."
                ) from e
            except StaleStatusError as e:
                raise ConcurrentModificationException() from e

        await self._record_audit(
            existing.patient_id,
            "appointment_rescheduled",
            {
                "appointment_id": appointment_id,
                "old_scheduled_at": existing.scheduled_at,
                "new_scheduled_at": updated.scheduled_at,
            },
        )

        logger.info("appointment_rescheduled", appointment_id=str(appointment_id))
        return updated

    async def cancel(self, appointment_id: UUID, reason: str) -> Appointment:
        """
        Cancel an appointment, freeing its slot.

        Raises:
            NotFoundException: Appointment not found
            InvalidTransitionException: Appointment is in a terminal status
            CancellationWindowException: Too close to the appointment
        """
        logger.info("cancelling_appointment", appointment_id=str(appointment_id), reason=reason)

        with self._operation("cancel", appointment_id=appointment_id):
            appointment = await self._get_appointment(appointment_id)

            if appointment.status.is_terminal:
                raise InvalidTransitionException(
                    "Cannot cancel already cancelled, completed, or no-show appointments"
                )

            if not self.cancellation_policy.can_cancel(appointment.scheduled_at):
                raise CancellationWindowException(
                    self.cancellation_policy.error_message(appointment.scheduled_at)
                )

            try:
                cancelled = await self.repository.update(
                    appointment_id,
                    status=AppointmentStatus.CANCELLED,
                    expected_status=appointment.status,
                )
            except StaleStatusError as e:
                raise ConcurrentModificationException() from e

        await self._record_audit(
            appointment.patient_id,
            "appointment_cancelled",
            {
                "appointment_id": appointment_id,
                "scheduled_at": appointment.scheduled_at,
                "reason": reason,
            },
        )

        logger.info("appointment_cancelled", appointment_id=str(appointment_id))
        return cancelled

    async def update_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
    ) -> Appointment:
        """
        Move an appointment along its lifecycle.

        Raises:
            NotFoundException: Appointment not found
            InvalidTransitionException: Transition not allowed from current status
            ConcurrentModificationException: Status changed since it was read
        """
        logger.info(
            "updating_appointment_status",
            appointment_id=str(appointment_id),
            new_status=new_status.value,
        )

        with self._operation("update_status", appointment_id=appointment_id, new_status=new_status):
            appointment = await self._get_appointment(appointment_id)

            if not appointment.status.can_transition_to(new_status):
                raise InvalidTransitionException(
                    f"Invalid status transition from {appointment.status.value} "
                    f"to {new_status.value}"
                )

            try:
                updated = await self.repository.update(
                    appointment_id,
                    status=new_status,
                    expected_status=appointment.status,
                )
            except StaleStatusError as e:
                raise ConcurrentModificationException() from e

        await self._record_audit(
            appointment.patient_id,
            "appointment_status_updated",
            {
                "appointment_id": appointment_id,
                "old_status": appointment.status,
                "new_status": new_status,
            },
        )

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            status=new_status.value,
        )
        return updated

    async def find_by_id(self, appointment_id: UUID) -> Appointment | None:
        return await self.repository.find_by_id(appointment_id)

    async def find_by_patient_id(self, patient_id: UUID) -> list[Appointment]:
        return await self.repository.find_by_patient_id(patient_id)
