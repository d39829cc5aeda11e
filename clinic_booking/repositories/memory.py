"""In-memory repositories for tests and local runs without a database."""

from datetime import date, datetime
from uuid import UUID, uuid4

from clinic_booking.core.clock import Clock, SystemClock
from clinic_booking.core.exceptions import NotFoundException
from clinic_booking.repositories.appointment_repository import (
    AppointmentRepository,
    SlotTakenError,
    StaleStatusError,
)
from clinic_booking.repositories.patient_repository import PatientRepository
from clinic_booking.scheduling.slots import TimeSlot
from clinic_booking.schemas.appointments import Appointment, AppointmentStatus
from clinic_booking.schemas.patients import Patient, PatientCreate


class InMemoryAppointmentRepository(AppointmentRepository):
    """
    Appointment repository holding rows in a dict.

    Mirrors the partial unique index of the SQL schema: an insert or update
    that would put two active appointments on the same ``scheduled_at``
    raises ``SlotTakenError``.
    """

    def __init__(self, clock: Clock | None = None, timezone: str = "America/Sao_Paulo"):
        super().__init__(timezone)
        self.clock = clock or SystemClock()
        self.rows: dict[UUID, Appointment] = {}

    def _ensure_slot_free(self, scheduled_at: datetime, ignore_id: UUID | None = None) -> None:
        for row in self.rows.values():
            if row.id != ignore_id and row.status.is_active and row.scheduled_at == scheduled_at:
                raise SlotTakenError(str(scheduled_at))

    async def create(self, patient_id: UUID, scheduled_at: datetime) -> Appointment:
        self._ensure_slot_free(scheduled_at)
        now = self.clock.now()
        appointment = Appointment(
            id=uuid4(),
            patient_id=patient_id,
            scheduled_at=scheduled_at,
            status=AppointmentStatus.SCHEDULED,
            created_at=now,
            updated_at=now,
        )
        self.rows[appointment.id] = appointment
        return appointment

    async def find_by_id(self, appointment_id: UUID) -> Appointment | None:
        return self.rows.get(appointment_id)

    async def find_by_patient_id(self, patient_id: UUID) -> list[Appointment]:
        matches = [row for row in self.rows.values() if row.patient_id == patient_id]
        return sorted(matches, key=lambda row: row.scheduled_at, reverse=True)

    async def find_by_slot(self, slot: TimeSlot) -> Appointment | None:
        for row in sorted(self.rows.values(), key=lambda row: row.scheduled_at):
            if row.status.is_active and slot.contains(row.scheduled_at):
                return row
        return None

    async def find_by_date(self, day: date) -> list[Appointment]:
        start, end = self.day_bounds(day)
        matches = [
            row
            for row in self.rows.values()
            if row.status.is_active and start <= row.scheduled_at < end
        ]
        return sorted(matches, key=lambda row: row.scheduled_at)

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Appointment]:
        matches = [row for row in self.rows.values() if start <= row.scheduled_at <= end]
        return sorted(matches, key=lambda row: row.scheduled_at)

    async def update(
        self,
        appointment_id: UUID,
        *,
        scheduled_at: datetime | None = None,
        status: AppointmentStatus | None = None,
        expected_status: AppointmentStatus | None = None,
    ) -> Appointment:
        current = self.rows.get(appointment_id)
        if current is None:
            raise NotFoundException("Appointment not found")

        if expected_status is not None and current.status != expected_status:
            raise StaleStatusError(str(appointment_id))

        changes: dict = {"updated_at": self.clock.now()}
        if scheduled_at is not None:
            changes["scheduled_at"] = scheduled_at
        if status is not None:
            changes["status"] = status

        updated = current.model_copy(update=changes)
        if updated.status.is_active:
            self._ensure_slot_free(updated.scheduled_at, ignore_id=appointment_id)

        self.rows[appointment_id] = updated
        return updated

    async def delete(self, appointment_id: UUID) -> None:
        await self.update(appointment_id, status=AppointmentStatus.CANCELLED)


class InMemoryPatientRepository(PatientRepository):
    """Patient repository holding rows in a dict."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self.rows: dict[UUID, Patient] = {}

    async def create(self, data: PatientCreate) -> Patient:
        patient = Patient(id=uuid4(), created_at=self.clock.now(), **data.model_dump())
        self.rows[patient.id] = patient
        return patient

    async def find_by_id(self, patient_id: UUID) -> Patient | None:
        return self.rows.get(patient_id)

    async def update_consent(self, patient_id: UUID, consent_given_at: datetime) -> Patient:
        current = self.rows.get(patient_id)
        if current is None:
            raise NotFoundException("Patient not found")

        updated = current.model_copy(update={"consent_given_at": consent_given_at})
        self.rows[patient_id] = updated
        return updated
