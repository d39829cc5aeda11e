"""Appointment data access."""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from uuid import UUID

import pytz
import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.exceptions import NotFoundException
from clinic_booking.models.appointments import ACTIVE_SLOT_INDEX, appointments
from clinic_booking.scheduling.slots import TimeSlot
from clinic_booking.schemas.appointments import Appointment, AppointmentStatus

logger = structlog.get_logger()


class SlotTakenError(Exception):
    """Storage refused a write because the slot already has an active appointment."""


class StaleStatusError(Exception):
    """Appointment status no longer matches the status the caller read."""


class AppointmentRepository(ABC):
    """
    Contract for appointment persistence.

    Implementations must treat cancelled appointments as absent from slot
    and date lookups, and must reject a second active appointment on the
    same ``scheduled_at`` by raising ``SlotTakenError``.
    """

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.tz = pytz.timezone(timezone)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Get ``[start, end)`` instants of a clinic-local calendar day."""
        start = self.tz.localize(datetime.combine(day, time.min))
        end = self.tz.localize(datetime.combine(day + timedelta(days=1), time.min))
        return start, end

    @abstractmethod
    async def create(self, patient_id: UUID, scheduled_at: datetime) -> Appointment:
        """Insert a new ``scheduled`` appointment."""

    @abstractmethod
    async def find_by_id(self, appointment_id: UUID) -> Appointment | None:
        """Get appointment by ID, any status."""

    @abstractmethod
    async def find_by_patient_id(self, patient_id: UUID) -> list[Appointment]:
        """Get all appointments of a patient, latest first."""

    @abstractmethod
    async def find_by_slot(self, slot: TimeSlot) -> Appointment | None:
        """Get the active appointment starting inside ``slot``, if any."""

    @abstractmethod
    async def find_by_date(self, day: date) -> list[Appointment]:
        """Get active appointments on a clinic-local day in chronological order."""

    @abstractmethod
    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Appointment]:
        """Get appointments of any status with ``start <= scheduled_at <= end``."""

    @abstractmethod
    async def update(
        self,
        appointment_id: UUID,
        *,
        scheduled_at: datetime | None = None,
        status: AppointmentStatus | None = None,
        expected_status: AppointmentStatus | None = None,
    ) -> Appointment:
        """
        Update schedule and/or status.

        Raises:
            NotFoundException: If appointment does not exist
            StaleStatusError: If ``expected_status`` no longer matches
            SlotTakenError: If the new time collides with an active appointment
        """

    @abstractmethod
    async def delete(self, appointment_id: UUID) -> None:
        """Soft delete: mark the appointment cancelled. Rows are never removed."""


def _is_active_slot_violation(error: IntegrityError) -> bool:
    return ACTIVE_SLOT_INDEX in str(error.orig)


class SqlAppointmentRepository(AppointmentRepository):
    """Appointment repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession, timezone: str = "America/Sao_Paulo"):
        """Initialize repository with database session."""
        super().__init__(timezone)
        self.db = db

    async def create(self, patient_id: UUID, scheduled_at: datetime) -> Appointment:
        stmt = (
            insert(appointments)
            .values(
                patient_id=patient_id,
                scheduled_at=scheduled_at,
                status=AppointmentStatus.SCHEDULED.value,
            )
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_active_slot_violation(e):
                logger.warning("appointment_slot_taken", scheduled_at=scheduled_at.isoformat())
                raise SlotTakenError(str(scheduled_at)) from e
            raise

        appointment = Appointment.model_validate(dict(row._mapping))
        logger.info("appointment_created", appointment_id=str(appointment.id))
        return appointment

    async def find_by_id(self, appointment_id: UUID) -> Appointment | None:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            return None

        return Appointment.model_validate(dict(row._mapping))

    async def find_by_patient_id(self, patient_id: UUID) -> list[Appointment]:
        stmt = (
            select(appointments)
            .where(appointments.c.patient_id == patient_id)
            .order_by(appointments.c.scheduled_at.desc())
        )
        result = await self.db.execute(stmt)
        return [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def find_by_slot(self, slot: TimeSlot) -> Appointment | None:
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.scheduled_at >= slot.start_time,
                    appointments.c.scheduled_at < slot.end_time,
                    appointments.c.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            return None

        return Appointment.model_validate(dict(row._mapping))

    async def find_by_date(self, day: date) -> list[Appointment]:
        start, end = self.day_bounds(day)
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.scheduled_at >= start,
                    appointments.c.scheduled_at < end,
                    appointments.c.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .order_by(appointments.c.scheduled_at.asc())
        )
        result = await self.db.execute(stmt)
        return [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Appointment]:
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.scheduled_at >= start,
                    appointments.c.scheduled_at <= end,
                )
            )
            .order_by(appointments.c.scheduled_at.asc())
        )
        result = await self.db.execute(stmt)
        return [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def update(
        self,
        appointment_id: UUID,
        *,
        scheduled_at: datetime | None = None,
        status: AppointmentStatus | None = None,
        expected_status: AppointmentStatus | None = None,
    ) -> Appointment:
        conditions = [appointments.c.id == appointment_id]
        if expected_status is not None:
            conditions.append(appointments.c.status == expected_status.value)

        update_values: dict = {"updated_at": func.now()}
        if scheduled_at is not None:
            update_values["scheduled_at"] = scheduled_at
        if status is not None:
            update_values["status"] = status.value

        stmt = (
            update(appointments)
            .where(and_(*conditions))
            .values(**update_values)
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_active_slot_violation(e):
                raise SlotTakenError(str(scheduled_at)) from e
            raise

        if not row:
            if expected_status is not None and await self.find_by_id(appointment_id):
                raise StaleStatusError(str(appointment_id))
            raise NotFoundException("Appointment not found")

        return Appointment.model_validate(dict(row._mapping))

    async def delete(self, appointment_id: UUID) -> None:
        await self.update(appointment_id, status=AppointmentStatus.CANCELLED)
        logger.info("appointment_soft_deleted", appointment_id=str(appointment_id))
