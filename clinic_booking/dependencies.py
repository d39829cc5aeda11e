"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_booking.config import Settings
from clinic_booking.core.clock import Clock
from clinic_booking.database import get_db, get_session_factory
from clinic_booking.repositories.appointment_repository import (
    AppointmentRepository,
    SqlAppointmentRepository,
)
from clinic_booking.repositories.patient_repository import PatientRepository, SqlPatientRepository
from clinic_booking.scheduling.cancellation import CancellationPolicy
from clinic_booking.scheduling.holidays import HolidayCalendar
from clinic_booking.scheduling.slots import SlotCalculator
from clinic_booking.services.appointment_service import AppointmentService
from clinic_booking.services.audit_service import AuditLog, SqlAuditLog
from clinic_booking.services.patient_service import PatientService


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    """Application clock."""
    return request.app.state.clock


AppSettings = Annotated[Settings, Depends(get_app_settings)]
AppClock = Annotated[Clock, Depends(get_clock)]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_slot_calculator(settings: AppSettings, clock: AppClock) -> SlotCalculator:
    """Slot rules configured for the clinic."""
    return SlotCalculator(
        clock=clock,
        holidays=HolidayCalendar(settings.extra_holidays),
        timezone=settings.clinic_timezone,
        start_hours=settings.slot_start_hours,
        duration_hours=settings.slot_duration_hours,
    )


def get_cancellation_policy(settings: AppSettings, clock: AppClock) -> CancellationPolicy:
    return CancellationPolicy(clock, settings.cancellation_window_hours)


def get_appointment_repository(db: DatabaseSession, settings: AppSettings) -> AppointmentRepository:
    return SqlAppointmentRepository(db, settings.clinic_timezone)


def get_patient_repository(db: DatabaseSession) -> PatientRepository:
    return SqlPatientRepository(db)


def get_audit_log(session_factory: SessionFactory) -> AuditLog:
    return SqlAuditLog(session_factory)


def get_patient_service(
    repository: Annotated[PatientRepository, Depends(get_patient_repository)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
) -> PatientService:
    return PatientService(repository, audit_log)


def get_appointment_service(
    repository: Annotated[AppointmentRepository, Depends(get_appointment_repository)],
    patient_service: Annotated[PatientService, Depends(get_patient_service)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    slots: Annotated[SlotCalculator, Depends(get_slot_calculator)],
    cancellation_policy: Annotated[CancellationPolicy, Depends(get_cancellation_policy)],
    clock: AppClock,
) -> AppointmentService:
    """
    Assemble the appointment service for one request.

    All collaborators share the request's database session.
    """
    return AppointmentService(
        repository=repository,
        patient_service=patient_service,
        audit_log=audit_log,
        slots=slots,
        cancellation_policy=cancellation_policy,
        clock=clock,
    )


# Type aliases for dependency injection
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
SlotCalculatorDep = Annotated[SlotCalculator, Depends(get_slot_calculator)]
