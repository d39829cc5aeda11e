from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timezone

import pytest
import pytest_asyncio
import pytz
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

from clinic_booking.core.clock import FixedClock
from clinic_booking.dependencies import (
    get_appointment_repository,
    get_audit_log,
    get_clock,
    get_patient_repository,
)
from clinic_booking.repositories.memory import (
    InMemoryAppointmentRepository,
    InMemoryPatientRepository,
)
from clinic_booking.scheduling.cancellation import CancellationPolicy
from clinic_booking.scheduling.holidays import HolidayCalendar
from clinic_booking.scheduling.slots import SlotCalculator
from clinic_booking.schemas.patients import Patient, PatientCreate
from clinic_booking.services.appointment_service import AppointmentService
from clinic_booking.services.audit_service import InMemoryAuditLog
from clinic_booking.services.patient_service import PatientService

# Load environment variables from .env file
load_dotenv()

CLINIC_TZ = pytz.timezone("America/Sao_Paulo")

# Monday 2027-03-01, 09:00 in Sao Paulo
NOW = datetime(2027, 3, 1, 12, 0, tzinfo=timezone.utc)
NEXT_SATURDAY = date(2027, 3, 6)
SATURDAY_AFTER = date(2027, 3, 13)
PAST_SATURDAY = date(2027, 2, 27)
# Dia do Trabalho falls on a Saturday in 2027
HOLIDAY_SATURDAY = date(2027, 5, 1)


def clinic_time(day: date, hour: int, minute: int = 0) -> datetime:
    """Clinic-local wall-clock time as an aware datetime."""
    return CLINIC_TZ.localize(datetime.combine(day, time(hour, minute)))


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a Monday morning before NEXT_SATURDAY."""
    return FixedClock(NOW)


@pytest.fixture
def holidays() -> HolidayCalendar:
    return HolidayCalendar()


@pytest.fixture
def slot_calculator(clock: FixedClock, holidays: HolidayCalendar) -> SlotCalculator:
    return SlotCalculator(clock=clock, holidays=holidays)


@pytest.fixture
def cancellation_policy(clock: FixedClock) -> CancellationPolicy:
    return CancellationPolicy(clock)


@pytest.fixture
def appointment_repository(clock: FixedClock) -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository(clock)


@pytest.fixture
def patient_repository(clock: FixedClock) -> InMemoryPatientRepository:
    return InMemoryPatientRepository(clock)


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def patient_service(
    patient_repository: InMemoryPatientRepository,
    audit_log: InMemoryAuditLog,
) -> PatientService:
    return PatientService(patient_repository, audit_log)


@pytest.fixture
def appointment_service(
    appointment_repository: InMemoryAppointmentRepository,
    patient_service: PatientService,
    audit_log: InMemoryAuditLog,
    slot_calculator: SlotCalculator,
    cancellation_policy: CancellationPolicy,
    clock: FixedClock,
) -> AppointmentService:
    """Appointment service wired to in-memory collaborators."""
    return AppointmentService(
        repository=appointment_repository,
        patient_service=patient_service,
        audit_log=audit_log,
        slots=slot_calculator,
        cancellation_policy=cancellation_policy,
        clock=clock,
    )


@pytest_asyncio.fixture
async def consented_patient(patient_repository: InMemoryPatientRepository) -> Patient:
    """Patient who has accepted data processing."""
    return await patient_repository.create(
        PatientCreate(name="Maria Silva", phone="+5511999990001", consent_given_at=NOW)
    )


@pytest_asyncio.fixture
async def other_patient(patient_repository: InMemoryPatientRepository) -> Patient:
    return await patient_repository.create(
        PatientCreate(name="João Souza", phone="+5511999990002", consent_given_at=NOW)
    )


@pytest_asyncio.fixture
async def patient_without_consent(patient_repository: InMemoryPatientRepository) -> Patient:
    return await patient_repository.create(
        PatientCreate(name="Ana Lima", phone="+5511999990003")
    )


@pytest_asyncio.fixture
async def client(
    clock: FixedClock,
    appointment_repository: InMemoryAppointmentRepository,
    patient_repository: InMemoryPatientRepository,
    audit_log: InMemoryAuditLog,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by in-memory collaborators."""
    from clinic_booking.main import app

    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_appointment_repository] = lambda: appointment_repository
    app.dependency_overrides[get_patient_repository] = lambda: patient_repository
    app.dependency_overrides[get_audit_log] = lambda: audit_log

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
