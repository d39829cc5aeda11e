"""Persistence collaborators of the scheduling core."""

from clinic_booking.repositories.appointment_repository import (
    AppointmentRepository,
    SlotTakenError,
    SqlAppointmentRepository,
    StaleStatusError,
)
from clinic_booking.repositories.memory import (
    InMemoryAppointmentRepository,
    InMemoryPatientRepository,
)
from clinic_booking.repositories.patient_repository import PatientRepository, SqlPatientRepository

__all__ = [
    "AppointmentRepository",
    "InMemoryAppointmentRepository",
    "InMemoryPatientRepository",
    "PatientRepository",
    "SlotTakenError",
    "SqlAppointmentRepository",
    "SqlPatientRepository",
    "StaleStatusError",
]
