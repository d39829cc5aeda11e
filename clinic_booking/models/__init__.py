"""Database models."""

from clinic_booking.models.appointments import appointments
from clinic_booking.models.audit_logs import audit_logs
from clinic_booking.models.base import metadata
from clinic_booking.models.patients import patients

__all__ = [
    "appointments",
    "audit_logs",
    "metadata",
    "patients",
]
